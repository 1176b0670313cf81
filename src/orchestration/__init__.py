# ABOUTME: Orchestration layer exports for phase control and meta-event review.
# ABOUTME: Workflow modules that depend on the agents (graph, orchestrator) are imported from their own modules.

from src.orchestration.exceptions import (
    GenerationFormatError,
    IncompleteDecisions,
    InvalidTransition,
    PhaseConflict,
    StepFailed,
    ValidationRejected,
)
from src.orchestration.phase_machine import PhaseStateMachine
from src.orchestration.phase_table import (
    accepts_alternate_input,
    can_transition,
    is_blocking,
    next_phase,
    should_generate_meta_events,
)
from src.orchestration.review_coordinator import ReviewCoordinator

__all__ = [
    "PhaseStateMachine",
    "ReviewCoordinator",
    "can_transition",
    "is_blocking",
    "accepts_alternate_input",
    "next_phase",
    "should_generate_meta_events",
    "InvalidTransition",
    "PhaseConflict",
    "GenerationFormatError",
    "ValidationRejected",
    "IncompleteDecisions",
    "StepFailed",
]
