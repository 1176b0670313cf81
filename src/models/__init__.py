"""Data models for the turn-phase engine"""

from .game_phase import (
    ALTERNATE_INPUT_PHASES,
    BLOCKING_PHASES,
    VALID_TRANSITIONS,
    CombatSignal,
    EventSignal,
    GamePhase,
    MetaEventType,
    Nesting,
    PhaseSignal,
    PlayerDecision,
    ReviewOutcome,
    ReviewSignal,
    RollSignal,
    SeverityLevel,
    ValidationSignal,
)
from .session import (
    GeneratedEvent,
    MetaEvent,
    PendingAction,
    SessionPhaseContext,
    TurnRecord,
)
from .turn import (
    CombatOutcome,
    ConstraintBundle,
    EventResolution,
    InteractionResult,
    NarrationResult,
    NarrationSignals,
    PlayerActionSubmitted,
    TurnCompleted,
    TurnFailed,
    TurnOutcome,
    TurnState,
    ValidationResult,
)

__all__ = [
    # Phase models
    "GamePhase",
    "MetaEventType",
    "SeverityLevel",
    "PlayerDecision",
    "ReviewOutcome",
    "Nesting",
    "VALID_TRANSITIONS",
    "BLOCKING_PHASES",
    "ALTERNATE_INPUT_PHASES",
    "ValidationSignal",
    "ReviewSignal",
    "RollSignal",
    "EventSignal",
    "CombatSignal",
    "PhaseSignal",
    # Session models
    "SessionPhaseContext",
    "PendingAction",
    "GeneratedEvent",
    "MetaEvent",
    "TurnRecord",
    # Turn models
    "TurnState",
    "ValidationResult",
    "ConstraintBundle",
    "EventResolution",
    "CombatOutcome",
    "InteractionResult",
    "NarrationSignals",
    "NarrationResult",
    "TurnOutcome",
    "PlayerActionSubmitted",
    "TurnCompleted",
    "TurnFailed",
]
