# ABOUTME: Utility module exports for structured logging.
# ABOUTME: Provides loguru setup and the turn, phase, and step logging helpers.

from src.utils.logging import (
    log_phase_transition,
    log_step_attempt,
    log_turn_event,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "log_turn_event",
    "log_phase_transition",
    "log_step_attempt",
]
