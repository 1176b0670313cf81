# ABOUTME: Exception definitions for turn orchestration errors.
# ABOUTME: Defines the phase, generation, review, and step failure taxonomy used across the pipeline.

from src.models.game_phase import GamePhase


class InvalidTransition(Exception):
    """Raised when a phase move is not in the adjacency table (never retried)"""

    def __init__(self, from_phase: GamePhase, to_phase: GamePhase):
        self.from_phase = GamePhase(from_phase)
        self.to_phase = GamePhase(to_phase)
        super().__init__(
            f"Invalid phase transition: {self.from_phase.value} -> {self.to_phase.value}"
        )


class PhaseConflict(Exception):
    """Raised when the caller's assumed phase does not match the stored phase"""

    def __init__(self, message: str, current_phase: GamePhase | None = None):
        self.current_phase = GamePhase(current_phase) if current_phase is not None else None
        super().__init__(message)


class GenerationFormatError(Exception):
    """Raised when a generative call returns unparsable or incomplete output"""

    def __init__(self, message: str, raw_output: str = ""):
        self.raw_output = raw_output
        super().__init__(message)


class ValidationRejected(Exception):
    """Raised when the validator judges player input invalid (a normal terminal outcome)"""

    def __init__(self, clarification: str, error_code: str | None = None):
        self.clarification = clarification
        self.error_code = error_code
        super().__init__(clarification)


class IncompleteDecisions(Exception):
    """Raised when confirm is requested while events are still undecided"""

    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(f"{remaining} meta event(s) still need a decision")


class StepFailed(Exception):
    """Raised when a workflow step exhausts its retry budget"""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"Step '{step}' failed: {type(cause).__name__}: {cause}")
