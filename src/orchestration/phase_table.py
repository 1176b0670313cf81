# ABOUTME: Pure functions over the phase adjacency table: legality, blocking, and canonical successors.
# ABOUTME: next_phase takes a phase-specific signal type instead of a bag of optional flags.

from src.models.game_phase import (
    ALTERNATE_INPUT_PHASES,
    BLOCKING_PHASES,
    VALID_TRANSITIONS,
    CombatSignal,
    EventSignal,
    GamePhase,
    PhaseSignal,
    ReviewOutcome,
    ReviewSignal,
    RollSignal,
    ValidationSignal,
)
from src.models.session import SessionPhaseContext


def can_transition(from_phase: GamePhase | str, to_phase: GamePhase | str) -> bool:
    """
    Check whether a phase move is in the adjacency table.

    Args:
        from_phase: Current phase
        to_phase: Requested phase

    Returns:
        True if the move is allowed
    """
    return GamePhase(to_phase) in VALID_TRANSITIONS[GamePhase(from_phase)]


def is_blocking(phase: GamePhase | str) -> bool:
    """True if the phase rejects new free-text player input"""
    return GamePhase(phase) in BLOCKING_PHASES


def accepts_alternate_input(phase: GamePhase | str) -> bool:
    """True if the phase takes input through decisions rather than free text"""
    return GamePhase(phase) in ALTERNATE_INPUT_PHASES


def should_generate_meta_events(context: SessionPhaseContext) -> bool:
    """No new complications are proposed while already inside one"""
    return not (context.is_in_meta_event or context.is_in_combat)


def _require(signal: PhaseSignal | None, expected: type, phase: GamePhase):
    if not isinstance(signal, expected):
        raise TypeError(
            f"Phase {phase.value} needs a {expected.__name__}, got {type(signal).__name__}"
        )
    return signal


def next_phase(current: GamePhase | str, signal: PhaseSignal | None = None) -> GamePhase:
    """
    Compute the canonical successor of a phase from its completion signal.

    Phases with a single successor (idle, meta_proposal, resolving_action) take no
    signal. in_meta_event does not pick the next unresolved event; the caller does.
    Every result is a legal move in VALID_TRANSITIONS.

    Args:
        current: Phase that just completed a step
        signal: Signal type matching the phase

    Returns:
        The phase to transition to

    Raises:
        TypeError: If the signal does not belong to the phase
    """
    phase = GamePhase(current)

    if phase == GamePhase.IDLE:
        return GamePhase.VALIDATING

    if phase == GamePhase.VALIDATING:
        s = _require(signal, ValidationSignal, phase)
        return GamePhase.META_PROPOSAL if s.validation_passed else GamePhase.IDLE

    if phase == GamePhase.META_PROPOSAL:
        return GamePhase.META_REVIEW

    if phase == GamePhase.META_REVIEW:
        s = _require(signal, ReviewSignal, phase)
        if s.review_outcome == ReviewOutcome.REGENERATE:
            return GamePhase.META_PROPOSAL
        return GamePhase.PROBABILITY_ROLL

    if phase == GamePhase.PROBABILITY_ROLL:
        s = _require(signal, RollSignal, phase)
        return GamePhase.IN_META_EVENT if s.has_triggered_events else GamePhase.RESOLVING_ACTION

    if phase == GamePhase.IN_META_EVENT:
        s = _require(signal, EventSignal, phase)
        return GamePhase.RESOLVING_ACTION if s.all_events_resolved else GamePhase.IN_META_EVENT

    if phase == GamePhase.IN_COMBAT:
        s = _require(signal, CombatSignal, phase)
        if not s.combat_ended:
            # Unfinished combat closes this turn; is_in_combat carries it into the next
            return GamePhase.RESOLVING_ACTION
        # Leaving combat behaves like leaving the roll: more events or resolve
        return GamePhase.RESOLVING_ACTION if s.all_events_resolved else GamePhase.IN_META_EVENT

    # resolving_action
    return GamePhase.IDLE
