# ABOUTME: Conditional edge predicates for the turn graph's routing decisions.
# ABOUTME: The entry router maps the stored phase onto the node that continues the turn.

from typing import Literal

from loguru import logger

from src.models.game_phase import GamePhase
from src.models.turn import TurnState

# Stored phase -> node that picks the turn back up
ENTRY_NODES: dict[str, str] = {
    GamePhase.VALIDATING.value: "validate",
    GamePhase.META_PROPOSAL.value: "meta_proposal",
    GamePhase.META_REVIEW.value: "await_review",
    GamePhase.PROBABILITY_ROLL.value: "probability_roll",
    GamePhase.IN_META_EVENT.value: "meta_event",
    GamePhase.IN_COMBAT.value: "combat",
    GamePhase.RESOLVING_ACTION.value: "interaction",
}


def route_entry(state: TurnState) -> str:
    """
    Choose the entry node from the phase the store reported.

    Returns:
        Node name (a key of ENTRY_NODES' values)

    Raises:
        ValueError: If the phase has no entry node (idle)
    """
    phase = state["entry_phase"]
    if phase not in ENTRY_NODES:
        raise ValueError(f"No turn to continue from phase '{phase}'")
    logger.debug(f"Entering turn {state['turn_id']} at {ENTRY_NODES[phase]} (phase={phase})")
    return ENTRY_NODES[phase]


def after_meta_proposal(state: TurnState) -> Literal["review", "roll"]:
    """Pause for review unless the proposal was skipped"""
    return "review" if state.get("awaiting_review") else "roll"


def after_event_step(state: TurnState) -> Literal["event", "combat", "resolve"]:
    """Route out of probability_roll, in_meta_event, and in_combat"""
    return state.get("event_route", "resolve")
