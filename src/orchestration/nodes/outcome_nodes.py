# ABOUTME: Narrate and finalize node factories that close out a turn.
# ABOUTME: Finalize writes the turn record once, returns the session to idle, and publishes TurnCompleted.

from src.models.game_phase import Nesting
from src.models.session import TurnRecord
from src.models.turn import (
    ConstraintBundle,
    EventResolution,
    InteractionResult,
    NarrationResult,
    NarrationSignals,
    TurnCompleted,
    TurnState,
)
from src.orchestration.dependencies import TurnDependencies
from src.utils.logging import log_turn_event


def nesting_flags(signals: NarrationSignals, was_in_meta_event: bool) -> tuple[bool, bool]:
    """
    Session flags for the next turn from the narrator's signals.

    Returns:
        (is_in_meta_event, is_in_combat)
    """
    if signals.nesting == Nesting.PUSH:
        in_meta_event = True
    elif signals.nesting == Nesting.POP:
        in_meta_event = False
    else:
        in_meta_event = was_in_meta_event
    return in_meta_event, signals.combat_active


def make_narrate_node(deps: TurnDependencies):
    async def narrate_node(state: TurnState) -> TurnState:
        turn_id = state["turn_id"]
        constraints = ConstraintBundle.model_validate(state.get("constraints") or {})
        resolutions = [
            EventResolution.model_validate(r) for r in state.get("event_resolutions", [])
        ]
        interactions = InteractionResult.model_validate(state.get("interactions") or {})

        async def _narrate() -> dict:
            result = await deps.narrator.narrate(
                state["player_input"], constraints, resolutions, interactions
            )
            return result.model_dump()

        narration = await deps.runner.run(turn_id, "narrate", _narrate)
        return {**state, "narration": narration}

    return narrate_node


def make_finalize_node(deps: TurnDependencies):
    async def finalize_node(state: TurnState) -> TurnState:
        """Persist the record, complete the turn, and announce it"""
        turn_id = state["turn_id"]
        session_id = state["session_id"]
        narration = NarrationResult.model_validate(state["narration"])

        async def _finalize() -> dict:
            deps.store.save_turn_record(
                TurnRecord(
                    turn_id=turn_id,
                    session_id=session_id,
                    player_input=state["player_input"],
                    narrative=narration.narrative,
                    triggered_event_ids=state.get("triggered_event_ids", []),
                )
            )

            in_meta_event, in_combat = nesting_flags(
                narration.signals, state["started_in_meta_event"]
            )
            deps.machine.complete_turn(
                session_id, turn_id, is_in_meta_event=in_meta_event, is_in_combat=in_combat
            )
            deps.publisher.publish(
                TurnCompleted(session_id=session_id, turn_id=turn_id, narrative=narration.narrative)
            )
            return {"is_in_meta_event": in_meta_event, "is_in_combat": in_combat}

        flags = await deps.runner.run(turn_id, "finalize", _finalize)

        log_turn_event(
            "Turn completed",
            session_id=session_id,
            turn_id=turn_id,
            phase="idle",
            **flags,
        )
        return {**state, "completed": True}

    return finalize_node
