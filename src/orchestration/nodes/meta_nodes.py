# ABOUTME: Meta proposal and probability roll node factories.
# ABOUTME: Proposal pauses the turn for review, or passes an empty batch straight through when nested.

from loguru import logger

from src.models.game_phase import GamePhase, ReviewOutcome, ReviewSignal, RollSignal
from src.models.turn import TurnState
from src.orchestration.dependencies import TurnDependencies
from src.orchestration.phase_table import next_phase, should_generate_meta_events
from src.orchestration.probability import triggered_events
from src.utils.logging import log_turn_event


def make_meta_proposal_node(deps: TurnDependencies):
    async def meta_proposal_node(state: TurnState) -> TurnState:
        """
        Propose meta events, or skip them while the session is already nested.

        Skipping still walks meta_proposal -> meta_review -> probability_roll so the
        phase history stays legal; the roll then sees an empty batch.
        """
        turn_id = state["turn_id"]
        session_id = state["session_id"]
        context = deps.machine.get_context(session_id)

        if not should_generate_meta_events(context):
            log_turn_event(
                "Already inside a meta event or combat, skipping proposal",
                session_id=session_id,
                turn_id=turn_id,
                phase=GamePhase.META_PROPOSAL.value,
            )
            deps.machine.transition(
                session_id,
                next_phase(GamePhase.META_PROPOSAL),
                expected_pending_action_id=turn_id,
            )
            deps.machine.transition(
                session_id,
                next_phase(GamePhase.META_REVIEW, ReviewSignal(review_outcome=ReviewOutcome.CONFIRM)),
                expected_pending_action_id=turn_id,
            )
            return {**state, "meta_skipped": True}

        proposal_round = state.get("proposal_round", 0)

        async def _propose() -> dict:
            result = await deps.proposer.propose(turn_id)
            return {"event_ids": [event.id for event in result.events]}

        await deps.runner.run(turn_id, f"meta_proposal:{proposal_round}", _propose)

        return {
            **state,
            "meta_skipped": False,
            "proposal_round": proposal_round + 1,
            "awaiting_review": True,
        }

    return meta_proposal_node


def make_probability_roll_node(deps: TurnDependencies):
    async def probability_roll_node(state: TurnState) -> TurnState:
        """Roll accepted events and enter the event loop if any triggered"""
        turn_id = state["turn_id"]

        async def _roll() -> dict:
            events = deps.store.get_meta_events(turn_id)
            rolled = deps.roller.roll(events)
            if rolled:
                deps.store.save_meta_events(rolled)
            return {"triggered_event_ids": [event.id for event in triggered_events(rolled)]}

        recorded = await deps.runner.run(turn_id, "probability_roll", _roll)
        triggered_ids = recorded["triggered_event_ids"]

        target = next_phase(
            GamePhase.PROBABILITY_ROLL, RollSignal(has_triggered_events=bool(triggered_ids))
        )
        deps.machine.transition(state["session_id"], target, expected_pending_action_id=turn_id)

        logger.info(f"[ROLL] Turn {turn_id}: {len(triggered_ids)} event(s) triggered")
        return {
            **state,
            "triggered_event_ids": triggered_ids,
            "event_route": "event" if triggered_ids else "resolve",
        }

    return probability_roll_node
