# ABOUTME: Event loop, combat, and interaction node factories.
# ABOUTME: Triggered events resolve one per pass in sequence order; combat events detour through in_combat.

from loguru import logger

from src.models.game_phase import CombatSignal, EventSignal, GamePhase
from src.models.session import MetaEvent, utcnow
from src.models.turn import (
    CombatOutcome,
    ConstraintBundle,
    EventResolution,
    TurnState,
)
from src.orchestration.dependencies import TurnDependencies
from src.orchestration.phase_table import next_phase
from src.orchestration.probability import triggered_events


def _unresolved(deps: TurnDependencies, turn_id: str) -> list[MetaEvent]:
    events = deps.store.get_meta_events(turn_id)
    return [event for event in triggered_events(events) if event.resolved_at is None]


def _mark_resolved(deps: TurnDependencies, event: MetaEvent) -> None:
    deps.store.save_meta_event(event.model_copy(update={"resolved_at": utcnow()}))


def _combat_carried_over(deps: TurnDependencies, turn_id: str) -> bool:
    """True once a fight this turn was recorded as not over"""
    for event in triggered_events(deps.store.get_meta_events(turn_id)):
        recorded = deps.ledger.get(turn_id, f"combat:{event.id}")
        if recorded is not None and not recorded["combat_ended"]:
            return True
    return False


def collect_resolutions(deps: TurnDependencies, turn_id: str) -> list[EventResolution]:
    """Recorded resolutions of this turn's triggered events, in sequence order"""
    resolutions = []
    for event in triggered_events(deps.store.get_meta_events(turn_id)):
        recorded = deps.ledger.get(turn_id, f"resolve_event:{event.id}")
        if recorded is None:
            recorded = deps.ledger.get(turn_id, f"combat:{event.id}")
        if recorded is not None and "event_id" in recorded:
            resolutions.append(EventResolution.model_validate(recorded))
    return resolutions


def make_meta_event_node(deps: TurnDependencies):
    async def meta_event_node(state: TurnState) -> TurnState:
        """
        Resolve the next triggered event.

        Combat events are handed to the combat node instead. After each event the
        session either stays in in_meta_event (more to resolve) or moves on to
        resolving_action.
        """
        turn_id = state["turn_id"]
        session_id = state["session_id"]
        pending = _unresolved(deps, turn_id)

        if not pending:
            deps.machine.transition(
                session_id,
                next_phase(GamePhase.IN_META_EVENT, EventSignal(all_events_resolved=True)),
                expected_pending_action_id=turn_id,
            )
            return {**state, "active_event_id": None, "event_route": "resolve"}

        event = pending[0]
        if event.triggers_combat:
            logger.info(f"[EVENT] '{event.title}' starts combat")
            deps.machine.transition(
                session_id, GamePhase.IN_COMBAT, expected_pending_action_id=turn_id
            )
            return {**state, "active_event_id": event.id, "event_route": "combat"}

        async def _resolve() -> dict:
            resolution = await deps.event_resolver.resolve(event, state["player_input"])
            return resolution.model_dump()

        await deps.runner.run(turn_id, f"resolve_event:{event.id}", _resolve)
        _mark_resolved(deps, event)
        logger.info(f"[EVENT] Resolved '{event.title}' ({len(pending) - 1} remaining)")

        all_resolved = len(pending) == 1
        deps.machine.transition(
            session_id,
            next_phase(GamePhase.IN_META_EVENT, EventSignal(all_events_resolved=all_resolved)),
            expected_pending_action_id=turn_id,
        )
        return {
            **state,
            "active_event_id": event.id,
            "event_route": "resolve" if all_resolved else "event",
        }

    return meta_event_node


def make_combat_node(deps: TurnDependencies):
    async def combat_node(state: TurnState) -> TurnState:
        """
        Run combat for the current event.

        Combat that does not end this turn closes the event loop; the narrator's
        combat_active signal carries it into the next turn.
        """
        turn_id = state["turn_id"]
        session_id = state["session_id"]
        pending = _unresolved(deps, turn_id)

        if not pending or _combat_carried_over(deps, turn_id):
            # Resumed after the combat was recorded: nothing left to fight this turn
            deps.machine.transition(
                session_id, GamePhase.RESOLVING_ACTION, expected_pending_action_id=turn_id
            )
            return {**state, "active_event_id": None, "event_route": "resolve"}

        event = pending[0]
        if not event.triggers_combat:
            # Resumed after the fight was recorded but before leaving in_combat
            deps.machine.transition(
                session_id, GamePhase.IN_META_EVENT, expected_pending_action_id=turn_id
            )
            return {**state, "active_event_id": None, "event_route": "event"}

        async def _fight() -> dict:
            outcome = await deps.combat_resolver.resolve(event, state["player_input"])
            resolution = EventResolution(
                event_id=event.id,
                title=event.title,
                summary=outcome.summary or event.description,
                via_combat=True,
            )
            return {**resolution.model_dump(), "combat_ended": outcome.combat_ended}

        recorded = await deps.runner.run(turn_id, f"combat:{event.id}", _fight)
        outcome = CombatOutcome(combat_ended=recorded["combat_ended"], summary=recorded["summary"])
        _mark_resolved(deps, event)

        if not outcome.combat_ended:
            logger.info(f"[COMBAT] '{event.title}' continues past this turn")
            deps.machine.transition(
                session_id,
                next_phase(GamePhase.IN_COMBAT, CombatSignal(combat_ended=False)),
                expected_pending_action_id=turn_id,
            )
            return {**state, "active_event_id": event.id, "event_route": "resolve"}

        all_resolved = len(pending) == 1
        target = next_phase(
            GamePhase.IN_COMBAT,
            CombatSignal(combat_ended=True, all_events_resolved=all_resolved),
        )
        deps.machine.transition(session_id, target, expected_pending_action_id=turn_id)
        logger.info(f"[COMBAT] '{event.title}' ended")

        return {
            **state,
            "active_event_id": event.id,
            "event_route": "resolve" if all_resolved else "event",
        }

    return combat_node


def make_interaction_node(deps: TurnDependencies):
    async def interaction_node(state: TurnState) -> TurnState:
        """Gather NPC and background reactions (session is in resolving_action)"""
        turn_id = state["turn_id"]
        constraints = ConstraintBundle.model_validate(state.get("constraints") or {})
        resolutions = collect_resolutions(deps, turn_id)

        async def _react() -> dict:
            result = await deps.interactions.react(state["player_input"], constraints, resolutions)
            return result.model_dump()

        interactions = await deps.runner.run(turn_id, "interaction", _react)
        return {
            **state,
            "event_resolutions": [r.model_dump() for r in resolutions],
            "interactions": interactions,
        }

    return interaction_node
