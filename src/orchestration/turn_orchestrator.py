# ABOUTME: TurnOrchestrator runs and resumes turns through the LangGraph workflow.
# ABOUTME: Owns the failure path: roll back to idle, audit the failure, publish TurnFailed.

from loguru import logger

from src.models.game_phase import GamePhase
from src.models.session import SessionPhaseContext
from src.models.turn import TurnFailed, TurnOutcome, TurnState
from src.orchestration.dependencies import TurnDependencies
from src.orchestration.exceptions import PhaseConflict, StepFailed, ValidationRejected
from src.orchestration.graph_builder import build_turn_graph
from src.utils.logging import log_turn_event

FAILURE_MESSAGE = "Something went wrong while resolving your action. Please try again."
RECURSION_LIMIT = 50


class TurnOrchestrator:
    """
    High-level interface for executing turns.

    A turn runs until it completes, is rejected, fails, or pauses for meta-event
    review. resume_turn continues a paused or interrupted turn from the phase the
    store holds.
    """

    def __init__(self, deps: TurnDependencies):
        """
        Initialize turn orchestrator.

        Args:
            deps: Collaborators shared by the orchestrator and the graph nodes
        """
        self.deps = deps
        self.graph = build_turn_graph(deps)

    async def run_turn(
        self,
        session_id: str,
        user_id: str,
        player_input: str,
        turn_id: str | None = None,
    ) -> TurnOutcome:
        """
        Start a turn for a player action.

        A repeated delivery of a turn that is already in flight resumes it instead.

        Args:
            session_id: Session receiving the action
            user_id: Player submitting the action
            player_input: Raw player text
            turn_id: Optional id for the turn (generated when omitted)

        Returns:
            TurnOutcome describing where the turn stopped

        Raises:
            PhaseConflict: If another turn is in flight for the session
        """
        if turn_id is not None:
            context = self.deps.machine.get_context(session_id)
            if context.pending_action_id == turn_id:
                logger.info(f"Turn {turn_id} already in flight, resuming")
                return await self.resume_turn(session_id, turn_id)
            record = self.deps.store.get_turn_record(turn_id)
            if record is not None:
                return self._completed_outcome(session_id, turn_id, record.narrative)

        pending_action = self.deps.machine.begin_turn(session_id, player_input, turn_id)
        log_turn_event(
            "Turn started",
            session_id=session_id,
            turn_id=pending_action.id,
            phase=GamePhase.VALIDATING.value,
        )

        context = self.deps.machine.get_context(session_id)
        state: TurnState = {
            "turn_id": pending_action.id,
            "session_id": session_id,
            "user_id": user_id,
            "player_input": player_input,
            "entry_phase": GamePhase.VALIDATING.value,
            "started_in_meta_event": context.is_in_meta_event,
            "started_in_combat": context.is_in_combat,
        }
        return await self._invoke(state)

    async def resume_turn(self, session_id: str, turn_id: str) -> TurnOutcome:
        """
        Continue a turn from its stored phase.

        Called after review confirmation and by crash recovery. Completed steps are
        replayed from the step ledger.

        Args:
            session_id: Session owning the turn
            turn_id: Pending action id of the turn

        Returns:
            TurnOutcome describing where the turn stopped

        Raises:
            PhaseConflict: If the session is not processing this turn
        """
        context = self.deps.machine.get_context(session_id)

        if context.pending_action_id != turn_id:
            record = self.deps.store.get_turn_record(turn_id)
            if record is not None:
                return self._completed_outcome(session_id, turn_id, record.narrative)
            raise PhaseConflict(
                f"Session {session_id} is not processing turn {turn_id}",
                current_phase=context.current_phase,
            )

        if context.current_phase == GamePhase.META_REVIEW:
            return TurnOutcome(
                turn_id=turn_id,
                session_id=session_id,
                status="awaiting_review",
                phase=GamePhase.META_REVIEW.value,
            )

        state = self._hydrate(context, turn_id)
        log_turn_event(
            "Turn resumed",
            session_id=session_id,
            turn_id=turn_id,
            phase=context.current_phase.value,
        )
        return await self._invoke(state)

    def _hydrate(self, context: SessionPhaseContext, turn_id: str) -> TurnState:
        """
        Rebuild graph state from the store and the step ledger.

        A turn begun outside run_turn (the API starts it, the worker resumes it) has
        no turn_started entry yet. Nothing has moved the phase past validating at
        that point, so the stored flags are still the turn-start values.
        """
        session_id = context.session_id
        pending_action = self.deps.store.get_pending_action(turn_id)
        steps = self.deps.ledger.all(turn_id)
        started = steps.get("turn_started") or {
            "is_in_meta_event": context.is_in_meta_event,
            "is_in_combat": context.is_in_combat,
        }

        state: TurnState = {
            "turn_id": turn_id,
            "session_id": session_id,
            "user_id": self.deps.store.get_owner(session_id) or "",
            "player_input": pending_action.original_input,
            "entry_phase": context.current_phase.value,
            "started_in_meta_event": started["is_in_meta_event"],
            "started_in_combat": started["is_in_combat"],
            "proposal_round": sum(1 for name in steps if name.startswith("meta_proposal:")),
        }
        for step, key in (
            ("validate", "validation"),
            ("constraints", "constraints"),
            ("interaction", "interactions"),
            ("narrate", "narration"),
        ):
            if step in steps:
                state[key] = steps[step]
        if "probability_roll" in steps:
            state["triggered_event_ids"] = steps["probability_roll"]["triggered_event_ids"]
        return state

    async def _invoke(self, state: TurnState) -> TurnOutcome:
        turn_id = state["turn_id"]
        session_id = state["session_id"]

        # Flags at turn start decide "continue" nesting; keep them for resumes
        self.deps.ledger.record(
            turn_id,
            "turn_started",
            {
                "is_in_meta_event": state["started_in_meta_event"],
                "is_in_combat": state["started_in_combat"],
            },
        )

        try:
            result = await self.graph.ainvoke(state, config={"recursion_limit": RECURSION_LIMIT})
        except ValidationRejected as e:
            return self._reject(state, e)
        except Exception as e:
            return self._fail(state, e)

        if result.get("awaiting_review"):
            log_turn_event(
                "Turn paused for meta-event review",
                session_id=session_id,
                turn_id=turn_id,
                phase=GamePhase.META_REVIEW.value,
            )
            return TurnOutcome(
                turn_id=turn_id,
                session_id=session_id,
                status="awaiting_review",
                phase=GamePhase.META_REVIEW.value,
            )

        narrative = (result.get("narration") or {}).get("narrative")
        return self._completed_outcome(session_id, turn_id, narrative)

    @staticmethod
    def _completed_outcome(session_id: str, turn_id: str, narrative: str | None) -> TurnOutcome:
        return TurnOutcome(
            turn_id=turn_id,
            session_id=session_id,
            status="completed",
            phase=GamePhase.IDLE.value,
            narrative=narrative,
        )

    def _reject(self, state: TurnState, error: ValidationRejected) -> TurnOutcome:
        """validating -> idle with a clarification for the player"""
        turn_id = state["turn_id"]
        session_id = state["session_id"]

        self.deps.machine.reject_turn(session_id, turn_id)
        self.deps.publisher.publish(
            TurnFailed(
                session_id=session_id,
                user_id=state["user_id"],
                error=error.clarification,
                turn_id=turn_id,
                failed_step="validate",
            )
        )
        log_turn_event(
            f"Turn rejected: {error.error_code}",
            session_id=session_id,
            turn_id=turn_id,
            phase=GamePhase.IDLE.value,
        )
        return TurnOutcome(
            turn_id=turn_id,
            session_id=session_id,
            status="rejected",
            phase=GamePhase.IDLE.value,
            message=error.clarification,
        )

    def _fail(self, state: TurnState, error: Exception) -> TurnOutcome:
        """
        Failure path: restore idle before anything is surfaced.

        Only this turn is rolled back; if another turn now owns the session it is
        left alone.
        """
        turn_id = state["turn_id"]
        session_id = state["session_id"]
        failed_step = error.step if isinstance(error, StepFailed) else None

        logger.error(
            f"Turn {turn_id} failed"
            + (f" at step '{failed_step}'" if failed_step else "")
            + f": {type(error).__name__}: {error}"
        )

        context = self.deps.machine.get_context(session_id)
        if context.pending_action_id == turn_id:
            self.deps.machine.rollback_to_idle(session_id, reason=str(error))

        failure = TurnFailed(
            session_id=session_id,
            user_id=state["user_id"],
            error=FAILURE_MESSAGE,
            turn_id=turn_id,
            failed_step=failed_step,
        )
        self.deps.store.record_turn_failure(failure)
        self.deps.publisher.publish(failure)

        return TurnOutcome(
            turn_id=turn_id,
            session_id=session_id,
            status="failed",
            phase=GamePhase.IDLE.value,
            message=FAILURE_MESSAGE,
        )
