# ABOUTME: Store-backed phase state machine that owns each session's current phase.
# ABOUTME: Rejects illegal transitions, keeps pending action phase in sync, and performs compensating rollbacks.

from typing import Any
from uuid import uuid4

from loguru import logger

from src.models.game_phase import GamePhase
from src.models.session import PendingAction, SessionPhaseContext, utcnow
from src.orchestration.exceptions import InvalidTransition, PhaseConflict
from src.orchestration.phase_table import can_transition
from src.storage.exceptions import ConcurrentModification
from src.storage.session_store import RedisSessionStore
from src.utils.logging import log_phase_transition

ROLLBACK_ATTEMPTS = 3


def _updated(context: SessionPhaseContext, **changes: Any) -> SessionPhaseContext:
    """Copy a context with changes, re-running the pending-action invariant"""
    return SessionPhaseContext.model_validate(
        {**context.model_dump(), **changes, "updated_at": utcnow()}
    )


class PhaseStateMachine:
    """
    The only writer of SessionPhaseContext.

    Every write is a compare-and-set against the context version read just before,
    so two orchestrators driving the same session cannot both succeed.
    """

    def __init__(self, store: RedisSessionStore):
        """
        Initialize phase state machine.

        Args:
            store: Session store holding the authoritative phase context
        """
        self.store = store

    def get_context(self, session_id: str) -> SessionPhaseContext:
        return self.store.get_context(session_id)

    def begin_turn(
        self, session_id: str, player_input: str, turn_id: str | None = None
    ) -> PendingAction:
        """
        Start a turn: idle -> validating, creating its pending action.

        Args:
            session_id: Session receiving the action
            player_input: Raw player text
            turn_id: Optional id for the pending action (generated when omitted)

        Returns:
            The new pending action

        Raises:
            PhaseConflict: If the session already has a turn in flight
        """
        context = self.store.get_context(session_id)
        if not context.is_idle:
            raise PhaseConflict(
                f"Session {session_id} already has a turn in flight "
                f"(phase={context.current_phase.value})",
                current_phase=context.current_phase,
            )

        pending_action = PendingAction(
            id=turn_id or str(uuid4()),
            session_id=session_id,
            original_input=player_input,
            phase=GamePhase.VALIDATING,
        )
        new_context = _updated(
            context,
            current_phase=GamePhase.VALIDATING,
            pending_action_id=pending_action.id,
        )

        try:
            self.store.write_context(new_context, context.version, pending_action=pending_action)
        except ConcurrentModification as e:
            current = self.store.get_context(session_id)
            raise PhaseConflict(
                f"Session {session_id} started another turn concurrently",
                current_phase=current.current_phase,
            ) from e

        log_phase_transition(
            GamePhase.IDLE.value, GamePhase.VALIDATING.value, session_id, pending_action.id
        )
        return pending_action

    def transition(
        self,
        session_id: str,
        to_phase: GamePhase,
        *,
        expected_pending_action_id: str | None = None,
        is_in_meta_event: bool | None = None,
        is_in_combat: bool | None = None,
    ) -> SessionPhaseContext:
        """
        Move a session to a new phase.

        Entering in_meta_event / in_combat raises the matching flag, leaving combat
        clears is_in_combat, and entering resolving_action clears both. Explicit flag
        arguments override those defaults (used when completing a turn).

        Args:
            session_id: Session to move
            to_phase: Target phase
            expected_pending_action_id: Fail with PhaseConflict if another turn owns the session
            is_in_meta_event: Explicit flag value to store
            is_in_combat: Explicit flag value to store

        Returns:
            The stored context

        Raises:
            InvalidTransition: If the adjacency table forbids the move
            PhaseConflict: If the session belongs to another turn or changed concurrently
        """
        to_phase = GamePhase(to_phase)
        context = self.store.get_context(session_id)
        from_phase = context.current_phase

        if (
            expected_pending_action_id is not None
            and context.pending_action_id != expected_pending_action_id
        ):
            raise PhaseConflict(
                f"Session {session_id} is not processing pending action "
                f"{expected_pending_action_id}",
                current_phase=from_phase,
            )

        if not can_transition(from_phase, to_phase):
            raise InvalidTransition(from_phase, to_phase)

        if context.pending_action_id is None:
            # idle -> validating needs a new pending action
            raise PhaseConflict(
                f"Session {session_id} has no turn in flight; use begin_turn",
                current_phase=from_phase,
            )

        flags = self._flags_for(context, to_phase)
        if is_in_meta_event is not None:
            flags["is_in_meta_event"] = is_in_meta_event
        if is_in_combat is not None:
            flags["is_in_combat"] = is_in_combat

        pending_action = self.store.get_pending_action(context.pending_action_id)
        now = utcnow()
        pending_update: dict[str, Any] = {"phase": to_phase, "updated_at": now}
        if to_phase == GamePhase.IDLE:
            pending_update["completed_at"] = now
        pending_action = pending_action.model_copy(update=pending_update)

        new_context = _updated(
            context,
            current_phase=to_phase,
            pending_action_id=None if to_phase == GamePhase.IDLE else context.pending_action_id,
            **flags,
        )

        try:
            stored = self.store.write_context(
                new_context, context.version, pending_action=pending_action
            )
        except ConcurrentModification as e:
            current = self.store.get_context(session_id)
            raise PhaseConflict(str(e), current_phase=current.current_phase) from e

        log_phase_transition(
            from_phase.value,
            to_phase.value,
            session_id,
            pending_action.id,
            duration_ms=(now - context.updated_at).total_seconds() * 1000,
        )
        return stored

    @staticmethod
    def _flags_for(context: SessionPhaseContext, to_phase: GamePhase) -> dict[str, bool]:
        flags = {
            "is_in_meta_event": context.is_in_meta_event,
            "is_in_combat": context.is_in_combat,
        }
        if to_phase == GamePhase.IN_META_EVENT:
            flags["is_in_meta_event"] = True
            flags["is_in_combat"] = False
        elif to_phase == GamePhase.IN_COMBAT:
            flags["is_in_combat"] = True
        elif to_phase == GamePhase.RESOLVING_ACTION:
            flags["is_in_meta_event"] = False
            flags["is_in_combat"] = False
        return flags

    def reject_turn(self, session_id: str, pending_action_id: str) -> SessionPhaseContext:
        """validating -> idle after the validator rejected the input"""
        return self.transition(
            session_id, GamePhase.IDLE, expected_pending_action_id=pending_action_id
        )

    def complete_turn(
        self,
        session_id: str,
        pending_action_id: str,
        is_in_meta_event: bool = False,
        is_in_combat: bool = False,
    ) -> SessionPhaseContext:
        """
        resolving_action -> idle, storing the nesting flags the narrator reported.

        Idempotent for a turn that already completed (returns the idle context).
        """
        context = self.store.get_context(session_id)
        if context.is_idle:
            pending_action = self.store.get_pending_action(pending_action_id)
            if pending_action.is_completed:
                logger.info(f"Turn {pending_action_id} already completed, nothing to do")
                return context

        return self.transition(
            session_id,
            GamePhase.IDLE,
            expected_pending_action_id=pending_action_id,
            is_in_meta_event=is_in_meta_event,
            is_in_combat=is_in_combat,
        )

    def rollback_to_idle(self, session_id: str, reason: str) -> SessionPhaseContext:
        """
        Compensating reset used by failure handling.

        Bypasses the adjacency table: this restores a consistent state rather than
        advancing the pipeline. Closes the pending action and clears the event flags.

        Args:
            session_id: Session to reset
            reason: Error context for the audit log

        Returns:
            The idle context
        """
        last_error: ConcurrentModification | None = None

        for _ in range(ROLLBACK_ATTEMPTS):
            context = self.store.get_context(session_id)
            if context.is_idle:
                return context

            logger.warning(
                f"[ROLLBACK] Resetting session {session_id} from "
                f"{context.current_phase.value} to idle: {reason}"
            )

            now = utcnow()
            pending_action = self.store.get_pending_action(context.pending_action_id)
            pending_action = pending_action.model_copy(
                update={"phase": GamePhase.IDLE, "updated_at": now, "completed_at": now}
            )
            new_context = _updated(
                context,
                current_phase=GamePhase.IDLE,
                pending_action_id=None,
                is_in_meta_event=False,
                is_in_combat=False,
            )

            try:
                stored = self.store.write_context(
                    new_context, context.version, pending_action=pending_action
                )
            except ConcurrentModification as e:
                last_error = e
                continue

            log_phase_transition(
                context.current_phase.value, GamePhase.IDLE.value, session_id, pending_action.id
            )
            return stored

        raise PhaseConflict(
            f"Could not roll back session {session_id}: {last_error}",
            current_phase=self.store.get_context(session_id).current_phase,
        )
