# ABOUTME: Coordinates player review of a proposed meta-event batch (decide, confirm, regenerate).
# ABOUTME: Every operation is gated on the pending action being in meta_review.

from loguru import logger

from src.models.game_phase import GamePhase, PlayerDecision
from src.models.session import MetaEvent, PendingAction
from src.orchestration.exceptions import IncompleteDecisions, PhaseConflict
from src.orchestration.phase_machine import PhaseStateMachine
from src.storage.session_store import RedisSessionStore
from src.utils.logging import log_turn_event


class ReviewCoordinator:
    """
    Applies player decisions to the stored batch and closes the review.

    confirm never partially applies: when any event is undecided it raises
    IncompleteDecisions before touching the phase.
    """

    def __init__(self, store: RedisSessionStore, machine: PhaseStateMachine):
        self.store = store
        self.machine = machine

    def _require_review(self, pending_action_id: str) -> PendingAction:
        pending_action = self.store.get_pending_action(pending_action_id)
        if pending_action.phase != GamePhase.META_REVIEW:
            raise PhaseConflict(
                f"Pending action {pending_action_id} is in {pending_action.phase.value}, "
                f"not {GamePhase.META_REVIEW.value}",
                current_phase=pending_action.phase,
            )
        return pending_action

    def list_events(self, pending_action_id: str) -> list[MetaEvent]:
        """Events of the batch in sequence order (any phase)"""
        return self.store.get_meta_events(pending_action_id)

    def decide(
        self,
        pending_action_id: str,
        event_id: str | None,
        decision: PlayerDecision | str | None,
    ) -> MetaEvent:
        """
        Record an accept/reject decision on one event.

        Deciding again overwrites the previous decision.

        Args:
            pending_action_id: Batch owner
            event_id: Event being decided
            decision: "accepted" or "rejected"

        Returns:
            The updated event

        Raises:
            ValueError: If event_id or decision is missing or the decision is unknown
            PhaseConflict: If the pending action is not in meta_review
            EventNotFound: If the event is not part of this batch
        """
        if not event_id or decision is None:
            raise ValueError("decide requires both event_id and decision")
        decision = PlayerDecision(decision)

        pending_action = self._require_review(pending_action_id)
        event = self.store.get_meta_event(pending_action_id, event_id)
        event = event.model_copy(update={"player_decision": decision})
        self.store.save_meta_event(event)

        log_turn_event(
            f"Meta event '{event.title}' {decision.value}",
            session_id=pending_action.session_id,
            turn_id=pending_action_id,
            phase=GamePhase.META_REVIEW.value,
            event_id=event_id,
        )
        return event

    def confirm(self, pending_action_id: str) -> list[MetaEvent]:
        """
        Close the review once every event is decided.

        Returns:
            The decided batch in sequence order

        Raises:
            PhaseConflict: If the pending action is not in meta_review
            IncompleteDecisions: If any event has no decision (phase unchanged)
        """
        pending_action = self._require_review(pending_action_id)
        events = self.store.get_meta_events(pending_action_id)

        remaining = sum(1 for event in events if not event.is_decided)
        if remaining:
            raise IncompleteDecisions(remaining)

        self.machine.transition(
            pending_action.session_id,
            GamePhase.PROBABILITY_ROLL,
            expected_pending_action_id=pending_action_id,
        )

        accepted = sum(1 for event in events if event.is_accepted)
        logger.info(
            f"Review confirmed for {pending_action_id}: "
            f"{accepted}/{len(events)} events accepted"
        )
        return events

    def regenerate(self, pending_action_id: str) -> GamePhase:
        """
        Send the batch back for regeneration (meta_review -> meta_proposal).

        The old batch stays stored until the next proposal replaces it.

        Raises:
            PhaseConflict: If the pending action is not in meta_review
        """
        pending_action = self._require_review(pending_action_id)
        self.machine.transition(
            pending_action.session_id,
            GamePhase.META_PROPOSAL,
            expected_pending_action_id=pending_action_id,
        )
        logger.info(f"Regeneration requested for {pending_action_id}")
        return GamePhase.META_PROPOSAL
