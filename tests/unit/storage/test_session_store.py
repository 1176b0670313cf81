# ABOUTME: Unit tests for RedisSessionStore and StepLedger against fakeredis.
# ABOUTME: Covers session creation, version-checked writes, event batches, write-once turn records, and the ledger.

import pytest

from src.models.game_phase import GamePhase, MetaEventType, PlayerDecision, SeverityLevel
from src.models.session import MetaEvent, PendingAction, TurnRecord
from src.models.turn import TurnFailed
from src.storage.exceptions import (
    ConcurrentModification,
    EventNotFound,
    PendingActionNotFound,
    SessionNotFound,
)


def make_event(event_id: str, sequence_num: int, pending_action_id: str = "pa-1") -> MetaEvent:
    return MetaEvent(
        id=event_id,
        pending_action_id=pending_action_id,
        sequence_num=sequence_num,
        type=MetaEventType.DISCOVERY,
        title=f"Event {event_id}",
        description="Something glints in the mud.",
        probability=0.5,
        severity=SeverityLevel.MINOR,
    )


class TestSessions:
    """Test suite for session contexts"""

    def test_create_session_is_idle(self, store):
        context = store.create_session("s-1", "user-1")

        assert context.current_phase == GamePhase.IDLE
        assert context.pending_action_id is None
        assert store.get_owner("s-1") == "user-1"

    def test_create_existing_session_returns_stored(self, store, machine):
        store.create_session("s-1", "user-1")
        machine.begin_turn("s-1", "look")

        context = store.create_session("s-1", "user-2")

        assert context.current_phase == GamePhase.VALIDATING
        assert store.get_owner("s-1") == "user-1"

    def test_unknown_session(self, store):
        with pytest.raises(SessionNotFound):
            store.get_context("missing")
        assert store.get_owner("missing") is None

    def test_stale_version_rejected(self, store, session):
        pending_action = PendingAction(id="pa-1", session_id="session-1", original_input="go")
        updated = session.model_copy(
            update={"current_phase": GamePhase.VALIDATING, "pending_action_id": "pa-1"}
        )
        store.write_context(updated, session.version, pending_action=pending_action)

        with pytest.raises(ConcurrentModification):
            store.write_context(updated, session.version)

    def test_write_stores_pending_action_with_context(self, store, session):
        pending_action = PendingAction(id="pa-1", session_id="session-1", original_input="go")
        updated = session.model_copy(
            update={"current_phase": GamePhase.VALIDATING, "pending_action_id": "pa-1"}
        )

        stored = store.write_context(updated, session.version, pending_action=pending_action)

        assert stored.version == 1
        assert store.get_context("session-1").version == 1
        assert store.get_pending_action("pa-1").original_input == "go"

    def test_missing_pending_action(self, store):
        with pytest.raises(PendingActionNotFound):
            store.get_pending_action("missing")


class TestMetaEvents:
    """Test suite for event batches"""

    def test_events_come_back_in_sequence_order(self, store):
        store.save_meta_events([make_event("c", 2), make_event("a", 0), make_event("b", 1)])

        events = store.get_meta_events("pa-1")

        assert [e.id for e in events] == ["a", "b", "c"]

    def test_save_single_event_updates_in_place(self, store):
        store.save_meta_events([make_event("a", 0)])
        event = store.get_meta_event("pa-1", "a")

        store.save_meta_event(event.model_copy(update={"player_decision": PlayerDecision.ACCEPTED}))

        assert store.get_meta_event("pa-1", "a").player_decision == PlayerDecision.ACCEPTED
        assert len(store.get_meta_events("pa-1")) == 1

    def test_event_from_other_batch_not_found(self, store):
        store.save_meta_events([make_event("a", 0, pending_action_id="pa-2")])

        with pytest.raises(EventNotFound):
            store.get_meta_event("pa-1", "a")

    def test_delete_batch(self, store):
        store.save_meta_events([make_event("a", 0), make_event("b", 1)])

        assert store.delete_meta_events("pa-1") == 2
        assert store.get_meta_events("pa-1") == []
        assert store.delete_meta_events("pa-1") == 0


class TestTurnRecords:
    """Test suite for write-once turn records and the failure audit"""

    def test_record_written_once(self, store):
        first = TurnRecord(
            turn_id="t-1", session_id="s-1", player_input="go", narrative="You go."
        )
        second = first.model_copy(update={"narrative": "Something else."})

        assert store.save_turn_record(first) is True
        assert store.save_turn_record(second) is False

        assert store.get_turn_record("t-1").narrative == "You go."
        assert store.list_turn_ids("s-1") == ["t-1"]

    def test_missing_record(self, store):
        assert store.get_turn_record("nope") is None

    def test_failure_audit(self, store):
        store.record_turn_failure(
            TurnFailed(session_id="s-1", user_id="u-1", error="boom", failed_step="narrate")
        )

        failures = store.list_turn_failures()

        assert len(failures) == 1
        assert failures[0].failed_step == "narrate"


class TestStepLedger:
    """Test suite for per-turn step results"""

    def test_record_and_get(self, ledger):
        ledger.record("t-1", "validate", {"valid": True})

        assert ledger.has("t-1", "validate")
        assert ledger.get("t-1", "validate") == {"valid": True}

    def test_missing_step(self, ledger):
        assert ledger.get("t-1", "narrate") is None
        assert ledger.has("t-1", "narrate") is False

    def test_first_write_wins(self, ledger):
        ledger.record("t-1", "narrate", {"narrative": "first"})
        ledger.record("t-1", "narrate", {"narrative": "second"})

        assert ledger.get("t-1", "narrate") == {"narrative": "first"}

    def test_all_steps(self, ledger):
        ledger.record("t-1", "validate", {"valid": True})
        ledger.record("t-1", "constraints", {"difficulty": 5})
        ledger.record("t-2", "validate", {"valid": False})

        assert ledger.all("t-1") == {"validate": {"valid": True}, "constraints": {"difficulty": 5}}

    def test_ttl_applied(self, ledger, redis_client):
        ledger.record("t-1", "validate", {"valid": True})
        assert redis_client.ttl("turn:t-1:steps") > 0
