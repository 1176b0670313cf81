# ABOUTME: HTTP endpoint tests using FastAPI's TestClient over fakeredis-backed services.
# ABOUTME: Covers session phase polling, action submission conflicts, and the meta-event review endpoints.

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.agents.exceptions import LLMCallFailed
from src.api.app import create_app
from src.api.dependencies import ApiServices
from src.models.game_phase import GamePhase

OWNER = {"X-User-Id": "user-1"}
STRANGER = {"X-User-Id": "user-2"}


@pytest.fixture
def dispatcher():
    dispatcher = MagicMock()
    dispatcher.dispatch_turn.return_value = "job-turn"
    dispatcher.dispatch_resume.return_value = "job-resume"
    return dispatcher


@pytest.fixture
def client(store, machine, coordinator, proposer, dispatcher, session):
    services = ApiServices(
        store=store,
        machine=machine,
        coordinator=coordinator,
        proposer=proposer,
        dispatcher=dispatcher,
    )
    return TestClient(create_app(services=services))


@pytest.fixture
def in_proposal(advance, session):
    """Pending action id of a turn waiting in meta_proposal"""
    return advance("session-1", GamePhase.META_PROPOSAL)


@pytest.fixture
def in_review(client, in_proposal):
    """Pending action id of a turn with a generated batch in meta_review"""
    response = client.post(
        "/meta-events/generate", json={"pendingActionId": in_proposal}, headers=OWNER
    )
    assert response.status_code == 200
    return in_proposal


def review(client, pending_action_id, action, **extra):
    return client.post(
        "/meta-events/review",
        json={"pendingActionId": pending_action_id, "action": action, **extra},
        headers=OWNER,
    )


class TestSessions:
    """Test suite for session endpoints"""

    def test_create_session(self, client, store):
        response = client.post("/sessions", json={"sessionId": "session-2"}, headers=OWNER)

        assert response.status_code == 201
        assert response.json() == {"sessionId": "session-2", "phase": "idle"}
        assert store.get_owner("session-2") == "user-1"

    def test_create_session_generates_id(self, client):
        response = client.post("/sessions", headers=OWNER)

        assert response.status_code == 201
        assert response.json()["sessionId"]

    def test_create_session_taken_by_another_user(self, client):
        response = client.post("/sessions", json={"sessionId": "session-1"}, headers=STRANGER)
        assert response.status_code == 409

    def test_missing_user_header(self, client):
        assert client.get("/sessions/session-1/phase").status_code == 401

    def test_idle_phase(self, client):
        response = client.get("/sessions/session-1/phase", headers=OWNER)

        assert response.status_code == 200
        body = response.json()
        assert body["phase"] == "idle"
        assert body["pendingActionId"] is None
        assert body["isInMetaEvent"] is False

    def test_phase_with_pending_action(self, client, in_proposal):
        body = client.get("/sessions/session-1/phase", headers=OWNER).json()

        assert body["phase"] == "meta_proposal"
        assert body["pendingActionId"] == in_proposal
        assert body["originalInput"] == "walk to the village"

    def test_foreign_session_is_not_found(self, client):
        assert client.get("/sessions/session-1/phase", headers=STRANGER).status_code == 404
        assert client.get("/sessions/nope/phase", headers=OWNER).status_code == 404


class TestSubmitAction:
    """Test suite for the inbound action trigger"""

    def test_action_starts_turn_and_dispatches(self, client, store, dispatcher):
        response = client.post(
            "/sessions/session-1/actions", json={"playerInput": "open the gate"}, headers=OWNER
        )

        assert response.status_code == 202
        body = response.json()
        assert body["phase"] == "validating"
        assert body["jobId"] == "job-turn"
        assert store.get_context("session-1").pending_action_id == body["turnId"]
        dispatcher.dispatch_turn.assert_called_once_with(
            "session-1", "user-1", "open the gate", body["turnId"]
        )

    def test_second_action_conflicts(self, client, dispatcher):
        client.post("/sessions/session-1/actions", json={"playerInput": "first"}, headers=OWNER)

        response = client.post(
            "/sessions/session-1/actions", json={"playerInput": "second"}, headers=OWNER
        )

        assert response.status_code == 409
        assert response.json()["currentPhase"] == "validating"
        assert dispatcher.dispatch_turn.call_count == 1

    def test_empty_input_rejected(self, client):
        response = client.post(
            "/sessions/session-1/actions", json={"playerInput": ""}, headers=OWNER
        )
        assert response.status_code == 422

    def test_dispatch_failure_rolls_back(self, client, store, dispatcher):
        dispatcher.dispatch_turn.side_effect = ConnectionError("redis down")

        response = client.post(
            "/sessions/session-1/actions", json={"playerInput": "open the gate"}, headers=OWNER
        )

        assert response.status_code == 503
        assert store.get_context("session-1").is_idle


class TestGenerate:
    """Test suite for POST /meta-events/generate"""

    def test_generate_returns_batch(self, client, store, in_proposal):
        response = client.post(
            "/meta-events/generate", json={"pendingActionId": in_proposal}, headers=OWNER
        )

        assert response.status_code == 200
        body = response.json()
        assert [e["title"] for e in body["events"]] == ["Wandering Merchant", "Wolf Pack"]
        assert body["events"][1]["triggersCombat"] is True
        assert json.loads(body["rawOutput"])["events"]
        assert store.get_context("session-1").current_phase == GamePhase.META_REVIEW

    def test_generate_wrong_phase(self, client, in_review):
        response = client.post(
            "/meta-events/generate", json={"pendingActionId": in_review}, headers=OWNER
        )

        assert response.status_code == 409
        assert response.json()["currentPhase"] == "meta_review"

    def test_generate_llm_failure(self, client, in_proposal, mock_llm_client, store):
        mock_llm_client.replies["meta"] = [LLMCallFailed("timeout")]

        response = client.post(
            "/meta-events/generate", json={"pendingActionId": in_proposal}, headers=OWNER
        )

        assert response.status_code == 502
        assert store.get_context("session-1").current_phase == GamePhase.META_PROPOSAL

    def test_generate_unknown_pending_action(self, client):
        response = client.post(
            "/meta-events/generate", json={"pendingActionId": "missing"}, headers=OWNER
        )
        assert response.status_code == 404

    def test_generate_foreign_pending_action(self, client, in_proposal):
        response = client.post(
            "/meta-events/generate", json={"pendingActionId": in_proposal}, headers=STRANGER
        )
        assert response.status_code == 404


class TestReview:
    """Test suite for POST /meta-events/review and GET /meta-events/{id}"""

    def test_decide(self, client, in_review):
        events = client.get(f"/meta-events/{in_review}", headers=OWNER).json()["events"]

        response = review(
            client, in_review, "decide", eventId=events[0]["id"], decision="accepted"
        )

        assert response.status_code == 200
        body = response.json()
        assert body["phase"] == "meta_review"
        assert body["event"]["playerDecision"] == "accepted"
        assert "events" not in body

    def test_decide_invalid_decision(self, client, in_review):
        events = client.get(f"/meta-events/{in_review}", headers=OWNER).json()["events"]

        response = review(client, in_review, "decide", eventId=events[0]["id"], decision="maybe")

        assert response.status_code == 400

    def test_decide_missing_event_id(self, client, in_review):
        response = review(client, in_review, "decide", decision="accepted")
        assert response.status_code == 400

    def test_decide_unknown_event(self, client, in_review):
        response = review(client, in_review, "decide", eventId="nope", decision="accepted")
        assert response.status_code == 404

    def test_confirm_with_undecided_events(self, client, in_review, dispatcher):
        response = review(client, in_review, "confirm")

        assert response.status_code == 409
        assert response.json()["remaining"] == 2
        dispatcher.dispatch_resume.assert_not_called()

    def test_confirm_dispatches_resume(self, client, store, in_review, dispatcher):
        events = client.get(f"/meta-events/{in_review}", headers=OWNER).json()["events"]
        for event, decision in zip(events, ["accepted", "rejected"], strict=True):
            review(client, in_review, "decide", eventId=event["id"], decision=decision)

        response = review(client, in_review, "confirm")

        assert response.status_code == 200
        body = response.json()
        assert body["phase"] == "probability_roll"
        assert [e["playerDecision"] for e in body["events"]] == ["accepted", "rejected"]
        assert store.get_context("session-1").current_phase == GamePhase.PROBABILITY_ROLL
        dispatcher.dispatch_resume.assert_called_once_with("session-1", in_review)

    def test_regenerate(self, client, store, in_review):
        response = review(client, in_review, "regenerate")

        assert response.status_code == 200
        assert response.json() == {"phase": "meta_proposal"}

        regenerated = client.post(
            "/meta-events/generate",
            json={"pendingActionId": in_review, "regenerate": True},
            headers=OWNER,
        )
        assert regenerated.status_code == 200
        assert len(store.get_meta_events(in_review)) == 2

    def test_review_outside_review_phase(self, client, in_proposal):
        response = review(client, in_proposal, "confirm")

        assert response.status_code == 409
        assert response.json()["currentPhase"] == "meta_proposal"

    def test_unknown_action(self, client, in_review):
        assert review(client, in_review, "shuffle").status_code == 422

    def test_list_events_in_sequence(self, client, in_review):
        response = client.get(f"/meta-events/{in_review}", headers=OWNER)

        assert response.status_code == 200
        assert [e["sequenceNum"] for e in response.json()["events"]] == [0, 1]
