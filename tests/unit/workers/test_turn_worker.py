# ABOUTME: Unit tests for the RQ turn job functions and the RQ-backed turn dispatcher.
# ABOUTME: The orchestrator is patched out; dispatch is checked against a mocked RQ queue.

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rq import Queue

from src.models.turn import TurnOutcome
from src.orchestration.exceptions import PhaseConflict
from src.workers.queue_config import (
    FAILURE_TTL,
    JOB_TIMEOUT,
    RESULT_TTL,
    RQTurnDispatcher,
    create_queue,
    enqueue_job,
)
from src.workers.turn_worker import resume_turn_job, run_turn_job


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.run_turn = AsyncMock(
        return_value=TurnOutcome(
            turn_id="t-1", session_id="s-1", status="awaiting_review", phase="meta_review"
        )
    )
    orchestrator.resume_turn = AsyncMock(
        return_value=TurnOutcome(
            turn_id="t-1", session_id="s-1", status="completed", phase="idle", narrative="Done."
        )
    )
    return orchestrator


class TestTurnJobs:
    """Test suite for worker entry points"""

    def test_run_turn_job(self, orchestrator):
        with patch("src.workers.turn_worker.build_orchestrator", return_value=orchestrator):
            result = run_turn_job("s-1", "u-1", "open the gate", turn_id="t-1")

        assert result["status"] == "awaiting_review"
        orchestrator.run_turn.assert_awaited_once_with("s-1", "u-1", "open the gate", turn_id="t-1")

    def test_resume_turn_job(self, orchestrator):
        with patch("src.workers.turn_worker.build_orchestrator", return_value=orchestrator):
            result = resume_turn_job("s-1", "t-1")

        assert result["narrative"] == "Done."
        orchestrator.resume_turn.assert_awaited_once_with("s-1", "t-1")

    def test_job_reraises_errors(self, orchestrator):
        orchestrator.resume_turn.side_effect = PhaseConflict("not this turn")

        with patch("src.workers.turn_worker.build_orchestrator", return_value=orchestrator):
            with pytest.raises(PhaseConflict):
                resume_turn_job("s-1", "t-1")


@pytest.fixture
def queue():
    queue = MagicMock(spec=Queue)
    queue.name = "turns"
    queue.enqueue.side_effect = lambda func, **kwargs: MagicMock(id=kwargs["job_id"] or "generated")
    return queue


class TestQueueConfig:
    """Test suite for queue creation and dispatch"""

    def test_create_queue(self, redis_client):
        queue = create_queue("turns", redis_client, default_timeout=120)

        assert isinstance(queue, Queue)
        assert queue.name == "turns"

    def test_enqueue_job_applies_ttls(self, queue):
        job = enqueue_job(queue, resume_turn_job, kwargs={"session_id": "s", "turn_id": "t"})

        assert job.id == "generated"
        queue.enqueue.assert_called_once_with(
            resume_turn_job,
            kwargs={"session_id": "s", "turn_id": "t"},
            job_id=None,
            job_timeout=JOB_TIMEOUT,
            result_ttl=RESULT_TTL,
            failure_ttl=FAILURE_TTL,
        )

    def test_dispatch_turn(self, queue):
        dispatcher = RQTurnDispatcher(queue, job_timeout=90)

        job_id = dispatcher.dispatch_turn("s-1", "u-1", "open the gate", "t-1")

        assert job_id == "turn-t-1"
        args, kwargs = queue.enqueue.call_args
        assert args == (run_turn_job,)
        assert kwargs["kwargs"] == {
            "session_id": "s-1",
            "user_id": "u-1",
            "player_input": "open the gate",
            "turn_id": "t-1",
        }
        assert kwargs["job_timeout"] == 90

    def test_dispatch_resume(self, queue):
        job_id = RQTurnDispatcher(queue).dispatch_resume("s-1", "t-1")

        assert job_id == "resume-t-1"
        args, kwargs = queue.enqueue.call_args
        assert args == (resume_turn_job,)
        assert kwargs["kwargs"] == {"session_id": "s-1", "turn_id": "t-1"}
