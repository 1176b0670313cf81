# ABOUTME: Unit tests for StepRunner retry handling and ledger replay.
# ABOUTME: Retryable errors back off and retry; exhaustion raises StepFailed; other errors escalate at once.

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.agents.exceptions import LLMCallFailed
from src.models.game_phase import GamePhase
from src.orchestration.exceptions import (
    GenerationFormatError,
    InvalidTransition,
    StepFailed,
)
from src.orchestration.step_runner import RetryPolicy, StepRunner, exponential_backoff


class FlakyStep:
    """Fails with the given errors, then returns a result"""

    def __init__(self, errors, result=None):
        self.errors = list(errors)
        self.result = result if result is not None else {"ok": True}
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def runner(ledger, sleeps):
    async def record_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return StepRunner(ledger, RetryPolicy(max_attempts=3), sleep=record_sleep)


class TestRetryPolicy:
    """Test suite for backoff schedules"""

    def test_default_backoff(self):
        assert [exponential_backoff(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]

    def test_from_base(self):
        policy = RetryPolicy.from_base(max_attempts=5, backoff_base=3.0)
        assert policy.max_attempts == 5
        assert policy.backoff_fn(2) == 9.0


class TestStepRunner:
    """Test suite for StepRunner.run"""

    @pytest.mark.asyncio
    async def test_success_first_try(self, runner, ledger, sleeps):
        step = FlakyStep([])

        result = await runner.run("t-1", "validate", step)

        assert result == {"ok": True}
        assert step.calls == 1
        assert sleeps == []
        assert ledger.get("t-1", "validate") == {"ok": True}

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, runner, sleeps):
        step = FlakyStep([GenerationFormatError("bad json"), LLMCallFailed("timeout")])

        result = await runner.run("t-1", "narrate", step)

        assert result == {"ok": True}
        assert step.calls == 3
        assert sleeps == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_step_failed(self, runner, ledger, sleeps):
        step = FlakyStep([RedisConnectionError("gone")] * 3)

        with pytest.raises(StepFailed) as exc_info:
            await runner.run("t-1", "probability_roll", step)

        assert exc_info.value.step == "probability_roll"
        assert isinstance(exc_info.value.cause, RedisConnectionError)
        assert step.calls == 3
        assert len(sleeps) == 2
        assert ledger.has("t-1", "probability_roll") is False

    @pytest.mark.asyncio
    async def test_non_retryable_escalates_immediately(self, runner, sleeps):
        step = FlakyStep([InvalidTransition(GamePhase.IDLE, GamePhase.IN_COMBAT)])

        with pytest.raises(InvalidTransition):
            await runner.run("t-1", "combat:e1", step)

        assert step.calls == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_recorded_step_is_replayed(self, runner, ledger):
        ledger.record("t-1", "narrate", {"narrative": "from before"})
        step = FlakyStep([])

        result = await runner.run("t-1", "narrate", step)

        assert result == {"narrative": "from before"}
        assert step.calls == 0

    @pytest.mark.asyncio
    async def test_steps_are_scoped_per_turn(self, runner):
        first = FlakyStep([], {"turn": 1})
        second = FlakyStep([], {"turn": 2})

        await runner.run("t-1", "validate", first)
        result = await runner.run("t-2", "validate", second)

        assert result == {"turn": 2}
        assert second.calls == 1

    @pytest.mark.asyncio
    async def test_single_attempt_policy(self, ledger):
        runner = StepRunner(ledger, RetryPolicy(max_attempts=1), sleep=lambda _: None)
        step = FlakyStep([LLMCallFailed("nope")])

        with pytest.raises(StepFailed):
            await runner.run("t-1", "validate", step)

        assert step.calls == 1
