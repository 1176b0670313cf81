# ABOUTME: Runs one workflow step with a named retry policy and records its result in the step ledger.
# ABOUTME: Re-running a recorded step returns the stored result instead of executing it again.

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
)

from src.agents.exceptions import LLMCallFailed
from src.orchestration.exceptions import GenerationFormatError, StepFailed
from src.storage.step_ledger import StepLedger
from src.utils.logging import log_step_attempt

# Transient failures; everything else (InvalidTransition, PhaseConflict, ...) escalates at once
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    GenerationFormatError,
    LLMCallFailed,
    RedisConnectionError,
    RedisTimeoutError,
)


def exponential_backoff(attempt: int) -> float:
    """Seconds to wait after a failed attempt: 2, 4, 8, ..."""
    return float(2 ** attempt)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff schedule shared by every step of a turn"""
    max_attempts: int = 3
    backoff_fn: Callable[[int], float] = exponential_backoff
    retry_on: tuple[type[BaseException], ...] = field(default=RETRYABLE_ERRORS)

    @classmethod
    def from_base(cls, max_attempts: int, backoff_base: float) -> "RetryPolicy":
        """Build a policy whose attempt n waits backoff_base ** n seconds"""
        return cls(max_attempts=max_attempts, backoff_fn=lambda attempt: backoff_base ** attempt)


class StepRunner:
    """
    Executes named steps for a turn.

    Each step's result must be JSON-serializable; it is written to the ledger
    once the step succeeds so a later invocation of the same turn skips it.
    """

    def __init__(
        self,
        ledger: StepLedger,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize step runner.

        Args:
            ledger: Durable record of completed steps
            policy: Retry policy (default: 3 attempts, 2 ** attempt seconds backoff)
            sleep: Awaitable used between attempts (tests pass a no-op)
        """
        self.ledger = ledger
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.policy.backoff_fn(retry_state.attempt_number)

    async def run(
        self,
        turn_id: str,
        step: str,
        fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Run a step at most once per turn.

        Args:
            turn_id: Turn the step belongs to
            step: Unique step name within the turn (e.g., "validate", "resolve_event:<id>")
            fn: Zero-argument coroutine factory producing the JSON-serializable result

        Returns:
            The step result (from the ledger if already recorded)

        Raises:
            StepFailed: If a retryable error persists past the attempt budget
            Exception: Non-retryable errors propagate unchanged on first occurrence
        """
        recorded = self.ledger.get(turn_id, step)
        if recorded is not None:
            logger.debug(f"Step '{step}' for turn {turn_id} replayed from ledger")
            return recorded

        max_attempts = self.policy.max_attempts

        def _before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            log_step_attempt(
                step,
                turn_id,
                retry_state.attempt_number,
                max_attempts,
                error=error,
                next_delay=retry_state.next_action.sleep if retry_state.next_action else None,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(self.policy.retry_on),
            before_sleep=_before_sleep,
            sleep=self._sleep,
            reraise=False,
        )

        try:
            result = await retrying(fn)
        except RetryError as e:
            cause = e.last_attempt.exception()
            log_step_attempt(step, turn_id, max_attempts, max_attempts, error=cause)
            logger.error(f"Step '{step}' for turn {turn_id} exhausted {max_attempts} attempts")
            raise StepFailed(step, cause) from cause

        self.ledger.record(turn_id, step, result)
        return result
