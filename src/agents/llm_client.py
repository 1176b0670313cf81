# ABOUTME: Shared OpenAI chat wrapper used by the validator, meta-event generator, and narrator.
# ABOUTME: Retries only transient transport errors; everything else becomes LLMCallFailed for the step runner.

from typing import Any

from loguru import logger
from openai import (
    APIConnectionError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from src.agents.exceptions import LLMCallFailed

# Errors worth a quick transport-level retry before the step runner sees a failure
TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)

JSON_OBJECT = {"type": "json_object"}


class LLMClient:
    """
    Thin async wrapper over AsyncOpenAI chat completions.

    Transport hiccups (connection drops, timeouts, rate limits, 5xx) get a short
    retry here. Anything still failing is raised as LLMCallFailed, which the
    step runner treats as a retryable step failure with its own backoff.
    Parsing the response is left to the caller.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        timeout: float = 30.0,
        transport_attempts: int = 2,
        transport_wait: wait_base | None = None,
    ):
        """
        Args:
            client: AsyncOpenAI client instance
            model: Chat model name
            timeout: Default request timeout in seconds
            transport_attempts: Tries per call for transient errors (1 disables retry)
            transport_wait: tenacity wait strategy between tries (default: exponential, max 8s)
        """
        self.client = client
        self.model = model
        self.timeout = timeout
        self.transport_attempts = transport_attempts
        self.transport_wait = transport_wait or wait_exponential(multiplier=1, min=1, max=8)

    async def call(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        response_format: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> str:
        """
        Send one system + user exchange and return the reply text.

        Raises:
            LLMCallFailed: The request failed (after transient retries) or returned no choices
        """
        request: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "timeout": self.timeout if timeout is None else timeout,
        }
        if response_format:
            request["response_format"] = response_format

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.transport_attempts),
                wait=self.transport_wait,
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
            ):
                with attempt:
                    response = await self.client.chat.completions.create(**request)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.warning(f"LLM transport failed after {self.transport_attempts} tries: {cause}")
            raise LLMCallFailed(f"LLM request failed: {cause}") from cause
        except Exception as e:
            raise LLMCallFailed(f"LLM request failed: {e}") from e

        if not response.choices:
            raise LLMCallFailed("LLM response contained no choices")
        return response.choices[0].message.content or ""

    async def call_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        timeout: float | None = None,
    ) -> str:
        """Same as call() with JSON-object mode on; returns the raw text"""
        return await self.call(
            system_prompt,
            user_prompt,
            temperature=temperature,
            response_format=JSON_OBJECT,
            timeout=timeout,
        )
