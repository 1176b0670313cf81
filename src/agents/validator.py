# ABOUTME: Action validator that asks the LLM whether player input is a legal in-game action.
# ABOUTME: Also estimates how long the action takes on the fixed time scale.

import json
from typing import Any

from loguru import logger

from src.agents.llm_client import LLMClient
from src.config.prompts import (
    CLARIFICATION_MESSAGES,
    TIME_SCALE,
    VALIDATOR_SYSTEM_PROMPT,
    build_validator_user_prompt,
)
from src.models.turn import ValidationResult
from src.orchestration.exceptions import GenerationFormatError

KNOWN_ERROR_CODES = frozenset(code for code in CLARIFICATION_MESSAGES if code is not None)


def clarification_for(error_code: str | None) -> str:
    """User-visible message for a rejected action"""
    return CLARIFICATION_MESSAGES.get(error_code, CLARIFICATION_MESSAGES[None])


class ActionValidator:
    """
    Validates raw player input before any other step runs.

    Malformed model output is an error, never an implicit pass: the step runner
    retries it and the turn fails if it keeps happening.
    """

    def __init__(self, llm_client: LLMClient, temperature: float = 0.3):
        """
        Initialize action validator.

        Args:
            llm_client: Shared LLM client
            temperature: Low temperature keeps verdicts stable across retries
        """
        self._llm_client = llm_client
        self.temperature = temperature

    async def validate(
        self,
        player_input: str,
        character_state: str | None = None,
        current_scene: str | None = None,
        recent_history: list[str] | None = None,
    ) -> ValidationResult:
        """
        Judge player input and estimate its duration.

        Args:
            player_input: Raw player text
            character_state: Optional character summary for the prompt
            current_scene: Optional scene description for the prompt
            recent_history: Optional recent events for the prompt

        Returns:
            ValidationResult with valid flag, error code, and time estimate

        Raises:
            GenerationFormatError: If the response is not the expected JSON shape
            LLMCallFailed: If the LLM call itself fails
        """
        if not player_input.strip():
            return ValidationResult(valid=False, error_code="GIBBERISH_INPUT")

        user_prompt = build_validator_user_prompt(
            player_input,
            character_state=character_state,
            current_scene=current_scene,
            recent_history=recent_history,
        )
        response = await self._llm_client.call_json(
            system_prompt=VALIDATOR_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=self.temperature,
        )

        return parse_validation_response(response)


def parse_validation_response(response: str) -> ValidationResult:
    """
    Parse the validator's JSON output.

    Raises:
        GenerationFormatError: If JSON is invalid or the verdict is missing
    """
    try:
        data = json.loads(response)
    except json.JSONDecodeError as e:
        raise GenerationFormatError(f"Failed to parse validator JSON: {e}", response) from e

    if not isinstance(data, dict):
        raise GenerationFormatError("Validator output is not a JSON object", response)

    verdict: Any = data.get("input_validator")
    if not isinstance(verdict, dict) or "valid" not in verdict:
        raise GenerationFormatError("Validator output missing input_validator.valid", response)

    valid_raw = verdict["valid"]
    if isinstance(valid_raw, bool):
        valid = valid_raw
    elif isinstance(valid_raw, str) and valid_raw.strip().lower() in ("yes", "no"):
        valid = valid_raw.strip().lower() == "yes"
    else:
        raise GenerationFormatError(f"Unrecognized validity value: {valid_raw!r}", response)

    error_code = verdict.get("error_code")
    if error_code not in KNOWN_ERROR_CODES:
        if error_code is not None:
            logger.warning(f"Unknown validator error code {error_code!r}, dropping it")
        error_code = None

    time_estimate = None
    estimator = data.get("time_estimator")
    if valid and isinstance(estimator, dict):
        time_estimate = estimator.get("time_estimate")
        if time_estimate is not None and time_estimate not in TIME_SCALE:
            logger.warning(f"Time estimate {time_estimate!r} is off the scale, ignoring it")
            time_estimate = None

    return ValidationResult(
        valid=valid,
        error_code=None if valid else error_code,
        time_estimate=time_estimate,
        raw_output=response,
    )
