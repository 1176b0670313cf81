# ABOUTME: Meta-event generator that asks the LLM for 2-4 candidate complications for a player action.
# ABOUTME: Normalizes loosely-typed model output into GeneratedEvent models or fails with GenerationFormatError.

import json
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from src.agents.llm_client import LLMClient
from src.config.prompts import META_EVENT_SYSTEM_PROMPT, build_meta_event_user_prompt
from src.models.game_phase import MetaEventType, SeverityLevel
from src.models.session import TITLE_MAX_LENGTH, GeneratedEvent
from src.orchestration.exceptions import GenerationFormatError

MIN_EVENTS = 2
MAX_EVENTS = 4
DEFAULT_PROBABILITY = 0.2


class GenerationResult(BaseModel):
    """Normalized events plus the raw model output kept for debugging"""

    events: list[GeneratedEvent] = Field(min_length=MIN_EVENTS, max_length=MAX_EVENTS)
    raw_output: str


def normalize_type(value: Any) -> MetaEventType:
    """Unknown or missing event types fall back to encounter"""
    try:
        return MetaEventType(str(value).strip().lower())
    except ValueError:
        return MetaEventType.ENCOUNTER


def normalize_severity(value: Any) -> SeverityLevel:
    """Unknown or missing severities fall back to minor"""
    try:
        return SeverityLevel(str(value).strip().lower())
    except ValueError:
        return SeverityLevel.MINOR


def normalize_probability(value: Any) -> float:
    """Clamp to [0, 1]; non-numeric values become the default probability"""
    if isinstance(value, bool):
        return DEFAULT_PROBABILITY
    try:
        probability = float(value)
    except (TypeError, ValueError):
        return DEFAULT_PROBABILITY
    if probability != probability:  # NaN
        return DEFAULT_PROBABILITY
    return min(1.0, max(0.0, probability))


def normalize_title(value: Any, max_length: int = TITLE_MAX_LENGTH) -> str:
    title = str(value).strip() if value is not None else ""
    return title[:max_length] or "Unexpected Event"


def normalize_triggers_combat(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def normalize_event(raw: dict[str, Any], title_max_length: int = TITLE_MAX_LENGTH) -> GeneratedEvent:
    """
    Convert one loosely-typed event dict into a GeneratedEvent.

    Accepts both camelCase (triggersCombat, timeImpact) and snake_case keys.
    """
    triggers_combat = raw.get("triggersCombat", raw.get("triggers_combat", False))
    time_impact = raw.get("timeImpact", raw.get("time_impact"))

    return GeneratedEvent(
        type=normalize_type(raw.get("type")),
        title=normalize_title(raw.get("title"), min(title_max_length, TITLE_MAX_LENGTH)),
        description=str(raw.get("description") or ""),
        probability=normalize_probability(raw.get("probability")),
        severity=normalize_severity(raw.get("severity")),
        triggers_combat=normalize_triggers_combat(triggers_combat),
        time_impact=str(time_impact) if time_impact is not None else None,
    )


def parse_generation_response(
    response: str, title_max_length: int = TITLE_MAX_LENGTH
) -> GenerationResult:
    """
    Parse and normalize the generator's JSON output.

    Raises:
        GenerationFormatError: If JSON is invalid, events is missing or not a list,
            or fewer than MIN_EVENTS usable events remain
    """
    try:
        data = json.loads(response)
    except json.JSONDecodeError as e:
        raise GenerationFormatError(f"Failed to parse meta-event JSON: {e}", response) from e

    if not isinstance(data, dict):
        raise GenerationFormatError("Meta-event output is not a JSON object", response)

    raw_events = data.get("events")
    if not isinstance(raw_events, list):
        raise GenerationFormatError("Meta-event output missing 'events' list", response)

    raw_events = [event for event in raw_events if isinstance(event, dict)]
    if len(raw_events) < MIN_EVENTS:
        raise GenerationFormatError(
            f"Meta-event output had {len(raw_events)} usable events, need at least {MIN_EVENTS}",
            response,
        )

    if len(raw_events) > MAX_EVENTS:
        logger.warning(
            f"Generator returned {len(raw_events)} events, keeping the first {MAX_EVENTS}"
        )
        raw_events = raw_events[:MAX_EVENTS]

    events = [normalize_event(event, title_max_length) for event in raw_events]
    return GenerationResult(events=events, raw_output=response)


class MetaEventGenerator:
    """Generates candidate meta events for an action about to be resolved"""

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = 0.8,
        title_max_length: int = TITLE_MAX_LENGTH,
    ):
        """
        Initialize meta-event generator.

        Args:
            llm_client: Shared LLM client
            temperature: LLM temperature for event variety (default: 0.8)
            title_max_length: Titles are truncated to this length
        """
        self._llm_client = llm_client
        self.temperature = temperature
        self.title_max_length = title_max_length

    async def generate(
        self,
        player_action: str,
        time_estimate: str | None = None,
        location: str | None = None,
        time_of_day: str | None = None,
        recent_events: list[str] | None = None,
    ) -> GenerationResult:
        """
        Propose candidate events for a player action.

        Args:
            player_action: The action being attempted
            time_estimate: Duration from the validator, if known
            location: Current location, if known
            time_of_day: Time of day, if known
            recent_events: Recent story events for context

        Returns:
            GenerationResult with 2-4 normalized events

        Raises:
            GenerationFormatError: If output cannot be parsed into at least one event
            LLMCallFailed: If the LLM call itself fails
        """
        user_prompt = build_meta_event_user_prompt(
            player_action,
            time_estimate=time_estimate,
            location=location,
            time_of_day=time_of_day,
            recent_events=recent_events,
        )

        response = await self._llm_client.call_json(
            system_prompt=META_EVENT_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=self.temperature,
        )

        result = parse_generation_response(response, self.title_max_length)
        logger.debug(f"Generated {len(result.events)} meta events for '{player_action[:50]}'")
        return result
