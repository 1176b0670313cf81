# ABOUTME: Narrator agent that turns the accumulated turn results into user-visible prose.
# ABOUTME: Also reports nesting and combat signals that decide the session flags for the next turn.

import json

from pydantic import ValidationError

from src.agents.llm_client import LLMClient
from src.config.prompts import NARRATOR_SYSTEM_PROMPT, build_narrator_user_prompt
from src.models.turn import (
    ConstraintBundle,
    EventResolution,
    InteractionResult,
    NarrationResult,
    NarrationSignals,
)
from src.orchestration.exceptions import GenerationFormatError


class Narrator:
    """Writes the final narrative for a turn"""

    def __init__(self, llm_client: LLMClient, temperature: float = 0.8):
        self._llm_client = llm_client
        self.temperature = temperature

    async def narrate(
        self,
        player_input: str,
        constraints: ConstraintBundle,
        resolutions: list[EventResolution],
        interactions: InteractionResult,
    ) -> NarrationResult:
        """
        Narrate the outcome of a player action.

        Args:
            player_input: The action the player took
            constraints: Time and difficulty constraints for the action
            resolutions: Triggered events in the order they were resolved
            interactions: NPC and background reactions

        Returns:
            NarrationResult with narrative text and signals

        Raises:
            GenerationFormatError: If the response has no narrative or bad signals
            LLMCallFailed: If the LLM call itself fails
        """
        user_prompt = build_narrator_user_prompt(
            player_input=player_input,
            time_estimate=constraints.time_estimate,
            difficulty=constraints.difficulty,
            event_summaries=[f"{r.title}: {r.summary}" for r in resolutions],
            npc_reactions=interactions.npc_reactions,
            background=interactions.background,
        )

        response = await self._llm_client.call_json(
            system_prompt=NARRATOR_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=self.temperature,
        )

        return parse_narration_response(response)


def parse_narration_response(response: str) -> NarrationResult:
    """
    Parse the narrator's JSON output.

    Missing signals fall back to defaults (resolved, continue, no combat); a
    missing or empty narrative is an error.
    """
    try:
        data = json.loads(response)
    except json.JSONDecodeError as e:
        raise GenerationFormatError(f"Failed to parse narration JSON: {e}", response) from e

    if not isinstance(data, dict):
        raise GenerationFormatError("Narration output is not a JSON object", response)

    narrative = data.get("narrative")
    if not isinstance(narrative, str) or not narrative.strip():
        raise GenerationFormatError("Narration missing required narrative field", response)

    raw_signals = data.get("signals") or {}
    if not isinstance(raw_signals, dict):
        raise GenerationFormatError("Narration signals must be an object", response)

    try:
        signals = NarrationSignals.model_validate(raw_signals)
    except ValidationError as e:
        raise GenerationFormatError(f"Invalid narration signals: {e}", response) from e

    return NarrationResult(narrative=narrative.strip(), signals=signals, raw_output=response)
