# ABOUTME: Interfaces for the sub-systems the turn workflow delegates to (constraints, events, combat, NPCs).
# ABOUTME: Ships simple deterministic defaults so a turn can run end to end without the full game systems.

from typing import Protocol

from src.config.prompts import TIME_SCALE
from src.models.session import MetaEvent
from src.models.turn import (
    CombatOutcome,
    ConstraintBundle,
    EventResolution,
    InteractionResult,
    ValidationResult,
)


class ConstraintEvaluator(Protocol):
    """Turns a validated action into time/difficulty/inventory constraints"""

    async def evaluate(self, player_input: str, validation: ValidationResult) -> ConstraintBundle:
        ...


class MetaEventResolver(Protocol):
    """Plays out a single triggered meta event"""

    async def resolve(self, event: MetaEvent, player_input: str) -> EventResolution:
        ...


class CombatResolver(Protocol):
    """Runs combat started by a meta event"""

    async def resolve(self, event: MetaEvent, player_input: str) -> CombatOutcome:
        ...


class InteractionModule(Protocol):
    """Collects NPC and background reactions to the action"""

    async def react(
        self,
        player_input: str,
        constraints: ConstraintBundle,
        resolutions: list[EventResolution],
    ) -> InteractionResult:
        ...


class TimeScaleConstraintEvaluator:
    """Maps the validator's time estimate onto minutes; difficulty grows with duration"""

    def __init__(self, inventory_space: int = 10):
        self.inventory_space = inventory_space

    async def evaluate(self, player_input: str, validation: ValidationResult) -> ConstraintBundle:
        minutes = TIME_SCALE.get(validation.time_estimate or "", 0)
        notes = []
        if validation.time_estimate is None:
            notes.append("No time estimate; treating the action as near instant")

        if minutes >= TIME_SCALE["1 day"]:
            difficulty = 8
        elif minutes >= TIME_SCALE["3 hours"]:
            difficulty = 6
        else:
            difficulty = 5

        return ConstraintBundle(
            time_estimate=validation.time_estimate,
            time_minutes=minutes,
            difficulty=difficulty,
            inventory_space=self.inventory_space,
            notes=notes,
        )


class DescriptiveEventResolver:
    """Resolves an event by reporting its description as what happened"""

    async def resolve(self, event: MetaEvent, player_input: str) -> EventResolution:
        return EventResolution(
            event_id=event.id,
            title=event.title,
            summary=event.description,
        )


class InstantCombatResolver:
    """Ends combat immediately with a short summary"""

    async def resolve(self, event: MetaEvent, player_input: str) -> CombatOutcome:
        return CombatOutcome(
            combat_ended=True,
            summary=f"A brief fight breaks out ({event.title}) and is over quickly.",
        )


class QuietInteractionModule:
    """No NPCs react; used when no interaction system is configured"""

    async def react(
        self,
        player_input: str,
        constraints: ConstraintBundle,
        resolutions: list[EventResolution],
    ) -> InteractionResult:
        return InteractionResult()
