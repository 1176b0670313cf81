# ABOUTME: Probability roll over a reviewed meta-event batch.
# ABOUTME: Only accepted events can trigger; an accepted event triggers when its roll is below its probability.

import random
from collections.abc import Callable

from loguru import logger

from src.models.session import MetaEvent


class ProbabilityRoller:
    """Rolls each decided event and marks which ones trigger"""

    def __init__(self, rng: Callable[[], float] = random.random):
        """
        Initialize probability roller.

        Args:
            rng: Source of uniform floats in [0, 1) (tests inject a fixed sequence)
        """
        self._rng = rng

    def roll(self, events: list[MetaEvent]) -> list[MetaEvent]:
        """
        Roll a batch in sequence order.

        Rejected events are never rolled and never trigger.

        Args:
            events: Decided events for one pending action

        Returns:
            Copies of the events with roll_result and triggered filled in
        """
        rolled = []
        for event in sorted(events, key=lambda e: e.sequence_num):
            if not event.is_accepted:
                rolled.append(event.model_copy(update={"roll_result": None, "triggered": False}))
                continue

            roll = self._rng()
            triggered = roll < event.probability
            logger.debug(
                f"Rolled {roll:.3f} vs {event.probability:.2f} for '{event.title}': "
                f"{'triggered' if triggered else 'missed'}"
            )
            rolled.append(event.model_copy(update={"roll_result": roll, "triggered": triggered}))

        return rolled


def triggered_events(events: list[MetaEvent]) -> list[MetaEvent]:
    """Triggered events in the order they must be resolved"""
    return sorted((e for e in events if e.triggered), key=lambda e: e.sequence_num)
