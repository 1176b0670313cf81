# ABOUTME: Durable per-turn record of completed workflow steps, stored as a Redis hash.
# ABOUTME: Lets a re-run turn reuse recorded step results instead of repeating their side effects.

import json
from typing import Any

from loguru import logger
from redis import Redis

LEDGER_TTL = 7 * 86400  # Keep step results for a week after the last write


class StepLedger:
    """Maps (turn_id, step name) to the JSON result the step produced"""

    def __init__(self, redis_client: Redis, ttl: int = LEDGER_TTL):
        self.redis = redis_client
        self.ttl = ttl

    @staticmethod
    def _key(turn_id: str) -> str:
        return f"turn:{turn_id}:steps"

    def get(self, turn_id: str, step: str) -> Any | None:
        """Return the recorded result for a step, or None if it never completed"""
        raw = self.redis.hget(self._key(turn_id), step)
        if raw is None:
            return None
        return json.loads(raw)

    def has(self, turn_id: str, step: str) -> bool:
        return bool(self.redis.hexists(self._key(turn_id), step))

    def record(self, turn_id: str, step: str, result: Any) -> None:
        """Store a step result; the first write wins"""
        key = self._key(turn_id)
        written = self.redis.hsetnx(key, step, json.dumps(result, default=str))
        self.redis.expire(key, self.ttl)
        if not written:
            logger.debug(f"Step '{step}' for turn {turn_id} already recorded")

    def all(self, turn_id: str) -> dict[str, Any]:
        """Return every recorded step result for a turn"""
        raw = self.redis.hgetall(self._key(turn_id))
        results = {}
        for step, value in raw.items():
            name = step.decode() if isinstance(step, bytes) else step
            results[name] = json.loads(value)
        return results
