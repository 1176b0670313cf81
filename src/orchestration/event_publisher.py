# ABOUTME: Publishes terminal turn events (TurnCompleted, TurnFailed) to Redis lists.
# ABOUTME: Writes each event to the shared turn channel and to the session's own list.

import json

from loguru import logger
from redis import Redis

from src.models.turn import TurnCompleted, TurnFailed

TURN_EVENTS_CHANNEL = "channel:turn_events"


class TurnEventPublisher:
    """
    Emits turn outcomes for external consumers.

    Channels:
    - channel:turn_events: every terminal event, in publish order
    - session:{id}:events: events for a single session
    """

    def __init__(self, redis_client: Redis, event_ttl: int = 86400):
        """
        Initialize event publisher.

        Args:
            redis_client: Redis connection for event storage
            event_ttl: Seconds to keep event lists after the last write (default: 24 hours)
        """
        self.redis = redis_client
        self.event_ttl = event_ttl

    @staticmethod
    def _session_key(session_id: str) -> str:
        return f"session:{session_id}:events"

    def publish(self, event: TurnCompleted | TurnFailed) -> None:
        """Append an event to the shared channel and the session list"""
        payload = json.dumps(event.model_dump(mode="json"))

        pipe = self.redis.pipeline()
        for key in (TURN_EVENTS_CHANNEL, self._session_key(event.session_id)):
            pipe.rpush(key, payload)
            pipe.expire(key, self.event_ttl)
        pipe.execute()

        logger.info(f"Published {event.event} for session {event.session_id}")

    def session_events(self, session_id: str, limit: int = 50) -> list[TurnCompleted | TurnFailed]:
        """Most recent events for a session, oldest first"""
        raw = self.redis.lrange(self._session_key(session_id), -limit, -1)
        events: list[TurnCompleted | TurnFailed] = []
        for item in raw:
            data = json.loads(item)
            if data.get("event") == "turn_completed":
                events.append(TurnCompleted.model_validate(data))
            else:
                events.append(TurnFailed.model_validate(data))
        return events
