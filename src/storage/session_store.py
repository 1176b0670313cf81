# ABOUTME: Redis-backed durable store for session phase context, pending actions, meta events, and turn records.
# ABOUTME: Context writes are WATCH/MULTI compare-and-set on a version counter so concurrent writers cannot interleave.

from loguru import logger
from redis import Redis
from redis.exceptions import WatchError

from src.models.session import MetaEvent, PendingAction, SessionPhaseContext, TurnRecord
from src.models.turn import TurnFailed
from src.storage.exceptions import (
    ConcurrentModification,
    EventNotFound,
    PendingActionNotFound,
    SessionNotFound,
)

TURN_FAILURES_KEY = "audit:turn_failures"


class RedisSessionStore:
    """
    Source of truth for session phase state across process restarts.

    Key layout:
    - session:{id}:context       JSON SessionPhaseContext
    - session:{id}:owner         owning user id
    - session:{id}:turns         list of completed turn ids
    - pending_action:{id}        JSON PendingAction
    - pending_action:{id}:events hash event_id -> JSON MetaEvent
    - turn:{id}:record           JSON TurnRecord (write-once)
    - audit:turn_failures        list of JSON TurnFailed records
    """

    def __init__(self, redis_client: Redis):
        """
        Initialize session store.

        Args:
            redis_client: Redis connection used for all reads and writes
        """
        self.redis = redis_client

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def _context_key(session_id: str) -> str:
        return f"session:{session_id}:context"

    @staticmethod
    def _owner_key(session_id: str) -> str:
        return f"session:{session_id}:owner"

    @staticmethod
    def _session_turns_key(session_id: str) -> str:
        return f"session:{session_id}:turns"

    @staticmethod
    def _pending_action_key(pending_action_id: str) -> str:
        return f"pending_action:{pending_action_id}"

    @staticmethod
    def _events_key(pending_action_id: str) -> str:
        return f"pending_action:{pending_action_id}:events"

    @staticmethod
    def _turn_record_key(turn_id: str) -> str:
        return f"turn:{turn_id}:record"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, session_id: str, user_id: str) -> SessionPhaseContext:
        """
        Create an idle phase context for a new session.

        Creating an existing session is a no-op that returns the stored context.

        Args:
            session_id: Session identifier
            user_id: Owning user

        Returns:
            The session's phase context
        """
        context = SessionPhaseContext(session_id=session_id)
        created = self.redis.set(
            self._context_key(session_id), context.model_dump_json(), nx=True
        )
        self.redis.set(self._owner_key(session_id), user_id, nx=True)

        if not created:
            logger.debug(f"Session {session_id} already exists, returning stored context")
            return self.get_context(session_id)

        logger.info(f"Created session {session_id} for user {user_id}")
        return context

    def get_owner(self, session_id: str) -> str | None:
        """Return the owning user id, or None when the session is unknown"""
        owner = self.redis.get(self._owner_key(session_id))
        if owner is None:
            return None
        return owner.decode() if isinstance(owner, bytes) else owner

    def get_context(self, session_id: str) -> SessionPhaseContext:
        """
        Load the current phase context.

        Raises:
            SessionNotFound: If the session was never created
        """
        raw = self.redis.get(self._context_key(session_id))
        if raw is None:
            raise SessionNotFound(f"Session {session_id} not found")
        return SessionPhaseContext.model_validate_json(raw)

    def write_context(
        self,
        context: SessionPhaseContext,
        expected_version: int,
        pending_action: PendingAction | None = None,
    ) -> SessionPhaseContext:
        """
        Conditionally replace the session context (and optionally a pending action).

        Both writes land in one MULTI/EXEC block, so the denormalized pending action
        phase can never disagree with the session phase.

        Args:
            context: New context to store (its version is overwritten)
            expected_version: Version the caller read before computing the update
            pending_action: Pending action to write in the same transaction

        Returns:
            The stored context with its incremented version

        Raises:
            SessionNotFound: If the session context does not exist
            ConcurrentModification: If the stored version moved on
        """
        key = self._context_key(context.session_id)
        stored = context.model_copy(update={"version": expected_version + 1})

        with self.redis.pipeline() as pipe:
            try:
                pipe.watch(key)
                raw = pipe.get(key)
                if raw is None:
                    raise SessionNotFound(f"Session {context.session_id} not found")

                current = SessionPhaseContext.model_validate_json(raw)
                if current.version != expected_version:
                    raise ConcurrentModification(
                        f"Session {context.session_id} is at version {current.version}, "
                        f"expected {expected_version}"
                    )

                pipe.multi()
                pipe.set(key, stored.model_dump_json())
                if pending_action is not None:
                    pipe.set(
                        self._pending_action_key(pending_action.id),
                        pending_action.model_dump_json(),
                    )
                pipe.execute()
            except WatchError as e:
                raise ConcurrentModification(
                    f"Session {context.session_id} was modified concurrently"
                ) from e

        return stored

    # ------------------------------------------------------------------
    # Pending actions
    # ------------------------------------------------------------------

    def get_pending_action(self, pending_action_id: str) -> PendingAction:
        """
        Load a pending action.

        Raises:
            PendingActionNotFound: If no such pending action exists
        """
        raw = self.redis.get(self._pending_action_key(pending_action_id))
        if raw is None:
            raise PendingActionNotFound(f"Pending action {pending_action_id} not found")
        return PendingAction.model_validate_json(raw)

    def save_pending_action(self, pending_action: PendingAction) -> None:
        self.redis.set(
            self._pending_action_key(pending_action.id), pending_action.model_dump_json()
        )

    # ------------------------------------------------------------------
    # Meta events
    # ------------------------------------------------------------------

    def save_meta_events(self, events: list[MetaEvent]) -> None:
        """Upsert events by id; writing the same batch twice is harmless"""
        if not events:
            return
        with self.redis.pipeline() as pipe:
            for event in events:
                pipe.hset(
                    self._events_key(event.pending_action_id),
                    event.id,
                    event.model_dump_json(),
                )
            pipe.execute()

    def save_meta_event(self, event: MetaEvent) -> None:
        self.save_meta_events([event])

    def get_meta_events(self, pending_action_id: str) -> list[MetaEvent]:
        """Return the batch for a pending action ordered by sequence number"""
        raw_events = self.redis.hvals(self._events_key(pending_action_id))
        events = [MetaEvent.model_validate_json(raw) for raw in raw_events]
        return sorted(events, key=lambda e: e.sequence_num)

    def get_meta_event(self, pending_action_id: str, event_id: str) -> MetaEvent:
        """
        Load one event of a batch.

        Raises:
            EventNotFound: If the event is not part of this pending action's batch
        """
        raw = self.redis.hget(self._events_key(pending_action_id), event_id)
        if raw is None:
            raise EventNotFound(
                f"Meta event {event_id} not found for pending action {pending_action_id}"
            )
        return MetaEvent.model_validate_json(raw)

    def delete_meta_events(self, pending_action_id: str) -> int:
        """
        Delete the whole batch for a pending action.

        Returns:
            Number of events removed
        """
        key = self._events_key(pending_action_id)
        with self.redis.pipeline() as pipe:
            pipe.hlen(key)
            pipe.delete(key)
            count, _ = pipe.execute()

        logger.debug(f"Deleted {count} meta events for pending action {pending_action_id}")
        return int(count)

    # ------------------------------------------------------------------
    # Turn records and audit
    # ------------------------------------------------------------------

    def save_turn_record(self, record: TurnRecord) -> bool:
        """
        Persist a turn record exactly once.

        Returns:
            True if this call wrote the record, False if it already existed
        """
        created = self.redis.set(
            self._turn_record_key(record.turn_id), record.model_dump_json(), nx=True
        )
        if not created:
            logger.info(f"Turn record {record.turn_id} already persisted, skipping")
            return False

        self.redis.rpush(self._session_turns_key(record.session_id), record.turn_id)
        return True

    def get_turn_record(self, turn_id: str) -> TurnRecord | None:
        raw = self.redis.get(self._turn_record_key(turn_id))
        if raw is None:
            return None
        return TurnRecord.model_validate_json(raw)

    def list_turn_ids(self, session_id: str) -> list[str]:
        return [
            t.decode() if isinstance(t, bytes) else t
            for t in self.redis.lrange(self._session_turns_key(session_id), 0, -1)
        ]

    def record_turn_failure(self, failure: TurnFailed) -> None:
        """Append a failed turn to the audit list"""
        self.redis.rpush(TURN_FAILURES_KEY, failure.model_dump_json())

    def list_turn_failures(self, limit: int = 50) -> list[TurnFailed]:
        raw_failures = self.redis.lrange(TURN_FAILURES_KEY, -limit, -1)
        return [TurnFailed.model_validate_json(raw) for raw in raw_failures]
