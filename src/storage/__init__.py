# ABOUTME: Storage layer exports for the Redis session store and step ledger.
# ABOUTME: Provides durable phase context, pending action, meta event, and turn record persistence.

from src.storage.exceptions import (
    ConcurrentModification,
    EventNotFound,
    PendingActionNotFound,
    SessionNotFound,
)
from src.storage.session_store import RedisSessionStore
from src.storage.step_ledger import StepLedger

__all__ = [
    "RedisSessionStore",
    "StepLedger",
    "SessionNotFound",
    "PendingActionNotFound",
    "EventNotFound",
    "ConcurrentModification",
]
