# ABOUTME: Exception definitions for session store lookups and conditional writes.
# ABOUTME: Raised by RedisSessionStore when records are missing or a concurrent write wins.


class SessionNotFound(Exception):
    """Raised when a session has no phase context"""
    pass


class PendingActionNotFound(Exception):
    """Raised when a pending action id does not exist"""
    pass


class EventNotFound(Exception):
    """Raised when a meta event id does not belong to the given pending action"""
    pass


class ConcurrentModification(Exception):
    """Raised when another writer updated the session context first"""
    pass
