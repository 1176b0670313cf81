# ABOUTME: Worker module initialization for RQ background job processing.
# ABOUTME: Exports turn job functions, queue configuration, and the RQ dispatcher.

from src.workers.queue_config import (
    RQTurnDispatcher,
    create_queue,
    create_redis_connection,
    enqueue_job,
    get_turn_queue,
)
from src.workers.turn_worker import resume_turn_job, run_turn_job

__all__ = [
    # Worker functions
    "run_turn_job",
    "resume_turn_job",
    # Queue configuration
    "create_redis_connection",
    "create_queue",
    "get_turn_queue",
    "enqueue_job",
    "RQTurnDispatcher",
]
