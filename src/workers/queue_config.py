# ABOUTME: RQ queue configuration and the dispatcher the API uses to hand turns to workers.
# ABOUTME: Turn jobs get ids derived from the turn id so a re-dispatch replaces rather than duplicates.

from collections.abc import Callable
from typing import Any

from loguru import logger
from redis import Redis
from rq import Queue
from rq.job import Job

from src.config.settings import Settings, get_settings
from src.workers.turn_worker import resume_turn_job, run_turn_job

# Timeout settings (in seconds)
JOB_TIMEOUT = 300  # a turn makes several LLM calls, each with its own retries
RESULT_TTL = 300
FAILURE_TTL = 86400  # failed turns stay inspectable for a day


def create_redis_connection(redis_url: str = "redis://localhost:6379") -> Redis:
    """
    Connect to Redis and verify the connection with a ping.

    Raises:
        ConnectionError: When Redis is not reachable
    """
    try:
        redis_conn = Redis.from_url(redis_url, decode_responses=False)
        redis_conn.ping()
    except Exception as e:
        logger.error(f"Failed to connect to Redis at {redis_url}: {e}")
        raise ConnectionError(f"Redis connection failed: {e}") from e
    logger.info(f"Redis connection established: {redis_url}")
    return redis_conn


def create_queue(queue_name: str, redis_conn: Redis, default_timeout: int = JOB_TIMEOUT) -> Queue:
    """Build an RQ queue; per-job TTLs are applied in enqueue_job"""
    queue = Queue(queue_name, connection=redis_conn, default_timeout=default_timeout)
    logger.info(f"Created queue '{queue_name}' (timeout={default_timeout}s)")
    return queue


def get_turn_queue(redis_conn: Redis, settings: Settings | None = None) -> Queue:
    """Queue that run_turn_job and resume_turn_job are enqueued on"""
    settings = settings or get_settings()
    return create_queue(settings.turn_queue_name, redis_conn, settings.turn_job_timeout)


def enqueue_job(
    queue: Queue,
    func: Callable[..., Any],
    kwargs: dict[str, Any] | None = None,
    job_id: str | None = None,
    job_timeout: int = JOB_TIMEOUT,
    result_ttl: int = RESULT_TTL,
    failure_ttl: int = FAILURE_TTL,
) -> Job:
    """
    Enqueue a keyword-argument job with the standard TTL settings.

    Args:
        queue: Target queue
        func: Importable worker function
        kwargs: Keyword arguments for func
        job_id: Explicit job id (RQ generates one when omitted)
        job_timeout: Maximum execution time in seconds
        result_ttl: Seconds to keep a successful result
        failure_ttl: Seconds to keep a failed job for inspection

    Returns:
        The enqueued RQ Job
    """
    job = queue.enqueue(
        func,
        kwargs=kwargs or {},
        job_id=job_id,
        job_timeout=job_timeout,
        result_ttl=result_ttl,
        failure_ttl=failure_ttl,
    )
    logger.debug(f"Enqueued {func.__name__} as job {job.id} on '{queue.name}'")
    return job


class RQTurnDispatcher:
    """Hands turn work to RQ workers; the API never runs a turn inline"""

    def __init__(self, queue: Queue, job_timeout: int = JOB_TIMEOUT):
        self.queue = queue
        self.job_timeout = job_timeout

    def dispatch_turn(self, session_id: str, user_id: str, player_input: str, turn_id: str) -> str:
        """Enqueue a new turn; returns the job id"""
        job = enqueue_job(
            self.queue,
            run_turn_job,
            kwargs={
                "session_id": session_id,
                "user_id": user_id,
                "player_input": player_input,
                "turn_id": turn_id,
            },
            job_id=f"turn-{turn_id}",
            job_timeout=self.job_timeout,
        )
        return job.id

    def dispatch_resume(self, session_id: str, turn_id: str) -> str:
        """Enqueue the continuation of a reviewed turn; returns the job id"""
        job = enqueue_job(
            self.queue,
            resume_turn_job,
            kwargs={"session_id": session_id, "turn_id": turn_id},
            job_id=f"resume-{turn_id}",
            job_timeout=self.job_timeout,
        )
        return job.id
