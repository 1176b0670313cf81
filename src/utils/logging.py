# ABOUTME: Structured logging configuration using loguru for turn pipeline diagnostics.
# ABOUTME: Supports context fields (session, turn, phase, step) and file/console output.

import sys
from pathlib import Path
from typing import Any

from loguru import logger


# Default log format with structured context
DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | "
    "{extra}"
)


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
    format_string: str | None = None,
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """
    Configure loguru sinks for the API process and the turn workers.

    Usage:
        >>> setup_logging(log_level="DEBUG", log_dir="logs")
        >>> logger.bind(session="s-1", phase="validating").info("Turn started")

    Args:
        log_level: Minimum log level ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        log_dir: Directory for log files (default: "logs")
        console_output: Enable console logging (default: True)
        file_output: Enable file logging (default: True)
        format_string: Custom format string (default: structured format)
        rotation: When to rotate log files (default: "100 MB")
        retention: How long to keep old logs (default: "30 days")
        compression: Compression for rotated logs (default: "zip")

    Raises:
        ValueError: If log_level is invalid
    """
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    log_level = log_level.upper()
    if log_level not in valid_levels:
        raise ValueError(
            f"Invalid log level: '{log_level}'. "
            f"Must be one of: {', '.join(sorted(valid_levels))}"
        )

    logger.remove()

    fmt = format_string or DEFAULT_FORMAT

    if console_output:
        logger.add(
            sys.stderr,
            format=fmt,
            level=log_level,
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    if file_output:
        log_dir = Path("logs") if log_dir is None else Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / "turn_engine_{time:YYYY-MM-DD}.log"
        logger.add(
            str(log_file),
            format=fmt,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            backtrace=True,
            diagnose=True,
            enqueue=True,  # Thread/process safe for RQ workers
        )

    logger.info(
        f"Logging configured: level={log_level}, "
        f"console={console_output}, file={file_output}"
    )


def log_turn_event(
    message: str,
    session_id: str,
    turn_id: str | None = None,
    phase: str | None = None,
    level: str = "INFO",
    **extra_context: Any
) -> None:
    """
    Log a turn-level event with the standard context fields.

    Usage:
        >>> log_turn_event(
        ...     "Meta events proposed",
        ...     session_id="s-1",
        ...     turn_id="t-9",
        ...     phase="meta_proposal",
        ...     event_count=3
        ... )

    Args:
        message: Log message
        session_id: Session identifier
        turn_id: Turn (pending action) identifier
        phase: Current phase value
        level: Log level (default: "INFO")
        **extra_context: Additional context fields
    """
    context: dict[str, Any] = {"session": session_id, **extra_context}
    if turn_id:
        context["turn"] = turn_id
    if phase:
        context["phase"] = phase

    logger.bind(**context).log(level.upper(), message)


def log_phase_transition(
    from_phase: str,
    to_phase: str,
    session_id: str,
    turn_id: str | None = None,
    duration_ms: float | None = None
) -> None:
    """
    Log a phase transition with optional timing information.

    Args:
        from_phase: Previous phase
        to_phase: New phase
        session_id: Session identifier
        turn_id: Turn (pending action) identifier
        duration_ms: Optional time spent in the previous phase in milliseconds
    """
    context: dict[str, Any] = {
        "from_phase": from_phase,
        "to_phase": to_phase,
        "session": session_id,
    }
    if turn_id:
        context["turn"] = turn_id
    if duration_ms is not None:
        context["duration_ms"] = duration_ms

    logger.bind(**context).info(f"Phase transition: {from_phase} -> {to_phase}")


def log_step_attempt(
    step: str,
    turn_id: str,
    attempt: int,
    max_attempts: int,
    error: BaseException | None = None,
    next_delay: float | None = None
) -> None:
    """
    Log one attempt of a workflow step; failed attempts log at WARNING.

    Args:
        step: Step name (e.g., "validate")
        turn_id: Turn identifier
        attempt: 1-based attempt number
        max_attempts: Retry budget for the step
        error: Exception raised by the attempt, if any
        next_delay: Seconds until the next attempt, if one is scheduled
    """
    context: dict[str, Any] = {
        "step": step,
        "turn": turn_id,
        "attempt": attempt,
        "max_attempts": max_attempts,
    }
    if next_delay is not None:
        context["next_delay"] = next_delay

    bound = logger.bind(**context)
    if error is None:
        bound.debug(f"Step '{step}' attempt {attempt}/{max_attempts} succeeded")
    else:
        bound.warning(
            f"Step '{step}' attempt {attempt}/{max_attempts} failed: "
            f"{type(error).__name__}: {error}"
        )
