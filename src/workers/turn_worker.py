# ABOUTME: RQ worker functions that run and resume turns (the inbound trigger for the workflow).
# ABOUTME: Module-level functions run in separate processes with internal imports.

from typing import Any

from loguru import logger


def build_orchestrator() -> Any:
    """
    Wire a TurnOrchestrator from settings inside the worker process.

    Returns:
        TurnOrchestrator ready to run turns
    """
    from src.config.settings import get_settings
    from src.orchestration.dependencies import create_turn_dependencies
    from src.orchestration.turn_orchestrator import TurnOrchestrator
    from src.workers.queue_config import create_redis_connection

    settings = get_settings()
    redis_conn = create_redis_connection(settings.redis_url)
    return TurnOrchestrator(create_turn_dependencies(redis_conn, settings=settings))


def _run(coro: Any) -> Any:
    import asyncio

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def run_turn_job(
    session_id: str,
    user_id: str,
    player_input: str,
    turn_id: str | None = None,
) -> dict[str, Any]:
    """
    RQ worker function: run a new turn for a submitted player action.

    Redelivery of the same turn_id resumes the turn instead of starting another.

    Args:
        session_id: Session receiving the action
        user_id: Player who submitted it
        player_input: Raw player text
        turn_id: Turn id assigned when the action was accepted

    Returns:
        TurnOutcome dict (status completed, awaiting_review, rejected, or failed)

    Raises:
        PhaseConflict: When another turn holds the session
    """
    from src.models.turn import PlayerActionSubmitted

    action = PlayerActionSubmitted(
        session_id=session_id, user_id=user_id, player_input=player_input
    )

    try:
        orchestrator = build_orchestrator()
        outcome = _run(
            orchestrator.run_turn(
                action.session_id, action.user_id, action.player_input, turn_id=turn_id
            )
        )
        logger.info(f"Turn job for session {session_id} finished: {outcome.status}")
        return outcome.model_dump()

    except Exception as e:
        logger.error(f"Worker run_turn_job failed for session {session_id}: {e}")
        raise


def resume_turn_job(session_id: str, turn_id: str) -> dict[str, Any]:
    """
    RQ worker function: continue a turn after meta-event review was confirmed.

    Args:
        session_id: Session owning the turn
        turn_id: Turn to continue

    Returns:
        TurnOutcome dict

    Raises:
        PhaseConflict: When the session is no longer processing this turn
    """
    try:
        orchestrator = build_orchestrator()
        outcome = _run(orchestrator.resume_turn(session_id, turn_id))
        logger.info(f"Resume job for turn {turn_id} finished: {outcome.status}")
        return outcome.model_dump()

    except Exception as e:
        logger.error(f"Worker resume_turn_job failed for turn {turn_id}: {e}")
        raise
