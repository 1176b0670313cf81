# ABOUTME: FastAPI application factory wiring routers, services, and domain error handlers.
# ABOUTME: Domain exceptions map onto HTTP status codes in one place instead of in every route.

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from redis import Redis

from src.agents.exceptions import LLMCallFailed
from src.api.dependencies import ApiServices
from src.api.routes import meta_events, sessions
from src.config.settings import Settings, get_settings
from src.orchestration.dependencies import create_turn_dependencies
from src.orchestration.exceptions import (
    GenerationFormatError,
    IncompleteDecisions,
    InvalidTransition,
    PhaseConflict,
)
from src.orchestration.review_coordinator import ReviewCoordinator
from src.storage.exceptions import EventNotFound, PendingActionNotFound, SessionNotFound
from src.workers.queue_config import RQTurnDispatcher, get_turn_queue


def create_services(redis_client: Redis, settings: Settings | None = None) -> ApiServices:
    """Production services: Redis-backed store and RQ dispatch"""
    settings = settings or get_settings()
    deps = create_turn_dependencies(redis_client, settings=settings)
    return ApiServices(
        store=deps.store,
        machine=deps.machine,
        coordinator=ReviewCoordinator(deps.store, deps.machine),
        proposer=deps.proposer,
        dispatcher=RQTurnDispatcher(
            get_turn_queue(redis_client, settings), job_timeout=settings.turn_job_timeout
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PhaseConflict)
    async def phase_conflict_handler(request: Request, exc: PhaseConflict):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "error": str(exc),
                "currentPhase": exc.current_phase.value if exc.current_phase else None,
            },
        )

    @app.exception_handler(IncompleteDecisions)
    async def incomplete_decisions_handler(request: Request, exc: IncompleteDecisions):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": str(exc), "remaining": exc.remaining},
        )

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTransition):
        logger.error(f"Invalid transition reached the API: {exc}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": str(exc), "currentPhase": exc.from_phase.value},
        )

    @app.exception_handler(SessionNotFound)
    @app.exception_handler(PendingActionNotFound)
    @app.exception_handler(EventNotFound)
    async def not_found_handler(request: Request, exc: Exception):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})

    @app.exception_handler(GenerationFormatError)
    @app.exception_handler(LLMCallFailed)
    async def generation_failed_handler(request: Request, exc: Exception):
        logger.warning(f"Generation failed: {type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "Failed to generate meta events"},
        )


def create_app(services: ApiServices | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        services: Pre-built services (tests inject fakes); built from settings when omitted
        settings: Application settings (default: get_settings())

    Returns:
        Configured FastAPI app
    """
    if services is None:
        from src.workers.queue_config import create_redis_connection

        settings = settings or get_settings()
        services = create_services(create_redis_connection(settings.redis_url), settings)

    app = FastAPI(title="Turn Phase Engine")
    app.state.services = services
    app.include_router(sessions.router)
    app.include_router(meta_events.router)
    register_exception_handlers(app)

    return app
