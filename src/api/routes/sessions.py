# ABOUTME: Session endpoints: create a session, poll its phase, and submit a player action.
# ABOUTME: Submitting an action begins the turn in the store before the worker job is enqueued.

from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import ApiServices, get_owned_context, get_services, get_user_id
from src.api.models import (
    ActionAccepted,
    CreateSessionBody,
    PhaseResponse,
    SessionCreated,
    SubmitActionBody,
)
from src.models.game_phase import GamePhase
from src.utils.logging import log_turn_event

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", status_code=201, response_model=SessionCreated, response_model_by_alias=True)
async def create_session(
    body: CreateSessionBody | None = None,
    user_id: str = Depends(get_user_id),
    services: ApiServices = Depends(get_services),
):
    """Create an idle session owned by the caller."""
    session_id = (body.session_id if body else None) or str(uuid4())

    owner = services.store.get_owner(session_id)
    if owner is not None and owner != user_id:
        raise HTTPException(409, "Session id already in use")

    context = services.store.create_session(session_id, user_id)
    return SessionCreated(session_id=session_id, phase=context.current_phase.value)


@router.get("/{session_id}/phase", response_model=PhaseResponse, response_model_by_alias=True)
async def get_phase(
    session_id: str,
    user_id: str = Depends(get_user_id),
    services: ApiServices = Depends(get_services),
):
    """Current phase and pending action for a session the caller owns."""
    context = get_owned_context(services, session_id, user_id)

    original_input = None
    if context.pending_action_id:
        original_input = services.store.get_pending_action(context.pending_action_id).original_input

    return PhaseResponse(
        phase=context.current_phase.value,
        pending_action_id=context.pending_action_id,
        original_input=original_input,
        is_in_meta_event=context.is_in_meta_event,
        is_in_combat=context.is_in_combat,
    )


@router.post(
    "/{session_id}/actions",
    status_code=202,
    response_model=ActionAccepted,
    response_model_by_alias=True,
)
async def submit_action(
    session_id: str,
    body: SubmitActionBody,
    user_id: str = Depends(get_user_id),
    services: ApiServices = Depends(get_services),
):
    """
    Accept a player action and hand the turn to a worker.

    The turn is started here so a second submission while one is in flight gets
    an immediate 409 (PhaseConflict handler).
    """
    get_owned_context(services, session_id, user_id)

    pending_action = services.machine.begin_turn(session_id, body.player_input)
    try:
        job_id = services.dispatcher.dispatch_turn(
            session_id, user_id, body.player_input, pending_action.id
        )
    except Exception as e:
        services.machine.rollback_to_idle(session_id, reason=f"dispatch failed: {e}")
        raise HTTPException(503, "Could not queue the action, please retry") from e

    log_turn_event(
        "Player action accepted",
        session_id=session_id,
        turn_id=pending_action.id,
        phase=GamePhase.VALIDATING.value,
        job_id=job_id,
    )
    return ActionAccepted(
        turn_id=pending_action.id, phase=GamePhase.VALIDATING.value, job_id=job_id
    )
