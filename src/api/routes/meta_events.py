# ABOUTME: Meta-event endpoints: generate a batch for a pending action, review it, and list it.
# ABOUTME: Review decisions go through the ReviewCoordinator; a confirmed batch dispatches a resume job.

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import (
    ApiServices,
    get_owned_pending_action,
    get_services,
    get_user_id,
)
from src.api.models import (
    EventsResponse,
    GenerateBody,
    GenerateResponse,
    MetaEventView,
    ReviewBody,
    ReviewResponse,
)
from src.models.game_phase import GamePhase

router = APIRouter(prefix="/meta-events", tags=["meta-events"])


@router.post("/generate", response_model=GenerateResponse, response_model_by_alias=True)
async def generate_meta_events(
    body: GenerateBody,
    user_id: str = Depends(get_user_id),
    services: ApiServices = Depends(get_services),
):
    """Generate (or regenerate) the batch for a pending action in meta_proposal."""
    get_owned_pending_action(services, body.pending_action_id, user_id)

    result = await services.proposer.propose(
        body.pending_action_id,
        regenerate=body.regenerate,
        location=body.location,
        time_of_day=body.time_of_day,
        recent_events=body.recent_events,
    )
    return GenerateResponse(
        events=[MetaEventView.from_event(event) for event in result.events],
        raw_output=result.raw_output,
    )


@router.post("/review", response_model=ReviewResponse, response_model_by_alias=True,
             response_model_exclude_none=True)
async def review_meta_events(
    body: ReviewBody,
    user_id: str = Depends(get_user_id),
    services: ApiServices = Depends(get_services),
):
    """Decide on an event, confirm the batch, or ask for a new one."""
    pending_action = get_owned_pending_action(services, body.pending_action_id, user_id)
    coordinator = services.coordinator

    if body.action == "decide":
        try:
            event = coordinator.decide(body.pending_action_id, body.event_id, body.decision)
        except ValueError as e:
            raise HTTPException(400, str(e))
        return ReviewResponse(
            phase=GamePhase.META_REVIEW.value, event=MetaEventView.from_event(event)
        )

    if body.action == "confirm":
        events = coordinator.confirm(body.pending_action_id)
        services.dispatcher.dispatch_resume(pending_action.session_id, body.pending_action_id)
        return ReviewResponse(
            phase=GamePhase.PROBABILITY_ROLL.value,
            events=[MetaEventView.from_event(event) for event in events],
        )

    phase = coordinator.regenerate(body.pending_action_id)
    return ReviewResponse(phase=phase.value)


@router.get("/{pending_action_id}", response_model=EventsResponse, response_model_by_alias=True)
async def list_meta_events(
    pending_action_id: str,
    user_id: str = Depends(get_user_id),
    services: ApiServices = Depends(get_services),
):
    """Current batch for a pending action, in sequence order."""
    get_owned_pending_action(services, pending_action_id, user_id)
    events = services.coordinator.list_events(pending_action_id)
    return EventsResponse(events=[MetaEventView.from_event(event) for event in events])
