# ABOUTME: Services the HTTP layer needs, stored on app.state and resolved per request with Depends.
# ABOUTME: The turn dispatcher is a protocol so tests can swap the RQ-backed one for a mock.

from dataclasses import dataclass
from typing import Protocol

from fastapi import Header, HTTPException, Request

from src.models.session import PendingAction, SessionPhaseContext
from src.orchestration.meta_proposal import MetaEventProposer
from src.orchestration.phase_machine import PhaseStateMachine
from src.orchestration.review_coordinator import ReviewCoordinator
from src.storage.exceptions import PendingActionNotFound, SessionNotFound
from src.storage.session_store import RedisSessionStore


class TurnDispatcher(Protocol):
    """Hands turn work to background workers"""

    def dispatch_turn(self, session_id: str, user_id: str, player_input: str, turn_id: str) -> str:
        ...

    def dispatch_resume(self, session_id: str, turn_id: str) -> str:
        ...


@dataclass
class ApiServices:
    store: RedisSessionStore
    machine: PhaseStateMachine
    coordinator: ReviewCoordinator
    proposer: MetaEventProposer
    dispatcher: TurnDispatcher


def get_services(request: Request) -> ApiServices:
    return request.app.state.services


def get_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity; authentication itself happens upstream"""
    if not x_user_id:
        raise HTTPException(401, "Missing X-User-Id header")
    return x_user_id


def get_owned_context(
    services: ApiServices, session_id: str, user_id: str
) -> SessionPhaseContext:
    """
    Load a session the caller owns.

    Unknown and foreign sessions both answer 404 so existence is not leaked.
    """
    if services.store.get_owner(session_id) != user_id:
        raise HTTPException(404, "Session not found")
    try:
        return services.store.get_context(session_id)
    except SessionNotFound:
        raise HTTPException(404, "Session not found")


def get_owned_pending_action(
    services: ApiServices, pending_action_id: str, user_id: str
) -> PendingAction:
    """Load a pending action whose session the caller owns (404 otherwise)"""
    try:
        pending_action = services.store.get_pending_action(pending_action_id)
    except PendingActionNotFound:
        raise HTTPException(404, "Pending action not found")
    if services.store.get_owner(pending_action.session_id) != user_id:
        raise HTTPException(404, "Pending action not found")
    return pending_action
