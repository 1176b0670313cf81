# ABOUTME: HTTP layer for phase polling, meta-event generation/review, and player action intake.
# ABOUTME: create_app builds the FastAPI application; services are injectable for tests.

from src.api.app import create_app, create_services
from src.api.dependencies import ApiServices, TurnDispatcher

__all__ = ["create_app", "create_services", "ApiServices", "TurnDispatcher"]
