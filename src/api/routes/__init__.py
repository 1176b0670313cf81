# ABOUTME: HTTP routers for sessions and meta events.
# ABOUTME: Each module exposes a single APIRouter included by the app factory.
