"""Route handlers for Web API."""

from sqlgame.web.routes.health import router as health_router
from sqlgame.web.routes.games import router as games_router

__all__ = [
    "health_router",
    "games_router",
]
