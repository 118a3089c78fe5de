"""FastAPI application factory.

Main entry point for the SQL game Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sqlgame.config.app_config import load_app_config
from sqlgame.utils.validators import PreconditionError
from sqlgame.web.routes import games_router, health_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    games_dir = load_app_config().games_dir
    games = sorted(p.stem for p in games_dir.glob("*.xml")) if games_dir.is_dir() else []
    logger.info(
        "api_startup",
        games_found=len(games),
        games_dir=str(games_dir.absolute()),
        game_names=games,
    )
    yield


async def precondition_error_handler(request: Request, exc: PreconditionError) -> JSONResponse:
    """Operations called in the wrong game state are a conflict, not a crash."""
    logger.info("precondition_failed", path=request.url.path, message=exc.message)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": exc.message},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="SQL Game API",
        description="Web API for interactive SQL exercises",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PreconditionError, precondition_error_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(games_router)

    return app


# Default app instance for uvicorn
app = create_app()
