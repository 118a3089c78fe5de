"""Game session management for Web API.

Keeps one GameEngine per open game. Each engine assumes a single caller, so
operations on the same game are serialized with a per-game lock.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog

from sqlgame.core.engine import GameEngine, GameSource

logger = structlog.get_logger(__name__)


@dataclass
class GameSession:
    """An open game."""

    game_id: str
    engine: GameEngine
    created_at: str = ""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def __post_init__(self):
        if not self.created_at:
            self.created_at = datetime.now(timezone.utc).isoformat()


class GameManager:
    """Manages open games."""

    def __init__(self):
        self._sessions: dict[str, GameSession] = {}
        self._lock = asyncio.Lock()

    async def create_session(self, source: GameSource, skip_scenes: int = 0) -> GameSession:
        """Open a game and wait until it is loaded (or failed to load).

        Args:
            source: Game, or XML by URL or inline text
            skip_scenes: Start this many scenes in

        Returns:
            The created GameSession; check engine.get_status() for failures
        """
        game_id = str(uuid.uuid4())[:8]  # Short UUID for convenience
        engine = GameEngine(source, skip_scenes=skip_scenes)
        session = GameSession(game_id=game_id, engine=engine)

        await engine.resolve()

        async with self._lock:
            self._sessions[game_id] = session

        logger.info(
            "game_session_created",
            game_id=game_id,
            engine=engine.id,
            status=engine.get_status().kind,
        )
        return session

    async def get_session(self, game_id: str) -> GameSession | None:
        """Get a session by ID."""
        async with self._lock:
            return self._sessions.get(game_id)

    async def end_session(self, game_id: str) -> bool:
        """Close a game.

        Returns:
            True if the game was closed, False if not found
        """
        async with self._lock:
            session = self._sessions.pop(game_id, None)

        if session is None:
            return False

        session.engine.close()
        logger.info("game_session_ended", game_id=game_id)
        return True

    async def get_session_count(self) -> int:
        """Get count of open games."""
        async with self._lock:
            return len(self._sessions)


# Global game manager instance
_game_manager: GameManager | None = None


def get_game_manager() -> GameManager:
    """Get the global game manager instance."""
    global _game_manager
    if _game_manager is None:
        _game_manager = GameManager()
    return _game_manager


def reset_game_manager() -> None:
    """Reset the game manager (for testing)."""
    global _game_manager
    _game_manager = None
