"""Game endpoints.

The presentation layer polls these: open a game, read its status and
progress, submit queries and move through scenes.
"""

from fastapi import APIRouter, HTTPException, status

from sqlgame.config.app_config import load_app_config
from sqlgame.core.engine import GameSource
from sqlgame.db.database import SchemaError
from sqlgame.utils.sources import FetchSource, InlineSource
from sqlgame.web.games import GameSession, get_game_manager
from sqlgame.web.schemas import (
    GameResponse,
    GameResultResponse,
    GameStartRequest,
    QueryRequest,
    SchemaResponse,
    game_result_to_response,
    game_to_response,
    table_to_response,
)

router = APIRouter(prefix="/api/games", tags=["games"])


def _source_from_request(request: GameStartRequest) -> GameSource:
    if request.xml is not None:
        return InlineSource(content=request.xml)
    if request.url is not None:
        return FetchSource(url=request.url)

    path = load_app_config().games_dir / f"{request.name}.xml"
    if not path.exists():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Game '{request.name}' not found",
        )
    return InlineSource(content=path.read_bytes())


async def _get_session_or_404(game_id: str) -> GameSession:
    session = await get_game_manager().get_session(game_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Game '{game_id}' not found",
        )
    return session


def _response(session: GameSession) -> GameResponse:
    return game_to_response(session.game_id, session.created_at, session.engine)


@router.post("", response_model=GameResponse, status_code=status.HTTP_201_CREATED)
async def start_game(request: GameStartRequest) -> GameResponse:
    """Open a game. Loading failures show up in the returned status."""
    source = _source_from_request(request)
    session = await get_game_manager().create_session(source, skip_scenes=request.skip_scenes)
    return _response(session)


@router.get("/{game_id}", response_model=GameResponse)
async def get_game(game_id: str) -> GameResponse:
    """Get status, metadata and progress of a game."""
    return _response(await _get_session_or_404(game_id))


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def end_game(game_id: str) -> None:
    """Close a game."""
    if not await get_game_manager().end_session(game_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Game '{game_id}' not found",
        )


@router.get("/{game_id}/schema", response_model=SchemaResponse)
async def get_schema(game_id: str) -> SchemaResponse:
    """Tables of the game database."""
    session = await _get_session_or_404(game_id)
    async with session.lock:
        try:
            tables = await session.engine.get_schema()
        except SchemaError as e:
            return SchemaResponse(error=e.details)
    return SchemaResponse(tables=[table_to_response(t) for t in tables])


@router.post("/{game_id}/query", response_model=GameResultResponse)
async def submit_query(game_id: str, request: QueryRequest) -> GameResultResponse:
    """Run the learner's SQL and judge it."""
    session = await _get_session_or_404(game_id)
    async with session.lock:
        result = await session.engine.submit_query(request.sql)
    return game_result_to_response(result)


@router.post("/{game_id}/hint", response_model=GameResultResponse)
async def show_hint(game_id: str) -> GameResultResponse:
    """Expected result of the current task."""
    session = await _get_session_or_404(game_id)
    async with session.lock:
        result = await session.engine.show_hint()
    return game_result_to_response(result)


@router.post("/{game_id}/next", response_model=GameResponse)
async def next_scene(game_id: str) -> GameResponse:
    """Advance to the next scene."""
    session = await _get_session_or_404(game_id)
    async with session.lock:
        await session.engine.next_scene()
    return _response(session)


@router.post("/{game_id}/reset", response_model=GameResponse)
async def reset_game(game_id: str) -> GameResponse:
    """Start the game over."""
    session = await _get_session_or_404(game_id)
    async with session.lock:
        await session.engine.reset()
    return _response(session)


@router.post("/{game_id}/reset-db", response_model=GameResponse)
async def reset_db_in_cur_scene(game_id: str) -> GameResponse:
    """Undo the learner's changes within the current scene."""
    session = await _get_session_or_404(game_id)
    async with session.lock:
        await session.engine.reset_db_in_cur_scene()
    return _response(session)
