"""Pydantic schemas for Web API.

Serialization models for games, progress, query results and schemas.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, model_validator

from sqlgame.core.engine import GameEngine, GameResult
from sqlgame.core.game import ImageScene, ManipulateScene, Scene, SelectScene, TextScene
from sqlgame.core.lifecycle import Failed, Status
from sqlgame.core.schema import TableInfo
from sqlgame.db.database import SqlResult, SqlSuccess

# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class GameStartRequest(BaseModel):
    """Request to open a game: exactly one of xml, url or name."""

    xml: str | None = None
    url: str | None = None
    name: str | None = Field(default=None, pattern=r"^[\w\-]+$")
    skip_scenes: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def exactly_one_source(self) -> GameStartRequest:
        given = [v for v in (self.xml, self.url, self.name) if v is not None]
        if len(given) != 1:
            raise ValueError("Provide exactly one of 'xml', 'url' or 'name'")
        return self


class QueryRequest(BaseModel):
    """SQL submitted by the learner."""

    sql: str = Field(..., max_length=20000)


# =============================================================================
# STATUS / GAME SCHEMAS
# =============================================================================


class StatusResponse(BaseModel):
    """Lifecycle status of a game."""

    kind: str
    error_kind: str | None = None
    error: str | None = None


class SceneResponse(BaseModel):
    """Current scene as shown to the learner (solutions withheld)."""

    type: str
    text: str = ""
    sql_placeholder: str = ""
    image_base64: str | None = None


class GameStateResponse(BaseModel):
    """Progress within the game."""

    cur_scene_index: int
    cur_scene_solved: bool | None
    finished: bool


class GameResponse(BaseModel):
    """Response for an open game."""

    game_id: str
    created_at: str
    status: StatusResponse
    title: str | None = None
    teaser: str | None = None
    copyright: str | None = None
    scene_count: int | None = None
    state: GameStateResponse | None = None
    scene: SceneResponse | None = None


# =============================================================================
# RESULT SCHEMAS
# =============================================================================


class ResultSetResponse(BaseModel):
    columns: list[str]
    rows: list[list[Any]]


class SqlResultResponse(BaseModel):
    """Result of executing SQL: success with result sets, or error."""

    kind: str
    sql: str
    timestamp: str
    message: str | None = None
    result_sets: list[ResultSetResponse] = Field(default_factory=list)


class GameResultResponse(BaseModel):
    """Verdict or hint."""

    type: str
    result: SqlResultResponse


class ForeignKeyResponse(BaseModel):
    foreign_table: str
    foreign_col: str


class ColumnResponse(BaseModel):
    name: str
    type: str


class TableInfoResponse(BaseModel):
    name: str
    cols: list[ColumnResponse]
    primary_key: list[str]
    foreign_keys: dict[str, list[ForeignKeyResponse]]


class SchemaResponse(BaseModel):
    """Tables of the game database, or why they could not be extracted."""

    tables: list[TableInfoResponse] = Field(default_factory=list)
    error: str | None = None


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


# =============================================================================
# CONVERSIONS
# =============================================================================


def status_to_response(status: Status) -> StatusResponse:
    if isinstance(status, Failed):
        return StatusResponse(
            kind=status.kind,
            error_kind=getattr(status.error, "kind", type(status.error).__name__),
            error=str(status.error),
        )
    return StatusResponse(kind=status.kind)


def scene_to_response(scene: Scene) -> SceneResponse:
    if isinstance(scene, TextScene):
        return SceneResponse(type=scene.type, text=scene.text)
    if isinstance(scene, ImageScene):
        return SceneResponse(type=scene.type, image_base64=scene.base64_data)
    if isinstance(scene, (SelectScene, ManipulateScene)):
        return SceneResponse(
            type=scene.type, text=scene.text, sql_placeholder=scene.sql_placeholder
        )
    raise TypeError(f"Unknown scene: {scene!r}")


def game_to_response(game_id: str, created_at: str, engine: GameEngine) -> GameResponse:
    response = GameResponse(
        game_id=game_id,
        created_at=created_at,
        status=status_to_response(engine.get_status()),
    )

    game = engine.get_game()
    if game is not None:
        response.title = game.title
        response.teaser = game.teaser
        response.copyright = game.copyright
        response.scene_count = len(game.scenes)

    state = engine.get_game_state()
    if game is not None and state is not None:
        response.state = GameStateResponse(
            cur_scene_index=state.cur_scene_index,
            cur_scene_solved=state.cur_scene_solved,
            finished=game.is_finished(state),
        )
        response.scene = scene_to_response(game.get_cur_scene(state))

    return response


def sql_result_to_response(result: SqlResult) -> SqlResultResponse:
    data = result.to_dict()
    if isinstance(result, SqlSuccess):
        return SqlResultResponse(
            kind=data["kind"],
            sql=data["sql"],
            timestamp=data["timestamp"],
            result_sets=[ResultSetResponse(**rs) for rs in data["result_sets"]],
        )
    return SqlResultResponse(
        kind=data["kind"],
        sql=data["sql"],
        timestamp=data["timestamp"],
        message=data["message"],
    )


def game_result_to_response(result: GameResult) -> GameResultResponse:
    return GameResultResponse(type=result.type, result=sql_result_to_response(result.result))


def table_to_response(table: TableInfo) -> TableInfoResponse:
    return TableInfoResponse(**table.to_dict())
