"""Game engine: runs a game against a learner and a reference database.

Terminology:
- "game state": the GameState value (scene index + solved flag)
- "internal state": learner db, reference db, game state and the cached
  reference results of the current scene. These must stay in sync, so they
  are only ever replaced together as one value.

The reference database mirrors what the learner's database should look like:
whenever a manipulate scene becomes current, its solution is run against the
reference database. When a manipulate scene is left without the learner
having solved it (skipping, replaying after a reset), its solution is run
against the learner database as well.

Status: pending until the game and both databases are loaded, then active or
failed for good. Query errors never affect the status. Every public operation
requires the engine to be active.

One caller per engine: operations must not overlap.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, replace
from typing import Literal

import httpx
import structlog

from sqlgame.config.app_config import load_app_config
from sqlgame.core.comparator import are_result_lists_equal
from sqlgame.core.game import Game, GameState, ManipulateScene, SelectScene, is_task
from sqlgame.core.game_xml import GameParseError, xml_to_game
from sqlgame.core.lifecycle import Lifecycle, Status
from sqlgame.core.schema import Schema
from sqlgame.db.database import (
    InitDbError,
    InitialSqlScript,
    SqlDatabase,
    SqlResult,
    SqlSuccess,
)
from sqlgame.utils.sources import FetchError, FetchSource, InlineSource, materialize_text
from sqlgame.utils.validators import require

logger = structlog.get_logger(__name__)

_instance_ids = itertools.count()

GameSource = Game | FetchSource | InlineSource
LoadGameError = FetchError | GameParseError | InitDbError

# =============================================================================
# RESULT TYPES
# =============================================================================

GameResultType = Literal["correct", "miss", "hint-select", "hint-manipulate"]


@dataclass(frozen=True)
class GameResult:
    """Outcome of a learner action.

    correct/miss carry the learner's own result; hints carry the reference
    result (expected query result or expected check result).
    """

    type: GameResultType
    result: SqlResult

    @property
    def is_correct(self) -> bool:
        return self.type == "correct"


@dataclass(frozen=True)
class _InternalState:
    user_db: SqlDatabase
    ref_db: SqlDatabase
    game_state: GameState
    # Valid for the current scene only
    ref_solution_result: SqlResult | None = None
    ref_check_result: SqlResult | None = None


def _judge(user: SqlResult, ref: SqlResult, **flags) -> bool:
    # A query designed to fail is solved by any failing query
    if not user.ok and not ref.ok:
        return True
    if isinstance(user, SqlSuccess) and isinstance(ref, SqlSuccess):
        return are_result_lists_equal(user.result_sets, ref.result_sets, **flags)
    return False


# =============================================================================
# ENGINE
# =============================================================================


class GameEngine:
    """Runs one game for one learner.

    Args:
        source: A Game, or XML to load from a URL or inline text
        skip_scenes: Start this many scenes in (privileged, for testing)
        http_client: Optional httpx client used to fetch the game
    """

    def __init__(
        self,
        source: GameSource,
        skip_scenes: int = 0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.id = f"game-engine-{next(_instance_ids)}"
        self._source = source
        self._initial_skip = skip_scenes
        self._http_client = http_client
        self._max_permutations = load_app_config().engine.max_permutations

        self._lifecycle: Lifecycle[LoadGameError] = Lifecycle(self.id)
        self._game: Game | None = None
        self._state: _InternalState | None = None
        self._schema: Schema | None = None
        self._startup: asyncio.Task[None] | None = None

    # -------------------------------------------------------------------------
    # Status and getters
    # -------------------------------------------------------------------------

    def get_status(self) -> Status:
        return self._lifecycle.status

    def get_game(self) -> Game | None:
        """The loaded game, or None while pending or if the game could not be loaded."""
        return self._game

    def get_game_state(self) -> GameState | None:
        """Current progress, or None unless the engine is active."""
        return self._state.game_state if self._state is not None else None

    def is_finished(self) -> bool:
        game, state = self._require_active()
        return game.is_finished(state.game_state)

    async def resolve(self) -> Status:
        """Load the game and both databases (once) and return the settled status."""
        if self._startup is None:
            self._startup = asyncio.ensure_future(self._start())
        await self._startup
        return self._lifecycle.status

    async def get_schema(self) -> Schema:
        """Table structure of the reference database.

        Raises:
            SchemaError: If a table could not be extracted. The engine stays
                active; only the schema is unavailable.
        """
        _, state = self._require_active()
        if self._schema is None:
            self._schema = await state.ref_db.query_schema()
        return self._schema

    # -------------------------------------------------------------------------
    # Learner actions
    # -------------------------------------------------------------------------

    async def reset(self) -> None:
        """Start over from fresh databases at the engine's starting scene."""
        self._require_active()
        logger.info("game_reset", engine=self.id, scene=self._initial_skip)
        await self._reset_to_scene(self._initial_skip)

    async def next_scene(self) -> None:
        """Advance to the next scene.

        Raises:
            PreconditionError: If the current scene is an unsolved task or the last scene
        """
        game, state = self._require_active()
        require(
            not game.is_cur_scene_unsolved_task(state.game_state),
            "Current scene is an unsolved task",
        )
        await self._advance_scene()

    async def submit_query(self, sql: str) -> GameResult:
        """Run the learner's SQL and judge it against the reference.

        Returns:
            GameResult "correct" or "miss" carrying the learner's result.
            On "correct" the current scene is marked solved (not advanced).

        Raises:
            PreconditionError: If the current scene is not a task
        """
        game, state = self._require_active()
        scene = game.get_cur_scene(state.game_state)
        require(is_task(scene), "Cannot submit a query for a scene that is not a task")

        user_result = await state.user_db.exec(sql)

        if isinstance(scene, SelectScene):
            ref_result = await self._reference_solution_result()
            correct = _judge(
                user_result,
                ref_result,
                row_order_relevant=scene.row_order_relevant,
                col_order_relevant=scene.col_order_relevant,
                col_names_relevant=False,
                max_permutations=self._max_permutations,
            )
        else:
            assert isinstance(scene, ManipulateScene)
            user_check = await state.user_db.exec(scene.sql_check)
            ref_check = await self._reference_check_result()
            correct = _judge(
                user_check,
                ref_check,
                row_order_relevant=False,
                col_order_relevant=True,
                col_names_relevant=True,
                max_permutations=self._max_permutations,
            )

        if correct:
            self._mark_solved()

        logger.info(
            "query_judged",
            engine=self.id,
            scene=state.game_state.cur_scene_index,
            scene_type=scene.type,
            verdict="correct" if correct else "miss",
            sql_length=len(sql),
        )
        return GameResult(type="correct" if correct else "miss", result=user_result)

    async def reset_db_in_cur_scene(self) -> None:
        """Undo the learner's changes made within the current scene.

        Raises:
            PreconditionError: If the current scene is not an unsolved task
        """
        game, state = self._require_active()
        require(
            game.is_cur_scene_unsolved_task(state.game_state),
            "There is nothing to solve in the current scene",
        )
        index = state.game_state.cur_scene_index
        logger.info("scene_db_reset", engine=self.id, scene=index)
        await self._reset_to_scene(index)

    async def show_hint(self) -> GameResult:
        """Reveal the expected result of the current task without changing state.

        Raises:
            PreconditionError: If the current scene is not an unsolved task
        """
        game, state = self._require_active()
        require(
            game.is_cur_scene_unsolved_task(state.game_state),
            "Current scene is not an unsolved task",
        )

        if isinstance(game.get_cur_scene(state.game_state), SelectScene):
            return GameResult(type="hint-select", result=await self._reference_solution_result())
        return GameResult(type="hint-manipulate", result=await self._reference_check_result())

    # -------------------------------------------------------------------------
    # Privileged actions
    # -------------------------------------------------------------------------

    async def skip_scenes(self, n: int) -> None:
        """Advance n scenes regardless of whether they are solved."""
        self._require_active()
        for _ in range(n):
            await self._advance_scene()

    def close(self) -> None:
        """Release both databases. The engine must not be used afterwards."""
        if self._state is not None:
            self._state.user_db.close()
            self._state.ref_db.close()

    # -------------------------------------------------------------------------
    # Startup
    # -------------------------------------------------------------------------

    async def _start(self) -> None:
        try:
            game = await self._load_game()
            require(
                self._initial_skip < len(game.scenes),
                f"Cannot skip {self._initial_skip} scenes of a game with {len(game.scenes)} scenes",
            )
            self._game = game
            state = await self._create_fresh_state(game)
            try:
                for _ in range(self._initial_skip):
                    state = await self._advance(game, state)
            except BaseException:
                state.user_db.close()
                state.ref_db.close()
                raise
        except (FetchError, GameParseError, InitDbError) as e:
            self._lifecycle.resolved_fail(e)
            return

        self._state = state
        self._lifecycle.resolved_ok()
        logger.info(
            "game_started",
            engine=self.id,
            title=game.title,
            scenes=len(game.scenes),
            scene=state.game_state.cur_scene_index,
        )

    async def _load_game(self) -> Game:
        if isinstance(self._source, Game):
            return self._source
        text = await materialize_text(self._source, self._http_client)
        return xml_to_game(text)

    async def _create_fresh_state(self, game: Game) -> _InternalState:
        db_data = game.db_data or InitialSqlScript(sql="")
        user_db = SqlDatabase(db_data, name=f"{self.id}-user")
        ref_db = SqlDatabase(db_data, name=f"{self.id}-ref")

        try:
            await user_db.resolve()
            await ref_db.resolve()
        except InitDbError:
            user_db.close()
            ref_db.close()
            raise

        game_state = game.fresh_state()
        scene = game.get_cur_scene(game_state)
        if isinstance(scene, ManipulateScene):
            # Result does not matter, even an error is accepted
            await ref_db.exec(scene.sql_solution)

        return _InternalState(user_db=user_db, ref_db=ref_db, game_state=game_state)

    # -------------------------------------------------------------------------
    # Internal state transitions
    # -------------------------------------------------------------------------

    def _require_active(self) -> tuple[Game, _InternalState]:
        require(self._lifecycle.is_active, f"Game engine {self.id} is not active")
        assert self._game is not None and self._state is not None
        return self._game, self._state

    async def _advance(self, game: Game, state: _InternalState) -> _InternalState:
        new_game_state = game.advance_scene(state.game_state)

        cur_scene = game.get_cur_scene(state.game_state)
        if isinstance(cur_scene, ManipulateScene) and game.is_cur_scene_unsolved_task(
            state.game_state
        ):
            await state.user_db.exec(cur_scene.sql_solution)

        new_scene = game.get_cur_scene(new_game_state)
        if isinstance(new_scene, ManipulateScene):
            # Result does not matter, even an error is accepted
            await state.ref_db.exec(new_scene.sql_solution)

        return _InternalState(
            user_db=state.user_db,
            ref_db=state.ref_db,
            game_state=new_game_state,
        )

    async def _advance_scene(self) -> None:
        game, state = self._require_active()
        self._state = await self._advance(game, state)
        self._schema = None
        logger.info("scene_advanced", engine=self.id, scene=self._state.game_state.cur_scene_index)

    async def _reset_to_scene(self, n: int) -> None:
        game, old = self._require_active()
        state = await self._create_fresh_state(game)
        for _ in range(n):
            state = await self._advance(game, state)

        self._state = state
        self._schema = None
        old.user_db.close()
        old.ref_db.close()

    def _mark_solved(self) -> None:
        game, state = self._require_active()
        self._state = replace(state, game_state=game.mark_solved(state.game_state))

    async def _reference_solution_result(self) -> SqlResult:
        game, state = self._require_active()
        if state.ref_solution_result is None:
            scene = game.get_cur_scene(state.game_state)
            assert isinstance(scene, SelectScene)
            result = await state.ref_db.exec(scene.sql_solution)
            self._state = replace(self._state, ref_solution_result=result)
            return result
        return state.ref_solution_result

    async def _reference_check_result(self) -> SqlResult:
        game, state = self._require_active()
        if state.ref_check_result is None:
            scene = game.get_cur_scene(state.game_state)
            assert isinstance(scene, ManipulateScene)
            result = await state.ref_db.exec(scene.sql_check)
            self._state = replace(self._state, ref_check_result=result)
            return result
        return state.ref_check_result
