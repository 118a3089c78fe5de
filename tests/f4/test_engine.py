"""Tests for GameEngine (F4)."""

import httpx
import pytest

from sqlgame.core.engine import GameEngine, GameResult
from sqlgame.core.game import GameState, ManipulateScene, SelectScene, TextScene
from sqlgame.core.game_xml import GameParseError, game_to_xml
from sqlgame.core.lifecycle import Active, Failed, Pending
from sqlgame.db.database import InitScriptError, SchemaError, SqlError
from sqlgame.utils.sources import FetchError, FetchSource, InlineSource
from sqlgame.utils.validators import PreconditionError


async def started(game, **kwargs) -> GameEngine:
    """Create an engine and wait until it is active."""
    engine = GameEngine(game, **kwargs)
    status = await engine.resolve()
    assert isinstance(status, Active)
    return engine


class TestEndToEnd:
    """A learner going through a short game."""

    @pytest.mark.asyncio
    async def test_two_scene_game(self, two_scene_game):
        """Correct answer solves, wrong answer misses, then advance."""
        engine = await started(two_scene_game)

        result = await engine.submit_query("SELECT 2")
        assert result.type == "miss"
        assert engine.get_game_state() == GameState(0, False)

        result = await engine.submit_query("SELECT id FROM t")
        assert isinstance(result, GameResult)
        assert result.is_correct
        assert result.result.result_sets[0].rows == [(1,)]
        assert engine.get_game_state() == GameState(0, True)

        await engine.next_scene()
        assert engine.get_game_state() == GameState(1, None)
        assert engine.is_finished()

    @pytest.mark.asyncio
    async def test_full_course(self, course_game):
        """Manipulations accumulate in both databases."""
        engine = await started(course_game)

        await engine.next_scene()
        assert (await engine.submit_query("SELECT v, id FROM t")).is_correct

        await engine.next_scene()
        assert (await engine.submit_query("UPDATE t SET v = v * 2")).is_correct

        await engine.next_scene()
        assert (await engine.submit_query("INSERT INTO t (id, v) VALUES (3, 30)")).is_correct

        await engine.next_scene()
        result = await engine.submit_query("SELECT SUM(v) AS total FROM t")
        assert result.is_correct
        assert result.result.result_sets[0].rows == [(90,)]
        assert engine.is_finished()


class TestSubmitQuery:
    """Tests for judging submissions."""

    @pytest.mark.asyncio
    async def test_both_errors_is_correct(self, game_factory):
        """A query designed to fail is solved by any failing query."""
        game = game_factory(SelectScene(text="Fail", sql_solution="SELECT * FROM missing"))
        engine = await started(game)
        result = await engine.submit_query("SELECT nope FROM t")
        assert result.is_correct
        assert isinstance(result.result, SqlError)

    @pytest.mark.asyncio
    async def test_one_error_is_miss(self, game_factory):
        game = game_factory(SelectScene(text="Rows", sql_solution="SELECT id FROM t"))
        engine = await started(game)
        assert (await engine.submit_query("SELECT nope FROM t")).type == "miss"

    @pytest.mark.asyncio
    async def test_nul_character_is_miss(self, two_scene_game):
        engine = await started(two_scene_game)
        result = await engine.submit_query("SELECT id FROM t\x00")
        assert result.type == "miss"
        assert isinstance(result.result, SqlError)
        assert engine.get_game_state() == GameState(0, False)

    @pytest.mark.asyncio
    async def test_row_order_relevant(self, game_factory):
        game = game_factory(
            SelectScene(
                text="Ordered",
                sql_solution="SELECT id FROM t ORDER BY id DESC",
                row_order_relevant=True,
            )
        )
        engine = await started(game)
        assert (await engine.submit_query("SELECT id FROM t ORDER BY id")).type == "miss"
        assert (await engine.submit_query("SELECT id FROM t ORDER BY id DESC")).is_correct

    @pytest.mark.asyncio
    async def test_column_names_case_insensitive_for_select(self, game_factory):
        game = game_factory(SelectScene(text="Alias", sql_solution="SELECT id AS Ident FROM t"))
        engine = await started(game)
        assert (await engine.submit_query("SELECT id AS IDENT FROM t")).is_correct

    @pytest.mark.asyncio
    async def test_multiple_statements_compared_positionally(self, game_factory):
        game = game_factory(SelectScene(text="Two", sql_solution="SELECT 1 AS a; SELECT 2 AS b"))
        engine = await started(game)
        assert (await engine.submit_query("SELECT 1 AS a")).type == "miss"
        assert (await engine.submit_query("SELECT 1 AS a; SELECT 2 AS b")).is_correct

    @pytest.mark.asyncio
    async def test_miss_does_not_unsolve(self, two_scene_game):
        """A solved scene stays solved."""
        engine = await started(two_scene_game)
        await engine.submit_query("SELECT id FROM t")
        assert (await engine.submit_query("SELECT 2")).type == "miss"
        assert engine.get_game_state().cur_scene_solved is True

    @pytest.mark.asyncio
    async def test_not_a_task(self, course_game):
        engine = await started(course_game)
        with pytest.raises(PreconditionError):
            await engine.submit_query("SELECT 1")

    @pytest.mark.asyncio
    async def test_manipulate_wrong_change(self, course_game):
        engine = await started(course_game, skip_scenes=2)
        assert (await engine.submit_query("UPDATE t SET v = v + 1")).type == "miss"
        assert engine.get_game_state() == GameState(2, False)

    @pytest.mark.asyncio
    async def test_manipulate_on_first_scene(self, game_factory):
        """The reference database reflects a manipulate scene 0 from the start."""
        game = game_factory(
            ManipulateScene(
                text="Delete row 2",
                sql_solution="DELETE FROM t WHERE id = 2",
                sql_check="SELECT id FROM t",
            )
        )
        engine = await started(game)
        hint = await engine.show_hint()
        assert hint.result.result_sets[0].rows == [(1,)]
        assert (await engine.submit_query("SELECT 1")).type == "miss"
        assert (await engine.submit_query("DELETE FROM t WHERE v = 20")).is_correct


class TestNextScene:
    """Tests for advancing."""

    @pytest.mark.asyncio
    async def test_unsolved_task_blocks(self, two_scene_game):
        engine = await started(two_scene_game)
        with pytest.raises(PreconditionError):
            await engine.next_scene()

    @pytest.mark.asyncio
    async def test_last_scene(self, two_scene_game):
        engine = await started(two_scene_game, skip_scenes=1)
        with pytest.raises(PreconditionError):
            await engine.next_scene()


class TestSkipScenes:
    """Tests for advancing without solving."""

    @pytest.mark.asyncio
    async def test_skip_applies_solution_to_learner(self, course_game):
        """Skipping an unsolved manipulate scene performs its change."""
        engine = await started(course_game, skip_scenes=2)
        await engine.skip_scenes(1)
        assert engine.get_game_state() == GameState(3, False)
        result = await engine.submit_query("SELECT id, v FROM t")
        assert result.result.result_sets[0].rows == [(1, 20), (2, 40)]

    @pytest.mark.asyncio
    async def test_solved_scene_not_applied_twice(self, course_game):
        engine = await started(course_game, skip_scenes=2)
        assert (await engine.submit_query("UPDATE t SET v = v * 2")).is_correct
        await engine.next_scene()
        result = await engine.submit_query("SELECT v FROM t WHERE id = 2")
        assert result.result.result_sets[0].rows == [(40,)]

    @pytest.mark.asyncio
    async def test_initial_skip(self, course_game):
        """Starting late replays every earlier change."""
        engine = await started(course_game, skip_scenes=4)
        assert engine.get_game_state() == GameState(4, False)
        assert (await engine.submit_query("SELECT 90 AS total")).is_correct

    @pytest.mark.asyncio
    async def test_initial_skip_past_last_scene(self, two_scene_game):
        engine = GameEngine(two_scene_game, skip_scenes=5)
        with pytest.raises(PreconditionError, match="Cannot skip 5 scenes"):
            await engine.resolve()
        assert engine.get_game() is None
        assert engine.get_game_state() is None


class TestReset:
    """Tests for reset and reset_db_in_cur_scene."""

    @pytest.mark.asyncio
    async def test_reset_to_start(self, course_game):
        engine = await started(course_game)
        await engine.skip_scenes(3)
        await engine.reset()
        assert engine.get_game_state() == GameState(0, None)

    @pytest.mark.asyncio
    async def test_reset_to_initial_skip(self, course_game):
        """reset() returns to where the engine started."""
        engine = await started(course_game, skip_scenes=2)
        await engine.submit_query("DELETE FROM t")
        await engine.reset()
        assert engine.get_game_state() == GameState(2, False)
        assert (await engine.submit_query("UPDATE t SET v = v * 2")).is_correct

    @pytest.mark.asyncio
    async def test_reset_db_in_cur_scene(self, course_game):
        """Only the changes made in the current scene are undone."""
        engine = await started(course_game, skip_scenes=3)
        assert (await engine.submit_query("DELETE FROM t")).type == "miss"

        await engine.reset_db_in_cur_scene()
        assert engine.get_game_state() == GameState(3, False)

        result = await engine.submit_query("SELECT id, v FROM t")
        assert result.result.result_sets[0].rows == [(1, 20), (2, 40)]
        assert (await engine.submit_query("INSERT INTO t VALUES (3, 30)")).is_correct

    @pytest.mark.asyncio
    async def test_reset_db_requires_unsolved_task(self, two_scene_game):
        engine = await started(two_scene_game)
        await engine.submit_query("SELECT id FROM t")
        with pytest.raises(PreconditionError):
            await engine.reset_db_in_cur_scene()


class TestShowHint:
    """Tests for hints."""

    @pytest.mark.asyncio
    async def test_select_hint(self, course_game):
        engine = await started(course_game, skip_scenes=1)
        hint = await engine.show_hint()
        assert hint.type == "hint-select"
        assert hint.result.result_sets[0].columns == ["id", "v"]
        assert engine.get_game_state() == GameState(1, False)

    @pytest.mark.asyncio
    async def test_manipulate_hint(self, course_game):
        engine = await started(course_game, skip_scenes=2)
        hint = await engine.show_hint()
        assert hint.type == "hint-manipulate"
        assert hint.result.result_sets[0].rows == [(1, 20), (2, 40)]

    @pytest.mark.asyncio
    async def test_hint_on_text(self, course_game):
        engine = await started(course_game)
        with pytest.raises(PreconditionError):
            await engine.show_hint()


class TestSchema:
    """Tests for the reference schema."""

    @pytest.mark.asyncio
    async def test_schema_follows_manipulations(self, game_factory):
        game = game_factory(
            TextScene(text="Intro"),
            ManipulateScene(
                text="Create u",
                sql_solution="CREATE TABLE u (x INTEGER PRIMARY KEY)",
                sql_check="SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name",
            ),
        )
        engine = await started(game)
        assert [t.name for t in await engine.get_schema()] == ["t"]
        await engine.next_scene()
        assert [t.name for t in await engine.get_schema()] == ["t", "u"]

    @pytest.mark.asyncio
    async def test_schema_error_keeps_engine_active(self, game_factory):
        game = game_factory(
            TextScene(text="Intro"),
            sql="CREATE TABLE a (x INT); CREATE TABLE b (y INT, FOREIGN KEY (y) REFERENCES a);",
        )
        engine = await started(game)
        with pytest.raises(SchemaError):
            await engine.get_schema()
        assert isinstance(engine.get_status(), Active)


class TestStartup:
    """Tests for loading and status."""

    @pytest.mark.asyncio
    async def test_pending_before_resolve(self, two_scene_game):
        engine = GameEngine(two_scene_game)
        assert isinstance(engine.get_status(), Pending)
        assert engine.get_game_state() is None
        with pytest.raises(PreconditionError):
            await engine.submit_query("SELECT 1")

    @pytest.mark.asyncio
    async def test_resolve_is_memoized(self, two_scene_game):
        engine = GameEngine(two_scene_game)
        first = await engine.resolve()
        second = await engine.resolve()
        assert first is second

    @pytest.mark.asyncio
    async def test_inline_xml(self, two_scene_game):
        engine = await started(InlineSource(content=game_to_xml(two_scene_game)))
        assert engine.get_game() == two_scene_game

    @pytest.mark.asyncio
    async def test_parse_failure(self):
        engine = GameEngine(InlineSource(content="<game>"))
        status = await engine.resolve()
        assert isinstance(status, Failed)
        assert isinstance(status.error, GameParseError)
        assert engine.get_game() is None
        with pytest.raises(PreconditionError):
            await engine.next_scene()

    @pytest.mark.asyncio
    async def test_init_script_failure(self, game_factory):
        engine = GameEngine(game_factory(TextScene(text="x"), sql="CREATE TABLE ("))
        status = await engine.resolve()
        assert isinstance(status, Failed)
        assert isinstance(status.error, InitScriptError)
        assert status.error.kind == "run-init-script"

    @pytest.mark.asyncio
    async def test_fetch(self, two_scene_game):
        """Games are downloaded with the given httpx client."""
        xml = game_to_xml(two_scene_game)

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/game.xml":
                return httpx.Response(200, text=xml)
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            engine = GameEngine(FetchSource(url="https://games.test/game.xml"), http_client=client)
            assert isinstance(await engine.resolve(), Active)

            missing = GameEngine(FetchSource(url="https://games.test/nope.xml"), http_client=client)
            status = await missing.resolve()

        assert isinstance(status, Failed)
        assert isinstance(status.error, FetchError)
        assert status.error.url == "https://games.test/nope.xml"
