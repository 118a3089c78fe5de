"""Fixtures for F4 tests - Game engine."""

import pytest

from sqlgame.core.game import Game, ManipulateScene, SelectScene, TextScene
from sqlgame.db.database import InitialSqlScript

SEED = """
CREATE TABLE t (id INTEGER PRIMARY KEY, v INTEGER);
INSERT INTO t (id, v) VALUES (1, 10), (2, 20);
"""


def make_game(*scenes, sql: str = SEED) -> Game:
    """Build a game over the standard seed."""
    return Game(
        title="Engine test",
        teaser="",
        copyright="",
        db_data=InitialSqlScript(sql=sql),
        scenes=scenes,
    )


@pytest.fixture
def two_scene_game() -> Game:
    """Select task over a single row, then a closing text."""
    return Game(
        title="Two scenes",
        teaser="",
        copyright="",
        db_data=InitialSqlScript(sql="CREATE TABLE t (id INTEGER); INSERT INTO t VALUES (1);"),
        scenes=(
            SelectScene(text="Select the ids", sql_solution="SELECT id FROM t"),
            TextScene(text="Done"),
        ),
    )


@pytest.fixture
def course_game() -> Game:
    """Text, select, two manipulates and a select that sees their effects.

    0: text
    1: select all rows
    2: manipulate: double v
    3: manipulate: add row 3
    4: select sum of v
    """
    return make_game(
        TextScene(text="Welcome"),
        SelectScene(text="All rows", sql_solution="SELECT id, v FROM t"),
        ManipulateScene(
            text="Double every v",
            sql_solution="UPDATE t SET v = v * 2",
            sql_check="SELECT id, v FROM t",
        ),
        ManipulateScene(
            text="Add row 3",
            sql_solution="INSERT INTO t (id, v) VALUES (3, 30)",
            sql_check="SELECT id, v FROM t",
        ),
        SelectScene(text="Sum", sql_solution="SELECT SUM(v) AS total FROM t"),
    )


@pytest.fixture
def game_factory():
    """Factory for games over the standard seed (or a custom script)."""
    return make_game
