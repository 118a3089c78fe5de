"""Fixtures for F6 tests - Web API and CLI."""

import pytest

from sqlgame.core.game import Game, ManipulateScene, SelectScene, TextScene
from sqlgame.core.game_xml import game_to_xml
from sqlgame.db.database import InitialSqlScript


@pytest.fixture
def sample_game() -> Game:
    """Small game with one task of each kind."""
    return Game(
        title="Pets",
        teaser="Cats and dogs",
        copyright="CC0",
        db_data=InitialSqlScript(
            sql=(
                "CREATE TABLE pet (id INTEGER PRIMARY KEY, name TEXT, kind TEXT);"
                "INSERT INTO pet VALUES (1, 'Tom', 'cat'), (2, 'Rex', 'dog');"
            )
        ),
        scenes=(
            TextScene(text="Meet the pets"),
            SelectScene(
                text="Names of all cats",
                sql_solution="SELECT name FROM pet WHERE kind = 'cat'",
                sql_placeholder="SELECT ...",
            ),
            ManipulateScene(
                text="Rex is adopted",
                sql_solution="DELETE FROM pet WHERE name = 'Rex'",
                sql_check="SELECT id, name FROM pet",
            ),
        ),
    )


@pytest.fixture
def sample_xml(sample_game) -> str:
    return game_to_xml(sample_game)


@pytest.fixture
def game_file(tmp_path, sample_xml):
    """The sample game written to <tmp>/pets.xml."""
    path = tmp_path / "pets.xml"
    path.write_text(sample_xml, encoding="utf-8")
    return path
