"""Game (exercise) model.

A game is an immutable sequence of scenes plus the database every scene runs
against. Progress through a game is a small GameState value; all functions
here are pure and return new states instead of mutating.

Scene kinds:
- text / image: informational, nothing to solve
- select: the learner must reproduce the result of a reference query
- manipulate: the learner must change the database so that a check query
  returns what it returns on the reference database
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sqlgame.db.database import DbData
from sqlgame.utils.validators import require

# =============================================================================
# SCENES
# =============================================================================


@dataclass(frozen=True)
class TextScene:
    text: str
    type: Literal["text"] = "text"


@dataclass(frozen=True)
class ImageScene:
    """Picture shown between tasks (base64-encoded PNG)."""

    base64_data: str
    type: Literal["image"] = "image"


@dataclass(frozen=True)
class SelectScene:
    """Task: produce the same result as the reference query."""

    text: str
    sql_solution: str
    sql_placeholder: str = ""
    row_order_relevant: bool = False
    col_order_relevant: bool = False
    type: Literal["select"] = "select"


@dataclass(frozen=True)
class ManipulateScene:
    """Task: mutate the database so the check query matches the reference."""

    text: str
    sql_solution: str
    sql_check: str
    sql_placeholder: str = ""
    type: Literal["manipulate"] = "manipulate"


Scene = TextScene | ImageScene | SelectScene | ManipulateScene


def is_task(scene: Scene) -> bool:
    """Whether the scene has something to solve."""
    return isinstance(scene, (SelectScene, ManipulateScene))


# =============================================================================
# PROGRESS
# =============================================================================


@dataclass(frozen=True)
class GameState:
    """Progress within a game.

    cur_scene_solved is None when the current scene is not a task. A scene can
    be solved while the learner still stays in it.
    """

    cur_scene_index: int
    cur_scene_solved: bool | None


# =============================================================================
# GAME
# =============================================================================


@dataclass(frozen=True)
class Game:
    """An exercise: metadata, database and at least one scene."""

    title: str
    teaser: str
    copyright: str
    db_data: DbData | None
    scenes: tuple[Scene, ...]

    def __post_init__(self) -> None:
        # Accept any sequence but store an immutable one
        object.__setattr__(self, "scenes", tuple(self.scenes))
        require(len(self.scenes) > 0, "There must be at least one scene")

    def _initial_solved(self, index: int) -> bool | None:
        return False if is_task(self.scenes[index]) else None

    def fresh_state(self) -> GameState:
        """State at the very beginning of the game."""
        return GameState(cur_scene_index=0, cur_scene_solved=self._initial_solved(0))

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def advance_scene(self, s: GameState) -> GameState:
        """Move to the next scene.

        Raises:
            PreconditionError: If the current scene is the last one
        """
        require(s.cur_scene_index + 1 < len(self.scenes), "There is no next scene")
        index = s.cur_scene_index + 1
        return GameState(cur_scene_index=index, cur_scene_solved=self._initial_solved(index))

    def mark_solved(self, s: GameState) -> GameState:
        return GameState(cur_scene_index=s.cur_scene_index, cur_scene_solved=True)

    # -------------------------------------------------------------------------
    # Getters
    # -------------------------------------------------------------------------

    def get_cur_scene(self, s: GameState) -> Scene:
        return self.scenes[s.cur_scene_index]

    def is_cur_scene_task(self, s: GameState) -> bool:
        return is_task(self.get_cur_scene(s))

    def is_cur_scene_unsolved_task(self, s: GameState) -> bool:
        return self.is_cur_scene_task(s) and s.cur_scene_solved is False

    def is_finished(self, s: GameState) -> bool:
        return s.cur_scene_index == len(self.scenes) - 1 and not self.is_cur_scene_unsolved_task(s)


def create_blank_game(name: str) -> Game:
    """Create a minimal game with a single text scene."""
    return Game(
        title=name,
        teaser="Insert teaser here",
        copyright="© Insert copyright here",
        db_data=None,
        scenes=(TextScene(text="Scene 1"),),
    )
