"""CLI commands for the SQL game.

Commands:
- check: Load a game and verify that every task accepts its own solution
- schema: Show the tables created by an SQL script or SQLite file
- play: Play a game in the console
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from sqlgame.core.engine import GameEngine, GameResult
from sqlgame.core.game import ImageScene, ManipulateScene, SelectScene, TextScene, is_task
from sqlgame.core.game_xml import GameParseError, xml_to_game
from sqlgame.core.lifecycle import Failed
from sqlgame.core.schema import Schema
from sqlgame.db.database import (
    InitDbError,
    InitialSqlScript,
    ResultSet,
    SchemaError,
    SqlDatabase,
    SqliteSnapshot,
    SqlResult,
    SqlSuccess,
)
from sqlgame.utils.validators import PreconditionError

app = typer.Typer(
    name="sqlgame",
    help="Interactive SQL exercises verified against a reference database.",
    no_args_is_help=True,
)

console = Console()

SNAPSHOT_SUFFIXES = {".db", ".sqlite", ".sqlite3"}

PLAY_HELP = (
    "[dim]Enter SQL to submit it. Commands: "
    ".next  .hint  .reset  .resetdb  .quit[/dim]"
)


def _read_game_or_exit(file: str):
    path = Path(file).expanduser()
    if not path.exists():
        console.print(f"[red]✗ File not found: {path}[/red]")
        raise typer.Exit(code=1)
    try:
        return xml_to_game(path.read_bytes())
    except GameParseError as e:
        console.print(f"[red]✗ Invalid game file: {escape(e.details)}[/red]")
        raise typer.Exit(code=1)


async def _start_engine_or_exit(engine: GameEngine) -> None:
    status = await engine.resolve()
    if isinstance(status, Failed):
        console.print(f"[red]✗ Game could not be started: {escape(str(status.error))}[/red]")
        raise typer.Exit(code=1)


# =============================================================================
# RENDERING
# =============================================================================


def _render_result_set(result_set: ResultSet) -> Table:
    table = Table(show_header=True, header_style="bold")
    for column in result_set.columns:
        table.add_column(column)
    for row in result_set.rows:
        table.add_row(*("NULL" if v is None else escape(str(v)) for v in row))
    return table


def _render_sql_result(result: SqlResult) -> None:
    if isinstance(result, SqlSuccess):
        if not result.result_sets:
            console.print("[dim]Statement executed, no rows returned.[/dim]")
        for result_set in result.result_sets:
            console.print(_render_result_set(result_set))
    else:
        console.print(f"[red]Error: {escape(result.message)}[/red]")


def _render_game_result(result: GameResult) -> None:
    if result.type == "correct":
        console.print("[green]✓ Correct![/green]")
    elif result.type == "miss":
        console.print("[yellow]✗ Not quite. Try again, or .hint for the expected result.[/yellow]")
    elif result.type == "hint-select":
        console.print("[blue]Expected result:[/blue]")
    else:
        console.print("[blue]Expected result of the check query:[/blue]")
    _render_sql_result(result.result)


def _render_schema(schema: Schema) -> None:
    if not schema:
        console.print("[dim]No tables.[/dim]")
    for info in schema:
        table = Table(title=info.name, show_header=True, header_style="bold")
        table.add_column("Column", style="cyan")
        table.add_column("Type")
        table.add_column("Key", justify="center")
        table.add_column("References")
        for col in info.cols:
            refs = info.foreign_keys.get(col.name, [])
            table.add_row(
                col.name,
                col.type,
                "PK" if col.name in info.primary_key else "",
                ", ".join(f"{r.foreign_table}.{r.foreign_col}" for r in refs),
            )
        console.print(table)


def _render_scene(engine: GameEngine) -> None:
    game = engine.get_game()
    state = engine.get_game_state()
    scene = game.get_cur_scene(state)
    title = f"Scene {state.cur_scene_index + 1}/{len(game.scenes)}"

    if isinstance(scene, TextScene):
        console.print(Panel(escape(scene.text), title=title, expand=False))
    elif isinstance(scene, ImageScene):
        console.print(Panel("[dim](image)[/dim]", title=title, expand=False))
    else:
        kind = "Query" if isinstance(scene, SelectScene) else "Change the data"
        console.print(Panel(escape(scene.text), title=f"{title} - {kind}", expand=False))
        if scene.sql_placeholder:
            console.print(f"[dim]{escape(scene.sql_placeholder)}[/dim]")


# =============================================================================
# COMMANDS
# =============================================================================


@app.command()
def check(
    file: str = typer.Argument(..., help="Path to a game XML file"),
) -> None:
    """Verify that every task of a game accepts its own reference solution."""
    game = _read_game_or_exit(file)
    failures = asyncio.run(_check_game(game))

    if failures:
        for index, message in failures:
            console.print(f"[red]✗ Scene {index + 1}: {message}[/red]")
        raise typer.Exit(code=1)

    tasks = sum(1 for s in game.scenes if is_task(s))
    console.print(f"[green]✓ {game.title}: {len(game.scenes)} scenes, {tasks} tasks OK[/green]")


async def _check_game(game) -> list[tuple[int, str]]:
    engine = GameEngine(game)
    await _start_engine_or_exit(engine)

    failures: list[tuple[int, str]] = []
    for index, scene in enumerate(game.scenes):
        if isinstance(scene, (SelectScene, ManipulateScene)):
            result = await engine.submit_query(scene.sql_solution)
            if not result.is_correct:
                failures.append((index, "reference solution is not accepted"))
        if index < len(game.scenes) - 1:
            await engine.skip_scenes(1)
    return failures


@app.command()
def schema(
    file: str = typer.Argument(..., help="SQL script, or SQLite file (.db, .sqlite)"),
) -> None:
    """Show the tables of a database."""
    path = Path(file).expanduser()
    if not path.exists():
        console.print(f"[red]✗ File not found: {path}[/red]")
        raise typer.Exit(code=1)

    if path.suffix.lower() in SNAPSHOT_SUFFIXES:
        db_data = SqliteSnapshot(data=path.read_bytes())
    else:
        db_data = InitialSqlScript(sql=path.read_text(encoding="utf-8"))

    db = SqlDatabase(db_data, name=path.name)
    try:
        tables = asyncio.run(db.query_schema())
    except InitDbError as e:
        console.print(f"[red]✗ Database could not be loaded: {escape(e.details)}[/red]")
        raise typer.Exit(code=1)
    except SchemaError as e:
        console.print(f"[red]✗ {escape(e.details)}[/red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    _render_schema(tables)


@app.command()
def play(
    file: str = typer.Argument(..., help="Path to a game XML file"),
    skip: int = typer.Option(0, "--skip", "-s", min=0, help="Start this many scenes in"),
) -> None:
    """Play a game in the console."""
    game = _read_game_or_exit(file)
    if skip >= len(game.scenes):
        console.print(f"[red]✗ The game has only {len(game.scenes)} scenes[/red]")
        raise typer.Exit(code=1)
    asyncio.run(_play(GameEngine(game, skip_scenes=skip)))


async def _play(engine: GameEngine) -> None:
    await _start_engine_or_exit(engine)
    game = engine.get_game()

    console.print(f"[bold]{game.title}[/bold]")
    if game.teaser:
        console.print(game.teaser)
    console.print(PLAY_HELP)
    _render_scene(engine)

    while True:
        is_last = engine.is_finished()
        raw = typer.prompt("sql", default="", show_default=False).strip()
        if not raw:
            continue

        if raw == ".quit":
            break

        try:
            if raw == ".next":
                if is_last:
                    console.print("[green]🎉 You have finished the game![/green]")
                    break
                await engine.next_scene()
                _render_scene(engine)
            elif raw == ".hint":
                _render_game_result(await engine.show_hint())
            elif raw == ".reset":
                await engine.reset()
                _render_scene(engine)
            elif raw == ".resetdb":
                await engine.reset_db_in_cur_scene()
                console.print("[dim]Database restored to the start of this scene.[/dim]")
            elif raw.startswith("."):
                console.print(f"[yellow]Unknown command: {escape(raw)}[/yellow]")
                console.print(PLAY_HELP)
            elif engine.get_game().is_cur_scene_task(engine.get_game_state()):
                _render_game_result(await engine.submit_query(raw))
            else:
                console.print("[yellow]Nothing to solve here, use .next to continue.[/yellow]")
        except PreconditionError as e:
            console.print(f"[yellow]{e.message}[/yellow]")


if __name__ == "__main__":
    app()
