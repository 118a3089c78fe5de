"""Game XML format: parsing and printing.

Format (UTF-8):

    <game>
        <head>
            <title>...</title>
            <teaser>...</teaser>
            <copyright>...</copyright>
        </head>
        <scenes>
            <text-scene><text>...</text></text-scene>
            <image-scene>BASE64</image-scene>
            <select-scene is-row-order-relevant="false" is-col-order-relevant="false">
                <text>...</text>
                <sql-solution>...</sql-solution>
                <sql-placeholder>...</sql-placeholder>   (optional)
            </select-scene>
            <manipulate-scene>
                <text>...</text>
                <sql-solution>...</sql-solution>
                <sql-check>...</sql-check>
                <sql-placeholder>...</sql-placeholder>   (optional)
            </manipulate-scene>
        </scenes>
        <initial-sql-script>...</initial-sql-script>  or  <sqlite-db>BASE64</sqlite-db>
    </game>

Elements are looked up anywhere below their parent, so the <head> wrapper is
optional. All text content is stripped.
"""

from __future__ import annotations

import base64
import binascii

import structlog
from lxml import etree

from sqlgame.core.game import (
    Game,
    ImageScene,
    ManipulateScene,
    Scene,
    SelectScene,
    TextScene,
)
from sqlgame.db.database import DbData, InitialSqlScript, SqliteSnapshot

logger = structlog.get_logger(__name__)

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


class GameParseError(Exception):
    """Raised when a game file is not valid game XML."""

    kind = "parse-xml"

    def __init__(self, details: str):
        self.details = details
        super().__init__(details)


# =============================================================================
# PARSING
# =============================================================================


def _text_of(element: etree._Element) -> str:
    return "".join(element.itertext()).strip()


def _required_text(parent: etree._Element, tag: str) -> str:
    element = parent.find(f".//{tag}")
    if element is None:
        raise GameParseError(f"<{tag}>...</{tag}> is missing")
    return _text_of(element)


def _optional_text(parent: etree._Element, tag: str) -> str:
    element = parent.find(f".//{tag}")
    return "" if element is None else _text_of(element)


def _flag(element: etree._Element, *names: str) -> bool:
    for name in names:
        value = element.get(name)
        if value is not None:
            return value.strip() == "true"
    return False


def _parse_scene(node: etree._Element) -> Scene:
    tag = node.tag

    if tag == "text-scene":
        return TextScene(text=_required_text(node, "text"))

    if tag == "image-scene":
        data = _text_of(node)
        if not data:
            raise GameParseError("<image-scene> has no base64 content")
        return ImageScene(base64_data=data.removeprefix(PNG_DATA_URL_PREFIX))

    if tag == "select-scene":
        return SelectScene(
            text=_required_text(node, "text"),
            sql_solution=_required_text(node, "sql-solution"),
            sql_placeholder=_optional_text(node, "sql-placeholder"),
            row_order_relevant=_flag(node, "is-row-order-relevant", "is-order-relevant"),
            col_order_relevant=_flag(node, "is-col-order-relevant"),
        )

    if tag == "manipulate-scene":
        return ManipulateScene(
            text=_required_text(node, "text"),
            sql_solution=_required_text(node, "sql-solution"),
            sql_check=_required_text(node, "sql-check"),
            sql_placeholder=_optional_text(node, "sql-placeholder"),
        )

    raise GameParseError(f"Unknown scene type: {tag}")


def _parse_db_data(root: etree._Element) -> DbData | None:
    script = root.find(".//initial-sql-script")
    if script is not None:
        return InitialSqlScript(sql=_text_of(script))

    snapshot = root.find(".//sqlite-db")
    if snapshot is not None:
        try:
            data = base64.b64decode(_text_of(snapshot), validate=True)
        except (binascii.Error, ValueError) as e:
            raise GameParseError(f"<sqlite-db> is not valid base64: {e}") from e
        return SqliteSnapshot(data=data)

    return None


def xml_to_game(xml: str | bytes) -> Game:
    """Parse game XML into a Game.

    Args:
        xml: Document text

    Returns:
        The parsed Game

    Raises:
        GameParseError: If the XML is malformed, a required element is
            missing, or a scene is unknown/incomplete. Failures of all scenes
            are reported together.
    """
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    parser = etree.XMLParser(resolve_entities=False, no_network=True)

    try:
        root = etree.fromstring(data, parser=parser)
    except etree.XMLSyntaxError as e:
        raise GameParseError(f"Malformed XML: {e}") from e

    title = _required_text(root, "title")
    teaser = _required_text(root, "teaser")
    copyright = _required_text(root, "copyright")
    db_data = _parse_db_data(root)

    scenes_node = root.find(".//scenes")
    if scenes_node is None:
        raise GameParseError("<scenes>...</scenes> are missing")

    scene_nodes = [child for child in scenes_node if isinstance(child.tag, str)]
    if not scene_nodes:
        raise GameParseError("<scenes>...</scenes> must contain at least one scene")

    scenes: list[Scene] = []
    failures: list[str] = []
    for node in scene_nodes:
        try:
            scenes.append(_parse_scene(node))
        except GameParseError as e:
            failures.append(e.details)

    if failures:
        raise GameParseError("At least one scene failed to parse: " + ". ".join(failures))

    logger.debug("game_parsed", title=title, scenes=len(scenes))
    return Game(title=title, teaser=teaser, copyright=copyright, db_data=db_data, scenes=scenes)


# =============================================================================
# PRINTING
# =============================================================================


def _sub(parent: etree._Element, tag: str, text: str) -> etree._Element:
    element = etree.SubElement(parent, tag)
    element.text = text
    return element


def _scene_to_element(parent: etree._Element, scene: Scene) -> None:
    if isinstance(scene, TextScene):
        node = etree.SubElement(parent, "text-scene")
        _sub(node, "text", scene.text)
    elif isinstance(scene, ImageScene):
        _sub(parent, "image-scene", scene.base64_data)
    elif isinstance(scene, SelectScene):
        node = etree.SubElement(
            parent,
            "select-scene",
            {
                "is-row-order-relevant": "true" if scene.row_order_relevant else "false",
                "is-col-order-relevant": "true" if scene.col_order_relevant else "false",
            },
        )
        _sub(node, "text", scene.text)
        _sub(node, "sql-solution", scene.sql_solution)
        _sub(node, "sql-placeholder", scene.sql_placeholder)
    else:
        node = etree.SubElement(parent, "manipulate-scene")
        _sub(node, "text", scene.text)
        _sub(node, "sql-solution", scene.sql_solution)
        _sub(node, "sql-check", scene.sql_check)
        _sub(node, "sql-placeholder", scene.sql_placeholder)


def game_to_xml(game: Game) -> str:
    """Print a Game as game XML.

    Free text is escaped, so xml_to_game(game_to_xml(g)) reproduces g.
    """
    root = etree.Element("game")

    head = etree.SubElement(root, "head")
    _sub(head, "title", game.title)
    _sub(head, "teaser", game.teaser)
    _sub(head, "copyright", game.copyright)

    scenes = etree.SubElement(root, "scenes")
    for scene in game.scenes:
        _scene_to_element(scenes, scene)

    if isinstance(game.db_data, InitialSqlScript):
        _sub(root, "initial-sql-script", game.db_data.sql)
    elif isinstance(game.db_data, SqliteSnapshot):
        _sub(root, "sqlite-db", base64.b64encode(game.db_data.data).decode("ascii"))

    return etree.tostring(
        root,
        pretty_print=True,
        xml_declaration=True,
        encoding="UTF-8",
        standalone=True,
    ).decode("utf-8")
