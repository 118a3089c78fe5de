"""Core exercise logic.

Modules:
- lifecycle: pending/active/failed status tracker
- schema: CREATE TABLE structure extraction
- game: game model and pure progression functions
- game_xml: game XML parsing and printing
- comparator: order/name-insensitive result equality
- engine: game engine with learner and reference databases
- browser: free-form database browser
"""

__all__ = [
    "lifecycle",
    "schema",
    "game",
    "game_xml",
    "comparator",
    "engine",
    "browser",
]
