"""Application configuration loader.

Loads centralized configuration from config/sqlgame.yaml, falling back to
built-in defaults when the file does not exist.

Usage:
    from sqlgame.config.app_config import load_app_config

    config = load_app_config()
    timeout = config.fetch.timeout
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("config/sqlgame.yaml")


@dataclass
class FetchConfig:
    """Configuration for remote resources (games, database files)."""

    timeout: float = 10.0


@dataclass
class EngineConfig:
    """Configuration for query verification."""

    # 0 = unbounded column permutation search
    max_permutations: int = 0


@dataclass
class AppConfig:
    """Application-wide configuration."""

    fetch: FetchConfig = field(default_factory=FetchConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    paths: dict[str, str] = field(default_factory=dict)

    @property
    def games_dir(self) -> Path:
        """Directory holding <name>.xml game files."""
        return Path(self.paths.get("games_dir", "games"))


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "fetch": {
            "timeout": 10.0,
        },
        "engine": {
            "max_permutations": 0,
        },
        "paths": {
            "games_dir": "games",
        },
    }


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    defaults = _get_defaults()

    fetch_data = data.get("fetch") or {}
    fetch = FetchConfig(
        timeout=float(fetch_data.get("timeout", defaults["fetch"]["timeout"])),
    )

    engine_data = data.get("engine") or {}
    engine = EngineConfig(
        max_permutations=int(
            engine_data.get("max_permutations", defaults["engine"]["max_permutations"])
        ),
    )

    paths = {**defaults["paths"], **(data.get("paths") or {})}

    return AppConfig(fetch=fetch, engine=engine, paths=paths)


def load_app_config(force_reload: bool = False, config_file: Path | None = None) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.
        config_file: Alternative YAML file (defaults to config/sqlgame.yaml)

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    path = config_file or CONFIG_FILE
    data: dict[str, Any]

    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    else:
        logger.debug("using_default_config")
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
