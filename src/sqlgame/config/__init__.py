"""Configuration package for sqlgame."""

from sqlgame.config.app_config import (
    AppConfig,
    EngineConfig,
    FetchConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "EngineConfig",
    "FetchConfig",
    "clear_config_cache",
    "load_app_config",
]
