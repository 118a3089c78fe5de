"""Tests for app configuration (F5).

Tests the configuration loading, defaults and caching.
"""

from pathlib import Path

from sqlgame.config.app_config import (
    AppConfig,
    EngineConfig,
    FetchConfig,
    clear_config_cache,
    load_app_config,
)


class TestLoadAppConfig:
    """Tests for load_app_config function."""

    def test_defaults_without_file(self, tmp_path):
        """Missing file falls back to defaults."""
        config = load_app_config(force_reload=True, config_file=tmp_path / "missing.yaml")
        assert isinstance(config, AppConfig)
        assert config.fetch == FetchConfig(timeout=10.0)
        assert config.engine == EngineConfig(max_permutations=0)
        assert config.games_dir == Path("games")

    def test_load_from_yaml(self, tmp_path):
        """Values from the file override defaults."""
        path = tmp_path / "sqlgame.yaml"
        path.write_text(
            "fetch:\n  timeout: 2.5\nengine:\n  max_permutations: 100\npaths:\n  games_dir: /srv/games\n",
            encoding="utf-8",
        )
        config = load_app_config(force_reload=True, config_file=path)
        assert config.fetch.timeout == 2.5
        assert config.engine.max_permutations == 100
        assert config.games_dir == Path("/srv/games")

    def test_partial_file(self, tmp_path):
        """Missing sections keep their defaults."""
        path = tmp_path / "sqlgame.yaml"
        path.write_text("engine:\n  max_permutations: 5\n", encoding="utf-8")
        config = load_app_config(force_reload=True, config_file=path)
        assert config.engine.max_permutations == 5
        assert config.fetch.timeout == 10.0
        assert config.games_dir == Path("games")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "sqlgame.yaml"
        path.write_text("", encoding="utf-8")
        config = load_app_config(force_reload=True, config_file=path)
        assert config.engine.max_permutations == 0


class TestConfigCache:
    """Tests for caching."""

    def test_cached(self, tmp_path):
        first = load_app_config(force_reload=True, config_file=tmp_path / "missing.yaml")
        assert load_app_config() is first

    def test_clear_cache(self, tmp_path):
        first = load_app_config(force_reload=True, config_file=tmp_path / "missing.yaml")
        clear_config_cache()
        assert load_app_config() is not first
