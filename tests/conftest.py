"""Pytest configuration for phased testing.

Tests are organized by phase:
- f1: lifecycle, schema extraction, database handle
- f2: game model and XML format
- f3: result comparison
- f4: game engine
- f5: database browser, sources, configuration
- f6: web API and CLI

Only tests for the current phase and completed phases should run.
Future phase tests are automatically skipped.
"""

import pytest

from sqlgame.config.app_config import clear_config_cache

# Current implementation phase
CURRENT_PHASE = 6


def pytest_collection_modifyitems(config, items):
    """Skip tests from phases that haven't been implemented yet."""
    for item in items:
        # Extract phase from path (tests/f2/... -> 2)
        parts = item.fspath.strpath.split("/")
        for part in parts:
            if part.startswith("f") and part[1:].isdigit():
                test_phase = int(part[1:])
                if test_phase > CURRENT_PHASE:
                    item.add_marker(
                        pytest.mark.skip(
                            reason=f"Phase F{test_phase} not yet implemented (current: F{CURRENT_PHASE})"
                        )
                    )
                break


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from a freshly loaded configuration."""
    clear_config_cache()
    yield
    clear_config_cache()
