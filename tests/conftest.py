"""
Shared pytest fixtures for handler-spine tests.

This module provides:
- Feed double and settings fixtures
- A handler-tree writer for discovery tests against the real filesystem

Usage:
    Fixtures are auto-discovered by pytest; use them as function arguments.

    def test_routes(write_tree):
        root = write_tree("rest", {"orders/get.py": "def handler(request): ..."})
"""

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

# Ensure handlerspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from handlerspine.core.settings import ModuleSettings
from tests._support.feeds import ManualFeed


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def manual_feed() -> ManualFeed:
    return ManualFeed()


@pytest.fixture
def settings(tmp_path: Path) -> ModuleSettings:
    return ModuleSettings(
        _env_file=None,
        rest_path=str(tmp_path / "rest"),
        feed_path=str(tmp_path / "feed"),
        port=4321,
    )


@pytest.fixture
def write_tree(tmp_path: Path) -> Callable[[str, dict[str, str]], Path]:
    """Write ``{relative_path: source}`` under ``tmp_path/<name>`` and return the root."""

    def _write(name: str, files: dict[str, str]) -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative, source in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding="utf-8")
        return root

    return _write
