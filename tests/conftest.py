"""
Shared pytest fixtures and configuration for spine-cron tests.

This module provides:
- A fixed reference instant (``t0``)
- Auto-marking of tests that do not sleep as ``unit``

Usage:
    Fixtures are auto-discovered by pytest.

    def test_something(t0):
        assert t0.hour == 12
"""

import sys
from datetime import datetime
from pathlib import Path

import pytest

# Ensure spine_cron package is importable
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tests._support.times import utc  # noqa: E402


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test that does not sleep on real time as a unit test."""
    for item in items:
        if "slow" not in item.keywords:
            item.add_marker(pytest.mark.unit)


@pytest.fixture
def t0() -> datetime:
    """A whole-minute reference instant: Monday 2024-01-01 12:00:00 UTC."""
    return utc(2024, 1, 1, 12, 0, 0)
