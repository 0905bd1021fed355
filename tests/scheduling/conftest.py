"""Pytest fixtures for scheduling tests."""

import pytest

from spine_cron.scheduling import InProcessBackend, MemoryStore
from tests._support.jobs import RecordingDispatcher


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def backend() -> InProcessBackend:
    return InProcessBackend()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
