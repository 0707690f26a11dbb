"""Pytest configuration and fixtures for unit tests."""

import pytest

from planboard.core.memory_client import InMemoryDBClient
from planboard.services.board_state import BoardState
from planboard.services.profile_service import ProfileRegistry
from planboard.services.task_store import TaskStore
from tests.unit.mocks import FailingDBClient, StubWeather


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def failing_db():
    """Provides an in-memory store whose operations can be made to fail."""
    return FailingDBClient()


@pytest.fixture
def stub_weather():
    return StubWeather()


@pytest.fixture
def task_store(failing_db):
    return TaskStore(failing_db)


@pytest.fixture
def registry(failing_db, task_store):
    return ProfileRegistry(failing_db, task_store)


@pytest.fixture
def board(task_store, stub_weather):
    return BoardState(tasks=task_store, weather=stub_weather)


@pytest.fixture
async def alice(registry):
    result = await registry.create_profile("Alice", "#60a5fa")
    return result.profile


@pytest.fixture
async def bob(registry):
    result = await registry.create_profile("Bob", "#f472b6")
    return result.profile

