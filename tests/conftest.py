"""Pytest configuration and shared fixtures."""

import logging

import pytest

from planboard.core.config import Settings


logger = logging.getLogger(__name__)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        storage_backend="memory",
        sqlite_db_path=str(tmp_path / "planboard.db"),
        geocoding_url="https://geo.test/v1/search",
        forecast_url="https://forecast.test/v1/forecast",
    )


@pytest.fixture
def sample_task_data():
    """Returns sample task form input."""
    return {
        "title": "Picnic in the park",
        "date": "2025-06-01",
        "location": "London, United Kingdom",
    }
