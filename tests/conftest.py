"""Shared pytest fixtures for the search API test suites."""

from collections.abc import Callable
from collections.abc import Generator
from pathlib import Path
import sys
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import Settings  # noqa: E402
from app.core.config import load_settings  # noqa: E402

TEST_ENVIRONMENT = {
    "APP_ENV": "test",
    "DATABASE_URL": "sqlite://",
    "STARTUP_CHECKS": "false",
    "ENABLE_QUERY_LOGGING": "false",
    "LOG_LEVEL": "warning",
}


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build settings from the test environment plus per-test overrides."""

    def factory(**overrides: str) -> Settings:
        return load_settings({**TEST_ENVIRONMENT, **overrides})

    return factory


@pytest.fixture
def search_client_mock() -> MagicMock:
    """Stand-in for the Elasticsearch client with a healthy cluster."""
    mock = MagicMock(name="Elasticsearch")
    mock.ping.return_value = True
    return mock


@pytest.fixture
def make_app(make_settings: Callable[..., Settings], search_client_mock: MagicMock) -> Callable[..., FastAPI]:
    """Create the application wired to an in-memory SQLite engine and a mocked search client."""
    from app.main import create_app

    def factory(**overrides: str) -> FastAPI:
        app = create_app(make_settings(**overrides))
        app.state.search_client = search_client_mock
        return app

    return factory


@pytest.fixture
def client(make_app: Callable[..., FastAPI]) -> Generator[TestClient, None, None]:
    """Provide an API test client for contract suites."""
    with TestClient(make_app()) as test_client:
        yield test_client
