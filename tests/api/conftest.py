import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from src.api.main import app

SERVICE_NAMES = (
    "deal_repo",
    "history_repo",
    "run_repo",
    "event_repo",
    "config_repo",
    "recalculator",
    "batch_recalculator",
    "lifecycle",
)


@pytest.fixture
def client():
    """Create test client (lifespan not run, no MongoDB)."""
    return TestClient(app)


@pytest.fixture
def services(config):
    """Mocked services installed on app.state for the duration of a test."""
    mocks = {name: MagicMock() for name in SERVICE_NAMES}
    mocks["config_repo"].load = AsyncMock(return_value=config)

    for name, mock in mocks.items():
        setattr(app.state, name, mock)

    yield mocks

    for name in SERVICE_NAMES:
        if hasattr(app.state, name):
            delattr(app.state, name)
