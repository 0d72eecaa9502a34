"""
Tests for application startup, shutdown and the daily sweep worker.
"""
import asyncio
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from src.api.main import app, run_daily_sweep_worker
from src.models.scoring_config import ScoringConfigError
from src.services import BatchRecalculator, DealLifecycleService, ScoreRecalculator


@pytest.fixture
def mock_db_manager():
    with patch("src.api.main.db_manager") as mock_db:
        mock_db.connect = AsyncMock()
        mock_db.create_indexes = AsyncMock()
        mock_db.disconnect = AsyncMock()
        mock_db.database = MagicMock()
        yield mock_db


@pytest.fixture
def mock_config_repo(config):
    with patch("src.api.main.ScoringConfigRepository") as repo_class:
        repo = repo_class.return_value
        repo.key = "pipeline_scoring_config"
        repo.load = AsyncMock(return_value=config)
        yield repo


@pytest.fixture
def no_sweep(monkeypatch):
    monkeypatch.setattr("src.api.main.settings.enable_daily_sweep", False)
    monkeypatch.setattr("src.api.main.configure_logging", lambda: None)


class TestLifespan:
    """Startup wiring through the FastAPI lifespan."""

    def test_startup_builds_services(self, services, mock_db_manager, mock_config_repo, no_sweep):
        with TestClient(app):
            assert isinstance(app.state.recalculator, ScoreRecalculator)
            assert isinstance(app.state.batch_recalculator, BatchRecalculator)
            assert isinstance(app.state.lifecycle, DealLifecycleService)
            assert app.state.config_repo is mock_config_repo
            assert app.state.sweep_task is None

        mock_db_manager.connect.assert_awaited_once()
        mock_db_manager.create_indexes.assert_awaited_once()
        mock_config_repo.load.assert_awaited_once()
        mock_db_manager.disconnect.assert_awaited_once()

    def test_startup_fails_on_bad_config(self, services, mock_db_manager, mock_config_repo, no_sweep):
        mock_config_repo.load.side_effect = ScoringConfigError("Invalid scoring config")

        with pytest.raises(ScoringConfigError):
            with TestClient(app):
                pass


class TestDailySweepWorker:
    """Background loop that runs the daily batch."""

    async def test_runs_daily_batch_each_tick(self, services):
        services["batch_recalculator"].run_daily = AsyncMock()

        with patch("src.api.main.asyncio.sleep", AsyncMock(side_effect=[None, None, asyncio.CancelledError()])):
            await run_daily_sweep_worker(interval_seconds=1)

        assert services["batch_recalculator"].run_daily.await_count == 2

    async def test_failed_cycle_does_not_stop_worker(self, services):
        services["batch_recalculator"].run_daily = AsyncMock(side_effect=[RuntimeError("mongo down"), None])

        with patch("src.api.main.asyncio.sleep", AsyncMock(side_effect=[None, None, asyncio.CancelledError()])):
            await run_daily_sweep_worker(interval_seconds=1)

        assert services["batch_recalculator"].run_daily.await_count == 2

    async def test_cancelled_while_sleeping(self, services):
        services["batch_recalculator"].run_daily = AsyncMock()

        with patch("src.api.main.asyncio.sleep", AsyncMock(side_effect=asyncio.CancelledError())):
            await run_daily_sweep_worker(interval_seconds=1)

        services["batch_recalculator"].run_daily.assert_not_awaited()
