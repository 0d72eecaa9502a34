"""
Tests for the command line runner.
"""
import json
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.core.cli_runner import main
from src.services.batch_recalculator import BatchRecalculateResult, DailyBatchResult
from tests.timeline import NOW, days_ago


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("src.core.cli_runner.configure_logging", lambda: None)


@pytest.fixture
def input_file(tmp_path, config):
    path = tmp_path / "deal.json"
    path.write_text(json.dumps({
        "deal": {"status": "sent", "sent_at": days_ago(3).isoformat(), "predicted_monthly": 1500.0},
        "config": config.model_dump(mode="json"),
        "now": NOW.isoformat(),
    }))
    return path


@pytest.fixture
def mock_db():
    with patch("src.core.cli_runner.db_manager") as mock_db:
        mock_db.connect = AsyncMock()
        mock_db.disconnect = AsyncMock()
        mock_db.database = MagicMock()
        yield mock_db


@pytest.fixture
def mock_batch(mock_db):
    with patch("src.core.cli_runner.BatchRecalculator") as batch_class:
        yield batch_class.return_value


class TestScoreCommand:

    def test_scores_file(self, input_file, capsys):
        assert main(["score", str(input_file)]) == 0

        out = capsys.readouterr().out
        assert "Confidence:" in out
        assert "Weighted monthly:" in out

    def test_missing_file(self, tmp_path):
        assert main(["score", str(tmp_path / "nope.json")]) == 1

    def test_invalid_input(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"deal": {"status": "pending"}}))

        assert main(["score", str(path)]) == 1


class TestUsage:

    @pytest.mark.parametrize("argv", [[], ["explode"], ["score"]])
    def test_bad_usage(self, argv, capsys):
        assert main(argv) == 2
        assert "Usage:" in capsys.readouterr().out


class TestBatchCommands:

    def test_refresh(self, mock_batch, mock_db, capsys):
        mock_batch.recalculate_all_active = AsyncMock(
            return_value=BatchRecalculateResult(processed=4, succeeded=4)
        )

        assert main(["refresh"]) == 0

        mock_batch.recalculate_all_active.assert_awaited_once_with(trigger_source="cli_refresh")
        mock_db.disconnect.assert_awaited_once()
        assert "Refresh: 4 processed" in capsys.readouterr().out

    def test_daily_with_failures(self, mock_batch, capsys):
        mock_batch.run_daily = AsyncMock(return_value=DailyBatchResult(
            queue_results=BatchRecalculateResult(processed=1, succeeded=1),
            stale_results=BatchRecalculateResult(
                processed=2, succeeded=1, failed=1,
                errors=[{"deal_id": "rec-9", "error": "bad call score"}],
            ),
            total_duration_ms=10.0,
        ))

        assert main(["daily"]) == 1

        out = capsys.readouterr().out
        assert "Stale scores: 2 processed" in out
        assert "rec-9: bad call score" in out

    def test_disconnects_on_error(self, mock_batch, mock_db):
        mock_batch.recalculate_all_active = AsyncMock(side_effect=RuntimeError("mongo down"))

        with pytest.raises(RuntimeError):
            main(["refresh"])

        mock_db.disconnect.assert_awaited_once()
