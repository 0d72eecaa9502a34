"""
Tests for single-deal score recalculation.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from src.core.scoring_engine import InvalidCallScoreError
from src.models.scoring import CallScoreInputs, DealStatus
from src.repositories.deals import DealNotFoundError
from src.services.score_recalculator import ScoreRecalculator
from src.utils.metrics import metrics
from tests.timeline import NOW


@pytest.fixture
def deal_repo(sample_deal):
    repo = MagicMock()
    repo.get_by_deal_id = AsyncMock(return_value=sample_deal)
    repo.write_score = AsyncMock()
    return repo


@pytest.fixture
def history_repo():
    repo = MagicMock()
    repo.record = AsyncMock()
    return repo


@pytest.fixture
def config_repo(config):
    repo = MagicMock()
    repo.load = AsyncMock(return_value=config)
    return repo


@pytest.fixture
def recalculator(deal_repo, history_repo, config_repo):
    return ScoreRecalculator(deal_repo, history_repo, config_repo)


class TestRecalculate:

    async def test_scores_and_persists(self, recalculator, deal_repo, history_repo):
        """100 base - 6.0 silence + 3 all-opened bonus."""
        result = await recalculator.recalculate("rec-123", trigger_source="invite_opened", now=NOW)

        assert result.confidence_score == 97
        assert result.weighted_monthly == 1940.0
        assert result.weighted_onetime == 485.0
        deal_repo.write_score.assert_awaited_once_with("rec-123", result, scored_at=NOW)
        history_repo.record.assert_awaited_once_with("rec-123", result, "invite_opened", scored_at=NOW)

    async def test_records_metrics(self, recalculator):
        await recalculator.recalculate("rec-123", trigger_source="daily_cron", now=NOW)

        assert metrics.scores_computed.value(status="sent", trigger="daily_cron") == 1

    async def test_uses_given_config(self, recalculator, config_repo, config):
        await recalculator.recalculate("rec-123", now=NOW, config=config)
        config_repo.load.assert_not_awaited()

    async def test_unknown_deal(self, recalculator, deal_repo):
        deal_repo.get_by_deal_id.return_value = None

        with pytest.raises(DealNotFoundError):
            await recalculator.recalculate("missing", now=NOW)

    @pytest.mark.parametrize("status", [DealStatus.ACCEPTED, DealStatus.CLOSED_LOST])
    async def test_terminal_status_skipped(self, recalculator, deal_repo, sample_deal, status):
        deal_repo.get_by_deal_id.return_value = sample_deal.model_copy(update={"status": status})

        assert await recalculator.recalculate("rec-123", now=NOW) is None
        deal_repo.write_score.assert_not_awaited()

    async def test_terminal_status_scored_on_request(self, recalculator, deal_repo, sample_deal):
        deal_repo.get_by_deal_id.return_value = sample_deal.model_copy(update={"status": DealStatus.ACCEPTED})

        result = await recalculator.recalculate("rec-123", now=NOW, skip_terminal=False)

        assert result.confidence_score == 100

    async def test_scoring_error_propagates_without_write(self, recalculator, deal_repo, sample_deal):
        """A deal that cannot be scored never gets a fabricated score."""
        bad_scores = CallScoreInputs.model_construct(
            budget_clarity="unheard_of", competition="none", engagement="high", plan_fit="strong"
        )
        deal_repo.get_by_deal_id.return_value = sample_deal.model_copy(update={"call_scores": bad_scores})

        with pytest.raises(InvalidCallScoreError):
            await recalculator.recalculate("rec-123", now=NOW)

        deal_repo.write_score.assert_not_awaited()
        assert metrics.scoring_errors.value(error="InvalidCallScoreError") == 1


class TestScoreDeal:

    async def test_preview_does_not_write(self, recalculator, deal_repo, history_repo):
        result = await recalculator.score_deal("rec-123", now=NOW)

        assert result.confidence_score == 97
        deal_repo.write_score.assert_not_awaited()
        history_repo.record.assert_not_awaited()


class TestRecalculateMany:

    async def test_returns_result_per_deal(self, recalculator, config_repo):
        results = await recalculator.recalculate_many(["rec-1", "rec-2"], "config_change", now=NOW)

        assert set(results) == {"rec-1", "rec-2"}
        assert all(r.confidence_score == 97 for r in results.values())
        config_repo.load.assert_awaited_once()

    async def test_failure_propagates(self, recalculator, deal_repo, sample_deal):
        deal_repo.get_by_deal_id.side_effect = [sample_deal, None]

        with pytest.raises(DealNotFoundError):
            await recalculator.recalculate_many(["rec-1", "rec-2"], now=NOW)
