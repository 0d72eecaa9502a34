"""
Tests for scoring input/result models and the Deal document.
"""
import datetime as dt
import pytest
from pydantic import ValidationError

from src.models.deal import Deal
from src.models.scoring import (
    CallAxis,
    CallScoreInputs,
    DealData,
    FrozenPenalties,
    InviteStats,
    ScoringInput,
    ScoringResult,
)
from tests.timeline import NOW, days_ago


class TestCallAxis:

    def test_axes_match_call_score_fields(self):
        assert {axis.value for axis in CallAxis} == set(CallScoreInputs.model_fields)


class TestInviteStats:

    def test_counts_cannot_exceed_total(self):
        with pytest.raises(ValidationError):
            InviteStats(total_invites=2, opened_count=3)

    def test_negative_counts_rejected(self):
        with pytest.raises(ValidationError):
            InviteStats(total_invites=-1)


class TestDealData:

    def test_naive_datetimes_are_utc(self):
        deal = DealData(status="sent", sent_at=dt.datetime(2025, 1, 1, 9, 0))
        assert deal.sent_at.tzinfo == dt.UTC

    def test_aware_datetimes_converted_to_utc(self):
        offset = dt.timezone(dt.timedelta(hours=-5))
        deal = DealData(status="sent", sent_at=dt.datetime(2025, 1, 1, 9, 0, tzinfo=offset))

        assert deal.sent_at == dt.datetime(2025, 1, 1, 14, 0, tzinfo=dt.UTC)
        assert deal.sent_at.utcoffset() == dt.timedelta(0)

    def test_negative_prediction_rejected(self):
        with pytest.raises(ValidationError):
            DealData(predicted_monthly=-1)

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            DealData(status="won")


class TestScoringInput:

    def test_requires_config_and_now(self):
        with pytest.raises(ValidationError):
            ScoringInput(deal=DealData())

    def test_unknown_fields_rejected(self, make_input):
        with pytest.raises(ValidationError):
            make_input(deal={"stage": "proposal"})

    def test_is_frozen(self, make_input):
        scoring_input = make_input()
        with pytest.raises(ValidationError):
            scoring_input.now = days_ago(1)


class TestScoringResult:

    def test_score_bounds_enforced(self):
        with pytest.raises(ValidationError):
            ScoringResult(
                confidence_score=101,
                confidence_percent=1.0,
                weighted_monthly=0,
                weighted_onetime=0,
                base_score=0,
                total_penalties=0,
                total_bonus=0,
            )

    def test_frozen_penalties_total(self):
        assert FrozenPenalties(email_not_opened=1.5, proposal_not_viewed=2, silence=3).total == 6.5


class TestDeal:

    def test_age_counts_from_sent_at(self, sample_deal):
        assert sample_deal.age_days(NOW) == 20

    def test_age_counts_from_revival(self, sample_deal):
        revived = sample_deal.model_copy(update={"revived_at": days_ago(4)})
        assert revived.age_days(NOW) == 4

    def test_unsent_deal_has_no_age(self):
        assert Deal(deal_id="d", client_id="c").age_days(NOW) == 0

    def test_is_archived(self, sample_deal):
        assert sample_deal.is_archived is False
        archived = sample_deal.model_copy(update={"archived_at": days_ago(1)})
        assert archived.is_archived is True

    def test_loads_mongo_document(self):
        deal = Deal.model_validate({
            "_id": "65f0c0ffee0000000000abcd",
            "deal_id": "rec-9",
            "client_id": "client-9",
            "status": "sent",
            "sent_at": dt.datetime(2025, 5, 1),
            "frozen_penalties": {"email_not_opened": 2.0, "proposal_not_viewed": 0.0, "silence": 1.0},
        })

        assert deal.id == "65f0c0ffee0000000000abcd"
        assert deal.sent_at.tzinfo == dt.UTC
        assert deal.frozen_penalties.total == 3.0
