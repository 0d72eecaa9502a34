import pytest
import datetime as dt
from typing import Any, Dict

from src.models.deal import Communication, CommunicationDirection, Deal, Invite
from src.models.scoring import CallScoreInputs, DealStatus, ScoringInput
from src.models.scoring_config import DEFAULT_SCORING_CONFIG
from src.utils.metrics import metrics
from tests.timeline import NOW, days_ago


@pytest.fixture(autouse=True)
def reset_metrics():
    """Every test starts from an empty metrics registry."""
    metrics.reset()
    yield


@pytest.fixture
def now() -> dt.datetime:
    return NOW


@pytest.fixture
def config():
    return DEFAULT_SCORING_CONFIG


@pytest.fixture
def strong_call_scores() -> CallScoreInputs:
    """clear / none / high / strong: base score 100."""
    return CallScoreInputs(
        budget_clarity="clear",
        competition="none",
        engagement="high",
        plan_fit="strong",
    )


@pytest.fixture
def make_input(config):
    """
    Build a ScoringInput from plain dicts.

    Defaults to a sent deal with no engagement, evaluated at NOW.
    """
    def _make(deal: Dict[str, Any] = None, **fields: Any) -> ScoringInput:
        deal_fields = {"status": "sent", "sent_at": NOW, "predicted_monthly": 1000.0}
        deal_fields.update(deal or {})
        payload = {"deal": deal_fields, "config": config, "now": NOW}
        payload.update(fields)
        return ScoringInput.model_validate(payload)

    return _make


@pytest.fixture
def sample_deal(strong_call_scores) -> Deal:
    """A sent deal with two invitees and one reply from the prospect."""
    return Deal(
        deal_id="rec-123",
        client_id="client-1",
        client_name="Acme Dental",
        rep_id="rep-7",
        status=DealStatus.SENT,
        sent_at=days_ago(20),
        predicted_monthly=2000.0,
        predicted_onetime=500.0,
        call_scores=strong_call_scores,
        invites=[
            Invite(email="owner@acme.test", sent_at=days_ago(20), email_opened_at=days_ago(19),
                   viewed_at=days_ago(18)),
            Invite(email="office@acme.test", sent_at=days_ago(20), email_opened_at=days_ago(17)),
        ],
        communications=[
            Communication(direction=CommunicationDirection.OUTBOUND, contact_at=days_ago(16)),
            Communication(direction=CommunicationDirection.INBOUND, contact_at=days_ago(15)),
            Communication(direction=CommunicationDirection.OUTBOUND, contact_at=days_ago(5)),
        ],
    )
