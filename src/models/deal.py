import datetime as dt
from enum import StrEnum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from src.models.base import MongoBaseModel, UTCDatetime
from src.models.scoring import (
    CallScoreInputs,
    DealStatus,
    FrozenPenalties,
    PenaltyBreakdown,
    ScoringResult,
)


class ArchiveReason(StrEnum):
    WENT_DARK = "went_dark"
    BUDGET = "budget"
    TIMING = "timing"
    CHOSE_COMPETITOR = "chose_competitor"
    HANDLING_IN_HOUSE = "handling_in_house"
    NOT_A_FIT = "not_a_fit"
    KEY_CONTACT_LEFT = "key_contact_left"
    BUSINESS_CLOSED = "business_closed"
    DUPLICATE = "duplicate"
    OTHER = "other"


class CommunicationDirection(StrEnum):
    INBOUND = "inbound"    # prospect -> team
    OUTBOUND = "outbound"  # team -> prospect


class CommunicationChannel(StrEnum):
    EMAIL = "email"
    SMS = "sms"
    CHAT = "chat"
    CALL = "call"
    OTHER = "other"


class Invite(BaseModel):
    """One stakeholder invited to review the proposal."""
    email: str
    sent_at: Optional[UTCDatetime] = None
    email_opened_at: Optional[UTCDatetime] = None
    account_created_at: Optional[UTCDatetime] = None
    viewed_at: Optional[UTCDatetime] = None


class Communication(BaseModel):
    direction: CommunicationDirection
    channel: CommunicationChannel = CommunicationChannel.EMAIL
    contact_at: UTCDatetime
    notes: Optional[str] = None


class Deal(MongoBaseModel):
    """
    A proposal sent to a prospect, tracked through the sales pipeline.

    Invites and communications are embedded so one read yields a
    consistent snapshot for scoring.
    """
    deal_id: str
    client_id: str
    client_name: Optional[str] = None
    rep_id: Optional[str] = None

    status: DealStatus = DealStatus.DRAFT
    sent_at: Optional[UTCDatetime] = None
    predicted_monthly: float = Field(0.0, ge=0)
    predicted_onetime: float = Field(0.0, ge=0)

    call_scores: Optional[CallScoreInputs] = None
    invites: List[Invite] = Field(default_factory=list)
    communications: List[Communication] = Field(default_factory=list)

    # Snooze
    snoozed_until: Optional[UTCDatetime] = None
    snoozed_at: Optional[UTCDatetime] = None
    snooze_reason: Optional[str] = None
    frozen_penalties: Optional[FrozenPenalties] = None

    # Archive / revival
    archived_at: Optional[UTCDatetime] = None
    archive_reason: Optional[ArchiveReason] = None
    archive_notes: Optional[str] = None
    revived_at: Optional[UTCDatetime] = None

    # Closed lost
    closed_lost_at: Optional[UTCDatetime] = None
    closed_lost_reason: Optional[str] = None

    # Last written score
    confidence_score: Optional[int] = None
    confidence_percent: Optional[float] = None
    weighted_monthly: Optional[float] = None
    weighted_onetime: Optional[float] = None
    base_score: Optional[float] = None
    total_penalties: Optional[float] = None
    total_bonus: Optional[float] = None
    penalty_breakdown: Optional[PenaltyBreakdown] = None
    last_scored_at: Optional[UTCDatetime] = None

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def age_days(self, now: dt.datetime) -> int:
        """Days in pipeline, counted from revival when the deal was revived."""
        started = self.revived_at or self.sent_at
        if started is None:
            return 0
        return max(0, (now - started).days)


class ScoreHistoryEntry(MongoBaseModel):
    """One recalculation, kept for trend charts and audit."""
    deal_id: str
    confidence_score: int
    confidence_percent: float
    weighted_monthly: float
    weighted_onetime: float
    trigger_source: str = "unknown"
    breakdown: ScoringResult
    scored_at: UTCDatetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))


class ScoreEvent(MongoBaseModel):
    """Queued request to rescore a deal after a tracking event."""
    deal_id: str
    event_type: str
    processed_at: Optional[UTCDatetime] = None


class ScoringRunType(StrEnum):
    DAILY_CRON = "daily_cron"
    EVENT_QUEUE = "event_queue"
    MANUAL = "manual"


class ScoringRun(MongoBaseModel):
    run_type: ScoringRunType
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: float = 0.0
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    completed_at: UTCDatetime = Field(default_factory=lambda: dt.datetime.now(dt.UTC))
