"""
Pydantic models for pipeline API request and response bodies.
"""
import datetime as dt
from pydantic import BaseModel, Field
from typing import List, Optional

from src.models.base import UTCDatetime
from src.models.deal import (
    ArchiveReason,
    CommunicationChannel,
    CommunicationDirection,
    ScoreHistoryEntry,
)
from src.models.scoring import DealStatus, ScoringResult


class SnoozeRequest(BaseModel):
    """Pause penalty accrual until the given time."""
    snoozed_until: UTCDatetime = Field(..., description="When accrual resumes (must be in the future)")
    reason: Optional[str] = Field(None, max_length=500, description="Why the deal is on hold")


class ArchiveRequest(BaseModel):
    reason: ArchiveReason = Field(..., description="Why the deal left the pipeline")
    notes: Optional[str] = Field(None, max_length=2000, description="Required when reason is 'other'")


class CommunicationRequest(BaseModel):
    """A contact with the prospect, logged by the rep."""
    direction: CommunicationDirection
    channel: CommunicationChannel = CommunicationChannel.EMAIL
    contact_at: Optional[UTCDatetime] = Field(None, description="When the contact happened (defaults to now)")
    notes: Optional[str] = Field(None, max_length=2000)


class StatusChangeRequest(BaseModel):
    status: DealStatus
    reason: Optional[str] = Field(None, max_length=500, description="Kept when the deal is closed lost")


class ScoreEventRequest(BaseModel):
    """A tracking event that should trigger a rescore on the next batch run."""
    event_type: str = Field(..., min_length=1, max_length=100, description="e.g. invite_opened, proposal_viewed")


class DealScoreResponse(BaseModel):
    deal_id: str
    result: Optional[ScoringResult] = Field(
        None, description="New score, or null when the deal's status has a fixed score"
    )


class ScoreHistoryResponse(BaseModel):
    deal_id: str
    entries: List[ScoreHistoryEntry]


class BatchRunResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    skipped: int
    duration_ms: float
    errors: List[dict] = Field(default_factory=list)


class ScoreEventResponse(BaseModel):
    deal_id: str
    event_type: str
    queued_at: dt.datetime
