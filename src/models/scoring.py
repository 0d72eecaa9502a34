"""
Pipeline Scoring Types

Input snapshot and result of the deal-confidence scoring engine.
Everything here is immutable: an input is one consistent snapshot of a deal,
a result is derived from it and nothing else.
"""
from enum import StrEnum
from typing import Annotated, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.models.base import UTCDatetime
from src.models.scoring_config import ScoringConfig


class BudgetClarity(StrEnum):
    CLEAR = "clear"
    VAGUE = "vague"
    NONE = "none"
    NO_BUDGET = "no_budget"


class Competition(StrEnum):
    NONE = "none"
    SOME = "some"
    MANY = "many"


class Engagement(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PlanFit(StrEnum):
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"
    POOR = "poor"


class DealStatus(StrEnum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CLOSED_LOST = "closed_lost"


class CallAxis(StrEnum):
    BUDGET_CLARITY = "budget_clarity"
    COMPETITION = "competition"
    ENGAGEMENT = "engagement"
    PLAN_FIT = "plan_fit"


class PenaltyCategory(StrEnum):
    EMAIL_NOT_OPENED = "email_not_opened"
    PROPOSAL_NOT_VIEWED = "proposal_not_viewed"
    SILENCE = "silence"


# Scores for these statuses are fixed; recomputing them is pointless
TERMINAL_STATUSES = frozenset({DealStatus.ACCEPTED, DealStatus.CLOSED_LOST})

NonNegative = Annotated[float, Field(ge=0)]
Count = Annotated[int, Field(ge=0)]


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CallScoreInputs(_Snapshot):
    """The rep's four categorical judgments from the sales call."""
    budget_clarity: BudgetClarity
    competition: Competition
    engagement: Engagement
    plan_fit: PlanFit


class FrozenPenalties(_Snapshot):
    """Penalty values captured at the moment a deal was snoozed."""
    email_not_opened: NonNegative = 0.0
    proposal_not_viewed: NonNegative = 0.0
    silence: NonNegative = 0.0

    @property
    def total(self) -> float:
        return self.email_not_opened + self.proposal_not_viewed + self.silence


class DealData(_Snapshot):
    status: DealStatus = DealStatus.DRAFT
    sent_at: Optional[UTCDatetime] = None
    predicted_monthly: NonNegative = 0.0
    predicted_onetime: NonNegative = 0.0
    # Penalties are frozen until this moment; accrual restarts from it afterwards
    snoozed_until: Optional[UTCDatetime] = None
    snoozed_at: Optional[UTCDatetime] = None
    frozen_penalties: Optional[FrozenPenalties] = None
    # New accrual baseline after an archived deal is revived
    revived_at: Optional[UTCDatetime] = None


class InviteMilestones(_Snapshot):
    """Earliest milestone across all invitees of a deal."""
    first_email_opened_at: Optional[UTCDatetime] = None
    first_account_created_at: Optional[UTCDatetime] = None
    first_proposal_viewed_at: Optional[UTCDatetime] = None


class InviteStats(_Snapshot):
    total_invites: Count = 0
    opened_count: Count = 0
    accounts_created_count: Count = 0
    viewed_count: Count = 0

    @model_validator(mode="after")
    def counts_within_total(self) -> "InviteStats":
        for name in ("opened_count", "accounts_created_count", "viewed_count"):
            if getattr(self, name) > self.total_invites:
                raise ValueError(f"{name} cannot exceed total_invites")
        return self


class CommunicationData(_Snapshot):
    last_prospect_contact_at: Optional[UTCDatetime] = None
    last_team_contact_at: Optional[UTCDatetime] = None
    followup_count_since_last_reply: Count = 0


class ScoringInput(_Snapshot):
    """Everything the engine needs, assembled by the caller."""
    deal: DealData
    call_scores: Optional[CallScoreInputs] = None
    milestones: InviteMilestones = Field(default_factory=InviteMilestones)
    invite_stats: InviteStats = Field(default_factory=InviteStats)
    communications: CommunicationData = Field(default_factory=CommunicationData)
    config: ScoringConfig
    now: UTCDatetime


class PenaltyBreakdown(_Snapshot):
    email_not_opened: float = 0.0
    proposal_not_viewed: float = 0.0
    silence: float = 0.0
    # Negative: points handed back to the deal
    multi_invite_bonus: float = 0.0


class ScoringResult(_Snapshot):
    confidence_score: Annotated[int, Field(ge=0, le=100)]
    confidence_percent: Annotated[float, Field(ge=0, le=1)]
    weighted_monthly: NonNegative
    weighted_onetime: NonNegative
    base_score: float
    total_penalties: float
    total_bonus: float
    penalty_breakdown: PenaltyBreakdown = Field(default_factory=PenaltyBreakdown)
    penalties_frozen: bool = False
