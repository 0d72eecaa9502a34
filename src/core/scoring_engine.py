"""
Pipeline Scoring Engine

Turns a rep's call assessment plus engagement telemetry into a 0-100
confidence score, weighted revenue and an auditable penalty breakdown.

Pure: no database, no logging, no clock. Time comes from ScoringInput.now,
so any score can be replayed from its input.

Flow:
    1. closed_lost -> 0, accepted -> 100, draft -> base score only
    2. base score from call factors (or the configured default)
    3. decay penalties: email_not_opened, proposal_not_viewed, silence
    4. multi-invite bonus
    5. clamp(base - penalties + bonus, 0, 100), weighted revenue
"""
import datetime as dt
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Tuple

from src.models.base import ensure_utc
from src.models.scoring import (
    CallAxis,
    CallScoreInputs,
    CommunicationData,
    DealData,
    DealStatus,
    FrozenPenalties,
    InviteMilestones,
    InviteStats,
    PenaltyBreakdown,
    ScoringInput,
    ScoringResult,
)
from src.models.scoring_config import PenaltyConfig, ScoringConfig

SECONDS_PER_HOUR = 3600
HOURS_PER_DAY = 24


class ScoringError(Exception):
    """Base class for inputs the engine refuses to score."""


class InvalidCallScoreError(ScoringError):
    """A call-score category has no entry in the configured mapping table."""

    def __init__(self, axis: str, value: str):
        super().__init__(f"Unknown {axis} category: {value!r}")
        self.axis = axis
        self.value = value


# --- Utility ---

def elapsed_hours(since: Optional[dt.datetime], until: dt.datetime) -> int:
    """Whole hours from since to until; 0 when since is missing or in the future."""
    if since is None:
        return 0
    seconds = (until - since).total_seconds()
    return max(0, math.floor(seconds / SECONDS_PER_HOUR))


def elapsed_days(since: Optional[dt.datetime], until: dt.datetime) -> int:
    """Whole days from since to until; 0 when since is missing or in the future."""
    if since is None:
        return 0
    seconds = (until - since).total_seconds()
    return max(0, math.floor(seconds / (SECONDS_PER_HOUR * HOURS_PER_DAY)))


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Commercial rounding; round() would send 0.5 to the even neighbour."""
    exponent = Decimal(1).scaleb(-ndigits)
    return float(Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def round2(value: float) -> float:
    return round_half_up(value, 2)


def _latest(*stamps: Optional[dt.datetime]) -> Optional[dt.datetime]:
    present = [s for s in stamps if s is not None]
    return max(present) if present else None


def _earliest(stamps: Iterable[Optional[dt.datetime]]) -> Optional[dt.datetime]:
    present = [s for s in stamps if s is not None]
    return min(present) if present else None


def accrual_baseline(deal: DealData, as_of: dt.datetime) -> Optional[dt.datetime]:
    """
    Earliest moment penalties may count from.

    Revival resets the clock; so does the end of an expired snooze.
    """
    expired_snooze = deal.snoozed_until if deal.snoozed_until and deal.snoozed_until <= as_of else None
    return _latest(deal.revived_at, expired_snooze)


def is_snoozed(deal: DealData, now: dt.datetime) -> bool:
    return deal.snoozed_until is not None and deal.snoozed_until > now


# --- Base Score ---

def compute_base_score(call_scores: Optional[CallScoreInputs], config: ScoringConfig) -> float:
    """
    Call-Score Normalizer.

    Each factor's category maps to a multiplier which is scaled by the
    factor's weight; the products are summed. No normalisation happens here,
    operators calibrate the tables and the final clamp catches the rest.

    Raises:
        InvalidCallScoreError: Category missing from the mapping table
    """
    if call_scores is None:
        return config.default_base_score

    total = 0.0
    for axis in CallAxis:
        category = str(getattr(call_scores, axis.value))
        table = getattr(config.call_score_mappings, axis.value).model_dump()
        if category not in table:
            raise InvalidCallScoreError(axis.value, category)
        total += table[category] * getattr(config.call_weights, axis.value)
    return total


# --- Penalties ---

def compute_decay_penalty(
    reference: Optional[dt.datetime],
    now: dt.datetime,
    config: PenaltyConfig,
    accelerated: bool = False,
) -> float:
    """
    Shared time-decay rule: nothing during the grace period, then a daily
    rate, saturating at max_penalty. The cap applies after acceleration.
    """
    if reference is None:
        return 0.0

    if config.counts_in_days:
        elapsed = elapsed_days(reference, now)
        if elapsed <= config.grace_period_days:
            return 0.0
        days_past_grace = elapsed - config.grace_period_days
    else:
        elapsed = elapsed_hours(reference, now)
        if elapsed <= config.grace_period_hours:
            return 0.0
        days_past_grace = (elapsed - config.grace_period_hours) / HOURS_PER_DAY

    daily = config.daily_penalty
    if accelerated:
        daily *= config.followup_acceleration_multiplier

    return clamp(days_past_grace * daily, 0.0, config.max_penalty)


def compute_email_not_opened_penalty(
    deal: DealData,
    milestones: InviteMilestones,
    config: PenaltyConfig,
    now: dt.datetime,
) -> float:
    """[EMAIL_NOT_OPENED] Counts from delivery until any invitee opens the email."""
    if milestones.first_email_opened_at is not None:
        return 0.0
    if deal.sent_at is None:
        return 0.0

    reference = _latest(deal.sent_at, accrual_baseline(deal, now))
    return compute_decay_penalty(reference, now, config)


def compute_proposal_not_viewed_penalty(
    deal: DealData,
    milestones: InviteMilestones,
    config: PenaltyConfig,
    now: dt.datetime,
) -> float:
    """
    [PROPOSAL_NOT_VIEWED] Counts from the first sign of engagement (email
    opened or account created) until someone views the proposal.

    Before any engagement the email penalty is already decaying the deal,
    so this one stays at zero.
    """
    if milestones.first_proposal_viewed_at is not None:
        return 0.0

    engaged_at = _earliest([milestones.first_email_opened_at, milestones.first_account_created_at])
    if engaged_at is None:
        return 0.0

    reference = _latest(engaged_at, accrual_baseline(deal, now))
    return compute_decay_penalty(reference, now, config)


def compute_silence_penalty(
    deal: DealData,
    communications: CommunicationData,
    config: PenaltyConfig,
    now: dt.datetime,
) -> float:
    """
    [SILENCE] The slow-death penalty for a prospect who stopped talking.

    Reference: the prospect's last reply, else the team's last outreach,
    else delivery. A reply restarts the clock, so it takes precedence over
    team contact. Chasing past the follow-up threshold multiplies the rate.
    """
    if deal.sent_at is None:
        return 0.0

    anchor = (
        communications.last_prospect_contact_at
        or communications.last_team_contact_at
        or deal.sent_at
    )
    reference = _latest(anchor, accrual_baseline(deal, now))
    accelerated = communications.followup_count_since_last_reply >= config.followup_acceleration_threshold
    return compute_decay_penalty(reference, now, config, accelerated=accelerated)


def compute_live_penalties(scoring_input: ScoringInput, as_of: dt.datetime) -> FrozenPenalties:
    """All three decay penalties evaluated at as_of, ignoring any active snooze."""
    penalties = scoring_input.config.penalties
    deal = scoring_input.deal
    return FrozenPenalties(
        email_not_opened=compute_email_not_opened_penalty(
            deal, scoring_input.milestones, penalties.email_not_opened, as_of
        ),
        proposal_not_viewed=compute_proposal_not_viewed_penalty(
            deal, scoring_input.milestones, penalties.proposal_not_viewed, as_of
        ),
        silence=compute_silence_penalty(
            deal, scoring_input.communications, penalties.silence, as_of
        ),
    )


def compute_penalties(scoring_input: ScoringInput) -> Tuple[FrozenPenalties, bool]:
    """
    Penalties at scoring_input.now, honouring snooze.

    While snoozed nothing accrues: the snapshot stored at snooze time is
    reused; without one the penalties are re-derived as of snoozed_at;
    without either, the deal carries no penalty until the snooze ends.
    A milestone reached during the snooze still clears its penalty.

    Returns:
        (penalties, frozen) where frozen is True while a snooze is active
    """
    deal = scoring_input.deal
    now = scoring_input.now

    if not is_snoozed(deal, now):
        return compute_live_penalties(scoring_input, now), False

    if deal.frozen_penalties is not None:
        frozen = deal.frozen_penalties
    elif deal.snoozed_at is not None:
        frozen = compute_live_penalties(scoring_input, min(deal.snoozed_at, now))
    else:
        return FrozenPenalties(), True

    milestones = scoring_input.milestones
    cleared = {}
    if milestones.first_email_opened_at is not None:
        cleared["email_not_opened"] = 0.0
    if milestones.first_proposal_viewed_at is not None:
        cleared["proposal_not_viewed"] = 0.0
    return frozen.model_copy(update=cleared), True


# --- Multi-Invite Bonus ---

def compute_multi_invite_bonus(invite_stats: InviteStats, config: ScoringConfig) -> Tuple[float, float]:
    """
    (all_opened, all_viewed) bonus points. Only multi-stakeholder deals
    qualify; the two conditions are independent and additive.
    """
    if invite_stats.total_invites <= 1:
        return 0.0, 0.0

    bonus = config.multi_invite_bonus
    opened = bonus.all_opened_bonus if invite_stats.opened_count == invite_stats.total_invites else 0.0
    viewed = bonus.all_viewed_bonus if invite_stats.viewed_count == invite_stats.total_invites else 0.0
    return opened, viewed


# --- Assembly ---

def _weighted(predicted: float, confidence_percent: float) -> float:
    # Rounding must not lift the weighted value above the prediction
    return min(round2(predicted * confidence_percent), predicted)


def _result(
    deal: DealData,
    confidence_score: int,
    base_score: float,
    penalties: Optional[FrozenPenalties] = None,
    bonus: float = 0.0,
    frozen: bool = False,
) -> ScoringResult:
    penalties = penalties or FrozenPenalties()
    confidence_percent = round2(confidence_score / 100)
    return ScoringResult(
        confidence_score=confidence_score,
        confidence_percent=confidence_percent,
        weighted_monthly=_weighted(deal.predicted_monthly, confidence_percent),
        weighted_onetime=_weighted(deal.predicted_onetime, confidence_percent),
        base_score=base_score,
        total_penalties=round2(penalties.total),
        total_bonus=bonus,
        penalty_breakdown=PenaltyBreakdown(
            email_not_opened=round2(penalties.email_not_opened),
            proposal_not_viewed=round2(penalties.proposal_not_viewed),
            silence=round2(penalties.silence),
            multi_invite_bonus=-bonus if bonus else 0.0,
        ),
        penalties_frozen=frozen,
    )


def _to_score(raw: float) -> int:
    return int(clamp(round_half_up(raw), 0, 100))


def compute_pipeline_score(scoring_input: ScoringInput) -> ScoringResult:
    """
    Score Assembler: the confidence score for one deal.

    Args:
        scoring_input: Complete deal snapshot, tenant config and evaluation time

    Returns:
        ScoringResult with score, weighted values and penalty breakdown

    Raises:
        InvalidCallScoreError: If a call-score category is not configured
    """
    deal = scoring_input.deal
    config = scoring_input.config

    if deal.status == DealStatus.CLOSED_LOST:
        return _result(deal, confidence_score=0, base_score=0)

    # Customers now, not pipeline
    if deal.status == DealStatus.ACCEPTED:
        return _result(deal, confidence_score=100, base_score=100)

    base_score = compute_base_score(scoring_input.call_scores, config)

    # Nothing has been delivered yet, so nothing can decay
    if deal.status == DealStatus.DRAFT:
        return _result(deal, confidence_score=_to_score(base_score), base_score=round_half_up(base_score))

    penalties, frozen = compute_penalties(scoring_input)
    opened_bonus, viewed_bonus = compute_multi_invite_bonus(scoring_input.invite_stats, config)
    bonus = opened_bonus + viewed_bonus

    raw_score = base_score - penalties.total + bonus
    return _result(
        deal,
        confidence_score=_to_score(raw_score),
        base_score=round_half_up(base_score),
        penalties=penalties,
        bonus=bonus,
        frozen=frozen,
    )


def score(scoring_input: ScoringInput, now: Optional[dt.datetime] = None) -> ScoringResult:
    """score(input, now) -> ScoringResult; `now` overrides scoring_input.now."""
    if now is not None:
        scoring_input = scoring_input.model_copy(update={"now": ensure_utc(now)})
    return compute_pipeline_score(scoring_input)
