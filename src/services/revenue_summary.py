"""
Pipeline Revenue Summary

Buckets scored pipeline deals into revenue projections:

    on_hold       snoozed with a future resume date
    closing_soon  confidence >= 70 and in pipeline >= 14 days
    in_pipeline   confidence >= 30
    at_risk       everything else

Projected MRR counts only closing_soon and in_pipeline.
"""
import datetime as dt
from typing import List, Optional
from pydantic import BaseModel, Field

from src.core.scoring_engine import round_half_up
from src.models.deal import Deal

CLOSING_SOON_MIN_CONFIDENCE = 70
CLOSING_SOON_MIN_AGE_DAYS = 14
IN_PIPELINE_MIN_CONFIDENCE = 30
CLOSING_SOON_TABLE_SIZE = 10


class BucketStats(BaseModel):
    weighted_mrr: float = 0.0
    raw_mrr: float = 0.0
    deal_count: int = 0
    avg_confidence: int = 0


class OnHoldStats(BaseModel):
    weighted_mrr: float = 0.0
    raw_mrr: float = 0.0
    deal_count: int = 0


class ClosingSoonDeal(BaseModel):
    deal_id: str
    client_id: str
    client_name: Optional[str] = None
    rep_id: Optional[str] = None
    predicted_monthly: float
    confidence_score: int
    weighted_monthly: float
    age_days: int


class PipelineRevenueSummary(BaseModel):
    current_mrr: float
    active_client_count: int
    closing_soon: BucketStats = Field(default_factory=BucketStats)
    in_pipeline: BucketStats = Field(default_factory=BucketStats)
    at_risk: BucketStats = Field(default_factory=BucketStats)
    on_hold: OnHoldStats = Field(default_factory=OnHoldStats)
    projected_mrr: float = 0.0
    potential_growth: float = 0.0
    last_updated: Optional[dt.datetime] = None
    closing_soon_deals: List[ClosingSoonDeal] = Field(default_factory=list)


class PipelineAggregates(BaseModel):
    total_weighted_mrr: float = 0.0
    total_raw_mrr: float = 0.0
    total_weighted_onetime: float = 0.0
    total_raw_onetime: float = 0.0
    deal_count: int = 0
    avg_confidence: int = 0
    # weighted / raw MRR as a percentage
    pipeline_confidence_pct: float = 0.0


class _Accumulator:
    def __init__(self):
        self.weighted = 0.0
        self.raw = 0.0
        self.count = 0
        self.confidence_sum = 0

    def add(self, deal: Deal, confidence: int) -> None:
        self.weighted += deal.weighted_monthly or 0.0
        self.raw += deal.predicted_monthly
        self.count += 1
        self.confidence_sum += confidence

    def bucket(self) -> BucketStats:
        return BucketStats(
            weighted_mrr=round_half_up(self.weighted),
            raw_mrr=round_half_up(self.raw),
            deal_count=self.count,
            avg_confidence=int(round_half_up(self.confidence_sum / self.count)) if self.count else 0,
        )


def build_revenue_summary(
    deals: List[Deal],
    current_mrr: float,
    active_client_count: int,
    now: Optional[dt.datetime] = None,
) -> PipelineRevenueSummary:
    """
    Args:
        deals: Active (unarchived, sent) deals with their last written score
        current_mrr: MRR from live subscriptions
        active_client_count: Number of paying clients
        now: Evaluation time for snooze and age checks
    """
    now = now or dt.datetime.now(dt.UTC)

    closing_soon, in_pipeline, at_risk, on_hold = _Accumulator(), _Accumulator(), _Accumulator(), _Accumulator()
    closing_soon_deals: List[ClosingSoonDeal] = []
    last_updated: Optional[dt.datetime] = None

    for deal in sorted(deals, key=lambda d: d.confidence_score or 0, reverse=True):
        confidence = deal.confidence_score or 0
        age_days = deal.age_days(now)

        if deal.last_scored_at and (last_updated is None or deal.last_scored_at > last_updated):
            last_updated = deal.last_scored_at

        if deal.snoozed_until and deal.snoozed_until > now:
            on_hold.add(deal, confidence)
        elif confidence >= CLOSING_SOON_MIN_CONFIDENCE and age_days >= CLOSING_SOON_MIN_AGE_DAYS:
            closing_soon.add(deal, confidence)
            if len(closing_soon_deals) < CLOSING_SOON_TABLE_SIZE:
                closing_soon_deals.append(ClosingSoonDeal(
                    deal_id=deal.deal_id,
                    client_id=deal.client_id,
                    client_name=deal.client_name,
                    rep_id=deal.rep_id,
                    predicted_monthly=deal.predicted_monthly,
                    confidence_score=confidence,
                    weighted_monthly=deal.weighted_monthly or 0.0,
                    age_days=age_days,
                ))
        elif confidence >= IN_PIPELINE_MIN_CONFIDENCE:
            in_pipeline.add(deal, confidence)
        else:
            at_risk.add(deal, confidence)

    closing_soon_stats = closing_soon.bucket()
    in_pipeline_stats = in_pipeline.bucket()
    on_hold_stats = on_hold.bucket()

    projected = current_mrr + closing_soon_stats.weighted_mrr + in_pipeline_stats.weighted_mrr

    return PipelineRevenueSummary(
        current_mrr=current_mrr,
        active_client_count=active_client_count,
        closing_soon=closing_soon_stats,
        in_pipeline=in_pipeline_stats,
        at_risk=at_risk.bucket(),
        on_hold=OnHoldStats(
            weighted_mrr=on_hold_stats.weighted_mrr,
            raw_mrr=on_hold_stats.raw_mrr,
            deal_count=on_hold_stats.deal_count,
        ),
        projected_mrr=round_half_up(projected),
        potential_growth=round_half_up(projected - current_mrr),
        last_updated=last_updated,
        closing_soon_deals=closing_soon_deals,
    )


def build_pipeline_aggregates(deals: List[Deal]) -> PipelineAggregates:
    """Totals across a filtered set of pipeline deals."""
    if not deals:
        return PipelineAggregates()

    weighted_mrr = sum(d.weighted_monthly or 0.0 for d in deals)
    raw_mrr = sum(d.predicted_monthly for d in deals)

    return PipelineAggregates(
        total_weighted_mrr=round_half_up(weighted_mrr, 2),
        total_raw_mrr=round_half_up(raw_mrr, 2),
        total_weighted_onetime=round_half_up(sum(d.weighted_onetime or 0.0 for d in deals), 2),
        total_raw_onetime=round_half_up(sum(d.predicted_onetime for d in deals), 2),
        deal_count=len(deals),
        avg_confidence=int(round_half_up(sum(d.confidence_score or 0 for d in deals) / len(deals))),
        pipeline_confidence_pct=round_half_up(weighted_mrr / raw_mrr * 100, 1) if raw_mrr else 0.0,
    )
