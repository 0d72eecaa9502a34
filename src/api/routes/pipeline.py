"""
Pipeline Endpoints

Deal scoring, lifecycle actions, revenue projections and scoring config.
Every route requires the X-Admin-Token header when ADMIN_API_TOKEN is set.
"""
import datetime as dt
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from loguru import logger

from src.api.dependencies import (
    get_batch_recalculator,
    get_config_repo,
    get_deal_repo,
    get_event_repo,
    get_history_repo,
    get_lifecycle,
    get_recalculator,
    require_admin_token,
)
from src.api.models.pipeline import (
    ArchiveRequest,
    BatchRunResponse,
    CommunicationRequest,
    DealScoreResponse,
    ScoreEventRequest,
    ScoreEventResponse,
    ScoreHistoryResponse,
    SnoozeRequest,
    StatusChangeRequest,
)
from src.core.scoring_engine import ScoringError, compute_pipeline_score
from src.models.deal import Communication
from src.models.scoring import CallScoreInputs, ScoringInput, ScoringResult
from src.models.scoring_config import ScoringConfig, ScoringConfigError
from src.repositories import (
    DealNotFoundError,
    DealRepository,
    ScoreEventRepository,
    ScoreHistoryRepository,
    ScoringConfigRepository,
)
from src.services import (
    BatchRecalculator,
    DealLifecycleService,
    DealStateError,
    PipelineAggregates,
    PipelineRevenueSummary,
    ScoreRecalculator,
    build_pipeline_aggregates,
    build_revenue_summary,
)

router = APIRouter(
    prefix="/pipeline",
    tags=["Pipeline"],
    dependencies=[Depends(require_admin_token)],
)


@contextmanager
def domain_errors():
    """Translate service exceptions into HTTP errors."""
    try:
        yield
    except DealNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DealStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ScoringConfigError as e:
        logger.error(f"Scoring config rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(e), "errors": e.errors},
        )
    except ScoringError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


# ============================================
# SCORING
# ============================================

@router.post("/score", response_model=ScoringResult)
async def score_input(scoring_input: ScoringInput):
    """
    Score a complete deal snapshot without touching the database.

    The body carries the deal, call scores, invite milestones and stats,
    communications, the scoring config and the evaluation time.
    """
    with domain_errors():
        return compute_pipeline_score(scoring_input)


@router.get("/deals/{deal_id}/score", response_model=ScoringResult)
async def preview_deal_score(
    deal_id: str,
    recalculator: ScoreRecalculator = Depends(get_recalculator),
):
    """Current score of a stored deal, computed but not persisted."""
    with domain_errors():
        return await recalculator.score_deal(deal_id)


@router.post("/deals/{deal_id}/recalculate", response_model=DealScoreResponse)
async def recalculate_deal(
    deal_id: str,
    trigger_source: str = Query("manual", max_length=100),
    recalculator: ScoreRecalculator = Depends(get_recalculator),
):
    """Rescore one deal now and record the result in its history."""
    with domain_errors():
        result = await recalculator.recalculate(deal_id, trigger_source=trigger_source)
    return DealScoreResponse(deal_id=deal_id, result=result)


@router.get("/deals/{deal_id}/score-history", response_model=ScoreHistoryResponse)
async def score_history(
    deal_id: str,
    since: Optional[dt.datetime] = Query(None),
    limit: int = Query(365, ge=1, le=1000),
    history_repo: ScoreHistoryRepository = Depends(get_history_repo),
):
    """Recorded scores for a deal, oldest first."""
    entries = await history_repo.get_history(deal_id, since=since, limit=limit)
    return ScoreHistoryResponse(deal_id=deal_id, entries=entries)


@router.post(
    "/deals/{deal_id}/events",
    response_model=ScoreEventResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def queue_score_event(
    deal_id: str,
    event: ScoreEventRequest,
    event_repo: ScoreEventRepository = Depends(get_event_repo),
):
    """Queue a tracking event; the deal is rescored on the next event-queue run."""
    queued = await event_repo.enqueue(deal_id, event.event_type)
    return ScoreEventResponse(deal_id=deal_id, event_type=event.event_type, queued_at=queued.created_at)


# ============================================
# LIFECYCLE
# ============================================

@router.post("/deals/{deal_id}/snooze", response_model=DealScoreResponse)
async def snooze_deal(
    deal_id: str,
    request: SnoozeRequest,
    lifecycle: DealLifecycleService = Depends(get_lifecycle),
):
    with domain_errors():
        result = await lifecycle.snooze(deal_id, request.snoozed_until, reason=request.reason)
    return DealScoreResponse(deal_id=deal_id, result=result)


@router.post("/deals/{deal_id}/unsnooze", response_model=DealScoreResponse)
async def unsnooze_deal(
    deal_id: str,
    lifecycle: DealLifecycleService = Depends(get_lifecycle),
):
    with domain_errors():
        result = await lifecycle.unsnooze(deal_id)
    return DealScoreResponse(deal_id=deal_id, result=result)


@router.post("/deals/{deal_id}/archive", status_code=status.HTTP_204_NO_CONTENT)
async def archive_deal(
    deal_id: str,
    request: ArchiveRequest,
    lifecycle: DealLifecycleService = Depends(get_lifecycle),
):
    with domain_errors():
        await lifecycle.archive(deal_id, request.reason, notes=request.notes)


@router.post("/deals/{deal_id}/revive", response_model=DealScoreResponse)
async def revive_deal(
    deal_id: str,
    lifecycle: DealLifecycleService = Depends(get_lifecycle),
):
    with domain_errors():
        result = await lifecycle.revive(deal_id)
    return DealScoreResponse(deal_id=deal_id, result=result)


@router.post("/deals/{deal_id}/call-scores", response_model=DealScoreResponse)
async def update_call_scores(
    deal_id: str,
    call_scores: CallScoreInputs,
    lifecycle: DealLifecycleService = Depends(get_lifecycle),
):
    """Replace the rep's four call judgments and rescore."""
    with domain_errors():
        result = await lifecycle.set_call_scores(deal_id, call_scores)
    return DealScoreResponse(deal_id=deal_id, result=result)


@router.post(
    "/deals/{deal_id}/communications",
    response_model=DealScoreResponse,
    status_code=status.HTTP_201_CREATED,
)
async def log_communication(
    deal_id: str,
    request: CommunicationRequest,
    lifecycle: DealLifecycleService = Depends(get_lifecycle),
):
    communication = Communication(
        direction=request.direction,
        channel=request.channel,
        contact_at=request.contact_at or dt.datetime.now(dt.UTC),
        notes=request.notes,
    )
    with domain_errors():
        result = await lifecycle.log_communication(deal_id, communication)
    return DealScoreResponse(deal_id=deal_id, result=result)


@router.patch("/deals/{deal_id}/status", response_model=DealScoreResponse)
async def change_deal_status(
    deal_id: str,
    request: StatusChangeRequest,
    lifecycle: DealLifecycleService = Depends(get_lifecycle),
):
    """Move a deal along the pipeline; accepted and closed_lost are final."""
    with domain_errors():
        result = await lifecycle.change_status(deal_id, request.status, reason=request.reason)
    return DealScoreResponse(deal_id=deal_id, result=result)


# ============================================
# BATCH
# ============================================

@router.post("/refresh-scores", response_model=BatchRunResponse)
async def refresh_scores(batch: BatchRecalculator = Depends(get_batch_recalculator)):
    """Rescore every active deal, e.g. after a config change."""
    with domain_errors():
        result = await batch.recalculate_all_active(trigger_source="manual_refresh")
    return BatchRunResponse(**asdict(result))


@router.post("/run-daily")
async def run_daily(batch: BatchRecalculator = Depends(get_batch_recalculator)) -> Dict[str, Any]:
    """Run the scheduled job on demand: event queue, then stale scores."""
    with domain_errors():
        daily = await batch.run_daily()
    return {
        "queue_results": BatchRunResponse(**asdict(daily.queue_results)),
        "stale_results": BatchRunResponse(**asdict(daily.stale_results)),
        "total_duration_ms": daily.total_duration_ms,
    }


# ============================================
# REVENUE
# ============================================

@router.get("/revenue-summary", response_model=PipelineRevenueSummary)
async def revenue_summary(
    current_mrr: float = Query(0.0, ge=0, description="MRR from live subscriptions"),
    active_client_count: int = Query(0, ge=0),
    deal_repo: DealRepository = Depends(get_deal_repo),
):
    """Projected MRR with pipeline deals bucketed by confidence."""
    deals = await deal_repo.get_pipeline_deals(archived="active")
    return build_revenue_summary(deals, current_mrr, active_client_count)


@router.get("/aggregates", response_model=PipelineAggregates)
async def pipeline_aggregates(
    archived: Literal["active", "archived", "all"] = Query("active"),
    rep_id: Optional[str] = Query(None),
    deal_repo: DealRepository = Depends(get_deal_repo),
):
    deals = await deal_repo.get_pipeline_deals(archived=archived, rep_id=rep_id)
    return build_pipeline_aggregates(deals)


# ============================================
# CONFIG
# ============================================

@router.get("/config", response_model=ScoringConfig)
async def get_scoring_config(config_repo: ScoringConfigRepository = Depends(get_config_repo)):
    with domain_errors():
        return await config_repo.load()


@router.put("/config", response_model=ScoringConfig)
async def put_scoring_config(
    raw: Dict[str, Any] = Body(...),
    config_repo: ScoringConfigRepository = Depends(get_config_repo),
):
    """
    Replace the tenant scoring config. The document is validated before
    anything is written; stored scores change on the next refresh.
    """
    with domain_errors():
        return await config_repo.save(raw)
