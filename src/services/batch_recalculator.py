"""
Batch Score Recalculation

Scheduled work that keeps time-based decay current:
    1. Rescore deals queued by tracking events
    2. Rescore stale active deals (not scored within the stale window)
    3. Full refresh of every active deal after a config change

Failures are collected per deal; one bad deal never stops a run.
"""
import asyncio
import datetime as dt
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pymongo.errors import PyMongoError

from src.config import get_settings
from src.models.deal import ScoringRun, ScoringRunType
from src.models.scoring_config import ScoringConfig
from src.repositories.deals import DealRepository
from src.repositories.score_events import ScoreEventRepository
from src.repositories.score_history import ScoringRunRepository
from src.services.score_recalculator import ScoreRecalculator
from src.utils.metrics import metrics
from src.utils.observability import logger


@dataclass
class BatchRecalculateResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: float = 0.0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def error_rate(self) -> float:
        return self.failed / self.processed if self.processed else 0.0


@dataclass
class DailyBatchResult:
    queue_results: BatchRecalculateResult
    stale_results: BatchRecalculateResult
    total_duration_ms: float


class BatchRecalculator:
    """
    Runs recalculation over many deals in fixed-size concurrent batches.

    Usage:
        batch = BatchRecalculator(recalculator, deal_repo, event_repo, run_repo)
        daily = await batch.run_daily()
    """

    def __init__(
        self,
        recalculator: ScoreRecalculator,
        deal_repo: DealRepository,
        event_repo: ScoreEventRepository,
        run_repo: ScoringRunRepository,
        batch_size: Optional[int] = None,
        batch_delay_seconds: Optional[float] = None,
        stale_after_hours: Optional[int] = None,
        error_rate_alert_threshold: Optional[float] = None,
    ):
        settings = get_settings()
        self.recalculator = recalculator
        self.deal_repo = deal_repo
        self.event_repo = event_repo
        self.run_repo = run_repo
        self.batch_size = batch_size or settings.score_batch_size
        self.batch_delay_seconds = (
            settings.score_batch_delay_seconds if batch_delay_seconds is None else batch_delay_seconds
        )
        self.stale_after_hours = stale_after_hours or settings.score_stale_after_hours
        self.error_rate_alert_threshold = (
            settings.score_error_rate_alert_threshold
            if error_rate_alert_threshold is None else error_rate_alert_threshold
        )

    async def process_event_queue(self, now: Optional[dt.datetime] = None) -> BatchRecalculateResult:
        """
        Rescore every deal with pending tracking events, then mark them
        processed. Events of deals that failed stay pending for the next run.
        """
        now = now or dt.datetime.now(dt.UTC)
        deal_ids = await self.event_repo.get_pending_deal_ids()

        if not deal_ids:
            logger.info("No queued score events to process")
            return BatchRecalculateResult()

        logger.info(f"Processing {len(deal_ids)} deals from the score event queue")
        result = await self._run(deal_ids, "tracking_event", now)

        failed = {error["deal_id"] for error in result.errors}
        rescored = [deal_id for deal_id in deal_ids if deal_id not in failed]
        if rescored:
            await self.event_repo.mark_processed(rescored, processed_at=now)
        await self._finish(ScoringRunType.EVENT_QUEUE, result)
        return result

    async def recalculate_stale(self, now: Optional[dt.datetime] = None) -> BatchRecalculateResult:
        """Rescore active deals whose score is older than the stale window."""
        now = now or dt.datetime.now(dt.UTC)
        deal_ids = await self.deal_repo.get_stale_deal_ids(now, self.stale_after_hours)

        if not deal_ids:
            logger.info("No stale scores to recalculate")
            return BatchRecalculateResult()

        logger.info(f"Recalculating {len(deal_ids)} stale scores")
        result = await self._run(deal_ids, "daily_cron", now)
        await self._finish(ScoringRunType.DAILY_CRON, result)
        return result

    async def recalculate_all_active(
        self,
        trigger_source: str = "manual_refresh",
        now: Optional[dt.datetime] = None,
    ) -> BatchRecalculateResult:
        """Rescore every active deal regardless of when it was last scored."""
        now = now or dt.datetime.now(dt.UTC)
        deal_ids = await self.deal_repo.get_active_deal_ids()

        if not deal_ids:
            logger.info("No active deals to recalculate")
            return BatchRecalculateResult()

        logger.info(f"Recalculating all {len(deal_ids)} active deals")
        result = await self._run(deal_ids, trigger_source, now)
        await self._finish(ScoringRunType.MANUAL, result)
        return result

    async def run_daily(self, now: Optional[dt.datetime] = None) -> DailyBatchResult:
        """The scheduled job: event queue first, then stale scores."""
        started = time.perf_counter()
        now = now or dt.datetime.now(dt.UTC)
        logger.info(f"Starting daily batch recalculation at {now.isoformat()}")

        queue_results = await self.process_event_queue(now)
        stale_results = await self.recalculate_stale(now)

        daily = DailyBatchResult(
            queue_results=queue_results,
            stale_results=stale_results,
            total_duration_ms=(time.perf_counter() - started) * 1000,
        )

        logger.bind(
            total_duration_ms=round(daily.total_duration_ms, 2),
            queue_processed=queue_results.processed,
            queue_failed=queue_results.failed,
            stale_processed=stale_results.processed,
            stale_failed=stale_results.failed,
        ).info("Daily batch complete")

        return daily

    async def _run(self, deal_ids: List[str], trigger_source: str, now: dt.datetime) -> BatchRecalculateResult:
        started = time.perf_counter()
        result = BatchRecalculateResult(processed=len(deal_ids))

        # One config for the whole run; a broken config aborts before any write
        config = await self.recalculator.config_repo.load()

        total_batches = (len(deal_ids) + self.batch_size - 1) // self.batch_size
        for batch_num, offset in enumerate(range(0, len(deal_ids), self.batch_size), start=1):
            batch = deal_ids[offset:offset + self.batch_size]
            logger.debug(f"Processing batch {batch_num}/{total_batches} ({len(batch)} deals)")

            await asyncio.gather(*(
                self._recalculate_one(deal_id, trigger_source, now, config, result)
                for deal_id in batch
            ))

            if batch_num < total_batches and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

        result.duration_ms = (time.perf_counter() - started) * 1000
        return result

    async def _recalculate_one(
        self,
        deal_id: str,
        trigger_source: str,
        now: dt.datetime,
        config: ScoringConfig,
        result: BatchRecalculateResult,
    ) -> None:
        try:
            scored = await self.recalculator.recalculate(deal_id, trigger_source, now=now, config=config)
        except Exception as e:
            result.failed += 1
            result.errors.append({"deal_id": deal_id, "error": str(e)})
            logger.error(f"Failed to recalculate {deal_id}: {e}")
            return

        if scored is None:
            result.skipped += 1
        else:
            result.succeeded += 1

    async def _finish(self, run_type: ScoringRunType, result: BatchRecalculateResult) -> None:
        metrics.batch_runs.inc(run_type=run_type.value)
        metrics.batch_failures.inc(result.failed, run_type=run_type.value)
        metrics.batch_duration.observe(result.duration_ms / 1000, run_type=run_type.value)
        metrics.last_batch_error_rate.set(result.error_rate, run_type=run_type.value)

        if result.error_rate > self.error_rate_alert_threshold:
            logger.bind(
                alert_type="pipeline_scoring_high_error_rate",
                severity="warning",
                error_rate=result.error_rate,
                total_processed=result.processed,
                total_failed=result.failed,
                errors=result.errors[:10],
            ).error(f"[ALERT] {run_type.value}: high scoring error rate ({result.error_rate:.0%})")

        logger.info(
            f"{run_type.value} run finished in {result.duration_ms:.0f}ms: "
            f"{result.succeeded} succeeded, {result.skipped} skipped, {result.failed} failed"
        )

        try:
            await self.run_repo.log_run(ScoringRun(
                run_type=run_type,
                processed=result.processed,
                succeeded=result.succeeded,
                failed=result.failed,
                skipped=result.skipped,
                duration_ms=result.duration_ms,
                errors=result.errors,
            ))
        except PyMongoError as e:
            # The run itself succeeded; only its audit row is lost
            logger.error(f"Failed to log {run_type.value} scoring run: {e}")
