"""
Score Recalculation

Main entry point whenever scoring-relevant data changes:
load deal -> assemble input -> score -> write score + history entry.
"""
import asyncio
import datetime as dt
import time
from typing import Dict, Iterable, Optional

from src.core.scoring_engine import ScoringError, compute_pipeline_score
from src.models.scoring import TERMINAL_STATUSES, ScoringResult
from src.models.scoring_config import ScoringConfig
from src.repositories.deals import DealNotFoundError, DealRepository
from src.repositories.score_history import ScoreHistoryRepository
from src.repositories.settings_store import ScoringConfigRepository
from src.services.input_assembler import assemble_scoring_input
from src.utils.metrics import metrics
from src.utils.observability import logger, log_score_computation


class ScoreRecalculator:
    """
    Recalculates and persists deal confidence scores.

    Usage:
        recalculator = ScoreRecalculator(deal_repo, history_repo, config_repo)
        result = await recalculator.recalculate("rec-123", trigger_source="invite_opened")
    """

    def __init__(
        self,
        deal_repo: DealRepository,
        history_repo: ScoreHistoryRepository,
        config_repo: ScoringConfigRepository,
    ):
        self.deal_repo = deal_repo
        self.history_repo = history_repo
        self.config_repo = config_repo

    async def score_deal(
        self,
        deal_id: str,
        now: Optional[dt.datetime] = None,
        config: Optional[ScoringConfig] = None,
    ) -> ScoringResult:
        """
        Compute a deal's current score without persisting it.

        Raises:
            DealNotFoundError: If the deal does not exist
            ScoringError: If the deal's call scores are not configured
            ScoringConfigError: If the stored tenant config is malformed
        """
        deal = await self.deal_repo.get_by_deal_id(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)

        now = now or dt.datetime.now(dt.UTC)
        config = config or await self.config_repo.load()
        return compute_pipeline_score(assemble_scoring_input(deal, config, now))

    async def recalculate(
        self,
        deal_id: str,
        trigger_source: str = "unknown",
        now: Optional[dt.datetime] = None,
        config: Optional[ScoringConfig] = None,
        skip_terminal: bool = True,
    ) -> Optional[ScoringResult]:
        """
        Recalculate, store and record the score of one deal.

        Args:
            deal_id: Deal to rescore
            trigger_source: What caused the rescore (kept in history)
            now: Evaluation time (defaults to the current time)
            config: Scoring config; loaded from the settings store when omitted
            skip_terminal: Leave accepted/closed_lost deals untouched

        Returns:
            The new ScoringResult, or None when the deal was skipped

        Raises:
            DealNotFoundError: If the deal does not exist
            ScoringError: If the deal cannot be scored with this config
        """
        started = time.perf_counter()

        deal = await self.deal_repo.get_by_deal_id(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)

        if skip_terminal and deal.status in TERMINAL_STATUSES:
            logger.debug(f"Skipping {deal_id}: status {deal.status} has a fixed score")
            return None

        now = now or dt.datetime.now(dt.UTC)
        config = config or await self.config_repo.load()

        try:
            result = compute_pipeline_score(assemble_scoring_input(deal, config, now))
        except ScoringError as e:
            metrics.scoring_errors.inc(error=type(e).__name__)
            logger.error(f"Cannot score {deal_id}: {e}")
            raise

        await self.deal_repo.write_score(deal_id, result, scored_at=now)
        await self.history_repo.record(deal_id, result, trigger_source, scored_at=now)

        metrics.scores_computed.inc(status=deal.status.value, trigger=trigger_source)
        metrics.confidence.observe(result.confidence_score)

        log_score_computation(
            deal_id=deal_id,
            trigger_source=trigger_source,
            confidence_score=result.confidence_score,
            base_score=result.base_score,
            total_penalties=result.total_penalties,
            total_bonus=result.total_bonus,
            duration_ms=(time.perf_counter() - started) * 1000,
            penalties_frozen=result.penalties_frozen,
        )

        return result

    async def recalculate_many(
        self,
        deal_ids: Iterable[str],
        trigger_source: str = "unknown",
        now: Optional[dt.datetime] = None,
        config: Optional[ScoringConfig] = None,
    ) -> Dict[str, Optional[ScoringResult]]:
        """
        Rescore several deals concurrently with one config.

        Any failure propagates once every deal has finished.
        """
        deal_ids = list(deal_ids)
        now = now or dt.datetime.now(dt.UTC)
        config = config or await self.config_repo.load()

        results = await asyncio.gather(
            *(self.recalculate(deal_id, trigger_source, now=now, config=config) for deal_id in deal_ids),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, Exception):
                raise result

        return dict(zip(deal_ids, results))
