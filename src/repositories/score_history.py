"""
Score History & Scoring Run Repositories
Append-only audit trail of recalculations and batch runs.
"""
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
import datetime as dt

from .base import BaseRepository
from ..models.deal import ScoreHistoryEntry, ScoringRun
from ..models.scoring import ScoringResult


class ScoreHistoryRepository(BaseRepository[ScoreHistoryEntry]):
    """Every score written for a deal, for trend charts."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "score_history", ScoreHistoryEntry)

    async def record(
        self,
        deal_id: str,
        result: ScoringResult,
        trigger_source: str,
        scored_at: dt.datetime,
    ) -> ScoreHistoryEntry:
        entry = ScoreHistoryEntry(
            deal_id=deal_id,
            confidence_score=result.confidence_score,
            confidence_percent=result.confidence_percent,
            weighted_monthly=result.weighted_monthly,
            weighted_onetime=result.weighted_onetime,
            trigger_source=trigger_source,
            breakdown=result,
            scored_at=scored_at,
        )
        return await self.create(entry)

    async def get_history(
        self,
        deal_id: str,
        since: Optional[dt.datetime] = None,
        limit: int = 365,
    ) -> List[ScoreHistoryEntry]:
        """History for a deal in chronological order."""
        filter_dict = {"deal_id": deal_id}
        if since:
            filter_dict["scored_at"] = {"$gte": since}

        return await self.find_many(
            filter_dict=filter_dict,
            limit=limit,
            sort=[("scored_at", 1)],
        )


class ScoringRunRepository(BaseRepository[ScoringRun]):
    """Audit log of batch recalculation runs."""

    # Errors stored per run document
    MAX_STORED_ERRORS = 50

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "scoring_runs", ScoringRun)

    async def log_run(self, run: ScoringRun) -> ScoringRun:
        run.errors = run.errors[:self.MAX_STORED_ERRORS]
        return await self.create(run)

    async def get_recent_runs(self, limit: int = 20) -> List[ScoringRun]:
        return await self.find_many({}, limit=limit, sort=[("completed_at", -1)])
