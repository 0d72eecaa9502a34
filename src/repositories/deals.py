"""
Deal Repository
Pipeline deal persistence and the queries that feed scoring.
"""
from typing import Any, Dict, List, Literal, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
import datetime as dt

from .base import BaseRepository
from ..models.deal import ArchiveReason, Communication, Deal
from ..models.scoring import CallScoreInputs, DealStatus, FrozenPenalties, ScoringResult
from ..utils.observability import logger

# Deals still being worked; accepted and closed_lost scores are fixed
ACTIVE_STATUSES = [DealStatus.SENT.value, DealStatus.DECLINED.value]

ArchivedFilter = Literal["active", "archived", "all"]


class DealNotFoundError(Exception):
    """Raised when a deal id does not resolve to a stored deal."""

    def __init__(self, deal_id: str):
        super().__init__(f"Deal not found: {deal_id}")
        self.deal_id = deal_id


class DealRepository(BaseRepository[Deal]):
    """
    Repository for Deal persistence and pipeline queries.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "deals", Deal)

    async def get_by_deal_id(self, deal_id: str) -> Optional[Deal]:
        return await self.find_one({"deal_id": deal_id})

    async def get_active_deal_ids(self) -> List[str]:
        """Ids of every unarchived deal in an active pipeline status."""
        return await self.find_values(
            "deal_id", {"status": {"$in": ACTIVE_STATUSES}, "archived_at": None}
        )

    async def get_stale_deal_ids(self, now: dt.datetime, stale_after_hours: int) -> List[str]:
        """
        Active deals whose score is older than stale_after_hours
        (or was never written), least recently scored first.
        """
        cutoff = now - dt.timedelta(hours=stale_after_hours)
        filter_dict = {
            "status": {"$in": ACTIVE_STATUSES},
            "archived_at": None,
            "$or": [
                {"last_scored_at": None},
                {"last_scored_at": {"$lt": cutoff}},
            ],
        }
        return await self.find_values("deal_id", filter_dict, sort=[("last_scored_at", 1)])

    async def get_pipeline_deals(
        self,
        archived: ArchivedFilter = "active",
        rep_id: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Deal]:
        """Sent deals for pipeline views, highest confidence first."""
        filter_dict: Dict[str, Any] = {"status": DealStatus.SENT.value}

        if archived == "active":
            filter_dict["archived_at"] = None
        elif archived == "archived":
            filter_dict["archived_at"] = {"$ne": None}

        if rep_id:
            filter_dict["rep_id"] = rep_id

        return await self.find_many(
            filter_dict=filter_dict,
            limit=limit,
            sort=[("confidence_score", -1)],
        )

    async def write_score(self, deal_id: str, result: ScoringResult, scored_at: dt.datetime) -> None:
        """
        Store the latest score on the deal for display.

        Raises:
            DealNotFoundError: If no deal matches deal_id
        """
        await self._update_deal(deal_id, {
            "confidence_score": result.confidence_score,
            "confidence_percent": result.confidence_percent,
            "weighted_monthly": result.weighted_monthly,
            "weighted_onetime": result.weighted_onetime,
            "base_score": result.base_score,
            "total_penalties": result.total_penalties,
            "total_bonus": result.total_bonus,
            "penalty_breakdown": result.penalty_breakdown.model_dump(),
            "last_scored_at": scored_at,
        })

        logger.debug(
            f"Wrote score for {deal_id}",
            extra={"deal_id": deal_id, "confidence_score": result.confidence_score}
        )

    async def set_snooze(
        self,
        deal_id: str,
        snoozed_until: dt.datetime,
        snoozed_at: dt.datetime,
        frozen_penalties: FrozenPenalties,
        reason: Optional[str] = None,
    ) -> None:
        await self._update_deal(deal_id, {
            "snoozed_until": snoozed_until,
            "snoozed_at": snoozed_at,
            "snooze_reason": reason,
            "frozen_penalties": frozen_penalties.model_dump(),
        })

    async def end_snooze(self, deal_id: str, ended_at: dt.datetime) -> None:
        """Snooze over: snoozed_until becomes the new accrual baseline."""
        await self._update_deal(deal_id, {
            "snoozed_until": ended_at,
            "snoozed_at": None,
            "snooze_reason": None,
            "frozen_penalties": None,
        })

    async def set_archived(
        self,
        deal_id: str,
        archived_at: dt.datetime,
        reason: ArchiveReason,
        notes: Optional[str] = None,
    ) -> None:
        await self._update_deal(deal_id, {
            "archived_at": archived_at,
            "archive_reason": reason.value,
            "archive_notes": notes,
        })

    async def set_revived(self, deal_id: str, revived_at: dt.datetime) -> None:
        """Back into the pipeline: clears archive and snooze, moves the penalty baseline."""
        await self._update_deal(deal_id, {
            "revived_at": revived_at,
            "archived_at": None,
            "archive_reason": None,
            "archive_notes": None,
            "snoozed_until": None,
            "snoozed_at": None,
            "snooze_reason": None,
            "frozen_penalties": None,
        })

    async def set_call_scores(self, deal_id: str, call_scores: CallScoreInputs) -> None:
        await self._update_deal(deal_id, {"call_scores": call_scores.model_dump()})

    async def add_communication(self, deal_id: str, communication: Communication) -> None:
        """
        Append one logged contact to the deal.

        Raises:
            DealNotFoundError: If no deal matches deal_id
        """
        result = await self.collection.update_one(
            {"deal_id": deal_id},
            {
                "$push": {"communications": communication.model_dump()},
                "$set": {"updated_at": dt.datetime.now(dt.UTC)},
            },
        )
        if result.matched_count == 0:
            raise DealNotFoundError(deal_id)

    async def set_status(
        self,
        deal_id: str,
        status: DealStatus,
        sent_at: Optional[dt.datetime] = None,
        closed_lost_at: Optional[dt.datetime] = None,
        closed_lost_reason: Optional[str] = None,
    ) -> None:
        """Move the deal to status; closed-lost fields are cleared unless given."""
        fields: Dict[str, Any] = {
            "status": status.value,
            "closed_lost_at": closed_lost_at,
            "closed_lost_reason": closed_lost_reason,
        }
        if sent_at is not None:
            fields["sent_at"] = sent_at
        await self._update_deal(deal_id, fields)

    async def _update_deal(self, deal_id: str, fields: Dict[str, Any]) -> None:
        if await self.set_fields({"deal_id": deal_id}, fields) == 0:
            raise DealNotFoundError(deal_id)
