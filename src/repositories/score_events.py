"""
Score Event Repository
Queue of deals touched by tracking events (opens, views, replies)
that the next batch run must rescore.
"""
from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase
import datetime as dt

from .base import BaseRepository
from ..models.deal import ScoreEvent
from ..utils.observability import logger


class ScoreEventRepository(BaseRepository[ScoreEvent]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "score_events", ScoreEvent)

    async def enqueue(self, deal_id: str, event_type: str) -> ScoreEvent:
        event = await self.create(ScoreEvent(deal_id=deal_id, event_type=event_type))
        logger.debug(f"Queued score event for {deal_id}", extra={"event_type": event_type})
        return event

    async def get_pending_deal_ids(self) -> List[str]:
        """Distinct deals with at least one unprocessed event."""
        return await self.collection.distinct("deal_id", {"processed_at": None})

    async def mark_processed(self, deal_ids: List[str], processed_at: dt.datetime) -> int:
        """
        Mark the pending events of the given deals as processed.

        Returns:
            Number of events updated
        """
        if not deal_ids:
            return 0

        result = await self.collection.update_many(
            {"deal_id": {"$in": deal_ids}, "processed_at": None},
            {"$set": {"processed_at": processed_at, "updated_at": processed_at}},
        )
        return result.modified_count
