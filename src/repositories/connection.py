"""
MongoDB Connection Management
Singleton Motor client for the scoring collections.
"""
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError
from typing import Any, Dict, List, Optional, Tuple
from ..config import settings
from ..utils.observability import logger

IndexSpec = Tuple[Any, Dict[str, Any]]

# collection -> [(keys, create_index options)]
SCORING_INDEXES: Dict[str, List[IndexSpec]] = {
    "deals": [
        ("deal_id", {"unique": True, "name": "idx_deal_id_unique"}),
        # Stale sweep: active, unarchived, least recently scored first
        ([("status", 1), ("archived_at", 1), ("last_scored_at", 1)], {"name": "idx_status_archived_scored"}),
        ([("rep_id", 1), ("confidence_score", -1)], {"name": "idx_rep_confidence"}),
    ],
    "score_history": [
        ([("deal_id", 1), ("scored_at", 1)], {"name": "idx_deal_history"}),
    ],
    "score_events": [
        ([("processed_at", 1), ("deal_id", 1)], {"name": "idx_event_pending"}),
    ],
    "scoring_runs": [
        ([("completed_at", -1)], {"name": "idx_run_completed"}),
    ],
    "settings": [
        ("key", {"unique": True, "name": "idx_settings_key_unique"}),
    ],
}


class DatabaseManager:
    """
    Process-wide Motor client shared by the API, the CLI and setup scripts.
    """

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[AsyncIOMotorClient] = None
    _database: Optional[AsyncIOMotorDatabase] = None

    def __new__(cls) -> "DatabaseManager":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def connect(self) -> None:
        """
        Open the client (tz-aware, pooled). A healthy existing client is
        reused; one bound to a dead loop or lost server is rebuilt.
        """
        if self._client is not None:
            try:
                await self._client.admin.command("ping")
                return
            except (RuntimeError, PyMongoError) as e:
                logger.warning(f"Dropping stale MongoDB client: {e}")
                self._client = None
                self._database = None

        logger.info(
            f"Connecting to MongoDB database '{settings.mongodb_database}'",
            extra={"max_pool_size": settings.mongodb_max_pool_size, "environment": settings.environment}
        )
        self._client = AsyncIOMotorClient(
            settings.mongodb_uri,
            maxPoolSize=settings.mongodb_max_pool_size,
            minPoolSize=settings.mongodb_min_pool_size,
            serverSelectionTimeoutMS=settings.mongodb_server_selection_timeout_ms,
            tz_aware=True,
        )
        self._database = self._client[settings.mongodb_database]

    async def disconnect(self) -> None:
        if self._client is None:
            return

        logger.info("Closing MongoDB connection")
        self._client.close()
        self._client = None
        self._database = None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._database is None:
            raise RuntimeError("Database not connected. Call await db_manager.connect() first.")
        return self._database

    @property
    def client(self) -> AsyncIOMotorClient:
        if self._client is None:
            raise RuntimeError("Database client not connected. Call await db_manager.connect() first.")
        return self._client

    async def create_indexes(self) -> None:
        """Create the scoring indexes. Safe to run on every startup."""
        db = self.database

        for collection_name, indexes in SCORING_INDEXES.items():
            for keys, options in indexes:
                await db[collection_name].create_index(keys, **options)

        logger.info(f"MongoDB indexes ensured for {len(SCORING_INDEXES)} collections")


# Singleton instance
db_manager = DatabaseManager()
