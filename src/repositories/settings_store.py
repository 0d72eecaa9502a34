"""
Scoring Config Repository
Loads the tenant scoring configuration from the settings collection.
"""
from typing import Any, Mapping, Union
from motor.motor_asyncio import AsyncIOMotorDatabase
import datetime as dt

from ..config import settings
from ..models.scoring_config import (
    DEFAULT_SCORING_CONFIG,
    ScoringConfig,
    load_scoring_config,
)
from ..utils.observability import logger


class ScoringConfigRepository:
    """
    Reads and writes the `pipeline_scoring_config` settings document.

    A missing document means the tenant never customised scoring and the
    defaults apply. A present but malformed document is an error: scoring
    with a half-broken table would publish wrong projections.
    """

    def __init__(self, database: AsyncIOMotorDatabase, key: str = settings.scoring_config_key):
        self.collection = database["settings"]
        self.key = key

    async def load(self) -> ScoringConfig:
        """
        Raises:
            ScoringConfigError: If the stored document fails validation
        """
        doc = await self.collection.find_one({"key": self.key})

        if doc is None or doc.get("value") is None:
            logger.info(f"No '{self.key}' settings document, using default scoring config")
            return DEFAULT_SCORING_CONFIG

        config = load_scoring_config(doc["value"])
        logger.debug(f"Loaded scoring config '{self.key}'")
        return config

    async def save(self, raw: Union[ScoringConfig, Mapping[str, Any]]) -> ScoringConfig:
        """Validate and store a new configuration. Nothing is written if it is invalid."""
        config = load_scoring_config(raw)

        await self.collection.update_one(
            {"key": self.key},
            {"$set": {"value": config.model_dump(), "updated_at": dt.datetime.now(dt.UTC)}},
            upsert=True,
        )

        logger.info(f"Saved scoring config '{self.key}'")
        return config
