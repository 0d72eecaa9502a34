"""
Generic Repository Base Class
Typed async access to one MongoDB collection of scoring documents.
"""
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
import datetime as dt

from ..models.base import MongoBaseModel
from ..utils.observability import logger

T = TypeVar("T", bound=MongoBaseModel)

Filter = Dict[str, Any]
SortSpec = List[tuple]


class BaseRepository(Generic[T]):
    """
    Generic async repository for MongoDB collections.

    Usage:
        class ScoreEventRepository(BaseRepository[ScoreEvent]):
            def __init__(self, database: AsyncIOMotorDatabase):
                super().__init__(database, "score_events", ScoreEvent)
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        collection_name: str,
        model_class: Type[T]
    ):
        self.collection: AsyncIOMotorCollection = database[collection_name]
        self.collection_name = collection_name
        self.model_class = model_class

    async def create(self, document: T) -> T:
        """
        Insert a document, stamping created_at/updated_at.

        Returns:
            The same document with `id` set to the inserted ObjectId
        """
        now = dt.datetime.now(dt.UTC)
        document.created_at = now
        document.updated_at = now

        result = await self.collection.insert_one(
            document.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)
        )
        document.id = str(result.inserted_id)

        logger.debug(f"Inserted {self.model_class.__name__} into {self.collection_name}")
        return document

    async def find_one(self, filter_dict: Filter) -> Optional[T]:
        doc = await self.collection.find_one(filter_dict)
        return self._to_model(doc) if doc is not None else None

    async def find_many(
        self,
        filter_dict: Filter,
        limit: int = 100,
        sort: Optional[SortSpec] = None
    ) -> List[T]:
        """
        Documents matching the filter as models.

        Args:
            filter_dict: MongoDB query filter
            limit: Maximum number of documents to return
            sort: List of (field, direction) tuples
        """
        cursor = self.collection.find(filter_dict).limit(limit)
        if sort:
            cursor = cursor.sort(sort)

        docs = await cursor.to_list(length=limit)
        return [self._to_model(doc) for doc in docs]

    async def find_values(
        self,
        field: str,
        filter_dict: Filter,
        sort: Optional[SortSpec] = None
    ) -> List[Any]:
        """One field of every matching document, without building models."""
        cursor = self.collection.find(filter_dict, {field: 1})
        if sort:
            cursor = cursor.sort(sort)

        docs = await cursor.to_list(length=None)
        return [doc[field] for doc in docs]

    async def set_fields(self, filter_dict: Filter, fields: Dict[str, Any]) -> int:
        """
        `$set` fields on the first matching document and bump updated_at.

        Returns:
            Number of documents matched (0 or 1)
        """
        fields["updated_at"] = dt.datetime.now(dt.UTC)
        result = await self.collection.update_one(filter_dict, {"$set": fields})
        return result.matched_count

    def _to_model(self, doc: Dict[str, Any]) -> T:
        """Validate a raw document, dropping keys the model does not know."""
        known = self.model_class.model_fields.keys()
        return self.model_class.model_validate(
            {k: v for k, v in doc.items() if k in known or k == "_id"}
        )
