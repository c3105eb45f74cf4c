"""
Collection - MongoDB collection operations.

Entry point for CRUD, aggregation and index management on a single
collection. Queries are run through single-use Sessions built with
``where()``; results are decoded into caller-owned containers.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Generic, Mapping, Sequence, TypeVar

from .cursor import Cursor
from .decoder import decode
from .indexes import plan_indexes
from .session import Session, raise_for_write_error
from .types import (
    Filter,
    IndexSpec,
    InsertManyResult,
    InsertOneResult,
    ObjectId,
    OperationFailure,
    UpdateResult,
    raw_id,
)

if TYPE_CHECKING:
    from rpc_do import RpcClient

    from .database import Database
    from .types import FilterLike, IndexKeys

T = TypeVar("T", bound=dict[str, Any])

DEFAULT_AGGREGATE_TIMEOUT = 10.0

__all__ = ["Collection", "DEFAULT_AGGREGATE_TIMEOUT"]

logger = logging.getLogger(__name__)


class Collection(Generic[T]):
    """
    MongoDB collection facade.

    Holds no per-call state, so one instance can be shared by concurrent
    callers. Every query builds its own Session.

    Example:
        users = db["users"]

        # Insert
        result = await users.insert({"name": "Alice", "status": "active"})

        # Find
        active = Documents[User]()
        await users.where({"status": "active"}).sort("name").find(active)
        await users.find_by_id(result.inserted_id, active)

        # Update / remove
        await users.update_by_id(result.inserted_id, {"$set": {"status": "vip"}})
        await users.remove_all({"status": "inactive"})

        # Indexes
        await users.index({"keys": [("email", 1)], "unique": True})
    """

    __slots__ = ("_rpc", "_database", "_name", "_full_name")

    def __init__(
        self,
        rpc: RpcClient,
        database: Database,
        name: str,
    ) -> None:
        """
        Initialize a collection.

        Args:
            rpc: The RPC client for making calls.
            database: Parent database instance.
            name: Collection name.
        """
        self._rpc = rpc
        self._database = database
        self._name = name
        self._full_name = f"{database.name}.{name}"

    @property
    def name(self) -> str:
        """Get the collection name."""
        return self._name

    @property
    def full_name(self) -> str:
        """Get the full collection name (database.collection)."""
        return self._full_name

    @property
    def database(self) -> Database:
        """Get the parent database."""
        return self._database

    async def _call(self, method: str, *args: Any) -> Any:
        return await getattr(self._rpc.mongo, method)(self._database.name, self._name, *args)

    def where(self, filter: FilterLike = None) -> Session:
        """
        Start a query.

        Args:
            filter: Query filter. None or empty matches every document.

        Returns:
            A new single-use Session.
        """
        return Session(self, filter)

    async def find(self, filter: FilterLike, target: Any, document_class: Any = None) -> None:
        """Find documents matching filter and decode them into target."""
        await self.where(filter).find(target, document_class)

    async def find_one(self, filter: FilterLike = None, document_class: Any = None) -> Any:
        """Find the first document matching filter, or None."""
        return await self.where(filter).find_one(document_class)

    async def find_by_id(self, id: ObjectId | Any, target: Any, document_class: Any = None) -> None:
        """Find the document with the given _id and decode it into target."""
        await self.where(Filter.by_id(id)).find(target, document_class)

    async def insert(self, document: Mapping[str, Any]) -> InsertOneResult:
        """
        Insert a single document.

        Args:
            document: The document to insert. An _id is generated when missing.

        Returns:
            InsertOneResult with the inserted ID.

        Raises:
            DuplicateKeyError: If a document with the same _id exists.
            WriteError: If the insert fails.
        """
        doc = self._prepare(document)
        result = await self._call("insertOne", doc)
        raise_for_write_error(result, "Insert failed")

        if isinstance(result, dict):
            return InsertOneResult(
                inserted_id=result.get("insertedId", doc["_id"]),
                acknowledged=result.get("acknowledged", True),
            )
        return InsertOneResult(inserted_id=doc["_id"])

    async def insert_all(
        self,
        documents: Sequence[Mapping[str, Any]],
        ordered: bool = True,
    ) -> InsertManyResult:
        """
        Insert multiple documents.

        Args:
            documents: Documents to insert.
            ordered: If True, stop on first error. If False, continue.

        Raises:
            WriteError: If the insert fails.
        """
        docs = [self._prepare(document) for document in documents]
        result = await self._call("insertMany", docs, {"ordered": ordered})
        raise_for_write_error(result, "Insert failed")

        if isinstance(result, dict):
            return InsertManyResult(
                inserted_ids=result.get("insertedIds", [doc["_id"] for doc in docs]),
                acknowledged=result.get("acknowledged", True),
            )
        return InsertManyResult(inserted_ids=[doc["_id"] for doc in docs])

    def _prepare(self, document: Mapping[str, Any]) -> dict[str, Any]:
        doc = raw_id(document)
        if "_id" not in doc:
            doc["_id"] = str(ObjectId.generate())
        return doc

    async def update(
        self,
        filter: FilterLike,
        patch: Mapping[str, Any],
        upsert: bool = False,
    ) -> UpdateResult:
        """Update the first document matching filter. None matches every document."""
        return await self.where(filter).update(patch, upsert=upsert)

    async def update_by_id(
        self,
        id: ObjectId | Any,
        patch: Mapping[str, Any],
        upsert: bool = False,
    ) -> UpdateResult:
        """Update the document with the given _id."""
        return await self.where(Filter.by_id(id)).update(patch, upsert=upsert)

    async def update_all(
        self,
        filter: FilterLike,
        patch: Mapping[str, Any],
        upsert: bool = False,
    ) -> UpdateResult:
        """Update every document matching filter. None matches every document."""
        return await self.where(filter).update_all(patch, upsert=upsert)

    async def remove(self, filter: FilterLike) -> None:
        """Delete the first document matching filter. None matches every document."""
        await self.where(filter).remove()

    async def remove_by_id(self, id: ObjectId | Any) -> None:
        """Delete the document with the given _id."""
        await self.where(Filter.by_id(id)).remove()

    async def remove_all(self, filter: FilterLike) -> None:
        """Delete every document matching filter. None matches every document."""
        await self.where(filter).remove_all()

    async def count(self, filter: FilterLike = None) -> int:
        """Count documents matching filter; 0 if the count fails."""
        return await self.where(filter).count()

    async def aggregate(
        self,
        pipeline: list[dict[str, Any]],
        target: Any,
        max_time: float | None = None,
        document_class: Any = None,
        **options: Any,
    ) -> None:
        """
        Run an aggregation pipeline and decode its output into target.

        The call runs under a deadline of max_time seconds (10 by default),
        which is also sent to the server as maxTimeMS.

        Args:
            pipeline: List of aggregation stages.
            target: A mutable sequence (or a Ref holding one) to fill.
            max_time: Deadline in seconds.
            document_class: Element type override.
            **options: Extra aggregate options (allowDiskUse, etc.).

        Raises:
            asyncio.TimeoutError: If the deadline passes. Nothing is decoded.
            OperationFailure: If the server rejects the pipeline.
        """
        if max_time is None:
            max_time = DEFAULT_AGGREGATE_TIMEOUT
        options["maxTimeMS"] = int(max_time * 1000)

        reply = await asyncio.wait_for(
            self._call("aggregate", list(pipeline), options),
            timeout=max_time,
        )
        await decode(Cursor.from_reply(reply, "aggregate"), target, document_class)

    async def list_indexes(self) -> list[IndexSpec]:
        """
        List the indexes the store reports for this collection.

        Raises:
            OperationFailure: If the store cannot list indexes.
        """
        result = await self._call("listIndexes")
        if isinstance(result, dict) and result.get("error"):
            raise OperationFailure(result.get("message") or "listIndexes failed", result.get("code"))

        indexes = result if isinstance(result, list) else []
        return [IndexSpec.from_document(document) for document in indexes]

    async def index(self, *specs: IndexSpec | IndexKeys) -> list[str]:
        """
        Make sure the given indexes exist.

        Existing indexes are listed fresh on every call and compared by
        canonical key; only missing ones are created, in one batched call,
        each named after its canonical key.

        Args:
            *specs: IndexSpecs, field names, lists of (field, direction)
                pairs, or documents like ``{"keys": [...], "unique": True}``.

        Returns:
            Names of the created indexes; empty when nothing was missing.

        Raises:
            OperationFailure: If listing or creating indexes fails.
        """
        existing = await self.list_indexes()
        models = plan_indexes(existing, [IndexSpec.coerce(spec) for spec in specs])
        if not models:
            logger.debug("Indexes on %s are up to date", self._full_name)
            return []

        logger.info(
            "Creating indexes %s on %s",
            ", ".join(model.name for model in models),
            self._full_name,
        )
        result = await self._call("createIndexes", [model.to_document() for model in models])
        if isinstance(result, dict) and result.get("error"):
            raise OperationFailure(result.get("message") or "createIndexes failed", result.get("code"))
        return list(result) if isinstance(result, list) else [model.name for model in models]

    async def drop_index(self, index_name: str) -> None:
        """
        Drop an index from the collection.

        Args:
            index_name: Name of the index to drop.
        """
        await self._call("dropIndex", index_name)

    async def drop(self) -> None:
        """Drop the collection."""
        await self._call("dropCollection")

    def __repr__(self) -> str:
        return f"Collection({self._full_name!r})"
