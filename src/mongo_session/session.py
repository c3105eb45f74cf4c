"""
Session - single-use query bound to a collection.

A session pairs a filter (plus sort, limit, skip and projection options) with
the collection it was created from and offers terminal operations that run
it. Each session runs exactly one terminal operation; build a new one from
the collection for the next query.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from .cursor import Cursor
from .decoder import decode, to_element
from .types import (
    DuplicateKeyError,
    Filter,
    OperationFailure,
    SessionConsumedError,
    UpdateResult,
    WriteError,
    raw_id,
)

if TYPE_CHECKING:
    from .collection import Collection
    from .types import FilterLike

Projection = Mapping[str, Any] | Sequence[str] | None
Sort = list[tuple[str, int]] | None

__all__ = ["Session", "raise_for_write_error"]

logger = logging.getLogger(__name__)


def raise_for_write_error(result: Any, default_message: str) -> None:
    """
    Raise if an RPC write reply reports an error.

    Raises:
        DuplicateKeyError: If the error is a duplicate key violation.
        WriteError: For any other error reply.
    """
    if not isinstance(result, dict) or not result.get("error"):
        return
    message = result.get("message") or default_message
    if "duplicate" in message.lower() or "E11000" in message:
        raise DuplicateKeyError(message, result.get("code"))
    raise WriteError(message, result.get("code"))


class Session:
    """
    Single-use query builder.

    Modifiers return the session for chaining. The first terminal operation
    consumes the session; any later terminal call or modifier raises
    SessionConsumedError.

    Example:
        users = Documents[User]()
        await collection.where({"status": "active"}).sort("name").limit(10).find(users)

        total = await collection.where({"status": "active"}).count()
    """

    __slots__ = (
        "_collection",
        "_filter",
        "_projection",
        "_sort",
        "_limit",
        "_skip",
        "_executed",
    )

    def __init__(self, collection: Collection[Any], filter: FilterLike = None) -> None:
        """
        Initialize a session.

        Args:
            collection: Collection the query runs against.
            filter: Query filter. None or empty matches every document.
        """
        self._collection = collection
        self._filter = Filter.coerce(filter)
        self._projection: Projection = None
        self._sort: Sort = None
        self._limit: int = 0
        self._skip: int = 0
        self._executed: bool = False

    @property
    def filter(self) -> Filter:
        """Get the bound filter."""
        return self._filter

    @property
    def executed(self) -> bool:
        """Whether a terminal operation has run."""
        return self._executed

    def _ensure_unbound(self, operation: str) -> None:
        if self._executed:
            raise SessionConsumedError(
                f"session on {self._collection.full_name} already executed; "
                f"cannot {operation}, build a new session with where()"
            )

    def _consume(self, operation: str) -> None:
        self._ensure_unbound(operation)
        self._executed = True
        logger.debug(
            "Running %s on %s with filter %r",
            operation,
            self._collection.full_name,
            self._filter,
        )

    def sort(self, key_or_list: str | list[tuple[str, int]], direction: int = 1) -> Session:
        """
        Sort the results.

        Args:
            key_or_list: Field name or list of (field, direction) tuples.
            direction: Sort direction (1 for ascending, -1 for descending).
                       Only used if key_or_list is a string.
        """
        self._ensure_unbound("sort")
        if isinstance(key_or_list, str):
            self._sort = [(key_or_list, direction)]
        else:
            self._sort = list(key_or_list)
        return self

    def limit(self, limit: int) -> Session:
        """Limit the number of results."""
        self._ensure_unbound("limit")
        self._limit = limit
        return self

    def skip(self, skip: int) -> Session:
        """Skip the first N results."""
        self._ensure_unbound("skip")
        self._skip = skip
        return self

    def project(self, projection: Projection) -> Session:
        """Set field projection."""
        self._ensure_unbound("project")
        self._projection = projection
        return self

    def _options(self) -> dict[str, Any]:
        options: dict[str, Any] = {}

        if self._projection:
            if isinstance(self._projection, Mapping):
                options["projection"] = dict(self._projection)
            else:
                options["projection"] = {field: 1 for field in self._projection}

        if self._sort:
            options["sort"] = self._sort

        if self._limit > 0:
            options["limit"] = self._limit

        if self._skip > 0:
            options["skip"] = self._skip

        return options

    async def find(self, target: Any, document_class: Any = None) -> None:
        """
        Find matching documents and decode them into target.

        Args:
            target: A mutable sequence (or a Ref holding one) to fill.
            document_class: Element type override.

        Raises:
            InvalidTargetError: If target is not a mutable sequence.
            DecodeError: If a document fails to decode.
            OperationFailure: If the server rejects the query.
        """
        self._consume("find")
        reply = await self._collection._call("find", self._filter.to_document(), self._options())
        await decode(Cursor.from_reply(reply, "find"), target, document_class)

    async def find_one(self, document_class: Any = None) -> Any:
        """
        Find the first matching document.

        Returns:
            The document converted to document_class (dict by default),
            or None if nothing matches.
        """
        self._consume("find_one")
        options = self._options()
        options["limit"] = 1
        reply = await self._collection._call("find", self._filter.to_document(), options)

        async with Cursor.from_reply(reply, "find") as cursor:
            documents = await cursor.to_list(1)
        if not documents:
            return None
        return to_element(documents[0], document_class)

    async def count(self) -> int:
        """
        Count matching documents.

        Counting is advisory: any failure is logged and reported as 0.
        """
        self._consume("count")
        try:
            result = await self._collection._call("countDocuments", self._filter.to_document())
        except Exception:
            logger.warning(
                "Count on %s failed, reporting 0", self._collection.full_name, exc_info=True
            )
            return 0

        if isinstance(result, bool) or not isinstance(result, int):
            logger.warning(
                "Count on %s returned %r, reporting 0", self._collection.full_name, result
            )
            return 0
        return result

    async def distinct(self, key: str) -> list[Any]:
        """Get distinct values of a field across matching documents."""
        self._consume("distinct")
        result = await self._collection._call("distinct", key, self._filter.to_document())
        if isinstance(result, dict) and result.get("error"):
            raise OperationFailure(result.get("message") or "distinct failed", result.get("code"))
        return result if isinstance(result, list) else []

    async def _update(self, method: str, patch: Mapping[str, Any], upsert: bool) -> UpdateResult:
        self._consume(method)
        result = await self._collection._call(
            method,
            self._filter.to_document(),
            raw_id(patch),
            {"upsert": upsert},
        )
        raise_for_write_error(result, "Update failed")

        if isinstance(result, dict):
            return UpdateResult(
                matched_count=result.get("matchedCount", 0),
                modified_count=result.get("modifiedCount", 0),
                upserted_id=result.get("upsertedId"),
                acknowledged=result.get("acknowledged", True),
            )
        return UpdateResult()

    async def update(self, patch: Mapping[str, Any], upsert: bool = False) -> UpdateResult:
        """
        Apply patch to the first matching document.

        Args:
            patch: Update operations ($set, $unset, $inc, etc.).
            upsert: If True, insert if no document matches.

        Raises:
            WriteError: If the update fails.
        """
        return await self._update("updateOne", patch, upsert)

    async def update_all(self, patch: Mapping[str, Any], upsert: bool = False) -> UpdateResult:
        """
        Apply patch to every matching document.

        Raises:
            WriteError: If the update fails.
        """
        return await self._update("updateMany", patch, upsert)

    async def _remove(self, method: str) -> None:
        self._consume(method)
        result = await self._collection._call(method, self._filter.to_document())
        raise_for_write_error(result, "Delete failed")

    async def remove(self) -> None:
        """
        Delete the first matching document.

        Raises:
            WriteError: If the delete fails.
        """
        await self._remove("deleteOne")

    async def remove_all(self) -> None:
        """
        Delete every matching document.

        Raises:
            WriteError: If the delete fails.
        """
        await self._remove("deleteMany")

    def __repr__(self) -> str:
        state = "executed" if self._executed else "unbound"
        return f"Session({self._collection.full_name!r}, {self._filter!r}, {state})"
