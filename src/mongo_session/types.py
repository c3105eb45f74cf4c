"""
Type definitions for mongo-session.

Provides the value types used to talk to the store (identifiers, filters,
index descriptions), result types that mirror PyMongo's result objects, and
the exception hierarchy.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Tuple, Union

__all__ = [
    "ObjectId",
    "Filter",
    "IndexSpec",
    "IndexModel",
    "InsertOneResult",
    "InsertManyResult",
    "UpdateResult",
    "MongoError",
    "ConnectionError",
    "InvalidTargetError",
    "DecodeError",
    "StreamError",
    "OperationFailure",
    "WriteError",
    "DuplicateKeyError",
    "SessionConsumedError",
]


@dataclass(frozen=True)
class ObjectId:
    """
    Document identifier.

    Wraps the raw identifier value stored in a document's ``_id`` field.

    Example:
        oid = ObjectId.generate()
        await users.insert({"_id": oid, "name": "Alice"})
        await users.find_by_id(oid, results)
    """

    value: str

    @classmethod
    def generate(cls) -> ObjectId:
        """Generate a new unique identifier."""
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


def raw_id(value: Any) -> Any:
    """
    Return the wire form of a value.

    ObjectIds are replaced by their raw value at any depth, including inside
    operator documents like ``{"$in": [ObjectId("a"), ObjectId("b")]}``.
    """
    if isinstance(value, ObjectId):
        return value.value
    if isinstance(value, Mapping):
        return {key: raw_id(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [raw_id(item) for item in value]
    return value


FilterLike = Union["Filter", Mapping[str, Any], Iterable[Tuple[str, Any]], None]


class Filter:
    """
    Ordered list of (field, value) constraints.

    Field order is kept as given because the store may use it to pick a
    compound index. Two filters compare equal when they hold the same
    constraints, regardless of order. An empty filter matches every document.

    Example:
        Filter([("status", "active"), ("age", {"$gte": 18})])
        Filter({"status": "active"})
        Filter.by_id("user-1")
    """

    __slots__ = ("_pairs",)

    def __init__(self, pairs: Mapping[str, Any] | Iterable[tuple[str, Any]] = ()) -> None:
        if isinstance(pairs, Mapping):
            pairs = pairs.items()
        self._pairs: tuple[tuple[str, Any], ...] = tuple(
            (str(key), raw_id(value)) for key, value in pairs
        )

    @classmethod
    def coerce(cls, value: FilterLike) -> Filter:
        """
        Build a filter from any accepted filter shape.

        Args:
            value: None, a Filter, a mapping or a sequence of pairs.

        Returns:
            The equivalent Filter. None becomes the empty filter.
        """
        if value is None:
            return cls()
        if isinstance(value, Filter):
            return value
        return cls(value)

    @classmethod
    def by_id(cls, id: Any) -> Filter:
        """Build a filter matching a single document identifier."""
        return cls([("_id", id)])

    @property
    def pairs(self) -> tuple[tuple[str, Any], ...]:
        return self._pairs

    def to_document(self) -> dict[str, Any]:
        """Return the filter as an insertion-ordered query document."""
        return dict(self._pairs)

    def __bool__(self) -> bool:
        return bool(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Filter):
            return NotImplemented
        # values may be unhashable documents
        return all(pair in other._pairs for pair in self._pairs) and all(
            pair in self._pairs for pair in other._pairs
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Filter({list(self._pairs)!r})"


IndexKeys = Union[str, Mapping[str, Any], Sequence[Tuple[str, Any]]]


def _direction(value: Any) -> Any:
    # stores often report directions as floats (1.0, -1.0)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _key_pairs(keys: IndexKeys) -> tuple[tuple[str, Any], ...]:
    if isinstance(keys, str):
        return ((keys, 1),)
    if isinstance(keys, Mapping):
        return tuple((str(k), _direction(v)) for k, v in keys.items())
    return tuple((str(k), _direction(v)) for k, v in keys)


@dataclass(frozen=True)
class IndexSpec:
    """
    Description of an index: ordered (field, direction) pairs plus uniqueness.

    Attributes:
        keys: Index key pairs, in index order.
        unique: Whether the index enforces uniqueness.
        name: Server-assigned name, used as identity only when keys is empty.
    """

    keys: tuple[tuple[str, Any], ...] = ()
    unique: bool = False
    name: str | None = None

    @property
    def canonical_key(self) -> str:
        """
        Identity of the index.

        The "field:direction" tokens joined with "_" in key order, or the
        index name when the spec has no keys.
        """
        key = "_".join(f"{field}:{direction}" for field, direction in self.keys)
        if not key:
            return self.name or ""
        return key

    @classmethod
    def coerce(cls, value: IndexSpec | IndexKeys) -> IndexSpec:
        """
        Build an IndexSpec from user input.

        Accepts an IndexSpec, a single field name, a list of (field, direction)
        pairs, a key mapping, or a document of the form
        ``{"keys": ..., "unique": True}``.
        """
        if isinstance(value, IndexSpec):
            return value
        if isinstance(value, Mapping) and "keys" in value:
            return cls(
                keys=_key_pairs(value["keys"]),
                unique=bool(value.get("unique", False)),
                name=value.get("name"),
            )
        return cls(keys=_key_pairs(value))

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> IndexSpec:
        """Build an IndexSpec from an index description reported by the store."""
        return cls(
            keys=_key_pairs(document.get("key") or {}),
            unique=bool(document.get("unique", False)),
            name=document.get("name"),
        )


@dataclass(frozen=True)
class IndexModel:
    """
    Index creation request.

    Attributes:
        keys: Index key pairs, in index order.
        name: Index name (the canonical key of the spec it came from).
        unique: Whether the index enforces uniqueness.
    """

    keys: tuple[tuple[str, Any], ...]
    name: str
    unique: bool = False

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"key": dict(self.keys), "name": self.name}
        if self.unique:
            document["unique"] = True
        return document


@dataclass
class InsertOneResult:
    """
    Result of an insert operation.

    Attributes:
        inserted_id: The _id of the inserted document.
        acknowledged: Whether the write was acknowledged.
    """

    inserted_id: Any
    acknowledged: bool = True


@dataclass
class InsertManyResult:
    """
    Result of an insert_all operation.

    Attributes:
        inserted_ids: List of _ids of the inserted documents.
        acknowledged: Whether the write was acknowledged.
    """

    inserted_ids: list[Any] = field(default_factory=list)
    acknowledged: bool = True


@dataclass
class UpdateResult:
    """
    Result of an update or update_all operation.

    Attributes:
        matched_count: Number of documents matched.
        modified_count: Number of documents modified.
        upserted_id: The _id of the upserted document (if any).
        acknowledged: Whether the write was acknowledged.
    """

    matched_count: int = 0
    modified_count: int = 0
    upserted_id: Any = None
    acknowledged: bool = True

    @property
    def raw_result(self) -> dict[str, Any]:
        """Return raw result dict for compatibility."""
        return {
            "n": self.matched_count,
            "nModified": self.modified_count,
            "ok": 1.0 if self.acknowledged else 0.0,
        }


class MongoError(Exception):
    """Base exception for mongo-session operations."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ConnectionError(MongoError):
    """Error raised when connection to the store fails."""

    pass


class InvalidTargetError(MongoError):
    """Error raised when a decode target is not a mutable sequence."""

    pass


class DecodeError(MongoError):
    """Error raised when a single result document cannot be decoded."""

    pass


class StreamError(MongoError):
    """Error raised when a result stream ends in a failed state."""

    pass


class OperationFailure(MongoError):
    """Error raised when an operation fails on the server."""

    pass


class WriteError(MongoError):
    """Error raised when a write operation fails."""

    pass


class DuplicateKeyError(WriteError):
    """Error raised when inserting a document with a duplicate key."""

    pass


class SessionConsumedError(MongoError):
    """Error raised when a session is used after its terminal operation."""

    pass
