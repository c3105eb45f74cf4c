"""
mongo-session - fluent sessions over a MongoDB-compatible RPC service.

This package provides:
- Single-use query sessions with sort, limit, skip and projection
- Decoding of result streams into caller-owned, typed containers
- Idempotent index synchronization
- Aggregation pipelines with a deadline
- A process-wide sharded Redis client

Example usage:
    from dataclasses import dataclass

    from mongo_session import Documents, MongoClient

    @dataclass
    class User:
        _id: str
        name: str
        status: str = "active"

    async def main():
        async with MongoClient("https://mongo.do") as client:
            users = client["myapp"]["users"]

            await users.index({"keys": [("email", 1)], "unique": True})
            await users.insert({"name": "Alice", "email": "alice@example.com"})

            active = Documents[User]()
            await users.where({"status": "active"}).sort("name").find(active)

            total = await users.count({"status": "active"})

    import asyncio
    asyncio.run(main())
"""

from __future__ import annotations

__version__ = "0.1.0"

from .cache import ShardedRedis, get_redis, reset_redis
from .client import MongoClient, new_client
from .collection import DEFAULT_AGGREGATE_TIMEOUT, Collection
from .cursor import Cursor
from .database import Database
from .decoder import Documents, Ref, decode
from .indexes import plan_indexes
from .session import Session
from .types import (
    ConnectionError,
    DecodeError,
    DuplicateKeyError,
    Filter,
    IndexModel,
    IndexSpec,
    InsertManyResult,
    InsertOneResult,
    InvalidTargetError,
    MongoError,
    ObjectId,
    OperationFailure,
    SessionConsumedError,
    StreamError,
    UpdateResult,
    WriteError,
)

__all__ = [
    # Main classes
    "MongoClient",
    "new_client",
    "Database",
    "Collection",
    "Session",
    "Cursor",
    # Decoding
    "Documents",
    "Ref",
    "decode",
    # Indexes
    "IndexSpec",
    "IndexModel",
    "plan_indexes",
    # Values
    "ObjectId",
    "Filter",
    "DEFAULT_AGGREGATE_TIMEOUT",
    # Result types
    "InsertOneResult",
    "InsertManyResult",
    "UpdateResult",
    # Cache
    "ShardedRedis",
    "get_redis",
    "reset_redis",
    # Exceptions
    "MongoError",
    "ConnectionError",
    "InvalidTargetError",
    "DecodeError",
    "StreamError",
    "OperationFailure",
    "WriteError",
    "DuplicateKeyError",
    "SessionConsumedError",
    # Version
    "__version__",
]
