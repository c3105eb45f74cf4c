"""
Pytest fixtures for mongo-session tests.

Provides mocked RPC client and MongoDB client fixtures for testing
without actual network connections.
"""

from __future__ import annotations

import sys
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest


class MockRpcMongo:
    """Mock for the RPC mongo namespace."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, list[dict[str, Any]]]] = {}
        self._indexes: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.calls: list[str] = []

    def _get_collection_data(self, database: str, collection: str) -> list[dict[str, Any]]:
        """Get or create collection data."""
        if database not in self._data:
            self._data[database] = {}
        if collection not in self._data[database]:
            self._data[database][collection] = []
        return self._data[database][collection]

    def _get_indexes(self, database: str, collection: str) -> list[dict[str, Any]]:
        """Get or create index descriptions, starting with the _id index."""
        key = (database, collection)
        if key not in self._indexes:
            self._indexes[key] = [{"name": "_id_", "key": {"_id": 1}}]
        return self._indexes[key]

    async def insertOne(
        self,
        database: str,
        collection: str,
        document: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock insertOne."""
        self.calls.append("insertOne")
        data = self._get_collection_data(database, collection)
        for doc in data:
            if doc.get("_id") == document.get("_id"):
                return {"error": True, "message": "E11000 duplicate key error"}
        data.append(dict(document))
        return {"insertedId": document.get("_id"), "acknowledged": True}

    async def insertMany(
        self,
        database: str,
        collection: str,
        documents: list[dict[str, Any]],
        options: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock insertMany."""
        self.calls.append("insertMany")
        data = self._get_collection_data(database, collection)
        inserted_ids = []
        for doc in documents:
            data.append(dict(doc))
            inserted_ids.append(doc.get("_id"))
        return {"insertedIds": inserted_ids, "acknowledged": True}

    async def find(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
        options: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Mock find."""
        self.calls.append("find")
        data = self._get_collection_data(database, collection)
        results = [dict(doc) for doc in data if self._matches(doc, filter)]

        projection = options.get("projection")
        if projection:
            results = [self._project(doc, projection) for doc in results]

        sort = options.get("sort")
        if sort:
            for field, direction in reversed(sort):
                results.sort(key=lambda x: x.get(field, ""), reverse=(direction == -1))

        skip = options.get("skip", 0)
        if skip:
            results = results[skip:]

        limit = options.get("limit", 0)
        if limit:
            results = results[:limit]

        return results

    async def updateOne(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
        update: dict[str, Any],
        options: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock updateOne."""
        self.calls.append("updateOne")
        data = self._get_collection_data(database, collection)
        matched = 0
        modified = 0
        upserted_id = None

        for doc in data:
            if self._matches(doc, filter):
                matched += 1
                if self._apply_update(doc, update):
                    modified += 1
                break

        if matched == 0 and options.get("upsert"):
            new_doc = dict(filter)
            self._apply_update(new_doc, update)
            if "_id" not in new_doc:
                new_doc["_id"] = "upserted-id"
            data.append(new_doc)
            upserted_id = new_doc["_id"]

        return {
            "matchedCount": matched,
            "modifiedCount": modified,
            "upsertedId": upserted_id,
            "acknowledged": True,
        }

    async def updateMany(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
        update: dict[str, Any],
        options: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock updateMany."""
        self.calls.append("updateMany")
        data = self._get_collection_data(database, collection)
        matched = 0
        modified = 0

        for doc in data:
            if self._matches(doc, filter):
                matched += 1
                if self._apply_update(doc, update):
                    modified += 1

        return {
            "matchedCount": matched,
            "modifiedCount": modified,
            "acknowledged": True,
        }

    async def deleteOne(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock deleteOne."""
        self.calls.append("deleteOne")
        data = self._get_collection_data(database, collection)
        deleted = 0

        for i, doc in enumerate(data):
            if self._matches(doc, filter):
                del data[i]
                deleted += 1
                break

        return {"deletedCount": deleted, "acknowledged": True}

    async def deleteMany(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock deleteMany."""
        self.calls.append("deleteMany")
        data = self._get_collection_data(database, collection)
        original_len = len(data)

        self._data[database][collection] = [
            doc for doc in data if not self._matches(doc, filter)
        ]
        deleted = original_len - len(self._data[database][collection])

        return {"deletedCount": deleted, "acknowledged": True}

    async def countDocuments(
        self,
        database: str,
        collection: str,
        filter: dict[str, Any],
    ) -> int:
        """Mock countDocuments."""
        self.calls.append("countDocuments")
        data = self._get_collection_data(database, collection)
        return sum(1 for doc in data if self._matches(doc, filter))

    async def distinct(
        self,
        database: str,
        collection: str,
        key: str,
        filter: dict[str, Any],
    ) -> list[Any]:
        """Mock distinct."""
        self.calls.append("distinct")
        data = self._get_collection_data(database, collection)
        values = []
        for doc in data:
            if self._matches(doc, filter) and key in doc and doc[key] not in values:
                values.append(doc[key])
        return values

    async def aggregate(
        self,
        database: str,
        collection: str,
        pipeline: list[dict[str, Any]],
        options: dict[str, Any],
    ) -> dict[str, Any]:
        """Mock aggregate supporting $match only, in command reply shape."""
        self.calls.append("aggregate")
        data = self._get_collection_data(database, collection)
        results = [dict(doc) for doc in data]
        for stage in pipeline:
            if "$match" in stage:
                results = [doc for doc in results if self._matches(doc, stage["$match"])]
        return {"cursor": {"id": 0, "firstBatch": results}, "ok": 1}

    async def listIndexes(self, database: str, collection: str) -> list[dict[str, Any]]:
        """Mock listIndexes."""
        self.calls.append("listIndexes")
        return [dict(index) for index in self._get_indexes(database, collection)]

    async def createIndexes(
        self,
        database: str,
        collection: str,
        indexes: list[dict[str, Any]],
    ) -> list[str]:
        """Mock createIndexes."""
        self.calls.append("createIndexes")
        existing = self._get_indexes(database, collection)
        existing.extend(dict(index) for index in indexes)
        return [index["name"] for index in indexes]

    async def dropIndex(
        self,
        database: str,
        collection: str,
        index_name: str,
    ) -> None:
        """Mock dropIndex."""
        self.calls.append("dropIndex")
        key = (database, collection)
        self._indexes[key] = [
            index for index in self._get_indexes(database, collection)
            if index["name"] != index_name
        ]

    async def dropCollection(
        self,
        database: str,
        collection: str,
    ) -> None:
        """Mock dropCollection."""
        if database in self._data:
            self._data[database].pop(collection, None)
        self._indexes.pop((database, collection), None)

    def _matches(self, doc: dict[str, Any], filter: dict[str, Any]) -> bool:
        """Check if document matches filter."""
        if not filter:
            return True

        for key, value in filter.items():
            if key == "$or":
                if not any(self._matches(doc, f) for f in value):
                    return False
                continue

            doc_value = doc.get(key)

            if isinstance(value, dict):
                for op, op_value in value.items():
                    if op == "$eq":
                        if doc_value != op_value:
                            return False
                    elif op == "$ne":
                        if doc_value == op_value:
                            return False
                    elif op == "$gt":
                        if doc_value is None or doc_value <= op_value:
                            return False
                    elif op == "$gte":
                        if doc_value is None or doc_value < op_value:
                            return False
                    elif op == "$lt":
                        if doc_value is None or doc_value >= op_value:
                            return False
                    elif op == "$in":
                        if doc_value not in op_value:
                            return False
            elif doc_value != value:
                return False

        return True

    def _apply_update(self, doc: dict[str, Any], update: dict[str, Any]) -> bool:
        """Apply update operators to document."""
        modified = False

        for op, fields in update.items():
            if op == "$set":
                for key, value in fields.items():
                    if doc.get(key) != value:
                        doc[key] = value
                        modified = True
            elif op == "$unset":
                for key in fields:
                    if key in doc:
                        del doc[key]
                        modified = True
            elif op == "$inc":
                for key, value in fields.items():
                    doc[key] = doc.get(key, 0) + value
                    modified = True

        return modified

    def _project(
        self,
        doc: dict[str, Any],
        projection: dict[str, int],
    ) -> dict[str, Any]:
        """Apply an inclusion projection to document."""
        result = {key: doc[key] for key, include in projection.items() if include and key in doc}
        if "_id" in doc and projection.get("_id", 1) != 0:
            result["_id"] = doc["_id"]
        return result


class MockRpcClient:
    """Mock RPC client for testing."""

    def __init__(self) -> None:
        self.mongo = MockRpcMongo()
        self._closed = False

    async def close(self) -> None:
        """Close the mock client."""
        self._closed = True


@pytest.fixture
def mock_rpc() -> MockRpcClient:
    """Create a mock RPC client."""
    return MockRpcClient()


@pytest.fixture
def mock_connect(mock_rpc: MockRpcClient, monkeypatch: pytest.MonkeyPatch):
    """Mock the rpc_do.connect function."""
    mock_rpc_do = MagicMock()
    mock_rpc_do.connect = AsyncMock(return_value=mock_rpc)

    monkeypatch.setitem(sys.modules, "rpc_do", mock_rpc_do)

    return mock_rpc_do


@pytest.fixture
async def client(mock_connect, mock_rpc: MockRpcClient):
    """Create a connected MongoClient."""
    from mongo_session import MongoClient

    client = MongoClient("https://test.mongo.do")
    await client.connect()
    return client


@pytest.fixture
async def database(client):
    """Create a database."""
    return client["testdb"]


@pytest.fixture
async def collection(database):
    """Create a collection."""
    return database["testcollection"]


@pytest.fixture
async def seeded(collection):
    """Collection holding five users."""
    await collection.insert_all([
        {"_id": "u1", "name": "Alice", "age": 30, "status": "active"},
        {"_id": "u2", "name": "Bob", "age": 25, "status": "active"},
        {"_id": "u3", "name": "Carol", "age": 41, "status": "inactive"},
        {"_id": "u4", "name": "Dave", "age": 35, "status": "active"},
        {"_id": "u5", "name": "Eve", "age": 22, "status": "inactive"},
    ])
    return collection
