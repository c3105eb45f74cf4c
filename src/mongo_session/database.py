"""
Database - named group of collection facades.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .collection import Collection

if TYPE_CHECKING:
    from rpc_do import RpcClient

    from .client import MongoClient

__all__ = ["Database"]


class Database:
    """
    Hands out one shared Collection facade per collection name.

    Example:
        db = client["myapp"]
        users = db.users
        assert db["users"] is users
    """

    __slots__ = ("_rpc", "_client", "_name", "_collections")

    def __init__(self, rpc: RpcClient, client: MongoClient, name: str) -> None:
        self._rpc = rpc
        self._client = client
        self._name = name
        self._collections: dict[str, Collection[Any]] = {}

    @property
    def name(self) -> str:
        return self._name

    @property
    def client(self) -> MongoClient:
        return self._client

    def get_collection(self, name: str) -> Collection[Any]:
        """Return the facade for a collection, creating it on first use."""
        collection = self._collections.get(name)
        if collection is None:
            collection = self._collections[name] = Collection(self._rpc, self, name)
        return collection

    def __getitem__(self, name: str) -> Collection[Any]:
        return self.get_collection(name)

    def __getattr__(self, name: str) -> Collection[Any]:
        # slots and private names never map to collections
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")
        return self.get_collection(name)

    def __repr__(self) -> str:
        return f"Database({self._name!r})"
