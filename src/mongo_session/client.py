"""
MongoClient - connection to the document store.

Opens an RPC connection to a MongoDB-compatible service and hands out
Database objects.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

from .config import DEFAULT_MONGO_URL, MONGO_URL, get_setting
from .database import Database
from .types import ConnectionError, MongoError

__all__ = ["MongoClient", "new_client"]

logger = logging.getLogger(__name__)


class MongoClient:
    """
    MongoDB client.

    Example:
        client = MongoClient("https://mongo.do")
        await client.connect()
        users = client["myapp"]["users"]

        # Or as async context manager
        async with MongoClient() as client:
            db = client.myapp
    """

    __slots__ = ("_uri", "_rpc", "_connected", "_databases", "_options")

    def __init__(
        self,
        uri: str | None = None,
        **options: Any,
    ) -> None:
        """
        Initialize the client.

        Args:
            uri: Connection URI. If not provided, uses the MONGO_URL setting.
            **options: Additional connection options.
                - timeout: Default timeout for operations (default: 30.0).
        """
        self._uri = uri or get_setting(MONGO_URL, DEFAULT_MONGO_URL)
        self._rpc: Any = None
        self._connected = False
        self._databases: dict[str, Database] = {}
        self._options = options

    @property
    def uri(self) -> str:
        """Get the connection URI."""
        return self._uri

    @property
    def is_connected(self) -> bool:
        """Check if the client is connected."""
        return self._connected

    async def connect(self) -> MongoClient:
        """
        Connect to the store.

        Returns:
            Self for chaining.

        Raises:
            ConnectionError: If connection fails.
        """
        if self._connected:
            return self

        try:
            from rpc_do import connect

            timeout = self._options.get("timeout", 30.0)
            self._rpc = await connect(self._uri, timeout=timeout)
            self._connected = True
            logger.debug("Connected to %s", self._uri)
            return self
        except ImportError as e:
            raise ConnectionError(
                "rpc-do package is required. Install with: pip install rpc-do"
            ) from e
        except Exception as e:
            raise ConnectionError(f"Failed to connect to {self._uri}: {e}") from e

    async def close(self) -> None:
        """Close the connection."""
        if self._rpc is not None:
            await self._rpc.close()
            self._rpc = None
        self._connected = False
        self._databases.clear()

    def _ensure_connected(self) -> None:
        if not self._connected or self._rpc is None:
            raise MongoError("Client is not connected. Call connect() first.")

    def __getitem__(self, name: str) -> Database:
        self._ensure_connected()

        if name not in self._databases:
            self._databases[name] = Database(self._rpc, self, name)
        return self._databases[name]

    def __getattr__(self, name: str) -> Database:
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

        return self[name]

    def get_database(self, name: str) -> Database:
        """Get a database by name."""
        return self[name]

    async def __aenter__(self) -> MongoClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"MongoClient({self._uri!r}, {status})"


async def new_client(uri: str | None = None, **options: Any) -> MongoClient:
    """
    Connect a client at process startup.

    Nothing downstream can work without the store, so a failed connection
    stops the process instead of returning a half-built client.

    Raises:
        SystemExit: If the connection cannot be established.
    """
    client = MongoClient(uri, **options)
    try:
        return await client.connect()
    except ConnectionError as e:
        logger.critical("Cannot connect to document store: %s", e)
        raise SystemExit(1) from e
