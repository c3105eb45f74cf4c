"""
Cursor - Async stream over query results.

Wraps a result reply returned by the RPC service and yields its documents
one at a time. A reply may carry a fault that the server reported after
producing part of the batch; the cursor exposes it through ``error`` once
the documents are exhausted.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any, AsyncIterator, Generic, TypeVar

from .types import OperationFailure, StreamError

T = TypeVar("T", bound=dict[str, Any])

__all__ = ["Cursor"]


class Cursor(Generic[T]):
    """
    Async cursor for iterating over query results.

    Example:
        async with Cursor.from_reply(reply, "find") as cursor:
            async for doc in cursor:
                print(doc)
            if cursor.error:
                raise cursor.error
    """

    __slots__ = ("_documents", "_position", "_error", "_closed")

    def __init__(
        self,
        documents: list[T] | None = None,
        error: StreamError | None = None,
    ) -> None:
        """
        Initialize a cursor.

        Args:
            documents: Documents produced by the server.
            error: Fault reported after the last document, if any.
        """
        self._documents: list[T] = list(documents or [])
        self._position: int = 0
        self._error = error
        self._closed: bool = False

    @classmethod
    def from_reply(cls, reply: Any, operation: str) -> Cursor[T]:
        """
        Build a cursor from an RPC reply.

        Accepts a plain list of documents, or a command-style reply of the form
        ``{"cursor": {"firstBatch": [...]}, "ok": 1}``. A command-style reply
        with ``ok`` set to 0 keeps its documents and records the fault as the
        cursor's terminal error.

        Raises:
            OperationFailure: If the reply is an error reply with no cursor.
        """
        if isinstance(reply, list):
            return cls(reply)
        if not isinstance(reply, dict):
            return cls()

        if "cursor" not in reply:
            if reply.get("error"):
                raise OperationFailure(
                    reply.get("message") or f"{operation} failed", reply.get("code")
                )
            return cls()

        batch = reply["cursor"] or {}
        documents = batch.get("firstBatch", batch.get("nextBatch", []))
        error = None
        if reply.get("ok", 1) == 0 or reply.get("errmsg"):
            error = StreamError(
                reply.get("errmsg") or f"{operation} cursor failed", reply.get("code")
            )
        return cls(documents, error)

    @property
    def error(self) -> StreamError | None:
        """Fault reported by the server, visible once the cursor is exhausted."""
        if self._position < len(self._documents):
            return None
        return self._error

    @property
    def alive(self) -> bool:
        """Check if the cursor can still yield documents."""
        return not self._closed and self._position < len(self._documents)

    def __aiter__(self) -> AsyncIterator[T]:
        """Return async iterator."""
        return self

    async def __anext__(self) -> T:
        """
        Get the next document.

        Raises:
            StopAsyncIteration: When all documents have been iterated or the
                cursor is closed.
        """
        if not self.alive:
            raise StopAsyncIteration

        doc = self._documents[self._position]
        self._position += 1
        return doc

    async def next(self) -> T:
        """Get the next document."""
        return await self.__anext__()

    async def to_list(self, length: int | None = None) -> list[T]:
        """
        Drain the cursor into a list.

        Args:
            length: Maximum number of documents to return.
                    If None, returns all remaining documents.

        Raises:
            StreamError: If the server reported a fault.
        """
        results: list[T] = []
        async for doc in self:
            results.append(doc)
            if length is not None and len(results) >= length:
                return results
        if self.error is not None:
            raise self.error
        return results

    async def close(self) -> None:
        """Release the cursor."""
        self._closed = True
        self._documents = []
        self._position = 0

    async def __aenter__(self) -> Cursor[T]:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Cursor(documents={len(self._documents)}, position={self._position})"
