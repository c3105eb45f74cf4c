"""
Decoder - materialize result streams into caller-owned containers.

The element type of the target container is discovered at call time, so one
decode routine serves plain dicts, TypedDicts, dataclasses and any class that
knows how to build itself from a document.

Example:
    from dataclasses import dataclass

    @dataclass
    class User:
        _id: str
        name: str

    users = Documents[User]()
    await collection.where({"status": "active"}).find(users)
    print(users[0].name)
"""

from __future__ import annotations

import dataclasses
import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    List,
    Mapping,
    MutableSequence,
    TypeVar,
    get_args,
    get_origin,
)

from .types import DecodeError, InvalidTargetError

if TYPE_CHECKING:
    from .cursor import Cursor

T = TypeVar("T")

__all__ = ["Documents", "Ref", "decode", "element_type_of", "to_element"]

logger = logging.getLogger(__name__)


class Documents(List[T]):
    """
    List that remembers its element type.

    Instantiate through a subscripted alias so the element type is recorded:
    ``Documents[User]()``. An unsubscripted ``Documents()`` decodes to dicts.
    """

    @property
    def document_class(self) -> type | None:
        orig = getattr(self, "__orig_class__", None)
        if orig is None:
            return None
        args = get_args(orig)
        if not args or isinstance(args[0], TypeVar):
            return None
        return args[0]

    def __repr__(self) -> str:
        return f"Documents({list.__repr__(self)})"


class Ref(Generic[T]):
    """
    One-slot holder for a value of any type.

    Lets a caller hand over a destination whose concrete sequence is only
    known at runtime. ``decode`` unwraps exactly one Ref.
    """

    def __init__(self, value: T) -> None:
        self.value = value

    def __repr__(self) -> str:
        return f"Ref({self.value!r})"


def element_type_of(container: MutableSequence[Any]) -> type | None:
    """Return the element type recorded on a container, if any."""
    if isinstance(container, Documents):
        return container.document_class
    return None


def to_element(document: Any, element_type: Any = None) -> Any:
    """
    Convert one result document into a fresh instance of element_type.

    Args:
        document: Document as returned by the store.
        element_type: Target type. None means a plain dict.

    Raises:
        DecodeError: If the document cannot be converted.
    """
    if not isinstance(document, Mapping):
        raise DecodeError(f"cannot decode {type(document).__name__} into a document")

    if element_type is None or element_type is Any:
        return dict(document)

    origin = get_origin(element_type) or element_type
    try:
        if not isinstance(origin, type):
            raise TypeError(f"{element_type!r} is not a class")
        if issubclass(origin, Mapping):
            if origin in (Mapping, dict) or getattr(origin, "__abstractmethods__", None):
                return dict(document)
            return origin(document)
        if hasattr(origin, "from_document"):
            return origin.from_document(document)
        if dataclasses.is_dataclass(origin):
            names = {f.name for f in dataclasses.fields(origin) if f.init}
            return origin(**{k: v for k, v in document.items() if k in names})
        return origin(**document)
    except (TypeError, ValueError, KeyError) as e:
        raise DecodeError(f"cannot decode document into {element_type!r}: {e}") from e


def _is_sequence_target(value: Any) -> bool:
    # byte buffers are mutable sequences but cannot hold documents
    return isinstance(value, MutableSequence) and not isinstance(value, (bytearray, memoryview))


async def decode(
    stream: Cursor[Any],
    target: Any,
    document_class: Any = None,
) -> None:
    """
    Decode every document of a stream into target.

    Target is left untouched unless the whole stream decodes; on success its
    contents are replaced in a single slice assignment, so stale elements
    never survive. The stream is closed on every path.

    Args:
        stream: Result stream to drain.
        target: A mutable sequence, or a Ref holding one.
        document_class: Element type override. Defaults to the type recorded
            on a ``Documents[T]`` target, else dict.

    Raises:
        InvalidTargetError: If target is not a mutable sequence.
        DecodeError: If any document fails to decode.
        StreamError: If the stream ended in a failed state.
    """
    container = target
    if isinstance(container, Ref):
        container = container.value
        if not _is_sequence_target(container):
            await stream.close()
            raise InvalidTargetError(
                "results argument must be a mutable sequence, "
                f"but was a Ref to {type(container).__name__}"
            )
    elif not _is_sequence_target(container):
        await stream.close()
        raise InvalidTargetError(
            f"results argument must be a mutable sequence, but was a {type(target).__name__}"
        )

    element_type = document_class or element_type_of(container)

    async with stream:
        decoded = [to_element(document, element_type) async for document in stream]
        if stream.error is not None:
            raise stream.error

    logger.debug("Decoded %d documents into %s", len(decoded), type(container).__name__)
    container[:] = decoded
