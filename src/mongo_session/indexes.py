"""
Index reconciliation.

Compares the indexes a collection already has with the ones a caller wants
and works out which creation requests are still needed. Indexes are matched
by canonical key, so running the same reconciliation twice creates nothing
the second time.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .types import IndexModel, IndexSpec

__all__ = ["plan_indexes"]

logger = logging.getLogger(__name__)


def plan_indexes(
    existing: Iterable[IndexSpec],
    desired: Iterable[IndexSpec],
) -> list[IndexModel]:
    """
    Work out which desired indexes are missing.

    Args:
        existing: Indexes reported by the store.
        desired: Indexes the caller wants to exist.

    Returns:
        Creation requests for the missing indexes, in desired order. Each is
        named after its canonical key. Desired specs sharing a canonical key
        produce a single request.

    Raises:
        ValueError: If a desired spec has no keys.
    """
    seen = {index.canonical_key for index in existing}

    models: list[IndexModel] = []
    for spec in desired:
        if not spec.keys:
            raise ValueError("cannot create an index without keys")
        key = spec.canonical_key
        if key in seen:
            logger.debug("Index %s already exists, skipping", key)
            continue
        seen.add(key)
        models.append(IndexModel(keys=spec.keys, name=key, unique=spec.unique))

    return models
