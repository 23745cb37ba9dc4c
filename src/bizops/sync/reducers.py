"""Pure snapshot reducers: ``(collection, snapshot) -> ordered entities``.

Every notification carries the whole collection, so state is always rebuilt
from scratch here. Nothing is patched incrementally.

Ordering per collection:
- clients: ascending by name, accent- and case-insensitive
- transactions: descending by ISO date string (newest first)
- everything else: the order received from the store
"""

from __future__ import annotations

import unicodedata
from typing import Any

import structlog
from pydantic import ValidationError

from src.bizops.schemas import ENTITY_MODELS, Client, Collection, Transaction

logger = structlog.get_logger(__name__)


def name_sort_key(name: str) -> str:
    """Collation key approximating a locale-aware, case-insensitive compare."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def _sort_clients(entities: list[Client]) -> list[Client]:
    return sorted(entities, key=lambda c: name_sort_key(c.name))


def _sort_transactions(entities: list[Transaction]) -> list[Transaction]:
    return sorted(entities, key=lambda t: t.date, reverse=True)


_ORDERING = {
    Collection.CLIENTS: _sort_clients,
    Collection.TRANSACTIONS: _sort_transactions,
}


def _items(snapshot: Any) -> list[tuple[str, Any]]:
    if isinstance(snapshot, dict):
        return list(snapshot.items())
    if isinstance(snapshot, list):
        # Collections keyed 0..n come back from the store as arrays.
        return [(str(i), body) for i, body in enumerate(snapshot) if body is not None]
    return []


def reduce_snapshot(collection: Collection | str, snapshot: Any) -> tuple[Any, ...]:
    """Convert a full collection snapshot into an ordered tuple of entities.

    The storage key is attached as ``id``. Records that fail validation are
    logged and skipped so one bad record never hides the rest. An absent
    snapshot reduces to an empty tuple.
    """
    collection = Collection(collection)
    model = ENTITY_MODELS[collection]

    entities = []
    for key, body in _items(snapshot):
        if not isinstance(body, dict):
            logger.warning("reducer.record_not_object", collection=collection.value, key=key)
            continue
        try:
            entities.append(model.model_validate({**body, "id": key}))
        except ValidationError as exc:
            logger.warning(
                "reducer.record_invalid",
                collection=collection.value,
                key=key,
                errors=exc.error_count(),
            )

    order = _ORDERING.get(collection)
    if order is not None:
        entities = order(entities)
    return tuple(entities)
