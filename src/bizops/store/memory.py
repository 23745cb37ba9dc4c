"""In-process realtime store.

Holds the whole database as one JSON tree and pushes full snapshots to
subscribers synchronously, inside each write, in the order writes arrive.
Subscribers are also called once on subscribe with the current value,
matching the hosted database's listener semantics. Used for local runs of
the console and throughout the test-suite.
"""

from __future__ import annotations

import itertools
from typing import Any

import structlog

from src.bizops.store.base import (
    ErrorCallback,
    RealtimeStore,
    Snapshot,
    SnapshotCallback,
    Subscription,
)
from src.bizops.store.keys import generate_push_key
from src.bizops.store.tree import get_at, merge_at, overlaps, set_at, split_path

logger = structlog.get_logger(__name__)


class InMemoryStore(RealtimeStore):
    """Authoritative JSON tree with push notifications.

    Args:
        initial: Optional starting tree, e.g. ``{"clients": {...}}``.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._root: dict[str, Any] = {}
        if initial:
            set_at(self._root, "", initial)
        self._listeners: dict[int, tuple[str, SnapshotCallback]] = {}
        self._ids = itertools.count(1)

    # ── Subscriptions ───────────────────────────────────────────────────

    def subscribe(
        self,
        path: str,
        callback: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        listener_id = next(self._ids)
        self._listeners[listener_id] = (path, callback)
        logger.debug("memory_store.subscribed", path=path, listener_id=listener_id)
        callback(get_at(self._root, path))
        return Subscription(path, lambda: self._listeners.pop(listener_id, None))

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _notify(self, written: str) -> None:
        for path, callback in list(self._listeners.values()):
            if overlaps(path, written):
                callback(get_at(self._root, path))

    # ── Writes ──────────────────────────────────────────────────────────

    async def create_under_path(self, path: str, body: dict[str, Any]) -> str:
        key = generate_push_key()
        full = "/".join([*split_path(path), key])
        set_at(self._root, full, {**body, "id": key})
        self._notify(full)
        return key

    async def write_at_path(self, path: str, body: Any) -> None:
        set_at(self._root, path, body)
        self._notify(path)

    async def patch_at_path(self, path: str, fields: dict[str, Any]) -> None:
        merge_at(self._root, path, fields)
        self._notify(path)

    async def remove_at_path(self, path: str) -> None:
        set_at(self._root, path, None)
        self._notify(path)

    async def read_once(self, path: str) -> Snapshot:
        return get_at(self._root, path)
