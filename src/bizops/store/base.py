"""Realtime store abstract base class -- the interface every store backend implements.

Every backend (in-memory, Firebase Realtime Database over REST) implements
this ABC. The entity store adapter only ever subscribes; the mutation gateway
only ever writes. Document paths follow two conventions:

    {collection}/{id}
    projects/{project_id}/tasks/{task_id}
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Snapshot = dict[str, Any] | None
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]


def record_path(collection: str, record_id: str) -> str:
    """Path of one top-level record, e.g. ``clients/-Nabc``."""
    return f"{collection}/{record_id}"


def task_path(project_id: str, task_id: str) -> str:
    """Path of one task embedded in a project."""
    return f"projects/{project_id}/tasks/{task_id}"


class Subscription:
    """Handle returned by ``RealtimeStore.subscribe``.

    ``release()`` is synchronous and idempotent: calling it a second time
    (e.g. from a teardown path) does nothing and never re-invokes the
    subscriber's callback.

    Args:
        path: Subscribed path, kept for logging.
        release: Backend-specific function detaching the listener.
    """

    def __init__(self, path: str, release: Callable[[], None]) -> None:
        self.path = path
        self._release = release
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release()
        logger.debug("store.subscription_released", path=self.path)


class RealtimeStore(ABC):
    """Abstract interface for realtime store operations.

    Methods:
        subscribe: Register a callback receiving the whole value at a path on
            every change (full snapshot, never a diff).
        create_under_path: Allocate a new unique key under a path and write the
            body there with the key added as ``id``. Returns the key.
        write_at_path: Replace the value at a path.
        patch_at_path: Update only the given child fields at a path.
        remove_at_path: Delete the value at a path.
        read_once: Fetch the current value at a path.
    """

    @abstractmethod
    def subscribe(
        self,
        path: str,
        callback: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Subscribe to full snapshots at ``path``."""
        ...

    @abstractmethod
    async def create_under_path(self, path: str, body: dict[str, Any]) -> str:
        """Create a record under ``path`` with a store-assigned key, return the key."""
        ...

    @abstractmethod
    async def write_at_path(self, path: str, body: Any) -> None:
        """Replace the value at ``path``."""
        ...

    @abstractmethod
    async def patch_at_path(self, path: str, fields: dict[str, Any]) -> None:
        """Update the given fields at ``path``, leaving the rest untouched."""
        ...

    @abstractmethod
    async def remove_at_path(self, path: str) -> None:
        """Delete the value at ``path``."""
        ...

    @abstractmethod
    async def read_once(self, path: str) -> Snapshot:
        """Return the current value at ``path`` (None when absent)."""
        ...
