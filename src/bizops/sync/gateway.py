"""Mutation gateway -- the only component that writes to the realtime store.

Performs create, full replace, field patch and delete under the path
conventions ``{collection}/{id}`` and ``projects/{id}/tasks/{taskId}``.
The gateway never touches local state: the adapter's subscription observes
each write and republishes the collection.

Every store failure is wrapped in StoreWriteError, logged and counted. Writes
are not retried; the caller decides what to tell the user.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from src.bizops.core.errors import StoreWriteError
from src.bizops.core.monitoring import track_write
from src.bizops.schemas import Collection
from src.bizops.store.base import RealtimeStore, record_path, task_path

logger = structlog.get_logger(__name__)

Confirm = Callable[[str], bool]

DELETE_PROMPT = "Are you sure you want to delete this record? This cannot be undone."


def is_confirmed(confirm: Confirm | None, prompt: str = DELETE_PROMPT) -> bool:
    """Ask for confirmation. A missing callback counts as "not confirmed"."""
    if confirm is None:
        return False
    return bool(confirm(prompt))


class MutationGateway:
    """Write-through entry point for every mutation.

    Args:
        store: Realtime store receiving the writes.
    """

    def __init__(self, store: RealtimeStore) -> None:
        self._store = store

    async def _execute(
        self,
        operation: str,
        collection: Collection,
        path: str,
        call: Callable[[], Awaitable[Any]],
    ) -> Any:
        try:
            result = await call()
        except Exception as exc:
            track_write(operation, collection.value, ok=False)
            logger.error(
                "gateway.write_failed",
                operation=operation,
                path=path,
                error=str(exc),
            )
            raise StoreWriteError(operation, path, str(exc)) from exc
        track_write(operation, collection.value, ok=True)
        logger.info("gateway.write", operation=operation, path=path)
        return result

    # ── Top-level records ───────────────────────────────────────────────

    async def create(self, collection: Collection | str, body: dict[str, Any]) -> str:
        """Create a record with a store-assigned key. Returns the new id."""
        collection = Collection(collection)
        return await self._execute(
            "create",
            collection,
            collection.value,
            lambda: self._store.create_under_path(collection.value, body),
        )

    async def replace(
        self, collection: Collection | str, record_id: str, body: dict[str, Any]
    ) -> None:
        """Write the full record at its existing key, re-asserting ``id``."""
        collection = Collection(collection)
        path = record_path(collection.value, record_id)
        await self._execute(
            "replace",
            collection,
            path,
            lambda: self._store.write_at_path(path, {**body, "id": record_id}),
        )

    async def patch(
        self, collection: Collection | str, record_id: str, fields: dict[str, Any]
    ) -> None:
        """Write only ``fields`` at the record; other fields are untouched."""
        collection = Collection(collection)
        path = record_path(collection.value, record_id)
        await self._execute(
            "patch", collection, path, lambda: self._store.patch_at_path(path, fields)
        )

    async def delete(
        self,
        collection: Collection | str,
        record_id: str,
        *,
        confirm: Confirm | None = None,
    ) -> bool:
        """Delete a record after explicit confirmation.

        Returns False (and writes nothing) when the user did not confirm.
        Deletion is permanent.
        """
        collection = Collection(collection)
        path = record_path(collection.value, record_id)
        if not is_confirmed(confirm):
            logger.info("gateway.delete_not_confirmed", path=path)
            return False
        await self._execute(
            "delete", collection, path, lambda: self._store.remove_at_path(path)
        )
        return True

    # ── Embedded tasks ──────────────────────────────────────────────────

    async def write_task(self, project_id: str, task: dict[str, Any]) -> None:
        path = task_path(project_id, task["id"])
        await self._execute(
            "replace",
            Collection.PROJECTS,
            path,
            lambda: self._store.write_at_path(path, task),
        )

    async def patch_task(self, project_id: str, task_id: str, fields: dict[str, Any]) -> None:
        path = task_path(project_id, task_id)
        await self._execute(
            "patch",
            Collection.PROJECTS,
            path,
            lambda: self._store.patch_at_path(path, fields),
        )

    async def remove_task(self, project_id: str, task_id: str) -> None:
        """Remove one task. Callers gate this behind ``is_confirmed``."""
        path = task_path(project_id, task_id)
        await self._execute(
            "delete",
            Collection.PROJECTS,
            path,
            lambda: self._store.remove_at_path(path),
        )
