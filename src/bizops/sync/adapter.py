"""Entity store adapter -- one subscription per collection, republished as typed tuples.

Opens exactly one store listener per top-level collection while the session
is authorized, reduces each full snapshot with ``reduce_snapshot`` and keeps
the result as the current state of that collection. Presentation code reads
the tuples directly or registers an ``on_change`` listener.

The adapter is the only writer of collection state. Notifications are applied
in arrival order, one at a time, with no coalescing.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from functools import partial
from typing import Any

import structlog

from src.bizops.core.monitoring import active_subscriptions, store_snapshots_total
from src.bizops.schemas import (
    Client,
    Collection,
    Opportunity,
    Project,
    Transaction,
    User,
)
from src.bizops.store.base import RealtimeStore, Snapshot, Subscription
from src.bizops.sync.reducers import reduce_snapshot

logger = structlog.get_logger(__name__)

ChangeListener = Callable[[Collection, tuple[Any, ...]], None]


class EntityStoreAdapter:
    """Keeps in-memory collection state in step with the realtime store.

    Args:
        store: Realtime store to subscribe to.
        collections: Collections to synchronize. Defaults to all five.
    """

    def __init__(
        self,
        store: RealtimeStore,
        collections: Iterable[Collection | str] | None = None,
    ) -> None:
        self._store = store
        self._collections = [Collection(c) for c in (collections or list(Collection))]
        self._subscriptions: dict[Collection, Subscription] = {}
        self._state: dict[Collection, tuple[Any, ...]] = {c: () for c in self._collections}
        self._listeners: list[ChangeListener] = []
        self._open = False
        self.errors: dict[Collection, Exception] = {}

    # ── Lifecycle ───────────────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def open(self) -> None:
        """Subscribe to every collection. No-op when already open."""
        if self._open:
            return
        self._open = True
        for collection in self._collections:
            self._subscriptions[collection] = self._store.subscribe(
                collection.value,
                partial(self._on_snapshot, collection),
                on_error=partial(self._on_error, collection),
            )
        active_subscriptions.inc(len(self._subscriptions))
        logger.info(
            "adapter.opened",
            collections=[c.value for c in self._collections],
        )

    def close(self) -> None:
        """Release every subscription and clear state. Safe to call repeatedly."""
        if not self._open:
            return
        self._open = False
        released = len(self._subscriptions)
        for subscription in self._subscriptions.values():
            subscription.release()
        self._subscriptions.clear()
        active_subscriptions.dec(released)
        self.errors.clear()
        for collection in self._collections:
            self._publish(collection, ())
        logger.info("adapter.closed", released=released)

    # ── Notifications ───────────────────────────────────────────────────

    def _on_snapshot(self, collection: Collection, snapshot: Snapshot) -> None:
        if not self._open:
            return
        store_snapshots_total.labels(collection=collection.value).inc()
        entities = reduce_snapshot(collection, snapshot)
        self.errors.pop(collection, None)
        logger.debug("adapter.snapshot", collection=collection.value, count=len(entities))
        self._publish(collection, entities)

    def _on_error(self, collection: Collection, exc: Exception) -> None:
        self.errors[collection] = exc
        logger.error("adapter.subscription_error", collection=collection.value, error=str(exc))

    def _publish(self, collection: Collection, entities: tuple[Any, ...]) -> None:
        self._state[collection] = entities
        for listener in list(self._listeners):
            try:
                listener(collection, entities)
            except Exception:
                logger.error(
                    "adapter.listener_failed",
                    collection=collection.value,
                    exc_info=True,
                )

    def on_change(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a listener called with ``(collection, entities)``.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ── State access ────────────────────────────────────────────────────

    def get(self, collection: Collection | str) -> tuple[Any, ...]:
        return self._state.get(Collection(collection), ())

    def find(self, collection: Collection | str, record_id: str | None) -> Any | None:
        """Look up a record by id. Dangling or empty ids return None."""
        if not record_id:
            return None
        for entity in self.get(collection):
            if entity.id == record_id:
                return entity
        return None

    @property
    def clients(self) -> tuple[Client, ...]:
        return self.get(Collection.CLIENTS)

    @property
    def opportunities(self) -> tuple[Opportunity, ...]:
        return self.get(Collection.OPPORTUNITIES)

    @property
    def projects(self) -> tuple[Project, ...]:
        return self.get(Collection.PROJECTS)

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self.get(Collection.TRANSACTIONS)

    @property
    def users(self) -> tuple[User, ...]:
        return self.get(Collection.USERS)
