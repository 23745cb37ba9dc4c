"""Realtime store layer -- pluggable backend behind one push-based interface.

Provides abstract RealtimeStore interface with concrete implementations:
- InMemoryStore: in-process JSON tree with synchronous push notifications
- FirebaseRestStore: Firebase Realtime Database over REST and event streams

Path conventions: ``{collection}/{id}`` and ``projects/{id}/tasks/{taskId}``.
"""

from src.bizops.store.base import (
    RealtimeStore,
    Snapshot,
    Subscription,
    record_path,
    task_path,
)
from src.bizops.store.firebase import FirebaseRestStore
from src.bizops.store.memory import InMemoryStore

__all__ = [
    "RealtimeStore",
    "Snapshot",
    "Subscription",
    "record_path",
    "task_path",
    "InMemoryStore",
    "FirebaseRestStore",
]
