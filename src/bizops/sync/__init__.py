"""State synchronization layer.

- reduce_snapshot: pure ``(collection, snapshot) -> ordered tuple`` reducer
- EntityStoreAdapter: one subscription per collection, republished as state
- MutationGateway: create / replace / patch / delete write-through
- FormSession: validated, failure-preserving edit forms
"""

from src.bizops.sync.adapter import EntityStoreAdapter
from src.bizops.sync.forms import FormSession
from src.bizops.sync.gateway import MutationGateway, is_confirmed
from src.bizops.sync.reducers import reduce_snapshot

__all__ = [
    "EntityStoreAdapter",
    "FormSession",
    "MutationGateway",
    "is_confirmed",
    "reduce_snapshot",
]
