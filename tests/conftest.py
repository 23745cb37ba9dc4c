"""Shared test fixtures for the operations console.

Provides:
- InMemoryStore (empty or pre-populated) as the realtime store
- FakeAuthProvider: scripted identities, no network
- EntityStoreAdapter / MutationGateway wired to the store
"""

from __future__ import annotations

import pytest

from src.bizops.auth.base import AuthProvider, Identity
from src.bizops.store.memory import InMemoryStore
from src.bizops.sync.adapter import EntityStoreAdapter
from src.bizops.sync.gateway import MutationGateway


class FakeAuthProvider(AuthProvider):
    """Auth provider whose login result is set by the test."""

    def __init__(self, email: str | None = None) -> None:
        super().__init__()
        self.next_email = email
        self.logins = 0

    async def begin_interactive_login(self) -> Identity:
        self.logins += 1
        identity = Identity(email=self.next_email or "", uid=f"uid-{self.logins}")
        self._emit(identity)
        return identity

    async def end_session(self) -> None:
        self._emit(None)

    def sign_in_as(self, email: str) -> Identity:
        """Emit an identity synchronously (simulates a restored session)."""
        identity = Identity(email=email, uid=f"uid-{email}")
        self._emit(identity)
        return identity


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def store() -> InMemoryStore:
    """Empty in-memory realtime store."""
    return InMemoryStore()


@pytest.fixture
def adapter(store: InMemoryStore) -> EntityStoreAdapter:
    """Entity store adapter over the in-memory store (not yet opened)."""
    return EntityStoreAdapter(store)


@pytest.fixture
def gateway(store: InMemoryStore) -> MutationGateway:
    """Mutation gateway writing to the in-memory store."""
    return MutationGateway(store)


@pytest.fixture
def auth() -> FakeAuthProvider:
    """Fake auth provider with no identity."""
    return FakeAuthProvider()
