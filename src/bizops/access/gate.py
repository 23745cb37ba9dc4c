"""Access gate -- turns identity changes into a tri-state authorization.

States: ``loading`` until the provider reports an identity, then
``authorized`` or ``denied``. Each new identity event re-evaluates:

- no identity                 -> denied (unauthenticated), adapter closed
- identity not on allow-list  -> denied (not_allowed), adapter closed
- identity on allow-list      -> users seed (once per process), then
                                 authorized, adapter opened

Only ``authorized`` opens subscriptions; every exit from it releases them.
Identity events are handled strictly one after another in arrival order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from enum import Enum

import structlog

from src.bizops.access.seeding import seed_users
from src.bizops.access.session import SessionContext, is_allowed, normalize_email
from src.bizops.auth.base import AuthProvider, Identity
from src.bizops.core.errors import AuthorizationError
from src.bizops.store.base import RealtimeStore
from src.bizops.sync.adapter import EntityStoreAdapter

logger = structlog.get_logger(__name__)


class AccessState(str, Enum):
    LOADING = "loading"
    AUTHORIZED = "authorized"
    DENIED = "denied"


class DenialReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    NOT_ALLOWED = "not_allowed"


class AccessGate:
    """Authorization state machine guarding the entity store adapter.

    Args:
        auth: Authentication provider reporting identity changes.
        store: Store used by the users seed.
        adapter: Adapter opened on authorization and closed on exit.
        allowed_emails: Allow-list of e-mail addresses.
    """

    def __init__(
        self,
        auth: AuthProvider,
        store: RealtimeStore,
        adapter: EntityStoreAdapter,
        allowed_emails: Sequence[str],
    ) -> None:
        self._auth = auth
        self._store = store
        self._adapter = adapter
        self._allowed = tuple(normalize_email(e) for e in allowed_emails if e.strip())
        self._seed_attempted = False
        self._release_auth: Callable[[], None] | None = None
        self._transition: asyncio.Task[None] | None = None

        self.state = AccessState.LOADING
        self.reason: DenialReason | None = None
        self.identity: Identity | None = None
        self.session: SessionContext | None = None

    # ── Lifecycle ───────────────────────────────────────────────────────

    def start(self) -> None:
        """Listen to the auth provider. Must run inside the event loop."""
        if self._release_auth is None:
            self._release_auth = self._auth.on_identity_change(self._on_identity)

    async def stop(self) -> None:
        """Stop listening and release every subscription."""
        if self._release_auth is not None:
            self._release_auth()
            self._release_auth = None
        await self.wait_settled()
        self._adapter.close()

    async def wait_settled(self) -> None:
        """Wait until every queued identity event has been handled."""
        while self._transition is not None and not self._transition.done():
            await asyncio.shield(self._transition)

    # ── Transitions ─────────────────────────────────────────────────────

    def _on_identity(self, identity: Identity | None) -> None:
        previous = self._transition

        async def run() -> None:
            if previous is not None and not previous.done():
                await previous
            await self.handle_identity(identity)

        self._transition = asyncio.get_running_loop().create_task(run())

    async def handle_identity(self, identity: Identity | None) -> AccessState:
        """Evaluate one identity event and apply the resulting state."""
        if identity is None:
            self._deny(DenialReason.UNAUTHENTICATED, None)
        elif not is_allowed(identity.email, self._allowed):
            self._deny(DenialReason.NOT_ALLOWED, identity)
        else:
            await self._authorize(identity)
        return self.state

    async def _authorize(self, identity: Identity) -> None:
        if not self._seed_attempted:
            self._seed_attempted = True
            try:
                await seed_users(self._store, self._allowed)
            except Exception:
                logger.warning("access.seed_failed", exc_info=True)

        if self.session is not None and self.session.email != normalize_email(identity.email):
            # Different user: the previous session's listeners must go first.
            self._adapter.close()

        self.identity = identity
        self.session = SessionContext(
            email=normalize_email(identity.email),
            allowed_emails=self._allowed,
            uid=identity.uid,
        )
        self.state = AccessState.AUTHORIZED
        self.reason = None
        self._adapter.open()
        logger.info("access.authorized", email=self.session.email)

    def _deny(self, reason: DenialReason, identity: Identity | None) -> None:
        self._adapter.close()
        self.identity = identity
        self.session = None
        self.state = AccessState.DENIED
        self.reason = reason
        logger.info(
            "access.denied",
            reason=reason.value,
            email=identity.email if identity else None,
        )

    # ── Queries ─────────────────────────────────────────────────────────

    @property
    def is_authorized(self) -> bool:
        return self.state == AccessState.AUTHORIZED

    def require_authorized(self) -> SessionContext:
        """Return the session context or raise AuthorizationError."""
        if self.state != AccessState.AUTHORIZED or self.session is None:
            reason = self.reason.value if self.reason else self.state.value
            raise AuthorizationError(self.identity.email if self.identity else None, reason)
        return self.session
