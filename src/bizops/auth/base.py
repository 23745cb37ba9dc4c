"""Authentication provider abstract base class.

The console never authenticates anyone itself. A provider runs the login
flow, ends sessions and reports identity changes; the access gate decides
what an identity is allowed to do.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)


class Identity(BaseModel):
    """Signed-in identity as reported by the provider."""

    email: str
    uid: str | None = None
    display_name: str | None = None
    id_token: str | None = Field(default=None, repr=False)


IdentityCallback = Callable[[Identity | None], None]


class AuthProvider(ABC):
    """Abstract interface for authentication collaborators.

    Subclasses implement ``begin_interactive_login`` and ``end_session`` and
    call ``_emit`` whenever the signed-in identity changes. Listener
    bookkeeping lives here.
    """

    def __init__(self) -> None:
        self._identity: Identity | None = None
        self._callbacks: list[IdentityCallback] = []

    @property
    def current_identity(self) -> Identity | None:
        return self._identity

    @abstractmethod
    async def begin_interactive_login(self) -> Identity:
        """Run the login flow and return the signed-in identity."""
        ...

    @abstractmethod
    async def end_session(self) -> None:
        """Sign out the current identity."""
        ...

    def on_identity_change(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register ``callback``; it is invoked at once with the current identity.

        Returns a function that unregisters the callback.
        """
        self._callbacks.append(callback)
        callback(self._identity)

        def release() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return release

    def id_token(self) -> str | None:
        """Current token for store requests (None when signed out)."""
        return self._identity.id_token if self._identity else None

    def _emit(self, identity: Identity | None) -> None:
        self._identity = identity
        logger.info(
            "auth.identity_changed",
            email=identity.email if identity else None,
        )
        for callback in list(self._callbacks):
            callback(identity)
