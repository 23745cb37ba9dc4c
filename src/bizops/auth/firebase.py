"""Firebase Authentication provider (e-mail + password via Identity Toolkit REST).

``begin_interactive_login`` asks the injected prompt for credentials, signs in
with ``accounts:signInWithPassword`` and emits the resulting identity. The ID
token it carries is what the REST store sends as ``auth``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx
import structlog

from src.bizops.auth.base import AuthProvider, Identity
from src.bizops.core.errors import AuthorizationError

logger = structlog.get_logger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

CredentialsPrompt = Callable[[], Awaitable[tuple[str, str]]]


class FirebasePasswordAuthProvider(AuthProvider):
    """Password sign-in against Firebase Authentication.

    Args:
        api_key: Web API key of the Firebase project.
        prompt: Coroutine function returning ``(email, password)``.
        client: Optional pre-built httpx.AsyncClient.
    """

    def __init__(
        self,
        api_key: str,
        prompt: CredentialsPrompt,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._api_key = api_key
        self._prompt = prompt
        self._client = client or httpx.AsyncClient(timeout=30)

    async def begin_interactive_login(self) -> Identity:
        email, password = await self._prompt()
        response = await self._client.post(
            SIGN_IN_URL,
            params={"key": self._api_key},
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        if response.status_code >= 400:
            message = response.json().get("error", {}).get("message", "login failed")
            logger.warning("auth.login_failed", email=email, reason=message)
            raise AuthorizationError(email, message.lower())

        payload = response.json()
        identity = Identity(
            email=payload["email"],
            uid=payload.get("localId"),
            display_name=payload.get("displayName") or None,
            id_token=payload.get("idToken"),
        )
        self._emit(identity)
        return identity

    async def end_session(self) -> None:
        self._emit(None)

    async def aclose(self) -> None:
        await self._client.aclose()
