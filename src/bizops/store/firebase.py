"""Firebase Realtime Database store over the REST + event-stream API.

Implements RealtimeStore with ``httpx.AsyncClient``:
- writes map to PUT / PATCH / DELETE on ``{database_url}/{path}.json``
- record keys are generated client-side with the push-key algorithm, then
  written with PUT, so the body and its ``id`` field land in one request
- ``read_once`` is a GET, retried with tenacity on transport errors
- ``subscribe`` opens a server-sent-events stream per path in a background
  task. The stream delivers ``put``/``patch`` events relative to the
  subscribed path; each is applied to a local mirror and the whole mirror is
  handed to the callback, so subscribers always see a full snapshot. A
  stream that ends is reopened until the subscription is released.

Writes are never retried here. A failed write surfaces to the caller.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.bizops.store.base import (
    ErrorCallback,
    RealtimeStore,
    Snapshot,
    SnapshotCallback,
    Subscription,
)
from src.bizops.store.keys import generate_push_key
from src.bizops.store.tree import get_at, merge_at, set_at, split_path

logger = structlog.get_logger(__name__)

TokenProvider = Callable[[], str | None]


class StreamClosedError(Exception):
    """Raised into ``on_error`` when the server cancels a stream."""

    def __init__(self, path: str, event: str, detail: str = "") -> None:
        self.path = path
        self.event = event
        super().__init__(f"Stream for '{path}' closed by server ({event}) {detail}".strip())


async def iter_stream_events(lines: AsyncIterator[str]) -> AsyncIterator[tuple[str, Any]]:
    """Parse a text/event-stream into ``(event, data)`` pairs.

    ``data`` is decoded JSON (``None`` for keep-alives and empty payloads).
    """
    event: str | None = None
    data_lines: list[str] = []
    async for line in lines:
        if line == "":
            if event is not None:
                raw = "\n".join(data_lines).strip()
                yield event, json.loads(raw) if raw and raw != "null" else None
            event, data_lines = None, []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        value = value[1:] if value.startswith(" ") else value
        if field == "event":
            event = value
        elif field == "data":
            data_lines.append(value)
    if event is not None:
        raw = "\n".join(data_lines).strip()
        yield event, json.loads(raw) if raw and raw != "null" else None


class FirebaseRestStore(RealtimeStore):
    """Realtime Database backend.

    Args:
        database_url: e.g. ``https://my-app-default-rtdb.firebaseio.com``.
        token_provider: Returns the current ID token (or None for open rules).
        client: Optional pre-built httpx.AsyncClient (tests pass a MockTransport).
        timeout: Request timeout in seconds for non-streaming calls.
        max_retries: Attempts for a read, and for each stream (re)connection.
        reconnect_delay: Seconds to wait before reopening a stream that ended.
    """

    def __init__(
        self,
        database_url: str,
        token_provider: TokenProvider | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: int = 30,
        max_retries: int = 3,
        reconnect_delay: float = 1.0,
    ) -> None:
        self._base = database_url.rstrip("/")
        self._token_provider = token_provider or (lambda: None)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._max_retries = max_retries
        self._reconnect_delay = reconnect_delay
        self._streams: set[asyncio.Task[None]] = set()

    def _url(self, path: str) -> str:
        return f"{self._base}/{'/'.join(split_path(path))}.json"

    def _params(self) -> dict[str, str]:
        token = self._token_provider()
        return {"auth": token} if token else {}

    # ── Writes ──────────────────────────────────────────────────────────

    async def create_under_path(self, path: str, body: dict[str, Any]) -> str:
        key = generate_push_key()
        await self.write_at_path(f"{path}/{key}", {**body, "id": key})
        return key

    async def write_at_path(self, path: str, body: Any) -> None:
        response = await self._client.put(self._url(path), params=self._params(), json=body)
        response.raise_for_status()

    async def patch_at_path(self, path: str, fields: dict[str, Any]) -> None:
        response = await self._client.patch(
            self._url(path), params=self._params(), json=fields
        )
        response.raise_for_status()

    async def remove_at_path(self, path: str) -> None:
        response = await self._client.delete(self._url(path), params=self._params())
        response.raise_for_status()

    # ── Reads ───────────────────────────────────────────────────────────

    async def read_once(self, path: str) -> Snapshot:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                response = await self._client.get(self._url(path), params=self._params())
        response.raise_for_status()
        return response.json()

    # ── Subscriptions ───────────────────────────────────────────────────

    def subscribe(
        self,
        path: str,
        callback: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        task = asyncio.get_running_loop().create_task(
            self._run_stream(path, callback, on_error)
        )
        self._streams.add(task)
        task.add_done_callback(self._streams.discard)
        logger.debug("firebase.stream_started", path=path)
        return Subscription(path, task.cancel)

    async def _run_stream(
        self,
        path: str,
        callback: SnapshotCallback,
        on_error: ErrorCallback | None,
    ) -> None:
        """Keep one stream alive until released.

        Failed connection attempts count against ``max_retries``. A stream
        that connected and then ended (closed by the server or a proxy, or
        dropped mid-read) starts over with a fresh budget. Giving up reports
        the last error to ``on_error``.
        """
        mirror: dict[str, Any] = {}
        try:
            while True:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self._max_retries),
                    wait=wait_exponential(multiplier=1, min=1, max=30),
                    retry=retry_if_exception_type(httpx.TransportError),
                    reraise=True,
                ):
                    with attempt:
                        await self._consume(path, mirror, callback)
                logger.info("firebase.stream_reconnecting", path=path)
                await asyncio.sleep(self._reconnect_delay)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("firebase.stream_failed", path=path, error=str(exc))
            if on_error is not None:
                on_error(exc)

    async def _consume(
        self,
        path: str,
        mirror: dict[str, Any],
        callback: SnapshotCallback,
    ) -> None:
        """Read one connection until it ends.

        Returns normally once the stream was established, however it ended.
        Raises when the connection could not be made or the server cancelled.
        """
        async with self._client.stream(
            "GET",
            self._url(path),
            params=self._params(),
            headers={"Accept": "text/event-stream"},
            timeout=None,
        ) as response:
            response.raise_for_status()
            try:
                await self._apply_events(path, response, mirror, callback)
            except httpx.TransportError as exc:
                logger.warning("firebase.stream_dropped", path=path, error=str(exc))
                return
        logger.info("firebase.stream_ended", path=path)

    async def _apply_events(
        self,
        path: str,
        response: httpx.Response,
        mirror: dict[str, Any],
        callback: SnapshotCallback,
    ) -> None:
        async for event, data in iter_stream_events(response.aiter_lines()):
            if event == "keep-alive":
                continue
            if event in ("cancel", "auth_revoked"):
                raise StreamClosedError(path, event, str(data or ""))
            if event not in ("put", "patch") or not isinstance(data, dict):
                logger.debug("firebase.stream_event_ignored", path=path, event=event)
                continue

            # Values live under a synthetic "v" root so a put at "/" of a
            # scalar or None is handled the same way as a nested put.
            target = "v/" + "/".join(split_path(data.get("path", "/")))
            if event == "put":
                set_at(mirror, target, data.get("data"))
            else:
                merge_at(mirror, target, data.get("data") or {})
            callback(get_at(mirror, "v"))

    async def aclose(self) -> None:
        """Cancel open streams and close the HTTP client."""
        for task in list(self._streams):
            task.cancel()
        await self._client.aclose()
