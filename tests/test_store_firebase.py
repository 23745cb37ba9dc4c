"""Unit tests for the Firebase Realtime Database REST store.

Uses httpx.MockTransport -- no network calls.

Tests cover:
- iter_stream_events: event/data parsing, comments, keep-alives, multi-line data
- writes: PUT / PATCH / DELETE URLs, auth param, push key + id on create
- read_once: GET decoding, transport retries bounded by max_retries
- subscribe: put/patch events mirrored into full snapshots, cancel -> on_error,
  reconnect after a clean end with a fresh retry budget per connection
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from src.bizops.core.errors import StoreWriteError
from src.bizops.store.firebase import FirebaseRestStore, StreamClosedError, iter_stream_events
from src.bizops.sync.gateway import MutationGateway

BASE_URL = "https://demo-default-rtdb.firebaseio.com"


# ── Helpers ────────────────────────────────────────────────────────────────


async def _lines(*lines: str):
    for line in lines:
        yield line


def _sse(*events: tuple[str, object]) -> str:
    chunks = [f"event: {name}\ndata: {json.dumps(data)}\n\n" for name, data in events]
    return "".join(chunks)


def _store(handler, token: str | None = "token-1", **options) -> FirebaseRestStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FirebaseRestStore(BASE_URL, token_provider=lambda: token, client=client, **options)


def _scripted(*responses):
    """Handler answering successive requests from ``responses``.

    Exceptions in ``responses`` are raised instead of answered.
    """
    queue = list(responses)
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    return handler, requests


# ── Event stream parsing ────────────────────────────────────────────────────


class TestIterStreamEvents:
    """Tests for the text/event-stream parser."""

    @pytest.mark.asyncio
    async def test_parses_events_in_order(self):
        lines = _lines(
            "event: put",
            'data: {"path": "/", "data": {"a": 1}}',
            "",
            "event: patch",
            'data: {"path": "/a", "data": {"b": 2}}',
            "",
        )
        events = [event async for event in iter_stream_events(lines)]
        assert events == [
            ("put", {"path": "/", "data": {"a": 1}}),
            ("patch", {"path": "/a", "data": {"b": 2}}),
        ]

    @pytest.mark.asyncio
    async def test_keep_alive_and_comments(self):
        lines = _lines(": comment", "event: keep-alive", "data: null", "")
        events = [event async for event in iter_stream_events(lines)]
        assert events == [("keep-alive", None)]

    @pytest.mark.asyncio
    async def test_multiline_data_joined(self):
        lines = _lines("event: put", 'data: {"path": "/",', 'data: "data": 3}', "")
        events = [event async for event in iter_stream_events(lines)]
        assert events == [("put", {"path": "/", "data": 3})]

    @pytest.mark.asyncio
    async def test_trailing_event_without_blank_line(self):
        lines = _lines("event: cancel", 'data: "permission denied"')
        events = [event async for event in iter_stream_events(lines)]
        assert events == [("cancel", "permission denied")]


# ── Writes and reads ────────────────────────────────────────────────────────


class TestFirebaseRestWrites:
    """Tests for REST writes and one-shot reads."""

    @pytest.mark.asyncio
    async def test_create_puts_body_with_generated_id(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=json.loads(request.content))

        store = _store(handler)
        key = await store.create_under_path("clients", {"name": "Ana Silva"})

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "PUT"
        assert request.url.path == f"/clients/{key}.json"
        assert request.url.params["auth"] == "token-1"
        assert json.loads(request.content) == {"name": "Ana Silva", "id": key}

    @pytest.mark.asyncio
    async def test_patch_and_delete(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=None)

        store = _store(handler, token=None)
        await store.patch_at_path("opportunities/o1", {"status": "proposal"})
        await store.remove_at_path("projects/p1/tasks/t1")

        assert [r.method for r in requests] == ["PATCH", "DELETE"]
        assert requests[0].url.path == "/opportunities/o1.json"
        assert json.loads(requests[0].content) == {"status": "proposal"}
        assert requests[1].url.path == "/projects/p1/tasks/t1.json"
        assert "auth" not in requests[0].url.params

    @pytest.mark.asyncio
    async def test_write_failure_raises_http_error(self):
        store = _store(lambda request: httpx.Response(401, json={"error": "Permission denied"}))
        with pytest.raises(httpx.HTTPStatusError):
            await store.write_at_path("clients/c1", {"name": "Ana"})

    @pytest.mark.asyncio
    async def test_gateway_wraps_rest_failure(self):
        """A rejected REST write surfaces as StoreWriteError through the gateway."""
        store = _store(lambda request: httpx.Response(500, json={"error": "boom"}))
        gateway = MutationGateway(store)

        with pytest.raises(StoreWriteError) as exc_info:
            await gateway.patch("opportunities", "o1", {"status": "proposal"})

        assert exc_info.value.path == "opportunities/o1"
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_read_once_decodes_json(self):
        store = _store(lambda request: httpx.Response(200, json={"u1": {"email": "a@b.com"}}))
        assert await store.read_once("users") == {"u1": {"email": "a@b.com"}}

    @pytest.mark.asyncio
    async def test_read_once_absent_is_none(self):
        store = _store(lambda request: httpx.Response(200, content=b"null"))
        assert await store.read_once("users") is None

    @pytest.mark.asyncio
    async def test_read_once_retries_up_to_max_retries(self):
        handler, requests = _scripted(
            httpx.ConnectError("refused"),
            httpx.Response(200, json={"u1": {"email": "a@b.com"}}),
        )
        store = _store(handler, max_retries=2)

        assert await store.read_once("users") == {"u1": {"email": "a@b.com"}}
        assert len(requests) == 2

    @pytest.mark.asyncio
    async def test_read_once_gives_up_after_max_retries(self):
        handler, requests = _scripted(httpx.ConnectError("refused"))
        store = _store(handler, max_retries=1)

        with pytest.raises(httpx.ConnectError):
            await store.read_once("users")
        assert len(requests) == 1


# ── Subscriptions ───────────────────────────────────────────────────────────


class TestFirebaseRestSubscribe:
    """Tests for event-stream subscriptions."""

    @pytest.mark.asyncio
    async def test_events_mirrored_as_full_snapshots(self):
        body = _sse(
            ("put", {"path": "/", "data": {"c1": {"name": "Ana"}}}),
            ("keep-alive", None),
            ("patch", {"path": "/c1", "data": {"phone": "11"}}),
            ("put", {"path": "/c2", "data": {"name": "Bruno"}}),
            ("put", {"path": "/c1", "data": None}),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Accept"] == "text/event-stream"
            return httpx.Response(
                200, text=body, headers={"Content-Type": "text/event-stream"}
            )

        store = _store(handler)
        snapshots: list = []
        done = asyncio.Event()

        def on_snapshot(snapshot):
            snapshots.append(snapshot)
            if len(snapshots) == 4:
                done.set()

        store.subscribe("clients", on_snapshot)
        await asyncio.wait_for(done.wait(), timeout=2)

        assert snapshots == [
            {"c1": {"name": "Ana"}},
            {"c1": {"name": "Ana", "phone": "11"}},
            {"c1": {"name": "Ana", "phone": "11"}, "c2": {"name": "Bruno"}},
            {"c2": {"name": "Bruno"}},
        ]
        await store.aclose()

    @pytest.mark.asyncio
    async def test_empty_collection_snapshot_is_none(self):
        body = _sse(("put", {"path": "/", "data": None}))
        store = _store(lambda request: httpx.Response(200, text=body))
        seen = asyncio.Queue()

        store.subscribe("users", seen.put_nowait)

        assert await asyncio.wait_for(seen.get(), timeout=2) is None
        await store.aclose()

    @pytest.mark.asyncio
    async def test_cancel_event_reported_to_on_error(self):
        body = _sse(("cancel", "Permission denied"))
        store = _store(lambda request: httpx.Response(200, text=body))
        errors = asyncio.Queue()

        store.subscribe("clients", lambda snapshot: None, on_error=errors.put_nowait)

        error = await asyncio.wait_for(errors.get(), timeout=2)
        assert isinstance(error, StreamClosedError)
        assert error.event == "cancel"
        assert error.path == "clients"
        await store.aclose()

    @pytest.mark.asyncio
    async def test_release_cancels_stream(self):
        opened = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            opened.set()
            await asyncio.sleep(10)
            return httpx.Response(200, text="")

        store = _store(handler)
        subscription = store.subscribe("clients", lambda snapshot: None)
        await asyncio.wait_for(opened.wait(), timeout=2)

        subscription.release()
        await asyncio.sleep(0)

        assert subscription.active is False
        await store.aclose()

    @pytest.mark.asyncio
    async def test_stream_reopened_after_server_closes_it(self):
        handler, requests = _scripted(
            httpx.Response(200, text=_sse(("put", {"path": "/", "data": {"c1": {"name": "Ana"}}}))),
            httpx.Response(
                200,
                text=_sse(
                    ("put", {"path": "/", "data": {"c1": {"name": "Ana"}, "c2": {"name": "Bruno"}}})
                ),
            ),
            httpx.Response(401, json={"error": "Permission denied"}),
        )
        store = _store(handler, reconnect_delay=0)
        snapshots: list = []
        errors = asyncio.Queue()

        store.subscribe("clients", snapshots.append, on_error=errors.put_nowait)

        error = await asyncio.wait_for(errors.get(), timeout=2)
        assert isinstance(error, httpx.HTTPStatusError)
        assert len(requests) == 3
        assert snapshots == [
            {"c1": {"name": "Ana"}},
            {"c1": {"name": "Ana"}, "c2": {"name": "Bruno"}},
        ]
        await store.aclose()

    @pytest.mark.asyncio
    async def test_retry_budget_resets_after_each_connection(self):
        put = _sse(("put", {"path": "/", "data": {"c1": {"name": "Ana"}}}))
        handler, requests = _scripted(
            httpx.Response(200, text=put),
            httpx.ConnectError("refused"),
            httpx.Response(200, text=put),
            httpx.ConnectError("refused"),
            httpx.Response(200, text=put),
            httpx.ConnectError("refused"),
            httpx.ConnectError("refused"),
        )
        store = _store(handler, max_retries=2, reconnect_delay=0)
        snapshots: list = []
        errors = asyncio.Queue()

        store.subscribe("clients", snapshots.append, on_error=errors.put_nowait)

        error = await asyncio.wait_for(errors.get(), timeout=10)
        assert isinstance(error, httpx.ConnectError)
        assert len(requests) == 7
        assert len(snapshots) == 3
        await store.aclose()
