"""Unit tests for MutationGateway.

Tests cover:
- create round-trip: written body reads back equal plus the assigned id
- replace re-asserts id, patch leaves other fields untouched
- delete requires explicit confirmation; unconfirmed delete never hits the store
- embedded task writes at projects/{id}/tasks/{taskId}
- store failures wrapped in StoreWriteError
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.bizops.core.errors import StoreWriteError
from src.bizops.schemas import Collection
from src.bizops.store.base import RealtimeStore
from src.bizops.sync.gateway import DELETE_PROMPT, MutationGateway, is_confirmed


class TestCreateAndReplace:
    """Tests for create, replace and patch."""

    @pytest.mark.asyncio
    async def test_create_round_trip(self, store, adapter, gateway):
        """A created record comes back through the adapter with equal fields plus its id."""
        adapter.open()
        body = {
            "name": "Ana Silva",
            "email": "ana@example.com",
            "phone": "11999990000",
            "company": "ACME",
        }

        new_id = await gateway.create(Collection.CLIENTS, body)

        (client,) = adapter.clients
        assert client.to_store() == {**body, "id": new_id}

    @pytest.mark.asyncio
    async def test_replace_overwrites_and_keeps_id(self, store, gateway):
        await store.write_at_path("clients/c1", {"name": "Old", "phone": "1", "id": "c1"})

        await gateway.replace(Collection.CLIENTS, "c1", {"name": "New"})

        assert await store.read_once("clients/c1") == {"name": "New", "id": "c1"}

    @pytest.mark.asyncio
    async def test_patch_only_touches_given_fields(self, store, gateway):
        await store.write_at_path("opportunities/o1", {"title": "Site", "status": "lead", "value": 10})

        await gateway.patch(Collection.OPPORTUNITIES, "o1", {"status": "proposal"})

        assert await store.read_once("opportunities/o1") == {
            "title": "Site",
            "status": "proposal",
            "value": 10,
        }


class TestDelete:
    """Tests for confirmation-gated deletes."""

    @pytest.mark.asyncio
    async def test_delete_without_confirm_writes_nothing(self):
        store = AsyncMock(spec=RealtimeStore)
        gateway = MutationGateway(store)

        deleted = await gateway.delete(Collection.CLIENTS, "c1")

        assert deleted is False
        store.remove_at_path.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_declined_writes_nothing(self):
        store = AsyncMock(spec=RealtimeStore)
        gateway = MutationGateway(store)

        deleted = await gateway.delete(Collection.CLIENTS, "c1", confirm=lambda prompt: False)

        assert deleted is False
        store.remove_at_path.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_confirmed_removes_record(self, store, gateway):
        await store.write_at_path("clients/c1", {"name": "Ana"})
        prompts = []

        deleted = await gateway.delete(
            Collection.CLIENTS, "c1", confirm=lambda prompt: prompts.append(prompt) or True
        )

        assert deleted is True
        assert prompts == [DELETE_PROMPT]
        assert await store.read_once("clients/c1") is None

    def test_is_confirmed_without_callback(self):
        assert is_confirmed(None) is False
        assert is_confirmed(lambda prompt: True) is True


class TestTaskWrites:
    """Tests for embedded task paths."""

    @pytest.mark.asyncio
    async def test_write_patch_remove_task(self, store, gateway):
        await store.write_at_path("projects/p1", {"name": "Portal"})

        await gateway.write_task("p1", {"id": "t1", "title": "Draft", "status": "backlog"})
        await gateway.patch_task("p1", "t1", {"status": "em_andamento"})

        assert await store.read_once("projects/p1/tasks/t1") == {
            "id": "t1",
            "title": "Draft",
            "status": "em_andamento",
        }

        await gateway.remove_task("p1", "t1")
        assert await store.read_once("projects/p1") == {"name": "Portal"}


class TestWriteFailures:
    """Tests for StoreWriteError wrapping."""

    @pytest.fixture
    def failing_store(self):
        store = AsyncMock(spec=RealtimeStore)
        failure = ConnectionError("network down")
        store.create_under_path.side_effect = failure
        store.write_at_path.side_effect = failure
        store.patch_at_path.side_effect = failure
        store.remove_at_path.side_effect = failure
        return store

    @pytest.mark.asyncio
    async def test_create_failure(self, failing_store):
        gateway = MutationGateway(failing_store)

        with pytest.raises(StoreWriteError) as exc_info:
            await gateway.create(Collection.CLIENTS, {"name": "Ana"})

        assert exc_info.value.operation == "create"
        assert exc_info.value.path == "clients"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_task_patch_failure_reports_task_path(self, failing_store):
        gateway = MutationGateway(failing_store)

        with pytest.raises(StoreWriteError) as exc_info:
            await gateway.patch_task("p1", "t1", {"status": "concluida"})

        assert exc_info.value.path == "projects/p1/tasks/t1"

    @pytest.mark.asyncio
    async def test_confirmed_delete_failure(self, failing_store):
        gateway = MutationGateway(failing_store)

        with pytest.raises(StoreWriteError):
            await gateway.delete(Collection.PROJECTS, "p1", confirm=lambda prompt: True)
