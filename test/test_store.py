"""
Tests for the document store adapters and their subscriptions.
"""

from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any

import pytest
import pytest_asyncio

from conftest import JAN_15_1800_UTC
from powerqueue.calls.models import CallOutcome
from powerqueue.config import Settings
from powerqueue.shared.database import DatabaseManager
from powerqueue.shared.exceptions import NotFoundError, StoreError
from powerqueue.store.factory import create_document_store
from powerqueue.store.interface import ContactFilters, DocumentStore
from powerqueue.store.memory import InMemoryDocumentStore
from powerqueue.store.sql import SqlDocumentStore


def _fields(name: str, order_key: float, **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": name,
        "phone": "+15125550100",
        "email": "",
        "organization": "Hill Country College",
        "title": "Registrar",
        "region": "TX",
        "timezone": "America/Chicago",
        "do_not_call": False,
        "notes": "",
        "order_key": order_key,
        "created_at": JAN_15_1800_UTC,
        "updated_at": JAN_15_1800_UTC,
    }
    data.update(overrides)
    return data


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request: pytest.FixtureRequest, tmp_path) -> AsyncGenerator[DocumentStore, None]:
    if request.param == "memory":
        yield InMemoryDocumentStore()
        return
    db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'contract.db'}")
    await db.create_all()
    sql_store = SqlDocumentStore(db)
    yield sql_store
    await sql_store.close()


class TestDocumentStoreContract:
    """Behaviour shared by every adapter."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store: DocumentStore) -> None:
        contact_id = await store.create_contact("op-1", _fields("Dana", 2.0))
        contact = await store.get_contact("op-1", contact_id)
        assert contact is not None
        assert contact.name == "Dana"
        assert contact.created_at == JAN_15_1800_UTC

    @pytest.mark.asyncio
    async def test_scopes_are_isolated(self, store: DocumentStore) -> None:
        contact_id = await store.create_contact("op-1", _fields("Dana", 1.0))
        assert await store.get_contact("op-2", contact_id) is None
        assert await store.list_contacts("op-2", ContactFilters()) == []

    @pytest.mark.asyncio
    async def test_list_ordered_and_filtered(self, store: DocumentStore) -> None:
        await store.create_contact("op-1", _fields("Second", 2.0))
        await store.create_contact("op-1", _fields("First", 1.0))
        await store.create_contact("op-1", _fields("Flagged", 0.5, do_not_call=True, region="CA"))

        ordered = await store.list_contacts("op-1", ContactFilters())
        assert [c.name for c in ordered] == ["Flagged", "First", "Second"]

        callable_only = await store.list_contacts("op-1", ContactFilters(do_not_call=False))
        assert [c.name for c in callable_only] == ["First", "Second"]

        by_region = await store.list_contacts("op-1", ContactFilters(region="CA"))
        assert [c.name for c in by_region] == ["Flagged"]

        by_name = await store.list_contacts("op-1", ContactFilters(order_by="name"))
        assert [c.name for c in by_name] == ["First", "Flagged", "Second"]

    @pytest.mark.asyncio
    async def test_update(self, store: DocumentStore) -> None:
        contact_id = await store.create_contact("op-1", _fields("Dana", 1.0))
        await store.update_contact("op-1", contact_id, {"do_not_call": True, "notes": "gatekeeper"})
        contact = await store.get_contact("op-1", contact_id)
        assert contact is not None
        assert contact.do_not_call is True
        assert contact.notes == "gatekeeper"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: DocumentStore) -> None:
        with pytest.raises(NotFoundError):
            await store.update_contact("op-1", "missing", {"notes": "x"})

    @pytest.mark.asyncio
    async def test_deletes_of_missing_ids_are_noops(self, store: DocumentStore) -> None:
        await store.delete_contact("op-1", "missing")
        await store.delete_call_log("op-1", "missing")

    @pytest.mark.asyncio
    async def test_call_logs_newest_first(self, store: DocumentStore) -> None:
        contact_id = await store.create_contact("op-1", _fields("Dana", 1.0))
        first = await store.create_call_log("op-1", contact_id, CallOutcome.NO_ANSWER, JAN_15_1800_UTC)
        second = await store.create_call_log(
            "op-1",
            contact_id,
            CallOutcome.CONVERSATION,
            JAN_15_1800_UTC + timedelta(minutes=5),
        )
        await store.create_call_log("op-1", "other", CallOutcome.NO_ANSWER, JAN_15_1800_UTC)

        history = await store.query_call_logs_by_contact("op-1", contact_id)
        assert [e.id for e in history] == [second, first]
        assert history[0].outcome is CallOutcome.CONVERSATION
        assert history[0].timestamp == JAN_15_1800_UTC + timedelta(minutes=5)

        await store.delete_call_log("op-1", first)
        assert [e.id for e in await store.query_call_logs_by_contact("op-1", contact_id)] == [second]

    @pytest.mark.asyncio
    async def test_subscription_snapshots(self, store: DocumentStore) -> None:
        snapshots: list[list[str]] = []
        subscription = await store.subscribe_contacts(
            "op-1",
            lambda contacts: snapshots.append([c.name for c in contacts]),
        )
        assert snapshots == [[]]

        contact_id = await store.create_contact("op-1", _fields("Dana", 1.0))
        assert snapshots[-1] == ["Dana"]

        await store.create_contact("op-2", _fields("Elsewhere", 1.0))
        assert len(snapshots) == 2

        subscription.cancel()
        assert subscription.active is False
        await store.delete_contact("op-1", contact_id)
        assert len(snapshots) == 2

    @pytest.mark.asyncio
    async def test_filtered_subscription(self, store: DocumentStore) -> None:
        snapshots: list[list[str]] = []
        await store.subscribe_contacts(
            "op-1",
            lambda contacts: snapshots.append([c.name for c in contacts]),
            ContactFilters(do_not_call=False),
        )
        contact_id = await store.create_contact("op-1", _fields("Dana", 1.0))
        await store.update_contact("op-1", contact_id, {"do_not_call": True})
        assert snapshots[-1] == []

    @pytest.mark.asyncio
    async def test_call_log_subscription(self, store: DocumentStore) -> None:
        counts: list[int] = []
        await store.subscribe_call_logs("op-1", lambda entries: counts.append(len(entries)))
        await store.create_call_log("op-1", "c1", CallOutcome.NO_ANSWER, JAN_15_1800_UTC)
        assert counts == [0, 1]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_fail_write(self, store: DocumentStore) -> None:
        def boom(_: object) -> None:
            raise RuntimeError("listener down")

        await store.subscribe_call_logs("op-1", boom)
        entry_id = await store.create_call_log("op-1", "c1", CallOutcome.NO_ANSWER, JAN_15_1800_UTC)
        assert entry_id


class TestContactFilters:
    def test_invalid_order_by(self) -> None:
        with pytest.raises(ValueError):
            ContactFilters(order_by="phone")


class TestInMemoryFailureInjection:
    @pytest.mark.asyncio
    async def test_configured_operation_fails(self, memory_store: InMemoryDocumentStore) -> None:
        memory_store.configure_failure("create_contact")
        with pytest.raises(StoreError):
            await memory_store.create_contact("op-1", _fields("Dana", 1.0))
        assert ("create_contact", "op-1") in memory_store.operations

        memory_store.reset_failures()
        assert await memory_store.create_contact("op-1", _fields("Dana", 1.0))

    @pytest.mark.asyncio
    async def test_snapshot_read_failure_does_not_fail_committed_write(
        self,
        memory_store: InMemoryDocumentStore,
    ) -> None:
        seen: list[int] = []
        await memory_store.subscribe_call_logs("op-1", lambda entries: seen.append(len(entries)))
        memory_store.configure_failure("list_call_logs")
        entry_id = await memory_store.create_call_log("op-1", "c-1", CallOutcome.NO_ANSWER, JAN_15_1800_UTC)
        assert entry_id
        assert seen == [0]

        memory_store.reset_failures()
        await memory_store.create_call_log("op-1", "c-1", CallOutcome.LEFT_VOICEMAIL, JAN_15_1800_UTC)
        assert seen == [0, 2]


class TestSqlDocumentStore:
    @pytest.mark.asyncio
    async def test_database_errors_become_store_errors(self, tmp_path) -> None:
        # No create_all: every query hits a missing table.
        store = SqlDocumentStore(DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}"))
        try:
            with pytest.raises(StoreError):
                await store.create_contact("op-1", _fields("Dana", 1.0))
        finally:
            await store.close()


class TestFactory:
    @pytest.mark.asyncio
    async def test_memory_backend(self) -> None:
        store = await create_document_store(Settings(_env_file=None, store_backend="memory"))
        assert isinstance(store, InMemoryDocumentStore)

    @pytest.mark.asyncio
    async def test_sql_backend_creates_tables(self, tmp_path) -> None:
        settings = Settings(
            _env_file=None,
            store_backend="sql",
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'factory.db'}",
        )
        store = await create_document_store(settings)
        try:
            assert isinstance(store, SqlDocumentStore)
            assert await store.list_contacts("op-1", ContactFilters()) == []
        finally:
            await store.close()
