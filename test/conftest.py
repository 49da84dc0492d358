"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from powerqueue.config import Settings
from powerqueue.contacts.schemas import ContactRecord
from powerqueue.dialer import PowerDialer
from powerqueue.shared.database import DatabaseManager
from powerqueue.store.memory import InMemoryDocumentStore
from powerqueue.store.sql import SqlDocumentStore

# 2025-01-15 18:00 UTC: noon in Chicago, 13:00 in New York, 10:00 in Los Angeles.
JAN_15_1800_UTC = datetime(2025, 1, 15, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for wall-clock dependent code."""

    def __init__(self, now: datetime = JAN_15_1800_UTC) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_contact(
    contact_id: str = "c1",
    name: str = "Dana Reyes",
    title: str = "Director of Online Learning",
    tz: str = "America/New_York",
    order_key: float = 1.0,
    created_at: datetime = JAN_15_1800_UTC,
    **overrides: Any,
) -> ContactRecord:
    data: dict[str, Any] = {
        "id": contact_id,
        "name": name,
        "phone": "+15125550100",
        "email": "",
        "organization": "Hill Country College",
        "title": title,
        "region": None,
        "timezone": tz,
        "do_not_call": False,
        "notes": "",
        "order_key": order_key,
        "created_at": created_at,
        "updated_at": created_at,
    }
    data.update(overrides)
    return ContactRecord(**data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(store_backend="memory", default_operator_id="local", block_tick_seconds=0.01)


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest_asyncio.fixture
async def sql_store(tmp_path) -> AsyncGenerator[SqlDocumentStore, None]:
    db = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'powerqueue.db'}")
    await db.create_all()
    store = SqlDocumentStore(db)
    yield store
    await store.close()


@pytest_asyncio.fixture
async def dialer(
    memory_store: InMemoryDocumentStore,
    settings: Settings,
    clock: FakeClock,
) -> AsyncGenerator[PowerDialer, None]:
    d = PowerDialer("op-1", memory_store, settings=settings, clock=clock)
    await d.start()
    yield d
    await d.close()


@pytest_asyncio.fixture
async def async_client(
    memory_store: InMemoryDocumentStore,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[AsyncClient, None]:
    monkeypatch.setenv("STORE_BACKEND", "memory")
    from powerqueue.main import create_app

    app = create_app(store=memory_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.dialers.close()
