"""
SQL-backed document store over async SQLAlchemy repositories.

Every write runs in its own session; subscribers are re-fed from a fresh
query once the session has committed.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from powerqueue.calls.models import CallOutcome
from powerqueue.calls.repository import CallLogRepository
from powerqueue.calls.schemas import CallLogRecord
from powerqueue.contacts.repository import ContactRepository
from powerqueue.contacts.schemas import ContactRecord
from powerqueue.shared.database import DatabaseManager
from powerqueue.shared.exceptions import NotFoundError, StoreError
from powerqueue.shared.logging import get_logger
from powerqueue.store.interface import ContactFilters, DocumentStore

logger = get_logger(__name__)


class SqlDocumentStore(DocumentStore):
    """Document store persisted through SQLAlchemy."""

    def __init__(self, db: DatabaseManager) -> None:
        super().__init__()
        self._db = db

    @asynccontextmanager
    async def _session(self, operation: str, scope: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._db.session() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(
                "Document store operation failed",
                extra={"operation": operation, "scope": scope, "error": str(e)},
            )
            raise StoreError(
                f"Document store operation failed: {operation}",
                details={"scope": scope},
            ) from e

    # ---- reads ---------------------------------------------------------

    async def list_contacts(self, scope: str, filters: ContactFilters) -> list[ContactRecord]:
        async with self._session("list_contacts", scope) as session:
            rows = await ContactRepository(session).list_for_operator(
                scope,
                do_not_call=filters.do_not_call,
                region=filters.region,
                order_by=filters.order_by,
            )
            return [ContactRecord.model_validate(row) for row in rows]

    async def list_call_logs(self, scope: str) -> list[CallLogRecord]:
        async with self._session("list_call_logs", scope) as session:
            rows = await CallLogRepository(session).list_for_operator(scope)
            return [CallLogRecord.model_validate(row) for row in rows]

    async def get_contact(self, scope: str, contact_id: str) -> ContactRecord | None:
        async with self._session("get_contact", scope) as session:
            row = await ContactRepository(session).get_by_id(scope, contact_id)
            return ContactRecord.model_validate(row) if row is not None else None

    async def query_call_logs_by_contact(self, scope: str, contact_id: str) -> list[CallLogRecord]:
        async with self._session("query_call_logs_by_contact", scope) as session:
            rows = await CallLogRepository(session).get_by_contact(scope, contact_id)
            return [CallLogRecord.model_validate(row) for row in rows]

    # ---- writes --------------------------------------------------------

    async def create_contact(self, scope: str, fields: dict[str, Any]) -> str:
        async with self._session("create_contact", scope) as session:
            contact = await ContactRepository(session).create(scope, **fields)
            contact_id = contact.id
        await self.publish_contacts(scope)
        return contact_id

    async def update_contact(self, scope: str, contact_id: str, changes: dict[str, Any]) -> None:
        async with self._session("update_contact", scope) as session:
            contact = await ContactRepository(session).update(scope, contact_id, **changes)
            if contact is None:
                raise NotFoundError(f"Contact not found: {contact_id}")
        await self.publish_contacts(scope)

    async def delete_contact(self, scope: str, contact_id: str) -> None:
        async with self._session("delete_contact", scope) as session:
            deleted = await ContactRepository(session).delete(scope, contact_id)
        if deleted:
            await self.publish_contacts(scope)

    async def create_call_log(
        self,
        scope: str,
        contact_id: str,
        outcome: CallOutcome,
        timestamp: datetime,
    ) -> str:
        async with self._session("create_call_log", scope) as session:
            entry = await CallLogRepository(session).create(scope, contact_id, outcome, timestamp)
            entry_id = entry.id
        await self.publish_call_logs(scope)
        return entry_id

    async def delete_call_log(self, scope: str, entry_id: str) -> None:
        async with self._session("delete_call_log", scope) as session:
            deleted = await CallLogRepository(session).delete(scope, entry_id)
        if deleted:
            await self.publish_call_logs(scope)

    async def close(self) -> None:
        await super().close()
        await self._db.close()
