"""
In-memory document store for tests, demos and single-process use.

Supports failure injection per operation, mirroring how the mock
adapters are driven in tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from powerqueue.calls.models import CallOutcome
from powerqueue.calls.schemas import CallLogRecord
from powerqueue.contacts.schemas import ContactRecord
from powerqueue.shared.exceptions import NotFoundError, StoreError
from powerqueue.shared.logging import get_logger
from powerqueue.store.interface import ContactFilters, DocumentStore

logger = get_logger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store keyed by scope."""

    def __init__(self) -> None:
        super().__init__()
        self._contacts: dict[str, dict[str, ContactRecord]] = {}
        self._call_logs: dict[str, dict[str, CallLogRecord]] = {}
        self._failing: set[str] = set()
        self.operations: list[tuple[str, str]] = []

    # ---- test helpers --------------------------------------------------

    def configure_failure(self, *operations: str) -> None:
        """Make the named operations (e.g. "update_contact") raise StoreError."""
        self._failing = set(operations)

    def reset_failures(self) -> None:
        self._failing.clear()

    def _check(self, operation: str, scope: str) -> None:
        self.operations.append((operation, scope))
        if operation in self._failing:
            raise StoreError(f"Injected failure: {operation}", details={"scope": scope})

    # ---- reads ---------------------------------------------------------

    async def list_contacts(self, scope: str, filters: ContactFilters) -> list[ContactRecord]:
        self._check("list_contacts", scope)
        rows = [
            c
            for c in self._contacts.get(scope, {}).values()
            if (filters.do_not_call is None or c.do_not_call == filters.do_not_call)
            and (filters.region is None or c.region == filters.region)
        ]
        return sorted(rows, key=lambda c: (getattr(c, filters.order_by), c.created_at))

    async def list_call_logs(self, scope: str) -> list[CallLogRecord]:
        self._check("list_call_logs", scope)
        return self._sorted_call_logs(scope)

    def _sorted_call_logs(self, scope: str) -> list[CallLogRecord]:
        return sorted(
            self._call_logs.get(scope, {}).values(),
            key=lambda e: e.timestamp,
            reverse=True,
        )

    async def get_contact(self, scope: str, contact_id: str) -> ContactRecord | None:
        return self._contacts.get(scope, {}).get(contact_id)

    async def query_call_logs_by_contact(self, scope: str, contact_id: str) -> list[CallLogRecord]:
        self._check("query_call_logs_by_contact", scope)
        return [e for e in self._sorted_call_logs(scope) if e.contact_id == contact_id]

    # ---- writes --------------------------------------------------------

    async def create_contact(self, scope: str, fields: dict[str, Any]) -> str:
        self._check("create_contact", scope)
        now = datetime.now(timezone.utc)
        contact_id = uuid4().hex
        record = ContactRecord(
            id=contact_id,
            **{"created_at": now, "updated_at": now, **fields},
        )
        self._contacts.setdefault(scope, {})[contact_id] = record
        await self.publish_contacts(scope)
        return contact_id

    async def update_contact(self, scope: str, contact_id: str, changes: dict[str, Any]) -> None:
        self._check("update_contact", scope)
        contacts = self._contacts.get(scope, {})
        current = contacts.get(contact_id)
        if current is None:
            raise NotFoundError(f"Contact not found: {contact_id}")
        contacts[contact_id] = ContactRecord.model_validate({**current.model_dump(), **changes})
        await self.publish_contacts(scope)

    async def delete_contact(self, scope: str, contact_id: str) -> None:
        self._check("delete_contact", scope)
        if self._contacts.get(scope, {}).pop(contact_id, None) is not None:
            await self.publish_contacts(scope)

    async def create_call_log(
        self,
        scope: str,
        contact_id: str,
        outcome: CallOutcome,
        timestamp: datetime,
    ) -> str:
        self._check("create_call_log", scope)
        entry_id = uuid4().hex
        self._call_logs.setdefault(scope, {})[entry_id] = CallLogRecord(
            id=entry_id,
            contact_id=contact_id,
            outcome=outcome,
            timestamp=timestamp,
        )
        await self.publish_call_logs(scope)
        return entry_id

    async def delete_call_log(self, scope: str, entry_id: str) -> None:
        self._check("delete_call_log", scope)
        if self._call_logs.get(scope, {}).pop(entry_id, None) is not None:
            await self.publish_call_logs(scope)
