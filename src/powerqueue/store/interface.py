"""
Document store interface.

Contacts and call logs live in per-operator partitions ("scopes").
Subscribers receive the full post-commit snapshot of their scope: once on
subscribe, then after every committed change. Cancelling the returned
subscription stops delivery.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from powerqueue.calls.models import CallOutcome
from powerqueue.calls.schemas import CallLogRecord
from powerqueue.contacts.schemas import ContactRecord
from powerqueue.shared.exceptions import StoreError
from powerqueue.shared.logging import get_logger

logger = get_logger(__name__)

ContactsListener = Callable[[list[ContactRecord]], None]
CallLogsListener = Callable[[list[CallLogRecord]], None]

CONTACT_ORDER_FIELDS = ("order_key", "created_at", "updated_at", "name")


@dataclass(frozen=True)
class ContactFilters:
    """Server-side filters for a contact subscription."""

    do_not_call: bool | None = None
    region: str | None = None
    order_by: str = "order_key"

    def __post_init__(self) -> None:
        if self.order_by not in CONTACT_ORDER_FIELDS:
            raise ValueError(f"order_by must be one of {CONTACT_ORDER_FIELDS}")


class Subscription:
    """Handle for a live subscription."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._active = False
            self._cancel()


@dataclass
class _ContactSubscriber:
    filters: ContactFilters
    listener: ContactsListener


class DocumentStore(ABC):
    """Abstract store; adapters supply the loads and writes."""

    def __init__(self) -> None:
        self._contact_subscribers: dict[str, list[_ContactSubscriber]] = {}
        self._call_log_subscribers: dict[str, list[CallLogsListener]] = {}

    # ---- adapter hooks -------------------------------------------------

    @abstractmethod
    async def list_contacts(self, scope: str, filters: ContactFilters) -> list[ContactRecord]:
        """Current contacts in scope matching filters, in filter order."""

    @abstractmethod
    async def list_call_logs(self, scope: str) -> list[CallLogRecord]:
        """Current call logs in scope, newest first."""

    @abstractmethod
    async def get_contact(self, scope: str, contact_id: str) -> ContactRecord | None:
        ...

    @abstractmethod
    async def create_contact(self, scope: str, fields: dict[str, Any]) -> str:
        """Persist a contact; returns its id."""

    @abstractmethod
    async def update_contact(self, scope: str, contact_id: str, changes: dict[str, Any]) -> None:
        """Partial update. Raises NotFoundError when the contact is gone."""

    @abstractmethod
    async def delete_contact(self, scope: str, contact_id: str) -> None:
        """Delete; deleting a missing contact is a no-op."""

    @abstractmethod
    async def create_call_log(
        self,
        scope: str,
        contact_id: str,
        outcome: CallOutcome,
        timestamp: datetime,
    ) -> str:
        ...

    @abstractmethod
    async def delete_call_log(self, scope: str, entry_id: str) -> None:
        """Delete; deleting a missing entry is a no-op."""

    @abstractmethod
    async def query_call_logs_by_contact(self, scope: str, contact_id: str) -> list[CallLogRecord]:
        """Entries for one contact, newest first."""

    async def close(self) -> None:
        self._contact_subscribers.clear()
        self._call_log_subscribers.clear()

    # ---- subscriptions -------------------------------------------------

    async def subscribe_contacts(
        self,
        scope: str,
        listener: ContactsListener,
        filters: ContactFilters | None = None,
    ) -> Subscription:
        subscriber = _ContactSubscriber(filters=filters or ContactFilters(), listener=listener)
        self._contact_subscribers.setdefault(scope, []).append(subscriber)

        def _cancel() -> None:
            subscribers = self._contact_subscribers.get(scope, [])
            if subscriber in subscribers:
                subscribers.remove(subscriber)

        self._deliver(listener, await self.list_contacts(scope, subscriber.filters), scope)
        return Subscription(_cancel)

    async def subscribe_call_logs(self, scope: str, listener: CallLogsListener) -> Subscription:
        self._call_log_subscribers.setdefault(scope, []).append(listener)

        def _cancel() -> None:
            listeners = self._call_log_subscribers.get(scope, [])
            if listener in listeners:
                listeners.remove(listener)

        self._deliver(listener, await self.list_call_logs(scope), scope)
        return Subscription(_cancel)

    async def publish_contacts(self, scope: str) -> None:
        """Push the committed contact state of `scope` to its subscribers.

        Runs after the write has committed, so a failed snapshot read is
        logged and skipped; subscribers catch up on the next publish.
        """
        for subscriber in list(self._contact_subscribers.get(scope, [])):
            try:
                snapshot = await self.list_contacts(scope, subscriber.filters)
            except StoreError:
                logger.exception("Contact snapshot read failed after commit", extra={"scope": scope})
                continue
            self._deliver(subscriber.listener, snapshot, scope)

    async def publish_call_logs(self, scope: str) -> None:
        listeners = list(self._call_log_subscribers.get(scope, []))
        if not listeners:
            return
        try:
            snapshot = await self.list_call_logs(scope)
        except StoreError:
            logger.exception("Call log snapshot read failed after commit", extra={"scope": scope})
            return
        for listener in listeners:
            self._deliver(listener, snapshot, scope)

    @staticmethod
    def _deliver(listener: Callable[[Any], None], snapshot: list[Any], scope: str) -> None:
        # Post-commit: listener errors are logged, never raised to the writer.
        try:
            listener(snapshot)
        except Exception:
            logger.exception("Subscription listener failed", extra={"scope": scope})
