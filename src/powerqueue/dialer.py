"""
Power dialer session for one operator.

Holds the live contact and call log snapshots (fed by store
subscriptions), the queue filters and the call block. Every user-facing
operation goes through here so that store failures surface the same way:
an error notification plus OperationFailedError.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable

from powerqueue.calls.block import BlockSummary, CallBlockSession
from powerqueue.calls.ledger import CallLedger, LogResult
from powerqueue.calls.models import CallOutcome
from powerqueue.calls.schemas import CallLogRecord
from powerqueue.calls.stats import CallStats, last_call_at
from powerqueue.config import Settings, get_settings
from powerqueue.contacts.phone import dial_uri
from powerqueue.contacts.schemas import ContactCreate, ContactRecord, ContactUpdate
from powerqueue.contacts.service import ContactService
from powerqueue.queue.engine import GroupBy, QueueEngine, QueueFilters, QueueGroup, QueueItem, SortMode
from powerqueue.queue.ordering import ReorderPlan, epoch_ms, manual_order, neighbors_for_move, plan_reorder
from powerqueue.shared.exceptions import NotFoundError, OperationFailedError, StoreError, ValidationError
from powerqueue.shared.logging import get_logger
from powerqueue.shared.notifications import NotificationChannel, NotificationLevel
from powerqueue.store.interface import DocumentStore, Subscription

logger = get_logger(__name__)

Clock = Callable[[], datetime]
QueueListener = Callable[[list[QueueItem]], None]


@dataclass(frozen=True)
class DialTarget:
    contact: ContactRecord
    uri: str


class PowerDialer:
    """Single-operator dialer over a document store."""

    def __init__(
        self,
        operator_id: str,
        store: DocumentStore,
        settings: Settings | None = None,
        clock: Clock | None = None,
        engine: QueueEngine | None = None,
        notifications: NotificationChannel | None = None,
    ) -> None:
        self._operator_id = operator_id
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._engine = engine or QueueEngine(clock=self._clock)
        self.notifications = notifications or NotificationChannel()
        self._contacts_service = ContactService(
            store,
            clock=self._clock,
            default_timezone=self._settings.default_timezone,
        )
        self._ledger = CallLedger(store, self._contacts_service, clock=self._clock)
        self.block = CallBlockSession(clock=self._clock)

        self._filters = QueueFilters()
        self._contacts: list[ContactRecord] = []
        self._call_logs: list[CallLogRecord] = []
        self._subscriptions: list[Subscription] = []
        self._queue_listeners: list[QueueListener] = []

    @property
    def operator_id(self) -> str:
        return self._operator_id

    @property
    def contacts(self) -> list[ContactRecord]:
        return list(self._contacts)

    @property
    def call_logs(self) -> list[CallLogRecord]:
        return list(self._call_logs)

    @property
    def filters(self) -> QueueFilters:
        return self._filters

    @property
    def started(self) -> bool:
        return bool(self._subscriptions)

    # ---- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Open the contact and call log subscriptions."""
        if self._subscriptions:
            return
        async with self._guard("load queue"):
            self._subscriptions.append(
                await self._store.subscribe_contacts(self._operator_id, self._on_contacts)
            )
            self._subscriptions.append(
                await self._store.subscribe_call_logs(self._operator_id, self._on_call_logs)
            )
        logger.info(
            "Dialer started",
            extra={"operator_id": self._operator_id, "contacts": len(self._contacts)},
        )

    async def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        self._queue_listeners.clear()

    def _on_contacts(self, snapshot: list[ContactRecord]) -> None:
        self._contacts = list(snapshot)
        self._notify_queue()

    def _on_call_logs(self, snapshot: list[CallLogRecord]) -> None:
        self._call_logs = list(snapshot)
        if self._filters.sort is SortMode.LAST_CALL:
            self._notify_queue()

    def on_queue_change(self, listener: QueueListener) -> Callable[[], None]:
        """Register a listener for rebuilt queues; returns an unsubscribe callable."""
        self._queue_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._queue_listeners:
                self._queue_listeners.remove(listener)

        return _unsubscribe

    def _notify_queue(self) -> None:
        if self._queue_listeners:
            self._fan_out(self.queue())

    def _fan_out(self, items: list[QueueItem]) -> None:
        for listener in list(self._queue_listeners):
            try:
                listener(items)
            except Exception:
                logger.exception(
                    "Queue listener failed",
                    extra={"operator_id": self._operator_id},
                )

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        try:
            yield
        except StoreError as e:
            logger.error(
                "Dialer operation failed",
                extra={"operator_id": self._operator_id, "action": action, "error": str(e)},
            )
            self.notifications.emit(
                f"Could not {action}. Please try again.",
                level=NotificationLevel.ERROR,
                action=action,
            )
            raise OperationFailedError(action, details=e.details) from e

    # ---- queue views -----------------------------------------------------

    def set_filters(self, **changes: Any) -> QueueFilters:
        """Replace any subset of the queue filters."""
        if "sort" in changes and changes["sort"] is not None:
            changes["sort"] = SortMode(changes["sort"])
        if "group_by" in changes and changes["group_by"] is not None:
            changes["group_by"] = GroupBy(changes["group_by"])
        if "region" in changes:
            changes["region"] = str(changes["region"] or "").strip().upper() or None
        unknown = set(changes) - set(QueueFilters.__dataclass_fields__)
        if unknown:
            raise ValidationError(
                "Unknown queue filter",
                details={"fields": sorted(unknown)},
            )
        kept = {k: v for k, v in changes.items() if v is not None or k == "region"}
        self._filters = replace(self._filters, **kept)
        self._notify_queue()
        return self._filters

    def _last_calls(self) -> dict[str, datetime]:
        return last_call_at(self._call_logs)

    def queue(self, filters: QueueFilters | None = None) -> list[QueueItem]:
        return self._engine.build(self._contacts, filters or self._filters, self._last_calls())

    def grouped_queue(self, filters: QueueFilters | None = None) -> list[QueueGroup]:
        return self._engine.build_groups(self._contacts, filters or self._filters, self._last_calls())

    def leads(self, group_by: GroupBy = GroupBy.NONE, search: str = "") -> list[QueueGroup]:
        """Full contact listing in manual order, DNC and off-window contacts included."""
        filters = QueueFilters(search=search, hide_dnc=False, sort=SortMode.MANUAL, group_by=group_by)
        return self._engine.build_groups(self._contacts, filters, self._last_calls())

    def head(self) -> QueueItem | None:
        items = self.queue()
        return items[0] if items else None

    def refresh(self) -> list[QueueItem]:
        """Re-evaluate windows and scores against the current time."""
        items = self.queue()
        self._fan_out(items)
        return items

    async def run_refresh_loop(self, interval_seconds: float | None = None) -> None:
        """Refresh on a fixed cadence until cancelled."""
        interval = interval_seconds or self._settings.queue_refresh_seconds
        while True:
            await asyncio.sleep(interval)
            self.refresh()

    def _find(self, contact_id: str) -> ContactRecord:
        for contact in self._contacts:
            if contact.id == contact_id:
                return contact
        raise NotFoundError(f"Contact not found: {contact_id}")

    # ---- contacts --------------------------------------------------------

    async def add_contact(self, data: ContactCreate) -> str:
        async with self._guard("add lead"):
            contact_id = await self._contacts_service.add_contact(self._operator_id, data)
        self.notifications.emit(f"Added {data.name}", level=NotificationLevel.SUCCESS)
        return contact_id

    async def update_contact(self, contact_id: str, data: ContactUpdate) -> None:
        async with self._guard("update lead"):
            await self._contacts_service.update_contact(self._operator_id, contact_id, data)

    async def update_notes(self, contact_id: str, notes: str) -> None:
        async with self._guard("save notes"):
            await self._contacts_service.update_notes(self._operator_id, contact_id, notes)

    async def toggle_dnc(self, contact_id: str) -> bool:
        async with self._guard("update do-not-call"):
            return await self._contacts_service.toggle_dnc(self._operator_id, contact_id)

    async def delete_contact(self, contact_id: str) -> int:
        async with self._guard("delete lead"):
            removed = await self._ledger.delete_contact(self._operator_id, contact_id)
        self.notifications.emit("Lead deleted", level=NotificationLevel.INFO)
        return removed

    # ---- ordering --------------------------------------------------------

    def _ensure_reorderable(self) -> None:
        if self._filters.group_by is not GroupBy.NONE:
            raise ValidationError(
                "Reordering is not available while the queue is grouped",
                details={"group_by": self._filters.group_by.value},
            )

    async def reorder(
        self,
        contact_id: str,
        prev_key: float | None,
        next_key: float | None,
    ) -> ReorderPlan:
        """Place a contact between two neighbor keys and switch to manual order."""
        self._ensure_reorderable()
        self._find(contact_id)
        plan = plan_reorder(
            self._contacts,
            contact_id,
            prev_key,
            next_key,
            now_ms=epoch_ms(self._clock()),
            min_gap=self._settings.order_key_min_gap,
            step=self._settings.order_key_step,
        )
        async with self._guard("reorder lead"):
            await self._contacts_service.write_order_keys(self._operator_id, plan.updates)
        if self._filters.sort is not SortMode.MANUAL:
            self.set_filters(sort=SortMode.MANUAL)
        return plan

    async def move(self, contact_id: str, new_index: int) -> ReorderPlan:
        """Move a contact to a position in the visible manual-ordered queue."""
        self._ensure_reorderable()
        visible = manual_order(
            [item.contact for item in self.queue(replace(self._filters, sort=SortMode.MANUAL))]
        )
        if not any(c.id == contact_id for c in visible):
            self._find(contact_id)
            visible = manual_order(self._contacts)
        prev_key, next_key = neighbors_for_move(visible, contact_id, new_index)
        return await self.reorder(contact_id, prev_key, next_key)

    # ---- calls -----------------------------------------------------------

    async def log_outcome(self, contact_id: str, outcome: CallOutcome | str) -> LogResult:
        try:
            outcome = CallOutcome(outcome)
        except ValueError as e:
            raise ValidationError(f"Unknown call outcome: {outcome}") from e
        async with self._guard("log call"):
            result = await self._ledger.log_outcome(self._operator_id, contact_id, outcome)
        self.block.log_call()
        if result.flag_failed:
            self.notifications.emit(
                "Call logged, but the do-not-call flag could not be saved",
                level=NotificationLevel.ERROR,
                action="update do-not-call",
            )
        else:
            self.notifications.emit(f"Logged: {outcome.label}", level=NotificationLevel.SUCCESS)
        return result

    async def log_outcome_for_head(self, outcome: CallOutcome | str) -> LogResult:
        head = self.head()
        if head is None:
            raise ValidationError("Queue is empty")
        return await self.log_outcome(head.contact.id, outcome)

    def dial_next(self) -> DialTarget | None:
        """Contact and dial URI for the queue head, or None when the queue is empty."""
        head = self.head()
        if head is None:
            self.notifications.emit("No leads in the queue", level=NotificationLevel.INFO)
            return None
        self.notifications.emit(f"Calling {head.contact.name}…", level=NotificationLevel.INFO)
        logger.info(
            "Dialing queue head",
            extra={"operator_id": self._operator_id, "contact_id": head.contact.id},
        )
        return DialTarget(contact=head.contact, uri=dial_uri(head.contact.phone))

    async def history(self, contact_id: str) -> list[CallLogRecord]:
        async with self._guard("load call history"):
            return await self._ledger.history(self._operator_id, contact_id)

    def stats(self, contact_id: str | None = None) -> CallStats:
        return self._ledger.stats(self._call_logs, contact_id)

    # ---- call block ------------------------------------------------------

    def start_block(self) -> None:
        self.block.start()
        self.notifications.emit("Call block started", level=NotificationLevel.INFO)

    def block_ticks(self) -> AsyncIterator[str]:
        """Elapsed labels at the configured cadence while the block runs."""
        return self.block.ticks(self._settings.block_tick_seconds)

    def end_block(self) -> BlockSummary:
        summary = self.block.end()
        self.notifications.emit(
            f"Block ended: {summary.calls_logged} calls, {summary.calls_per_hour} calls/hour",
            level=NotificationLevel.SUCCESS,
        )
        return summary
