"""
Service layer for contact mutations.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from powerqueue.contacts.regions import DEFAULT_TIMEZONE, resolve_timezone
from powerqueue.contacts.schemas import ContactCreate, ContactRecord, ContactUpdate
from powerqueue.queue.ordering import epoch_ms
from powerqueue.shared.exceptions import NotFoundError
from powerqueue.shared.logging import get_logger
from powerqueue.store.interface import DocumentStore

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class ContactService:
    """Creates and mutates contacts in an operator's partition."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Clock | None = None,
        default_timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        """Initialize service.

        Args:
            store: Document store collaborator.
            clock: Source of "now" (UTC); injectable for tests.
            default_timezone: Zone for contacts with no timezone or mappable region.
        """
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._default_timezone = default_timezone

    def build_fields(self, data: ContactCreate) -> dict[str, Any]:
        """Storage fields for a validated add-lead submission.

        New contacts get order_key = now (epoch ms), which places them at
        the bottom of the manual order.
        """
        now = self._clock()
        return {
            "name": data.name,
            "phone": data.phone,
            "email": str(data.email) if data.email else "",
            "organization": data.organization,
            "title": data.title,
            "region": data.region,
            "timezone": resolve_timezone(data.region, data.timezone, self._default_timezone),
            "do_not_call": False,
            "notes": data.notes,
            "order_key": epoch_ms(now),
            "created_at": now,
            "updated_at": now,
        }

    async def add_contact(self, scope: str, data: ContactCreate) -> str:
        """Create a contact.

        Args:
            scope: Operator id.
            data: Validated form data.

        Returns:
            New contact id.
        """
        fields = self.build_fields(data)
        contact_id = await self._store.create_contact(scope, fields)
        logger.info(
            "Contact created",
            extra={"operator_id": scope, "contact_id": contact_id, "timezone": fields["timezone"]},
        )
        return contact_id

    async def get_contact(self, scope: str, contact_id: str) -> ContactRecord:
        contact = await self._store.get_contact(scope, contact_id)
        if contact is None:
            raise NotFoundError(f"Contact not found: {contact_id}")
        return contact

    async def update_contact(self, scope: str, contact_id: str, data: ContactUpdate) -> None:
        """Apply a partial edit.

        A region change without an explicit timezone re-derives the timezone.
        """
        changes: dict[str, Any] = data.changes()
        if "email" in changes:
            changes["email"] = str(changes["email"]) if changes["email"] else ""
        if "notes" in changes and changes["notes"] is None:
            changes["notes"] = ""
        if "region" in changes and not changes.get("timezone"):
            changes["timezone"] = resolve_timezone(changes["region"], None, self._default_timezone)
        elif "timezone" in changes and not changes["timezone"]:
            current = await self.get_contact(scope, contact_id)
            changes["timezone"] = resolve_timezone(current.region, None, self._default_timezone)
        if not changes:
            return
        changes["updated_at"] = self._clock()
        await self._store.update_contact(scope, contact_id, changes)
        logger.info(
            "Contact updated",
            extra={"operator_id": scope, "contact_id": contact_id, "fields": sorted(changes)},
        )

    async def update_notes(self, scope: str, contact_id: str, notes: str) -> None:
        await self._store.update_contact(
            scope,
            contact_id,
            {"notes": notes, "updated_at": self._clock()},
        )

    async def set_do_not_call(self, scope: str, contact_id: str, value: bool) -> None:
        await self._store.update_contact(
            scope,
            contact_id,
            {"do_not_call": value, "updated_at": self._clock()},
        )

    async def toggle_dnc(self, scope: str, contact_id: str) -> bool:
        """Flip the DNC flag; returns the new value."""
        contact = await self.get_contact(scope, contact_id)
        new_value = not contact.do_not_call
        await self.set_do_not_call(scope, contact_id, new_value)
        logger.info(
            "Contact DNC toggled",
            extra={"operator_id": scope, "contact_id": contact_id, "do_not_call": new_value},
        )
        return new_value

    async def write_order_keys(self, scope: str, keys: dict[str, float]) -> None:
        now = self._clock()
        for contact_id, key in keys.items():
            await self._store.update_contact(
                scope,
                contact_id,
                {"order_key": key, "updated_at": now},
            )
