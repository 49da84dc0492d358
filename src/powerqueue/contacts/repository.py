"""
Contact repository for database operations.
"""

from typing import Any, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from powerqueue.contacts.models import Contact

_ORDERABLE = {"order_key", "created_at", "updated_at", "name"}


class ContactRepository:
    """Repository for contact database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(self, operator_id: str, **fields: Any) -> Contact:
        """Create a single contact.

        Args:
            operator_id: Owning operator (user scope).
            **fields: Column values.

        Returns:
            Created contact with ID.
        """
        contact = Contact(operator_id=operator_id, **fields)
        self._session.add(contact)
        await self._session.flush()
        await self._session.refresh(contact)
        return contact

    async def get_by_id(self, operator_id: str, contact_id: str) -> Contact | None:
        """Get a contact by ID.

        Args:
            operator_id: Owning operator.
            contact_id: Contact ID.

        Returns:
            Contact if found, None otherwise.
        """
        stmt = select(Contact).where(
            Contact.operator_id == operator_id,
            Contact.id == contact_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_operator(
        self,
        operator_id: str,
        do_not_call: bool | None = None,
        region: str | None = None,
        order_by: str = "order_key",
    ) -> Sequence[Contact]:
        """List contacts for an operator.

        Args:
            operator_id: Owning operator.
            do_not_call: Optional equality filter on the DNC flag.
            region: Optional equality filter on region.
            order_by: Column to sort by (ties broken by created_at).

        Returns:
            Matching contacts.
        """
        if order_by not in _ORDERABLE:
            raise ValueError(f"Unsupported order_by column: {order_by}")

        stmt = select(Contact).where(Contact.operator_id == operator_id)
        if do_not_call is not None:
            stmt = stmt.where(Contact.do_not_call == do_not_call)
        if region is not None:
            stmt = stmt.where(Contact.region == region)
        stmt = stmt.order_by(getattr(Contact, order_by).asc(), Contact.created_at.asc())

        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def update(
        self,
        operator_id: str,
        contact_id: str,
        **changes: Any,
    ) -> Contact | None:
        """Apply a partial update.

        Args:
            operator_id: Owning operator.
            contact_id: Contact ID.
            **changes: Column values to set.

        Returns:
            Updated contact if found, None otherwise.
        """
        contact = await self.get_by_id(operator_id, contact_id)
        if contact is None:
            return None

        for key, value in changes.items():
            setattr(contact, key, value)

        await self._session.flush()
        await self._session.refresh(contact)
        return contact

    async def delete(self, operator_id: str, contact_id: str) -> bool:
        """Delete a contact.

        Returns:
            True if deleted, False if it did not exist.
        """
        result = await self._session.execute(
            delete(Contact).where(
                Contact.operator_id == operator_id,
                Contact.id == contact_id,
            )
        )
        await self._session.flush()
        return result.rowcount > 0
