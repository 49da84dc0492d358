"""
Repository for call log database operations.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from powerqueue.calls.models import CallLogEntry, CallOutcome


class CallLogRepository:
    """Repository for call log database operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
        """
        self._session = session

    async def create(
        self,
        operator_id: str,
        contact_id: str,
        outcome: CallOutcome,
        timestamp: datetime,
    ) -> CallLogEntry:
        """Append a call log entry.

        Args:
            operator_id: Owning operator.
            contact_id: Contact the call was made to.
            outcome: Recorded outcome.
            timestamp: When the outcome was logged.

        Returns:
            Created CallLogEntry instance.
        """
        entry = CallLogEntry(
            operator_id=operator_id,
            contact_id=contact_id,
            outcome=outcome,
            timestamp=timestamp,
        )
        self._session.add(entry)
        await self._session.flush()
        await self._session.refresh(entry)
        return entry

    async def get_by_contact(
        self,
        operator_id: str,
        contact_id: str,
    ) -> Sequence[CallLogEntry]:
        """Get call log entries for a contact, newest first."""
        stmt = (
            select(CallLogEntry)
            .where(
                CallLogEntry.operator_id == operator_id,
                CallLogEntry.contact_id == contact_id,
            )
            .order_by(CallLogEntry.timestamp.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def list_for_operator(self, operator_id: str) -> Sequence[CallLogEntry]:
        """All entries for an operator, newest first."""
        stmt = (
            select(CallLogEntry)
            .where(CallLogEntry.operator_id == operator_id)
            .order_by(CallLogEntry.timestamp.desc())
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def delete(self, operator_id: str, entry_id: str) -> bool:
        """Delete one entry; False when it was already gone."""
        result = await self._session.execute(
            delete(CallLogEntry).where(
                CallLogEntry.operator_id == operator_id,
                CallLogEntry.id == entry_id,
            )
        )
        await self._session.flush()
        return result.rowcount > 0
