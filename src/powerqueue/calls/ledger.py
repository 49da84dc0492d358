"""
Call ledger: append-only outcome log with the DNC side effect and the
contact delete cascade.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from powerqueue.calls.models import CallOutcome
from powerqueue.calls.schemas import CallLogRecord
from powerqueue.calls.stats import CallStats, compute_stats
from powerqueue.contacts.service import ContactService
from powerqueue.shared.exceptions import AppError, NotFoundError
from powerqueue.shared.logging import get_logger
from powerqueue.store.interface import DocumentStore

logger = get_logger(__name__)

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class LogResult:
    entry_id: str
    contact_id: str
    outcome: CallOutcome
    timestamp: datetime
    flagged_dnc: bool = False
    flag_failed: bool = False


class CallLedger:
    """Records call outcomes and owns the contact cascade delete."""

    def __init__(
        self,
        store: DocumentStore,
        contacts: ContactService,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._contacts = contacts
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def log_outcome(self, scope: str, contact_id: str, outcome: CallOutcome) -> LogResult:
        """Append an entry; a DNC outcome also flags the contact.

        The entry is written first. A failure to set the flag afterwards is
        logged and reported in the result, never raised: the entry stands.
        """
        if await self._store.get_contact(scope, contact_id) is None:
            raise NotFoundError(f"Contact not found: {contact_id}")

        timestamp = self._clock()
        entry_id = await self._store.create_call_log(scope, contact_id, outcome, timestamp)
        logger.info(
            "Call outcome logged",
            extra={
                "operator_id": scope,
                "contact_id": contact_id,
                "outcome": outcome.value,
                "entry_id": entry_id,
            },
        )

        flagged = flag_failed = False
        if outcome is CallOutcome.DO_NOT_CALL:
            try:
                await self._contacts.set_do_not_call(scope, contact_id, True)
                flagged = True
            except AppError as e:
                flag_failed = True
                logger.warning(
                    "DNC flag update failed after logging outcome",
                    extra={"operator_id": scope, "contact_id": contact_id, "error": str(e)},
                )

        return LogResult(
            entry_id=entry_id,
            contact_id=contact_id,
            outcome=outcome,
            timestamp=timestamp,
            flagged_dnc=flagged,
            flag_failed=flag_failed,
        )

    async def history(self, scope: str, contact_id: str) -> list[CallLogRecord]:
        return await self._store.query_call_logs_by_contact(scope, contact_id)

    async def delete_contact(self, scope: str, contact_id: str) -> int:
        """Delete a contact's call log entries, then the contact.

        Idempotent: entries or a contact that are already gone are skipped.

        Returns:
            Number of call log entries removed.
        """
        entries = await self._store.query_call_logs_by_contact(scope, contact_id)
        for entry in entries:
            await self._store.delete_call_log(scope, entry.id)
        await self._store.delete_contact(scope, contact_id)
        logger.info(
            "Contact deleted",
            extra={"operator_id": scope, "contact_id": contact_id, "call_logs_deleted": len(entries)},
        )
        return len(entries)

    @staticmethod
    def stats(entries: list[CallLogRecord], contact_id: str | None = None) -> CallStats:
        return compute_stats(entries, contact_id)
