"""
Derived call statistics. Nothing here is persisted.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from powerqueue.calls.models import CallOutcome
from powerqueue.calls.schemas import CallLogRecord


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class CallStats:
    total: int = 0
    no_answer: int = 0
    left_voicemail: int = 0
    conversations: int = 0
    do_not_call: int = 0

    @property
    def conversation_rate(self) -> float:
        """conversations / total, 0.0 when nothing has been logged."""
        return self.conversations / self.total if self.total else 0.0

    @property
    def conversation_rate_percent(self) -> int:
        return round_half_up(self.conversation_rate * 100)

    def count(self, outcome: CallOutcome) -> int:
        return {
            CallOutcome.NO_ANSWER: self.no_answer,
            CallOutcome.LEFT_VOICEMAIL: self.left_voicemail,
            CallOutcome.CONVERSATION: self.conversations,
            CallOutcome.DO_NOT_CALL: self.do_not_call,
        }[outcome]


def compute_stats(
    entries: Iterable[CallLogRecord],
    contact_id: str | None = None,
) -> CallStats:
    """Count outcomes over all entries, or over one contact's entries."""
    counts: Counter[CallOutcome] = Counter(
        e.outcome for e in entries if contact_id is None or e.contact_id == contact_id
    )
    return CallStats(
        total=sum(counts.values()),
        no_answer=counts[CallOutcome.NO_ANSWER],
        left_voicemail=counts[CallOutcome.LEFT_VOICEMAIL],
        conversations=counts[CallOutcome.CONVERSATION],
        do_not_call=counts[CallOutcome.DO_NOT_CALL],
    )


def last_call_at(entries: Iterable[CallLogRecord]) -> dict[str, datetime]:
    """Most recent call timestamp per contact."""
    latest: dict[str, datetime] = {}
    for entry in entries:
        current = latest.get(entry.contact_id)
        if current is None or entry.timestamp > current:
            latest[entry.contact_id] = entry.timestamp
    return latest
