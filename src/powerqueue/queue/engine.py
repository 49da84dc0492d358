"""
Queue engine: composes window resolution, scoring, manual order and filters
into the ordered view presented to the operator.

The view is always rebuilt from the latest contact snapshot; nothing here
caches derived state between builds.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Mapping, Sequence

from powerqueue.contacts.phone import format_display_phone, phone_digits
from powerqueue.contacts.schemas import ContactRecord
from powerqueue.queue.ordering import manual_sort_key
from powerqueue.queue.scoring import score_resolution
from powerqueue.queue.windows import (
    CALL_WINDOW_TABLE,
    DEFAULT_WINDOW,
    CallWindow,
    local_time_label,
    resolve_window,
)

Clock = Callable[[], datetime]

_NEVER = datetime.min.replace(tzinfo=timezone.utc)
_NO_ORGANIZATION = "—"


class SortMode(str, Enum):
    SCORE = "score"
    MANUAL = "manual"
    NAME = "name"
    LAST_CALL = "last_call"


class GroupBy(str, Enum):
    NONE = "none"
    ORGANIZATION = "organization"
    TIMEZONE = "timezone"


# First match wins, in this order.
TZ_BUCKETS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Pacific", ("Los_Angeles", "Anchorage", "Honolulu")),
    ("Mountain", ("Denver", "Phoenix")),
    ("Central", ("Chicago",)),
    ("Eastern", ("New_York",)),
    ("Atlantic", ("Puerto_Rico", "Halifax")),
)
OTHER_BUCKET = "Other"


def tz_bucket(
    zone: str | None,
    buckets: tuple[tuple[str, tuple[str, ...]], ...] = TZ_BUCKETS,
) -> str:
    if not zone:
        return OTHER_BUCKET
    for label, needles in buckets:
        if any(needle in zone for needle in needles):
            return label
    return OTHER_BUCKET


@dataclass(frozen=True)
class QueueFilters:
    """Independent, composable queue inputs."""

    search: str = ""
    region: str | None = None
    hide_dnc: bool = True
    in_window_only: bool = False
    sort: SortMode = SortMode.SCORE
    group_by: GroupBy = GroupBy.NONE


@dataclass(frozen=True)
class QueueItem:
    contact: ContactRecord
    window: CallWindow
    local_hour: int
    in_window: bool
    score: float
    local_time_label: str
    display_phone: str


@dataclass(frozen=True)
class QueueGroup:
    key: str
    items: list[QueueItem]


def matches_search(contact: ContactRecord, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    return (
        q in contact.name.lower()
        or q in contact.organization.lower()
        or q in contact.title.lower()
        or q in phone_digits(contact.phone)
        or q in contact.phone
    )


class QueueEngine:
    """Builds queue views; the wall clock is injectable for deterministic use."""

    def __init__(
        self,
        clock: Clock | None = None,
        window_table: tuple[tuple[str, CallWindow], ...] = CALL_WINDOW_TABLE,
        default_window: CallWindow = DEFAULT_WINDOW,
        buckets: tuple[tuple[str, tuple[str, ...]], ...] = TZ_BUCKETS,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._window_table = window_table
        self._default_window = default_window
        self._buckets = buckets

    def now(self) -> datetime:
        return self._clock()

    def evaluate(self, contact: ContactRecord, now: datetime | None = None) -> QueueItem:
        instant = now or self._clock()
        resolution = resolve_window(
            contact.title,
            contact.timezone,
            instant,
            table=self._window_table,
            default=self._default_window,
        )
        return QueueItem(
            contact=contact,
            window=resolution.window,
            local_hour=resolution.local_hour,
            in_window=resolution.in_window,
            score=score_resolution(resolution),
            local_time_label=local_time_label(contact.timezone, instant),
            display_phone=format_display_phone(contact.phone),
        )

    def evaluate_all(
        self,
        contacts: Iterable[ContactRecord],
        now: datetime | None = None,
    ) -> list[QueueItem]:
        instant = now or self._clock()
        return [self.evaluate(c, instant) for c in contacts]

    @staticmethod
    def matches(item: QueueItem, filters: QueueFilters) -> bool:
        contact = item.contact
        if filters.hide_dnc and contact.do_not_call:
            return False
        if filters.region and contact.region != filters.region:
            return False
        if filters.in_window_only and not item.in_window:
            return False
        return matches_search(contact, filters.search)

    @staticmethod
    def sort(
        items: Sequence[QueueItem],
        mode: SortMode,
        last_calls: Mapping[str, datetime] | None = None,
    ) -> list[QueueItem]:
        """Stable sort; equal keys keep their incoming relative order."""
        if mode is SortMode.MANUAL:
            return sorted(items, key=lambda i: manual_sort_key(i.contact))
        if mode is SortMode.NAME:
            return sorted(items, key=lambda i: i.contact.name.casefold())
        if mode is SortMode.LAST_CALL:
            calls = last_calls or {}
            return sorted(items, key=lambda i: calls.get(i.contact.id, _NEVER))
        return sorted(items, key=lambda i: i.score)

    def group_key(self, contact: ContactRecord, group_by: GroupBy) -> str:
        if group_by is GroupBy.ORGANIZATION:
            return contact.organization or _NO_ORGANIZATION
        if group_by is GroupBy.TIMEZONE:
            return tz_bucket(contact.timezone, self._buckets)
        return "All"

    def build_groups(
        self,
        contacts: Iterable[ContactRecord],
        filters: QueueFilters,
        last_calls: Mapping[str, datetime] | None = None,
        now: datetime | None = None,
    ) -> list[QueueGroup]:
        """Filter, group in first-seen key order, then sort each group."""
        items = [i for i in self.evaluate_all(contacts, now) if self.matches(i, filters)]
        grouped: dict[str, list[QueueItem]] = {}
        for item in items:
            grouped.setdefault(self.group_key(item.contact, filters.group_by), []).append(item)
        return [
            QueueGroup(key=key, items=self.sort(members, filters.sort, last_calls))
            for key, members in grouped.items()
        ]

    def build(
        self,
        contacts: Iterable[ContactRecord],
        filters: QueueFilters,
        last_calls: Mapping[str, datetime] | None = None,
        now: datetime | None = None,
    ) -> list[QueueItem]:
        """Flat queue; when grouped, groups are concatenated in display order."""
        groups = self.build_groups(contacts, filters, last_calls, now)
        return [item for group in groups for item in group.items]
