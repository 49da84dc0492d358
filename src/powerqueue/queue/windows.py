"""
Call window resolution.

Maps a contact's role title to the local-time hour range in which that role
is worth calling, and renders the current instant in the contact's zone.
Unknown zones never raise: they fall back to the machine's local time so a
malformed record cannot block queue rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from powerqueue.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CallWindow:
    """Inclusive local-hour bounds on a 24h clock."""

    start: int
    end: int

    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2

    def contains(self, hour: int) -> bool:
        return self.start <= hour <= self.end


# Checked in declaration order; first keyword contained in the title wins.
CALL_WINDOW_TABLE: tuple[tuple[str, CallWindow], ...] = (
    ("distance ed", CallWindow(10, 16)),
    ("lms", CallWindow(10, 16)),
    ("ada", CallWindow(11, 15)),
    ("accessibility", CallWindow(11, 15)),
    ("testing", CallWindow(9, 15)),
    ("instructional", CallWindow(10, 16)),
)

DEFAULT_WINDOW = CallWindow(9, 16)


def call_window_for_title(
    title: str | None,
    table: tuple[tuple[str, CallWindow], ...] = CALL_WINDOW_TABLE,
    default: CallWindow = DEFAULT_WINDOW,
) -> CallWindow:
    lowered = (title or "").lower()
    for keyword, window in table:
        if keyword in lowered:
            return window
    return default


def zone_now(zone: str | None, now: datetime | None = None) -> datetime:
    """The given instant (default: now) expressed in `zone`.

    Falls back to the machine's local zone when `zone` is empty or unknown.
    """
    instant = now or datetime.now(timezone.utc)
    try:
        tz = ZoneInfo(zone or "")
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        logger.debug("Unknown timezone, using machine local time", extra={"timezone": zone})
        return instant.astimezone()
    return instant.astimezone(tz)


def local_hour(zone: str | None, now: datetime | None = None) -> int:
    return zone_now(zone, now).hour


def local_time_label(zone: str | None, now: datetime | None = None) -> str:
    """12-hour clock label such as `9:05 AM`."""
    local = zone_now(zone, now)
    hour12 = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour12}:{local.minute:02d} {suffix}"


@dataclass(frozen=True)
class WindowResolution:
    window: CallWindow
    local_hour: int

    @property
    def in_window(self) -> bool:
        return self.window.contains(self.local_hour)


def resolve_window(
    title: str | None,
    zone: str | None,
    now: datetime | None = None,
    table: tuple[tuple[str, CallWindow], ...] = CALL_WINDOW_TABLE,
    default: CallWindow = DEFAULT_WINDOW,
) -> WindowResolution:
    return WindowResolution(
        window=call_window_for_title(title, table=table, default=default),
        local_hour=local_hour(zone, now),
    )
