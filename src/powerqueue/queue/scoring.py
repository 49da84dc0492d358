"""
Priority scoring: distance of the contact's local hour from the centre of
its call window. Lower is more urgent.
"""

from datetime import datetime

from powerqueue.contacts.schemas import ContactRecord
from powerqueue.queue.windows import WindowResolution, resolve_window


def score_resolution(resolution: WindowResolution) -> float:
    return abs(resolution.local_hour - resolution.window.midpoint)


def priority_score(contact: ContactRecord, now: datetime | None = None) -> float:
    """Score a contact at `now` (default: the current instant)."""
    return score_resolution(resolve_window(contact.title, contact.timezone, now))
