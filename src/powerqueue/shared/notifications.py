"""
Notification channel for transient operator-facing messages.

Each dialer owns its own channel; renderers subscribe to it instead of
reaching for a page-global toast.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from powerqueue.shared.logging import get_logger

logger = get_logger(__name__)


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    message: str
    level: NotificationLevel = NotificationLevel.INFO
    action: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


NotificationListener = Callable[[Notification], None]


class NotificationChannel:
    """Fan-out of notifications to registered listeners."""

    def __init__(self, history_size: int = 20) -> None:
        self._listeners: list[NotificationListener] = []
        self._recent: deque[Notification] = deque(maxlen=history_size)

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def emit(
        self,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
        action: str | None = None,
    ) -> Notification:
        notification = Notification(message=message, level=level, action=action)
        self._recent.append(notification)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed", extra={"action": action})
        return notification

    @property
    def recent(self) -> list[Notification]:
        return list(self._recent)

    @property
    def latest(self) -> Notification | None:
        """The notification a replace-on-new renderer would be showing."""
        return self._recent[-1] if self._recent else None
