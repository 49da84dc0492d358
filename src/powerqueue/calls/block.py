"""
Call block session: a timed working session measuring calls per hour.

Idle -> Running -> Idle. start() while Running restarts the block;
end() is only valid while Running.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Callable

from powerqueue.calls.stats import round_half_up
from powerqueue.shared.exceptions import ValidationError
from powerqueue.shared.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

_MS_PER_HOUR = 3_600_000


class BlockState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass(frozen=True)
class BlockSummary:
    """Result of ending a block."""

    calls_logged: int
    elapsed_ms: int
    calls_per_hour: int


def format_elapsed(ms: int) -> str:
    """HH:MM:SS from milliseconds."""
    seconds = max(0, ms) // 1000
    minutes, hours = seconds // 60, seconds // 3600
    return f"{hours:02d}:{minutes % 60:02d}:{seconds % 60:02d}"


def calls_per_hour(calls: int, elapsed_ms: int) -> int:
    hours = elapsed_ms / _MS_PER_HOUR
    if hours <= 0:
        return 0
    return round_half_up(calls / hours)


class CallBlockSession:
    """Ephemeral per-operator block timer and call counter."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._started_at: datetime | None = None
        self._calls_logged = 0

    @property
    def state(self) -> BlockState:
        return BlockState.RUNNING if self._started_at is not None else BlockState.IDLE

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def calls_logged(self) -> int:
        return self._calls_logged

    @property
    def elapsed_ms(self) -> int:
        if self._started_at is None:
            return 0
        delta = self._clock() - self._started_at
        return int(delta.total_seconds() * 1000)

    @property
    def calls_per_hour(self) -> int:
        return calls_per_hour(self._calls_logged, self.elapsed_ms)

    @property
    def elapsed_label(self) -> str:
        return format_elapsed(self.elapsed_ms)

    def start(self) -> None:
        if self._started_at is not None:
            logger.info(
                "Restarting running call block",
                extra={"discarded_calls": self._calls_logged},
            )
        self._started_at = self._clock()
        self._calls_logged = 0

    def log_call(self) -> bool:
        """Count one call; no-op (False) when no block is running."""
        if self._started_at is None:
            return False
        self._calls_logged += 1
        return True

    def end(self) -> BlockSummary:
        if self._started_at is None:
            raise ValidationError("No call block is running")
        elapsed = self.elapsed_ms
        summary = BlockSummary(
            calls_logged=self._calls_logged,
            elapsed_ms=elapsed,
            calls_per_hour=calls_per_hour(self._calls_logged, elapsed),
        )
        self._started_at = None
        self._calls_logged = 0
        logger.info(
            "Call block ended",
            extra={
                "calls_logged": summary.calls_logged,
                "elapsed_ms": summary.elapsed_ms,
                "calls_per_hour": summary.calls_per_hour,
            },
        )
        return summary

    async def ticks(self, interval_seconds: float = 1.0) -> AsyncIterator[str]:
        """Yield the elapsed label on a fixed cadence while the block runs."""
        while self._started_at is not None:
            yield self.elapsed_label
            await asyncio.sleep(interval_seconds)
