"""
FastAPI dependencies: operator scope and the per-operator dialer registry.
"""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import Depends, Header, Request

from powerqueue.config import Settings, get_settings
from powerqueue.dialer import PowerDialer
from powerqueue.shared.logging import correlation_id_var, get_logger
from powerqueue.store.interface import DocumentStore

logger = get_logger(__name__)


class DialerRegistry:
    """One started PowerDialer per operator, sharing a document store."""

    def __init__(self, store: DocumentStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._dialers: dict[str, PowerDialer] = {}
        self._lock = asyncio.Lock()

    @property
    def store(self) -> DocumentStore:
        return self._store

    async def get(self, operator_id: str) -> PowerDialer:
        async with self._lock:
            dialer = self._dialers.get(operator_id)
            if dialer is None:
                dialer = PowerDialer(operator_id, self._store, settings=self._settings)
                await dialer.start()
                self._dialers[operator_id] = dialer
                logger.info("Dialer registered", extra={"operator_id": operator_id})
            return dialer

    def dialers(self) -> list[PowerDialer]:
        return list(self._dialers.values())

    async def close(self) -> None:
        for dialer in self._dialers.values():
            await dialer.close()
        self._dialers.clear()


def get_registry(request: Request) -> DialerRegistry:
    return request.app.state.dialers


async def get_operator_id(
    x_operator_id: Annotated[str | None, Header()] = None,
) -> str:
    """Operator scope from the X-Operator-Id header, else the configured default."""
    operator_id = (x_operator_id or "").strip() or get_settings().default_operator_id
    correlation_id_var.set(operator_id)
    return operator_id


async def get_dialer(
    registry: Annotated[DialerRegistry, Depends(get_registry)],
    operator_id: Annotated[str, Depends(get_operator_id)],
) -> PowerDialer:
    return await registry.get(operator_id)


DialerDep = Annotated[PowerDialer, Depends(get_dialer)]
