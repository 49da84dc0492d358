"""
Document store factory.

Single source of truth for configuration: Settings.store_backend selects
the adapter, Settings.database_url feeds the SQL adapter.
"""

from __future__ import annotations

from powerqueue.config import Settings, get_settings
from powerqueue.shared.database import DatabaseManager
from powerqueue.shared.logging import get_logger
from powerqueue.store.interface import DocumentStore
from powerqueue.store.memory import InMemoryDocumentStore
from powerqueue.store.sql import SqlDocumentStore

logger = get_logger(__name__)


def _mask_url(url: str) -> str:
    # Hide credentials in postgres-style URLs.
    if "@" not in url or "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


async def create_document_store(settings: Settings | None = None) -> DocumentStore:
    """Build (and for SQL, initialize) the configured document store."""
    cfg = settings or get_settings()

    logger.info(
        "Document store config resolved",
        extra={
            "store_backend": cfg.store_backend,
            "database_url": _mask_url(cfg.database_url),
        },
    )

    if cfg.store_backend == "memory":
        return InMemoryDocumentStore()

    if cfg.store_backend == "sql":
        db = DatabaseManager(cfg.database_url)
        await db.create_all()
        return SqlDocumentStore(db)

    raise ValueError(f"Unsupported store_backend: {cfg.store_backend}")
