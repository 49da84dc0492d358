"""
FastAPI application entry point.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from powerqueue import __version__
from powerqueue.api.block import router as block_router
from powerqueue.api.calls import router as calls_router
from powerqueue.api.contacts import router as contacts_router
from powerqueue.api.deps import DialerRegistry
from powerqueue.api.notifications import router as notifications_router
from powerqueue.api.queue import router as queue_router
from powerqueue.config import get_settings
from powerqueue.shared.exceptions import NotFoundError, OperationFailedError, ValidationError
from powerqueue.shared.logging import get_logger, setup_logging
from powerqueue.store.factory import create_document_store
from powerqueue.store.interface import DocumentStore

logger = get_logger(__name__)


async def _refresh_supervisor(app: FastAPI, interval_seconds: float) -> None:
    """Periodically re-evaluate every operator's queue against the clock."""
    while True:
        await asyncio.sleep(interval_seconds)
        registry: DialerRegistry = app.state.dialers
        for dialer in registry.dialers():
            try:
                dialer.refresh()
            except Exception:
                logger.exception(
                    "Queue refresh failed",
                    extra={"operator_id": dialer.operator_id},
                )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()

    logger.info(
        "Application starting",
        extra={
            "app": settings.app_name,
            "env": settings.app_env,
            "store_backend": settings.store_backend,
        },
    )

    store: DocumentStore | None = getattr(app.state, "store", None)
    if store is None:
        store = await create_document_store(settings)
        app.state.store = store
    if getattr(app.state, "dialers", None) is None:
        app.state.dialers = DialerRegistry(store, settings)

    refresh_task = asyncio.create_task(
        _refresh_supervisor(app, settings.queue_refresh_seconds)
    )

    yield

    logger.info("Shutting down application")

    refresh_task.cancel()
    try:
        await refresh_task
    except asyncio.CancelledError:
        pass

    await app.state.dialers.close()
    await store.close()
    logger.info("Application shutdown complete")


def create_app(store: DocumentStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        store: Pre-built document store (tests); built from settings otherwise.
    """
    settings = get_settings()

    app = FastAPI(
        title="PowerQueue API",
        description="Single-operator power dialer: call queue, outcomes and call blocks",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    if store is not None:
        app.state.store = store
        app.state.dialers = DialerRegistry(store, settings)

    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValidationError)
    async def _validation(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(OperationFailedError)
    async def _operation_failed(_: Request, exc: OperationFailedError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc), "action": exc.action},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(contacts_router)
    app.include_router(queue_router)
    app.include_router(calls_router)
    app.include_router(block_router)
    app.include_router(notifications_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
