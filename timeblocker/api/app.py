"""
TimeBlocker — HTTP application.

create_app() wires the stores, the notifier and the scheduler into a
FastAPI app. Everything request handlers need lives on app.state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from timeblocker.adapters.notifier_factory import create_notifier
from timeblocker.api.routes import auth, health, tasks, timeblocks
from timeblocker.config import Settings
from timeblocker.core.errors import AppError, OverlapError
from timeblocker.core.notifications import NotificationService
from timeblocker.data.db import Stores, open_stores
from timeblocker.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


def _validation_messages(exc: RequestValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc)
        messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return messages


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        body: dict = {"error": exc.message}
        if isinstance(exc, OverlapError) and exc.conflicting_ids:
            body["conflictingIds"] = exc.conflicting_ids
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        errors = _validation_messages(exc)
        return JSONResponse(
            status_code=400,
            content={"error": errors[0] if errors else "Invalid request", "errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    settings: Settings | None = None,
    stores: Stores | None = None,
    notifier: NotificationPort | None = None,
    scheduler: AsyncIOScheduler | None = None,
) -> FastAPI:
    """Build the API. Arguments left as None come from settings."""
    if settings is None:
        from timeblocker.config import settings

    if stores is None:
        stores = open_stores(settings.DATABASE_PATH)
    if notifier is None:
        notifier = create_notifier(settings)
    if scheduler is None:
        scheduler = AsyncIOScheduler(timezone=settings.SCHEDULER_TIMEZONE)

    notifications = NotificationService(
        notifier,
        stores.users,
        stores.blocks,
        scheduler,
        daily_planning_hour=settings.DAILY_PLANNING_HOUR,
        scheduler_timezone=settings.SCHEDULER_TIMEZONE,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        purged = stores.users.purge_expired_sessions()
        if purged:
            logger.info("Purged %d expired sessions", purged)
        notifications.start()
        logger.info("TimeBlocker API ready (db=%s)", stores.users.db_path)
        try:
            yield
        finally:
            notifications.shutdown()

    app = FastAPI(title="TimeBlocker", lifespan=lifespan)
    app.state.settings = settings
    app.state.stores = stores
    app.state.notifications = notifications

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    for module in (health, auth, tasks, timeblocks):
        app.include_router(module.router)
    return app
