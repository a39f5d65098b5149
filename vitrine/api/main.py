"""FastAPI application factory."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vitrine.api.dependencies.checkout import CheckoutRegistry
from vitrine.api.routers import checkout, plans, verification
from vitrine.core import errors
from vitrine.core.database import init_database
from vitrine.core.logging import get_logger, setup_logging
from vitrine.core.observability import configure_observability
from vitrine.core.rate_limiter import setup_rate_limiting
from vitrine.core.settings import get_settings
from vitrine.services.catalog import CatalogWatcher, PollingChangeChannel
from vitrine.services.navigation import Screen
from vitrine.services.notifications import NOTICES
from vitrine.services.records import RecordsStore
from vitrine.services.storage import get_storage_service

logger = get_logger(__name__)

_STATUS_BY_ERROR: dict[type[errors.CheckoutError], int] = {
    errors.ValidationError: 422,
    errors.AuthRequired: 401,
    errors.IncompleteSubmission: 422,
    errors.UploadError: 502,
    errors.RecordInsertError: 500,
    errors.UnknownPlan: 404,
    errors.CatalogUnavailable: 503,
    errors.PaymentInProgress: 409,
    errors.PaymentDeclined: 402,
    errors.PaymentGatewayError: 502,
    errors.PaymentTimeout: 504,
}


def _checkout_error_handler(request: Request, exc: errors.CheckoutError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        400,
    )
    body = exc.as_dict()
    body["notice"] = NOTICES[exc.notice].as_dict()
    if isinstance(exc, errors.AuthRequired):
        body["redirect"] = Screen.SIGN_IN.value
    return JSONResponse(status_code=status_code, content=body)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    records: RecordsStore = app.state.records
    channel = PollingChangeChannel(records.fetch_rows, settings.catalog_poll_interval_seconds)
    watcher = CatalogWatcher(records.fetch_rows, channel, table=settings.plans_table)
    app.state.catalog = watcher
    watcher.start()
    logger.info("catalog_watcher_started", table=settings.plans_table)
    try:
        yield
    finally:
        await watcher.stop()
        await channel.aclose()


def create_app(records: RecordsStore | None = None) -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_renderer)
    init_database()

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_rate_limiting(app)
    configure_observability(app)

    app.state.records = records or RecordsStore()
    app.state.storage = get_storage_service()
    app.state.checkouts = CheckoutRegistry()
    app.add_exception_handler(errors.CheckoutError, _checkout_error_handler)

    app.include_router(plans.router)
    app.include_router(checkout.router)
    app.include_router(verification.router)

    @app.get("/healthz", tags=["monitoring"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return app


__all__ = ["create_app"]
