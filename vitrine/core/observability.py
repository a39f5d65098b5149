"""Metrics and error reporting for the checkout service."""
from __future__ import annotations

import sentry_sdk
from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

from vitrine.core.logging import get_logger
from vitrine.core.settings import get_settings

logger = get_logger(__name__)

payments_total = Counter(
    "vitrine_payments_total",
    "Payment attempts by method and outcome.",
    ["method", "outcome"],
)
verification_submissions_total = Counter(
    "vitrine_verification_submissions_total",
    "Document submissions by result.",
    ["result"],
)
catalog_reloads_total = Counter(
    "vitrine_catalog_reloads_total",
    "Catalog refreshes by result.",
    ["result"],
)


def configure_observability(app: FastAPI) -> None:
    settings = get_settings()

    if settings.enable_prometheus:
        Instrumentator(excluded_handlers=["/healthz", "/metrics"]).instrument(
            app, metric_namespace=settings.metrics_namespace
        ).expose(app, include_in_schema=False)
        logger.info("metrics_exposed", namespace=settings.metrics_namespace)

    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            environment=settings.environment,
            release=f"{settings.app_name}@1.0.0",
            send_default_pii=False,
        )
        logger.info("sentry_initialised", environment=settings.environment)


__all__ = [
    "catalog_reloads_total",
    "configure_observability",
    "payments_total",
    "verification_submissions_total",
]
