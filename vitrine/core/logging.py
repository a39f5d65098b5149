"""structlog configuration.

Events are snake_case names with keyword context. Request handlers bind the
owner id once through :func:`bind_request_context` and every event logged
while serving that request carries it.
"""
from __future__ import annotations

import logging
from typing import Any

import structlog


def setup_logging(level: int | str = logging.INFO, renderer: str = "json") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format="%(message)s")
    final_processor = (
        structlog.dev.ConsoleRenderer() if renderer == "console" else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            final_processor,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def bind_request_context(**values: Any) -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**{key: value for key, value in values.items() if value is not None})


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["bind_request_context", "get_logger", "setup_logging"]
