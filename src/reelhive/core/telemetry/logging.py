from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

_CONFIGURED = False


def configure_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    global _CONFIGURED
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.processors.EventRenamer(to="event"), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper(), logging.INFO)),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _CONFIGURED = True


def get_logger(name: str):
    if not _CONFIGURED:
        configure_logging()
    return structlog.get_logger(name, logger_name=name)


@contextmanager
def log_context(**fields) -> Iterator[None]:
    """Attach fields to every event logged in this context, across modules."""
    clean = {k: v for k, v in fields.items() if v is not None}
    with structlog.contextvars.bound_contextvars(**clean):
        yield
