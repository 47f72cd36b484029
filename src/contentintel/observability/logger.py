"""Structured logging.

JSON lines by default; `LOG_FORMAT=console` switches to structlog's
colourised renderer for local runs. Every event carries the service name,
and callers can bind per-operation context (a scan source, a page id) that
stays attached until the surrounding `log_context` block exits.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import Processor

from ..config.settings import PipelineSettings, get_settings


def _renderer(log_format: str) -> Processor:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging(settings: PipelineSettings | None = None) -> None:
    settings = settings or get_settings()
    log_level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.log_format != "console":
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(settings.log_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=settings.service_name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind `values` to every log event emitted inside the block (task-local)."""
    tokens = structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def get_logger(name: str | None = None):
    return structlog.get_logger(name)
