"""Structured logging setup: structlog JSON-lines or console output with scoped correlation."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Final

import structlog

from extraction_engine.config.schema import ExtractionConfig

_CORRELATION_KEYS: Final[tuple[str, ...]] = (
    "run_id",
    "component_id",
    "worker_id",
    "batch_id",
)


def configure_logging(
    level: int | str = "INFO",
    *,
    json_output: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog process-wide.

    JSON output renders one sorted-key object per line; otherwise structlog's
    console renderer is used. Correlation fields bound through
    ``correlation_scope`` are merged into every event.
    """

    resolved_level = logging.getLevelName(level) if isinstance(level, str) else level
    if not isinstance(resolved_level, int):
        raise ValueError(f"unknown log level: {level!r}")

    renderer: structlog.typing.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolved_level),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )


def configure_logging_from_config(
    config: ExtractionConfig, *, stream: IO[str] | None = None
) -> None:
    configure_logging(
        config.observability.log_level,
        json_output=config.observability.log_format == "json",
        stream=stream,
    )


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)


@contextmanager
def correlation_scope(**fields: str | int | None) -> Iterator[None]:
    """Temporarily bind correlation fields for log events in scope."""

    unknown = sorted(set(fields) - set(_CORRELATION_KEYS))
    if unknown:
        raise ValueError(f"unknown correlation fields: {', '.join(unknown)}")
    bound = {key: value for key, value in fields.items() if value is not None}
    tokens = structlog.contextvars.bind_contextvars(**bound)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


__all__ = [
    "configure_logging",
    "configure_logging_from_config",
    "correlation_scope",
    "get_logger",
]
