"""Structured logging for extraction runs."""

from extraction_engine.observability.logging import (
    configure_logging,
    configure_logging_from_config,
    correlation_scope,
    get_logger,
)

__all__ = [
    "configure_logging",
    "configure_logging_from_config",
    "correlation_scope",
    "get_logger",
]
