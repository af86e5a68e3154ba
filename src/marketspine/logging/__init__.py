"""
Structured logging for the ingestion pipeline.

Usage:
    from marketspine.logging import configure_logging, get_logger, set_context, log_step

    configure_logging()
    set_context(job="national", run_id="2f1c...")

    log = get_logger(__name__)
    with log_step("ingest.source", source="SEAP"):
        log.info("batch.pulled", records=200)
"""

from marketspine.logging.config import configure_logging
from marketspine.logging.context import (
    LogContext,
    bind_context,
    clear_context,
    get_context,
    get_logger,
    push_context,
    set_context,
)
from marketspine.logging.timing import TimingResult, log_step

__all__ = [
    "configure_logging",
    "get_logger",
    "set_context",
    "bind_context",
    "push_context",
    "clear_context",
    "get_context",
    "LogContext",
    "log_step",
    "TimingResult",
]
