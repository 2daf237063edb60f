"""
Structured logging for the notification scheduler.

structlog wraps stdlib logging, so scheduler pass events and plain
`logging.getLogger(__name__)` records from the stores share one handler.
JSON output when FITCOACH_LOG_FORMAT=json, console output otherwise.

Each reconciliation pass runs inside `pass_context`, which binds the user
and the re-evaluation reason as contextvars. Every record emitted during
the pass carries both keys, including records from the storage modules.

Usage:
    from fitcoach.logging_config import pass_context, setup_logging

    setup_logging()
    with pass_context("user-1", "foreground"):
        ...
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    if level is None:
        level = os.environ.get("FITCOACH_LOG_LEVEL", "INFO")

    if json_output is None:
        json_output = os.environ.get("FITCOACH_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        # Tracebacks from failed periodic passes become structured fields
        final: list[structlog.types.Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *final,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)


@contextmanager
def pass_context(user_id: str, reason: str) -> Iterator[None]:
    """Bind user_id and reason to every log record emitted inside the block."""
    with structlog.contextvars.bound_contextvars(user_id=user_id, reason=str(reason)):
        yield


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["get_logger", "pass_context", "setup_logging"]
