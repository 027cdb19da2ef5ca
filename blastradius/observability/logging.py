"""Structured logging configuration using structlog.

stdout carries the rendered graph, so every log line goes to stderr: JSON
when stderr is redirected, a coloured console layout when it is a terminal.
"""

from __future__ import annotations

import logging
import sys

import structlog

# botocore and urllib3 log through the stdlib; they only get through at debug.
_THIRD_PARTY_LOGGERS = ("botocore", "boto3", "urllib3")


def setup_logging(level: str = "info", json_output: bool | None = None) -> None:
    """Configure structlog output on stderr.

    Args:
        level:        Minimum level name (debug, info, warning, error).
        json_output:  Force JSON (True) or console (False) rendering. The
                      default picks console only when stderr is a TTY.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if json_output is None:
        json_output = not sys.stderr.isatty()

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    third_party_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=third_party_level, format="%(levelname)s %(name)s: %(message)s")
    for name in _THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]
