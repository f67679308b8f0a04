"""
Logging configuration using structlog.

Diagnostic logs go to stderr so they never mix with the command output a
user reads on stdout. Human-readable console rendering is the default;
JSON output can be switched on for machine consumption.
"""

import sys
from typing import Any

import structlog


def configure_logging(log_level: str = "WARNING", json_output: bool = False) -> None:
    """Configure structured logging.

    Sets up structlog with a pipeline of processors that add the log level,
    a timestamp and exception information to every event.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render events as JSON lines instead of console text
    """
    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.lower()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
