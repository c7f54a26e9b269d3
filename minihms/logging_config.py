"""Structured logging for the mini HMS harness.

Only the `minihms` logger hierarchy is configured, so the test suite hosting
the harness keeps whatever root logging it has set up.
"""

import logging
from pathlib import Path
from typing import Any

import structlog

LOGGER_NAME = "minihms"


def configure_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    console: bool = True,
) -> None:
    """
    Send harness events to the console and, optionally, to `log_file`.

    File output is JSON lines, one event per line, so lifecycle events can be
    lined up against the metastore's own `hms.log`.
    """
    numeric_level = getattr(logging, level.upper())

    handlers: list[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler())
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            *_renderers(use_json=log_file is not None),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    logger.propagate = False
    for old in logger.handlers:
        old.close()
    logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)


def _renderers(use_json: bool) -> list[Any]:
    if use_json:
        # tracebacks must be strings before they can be serialized
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=False)]


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
