"""Structured JSON logging for repo_context.

Events go through structlog to the ``repo_context`` stdlib logger, which
writes to stderr until a log file is requested. Values bound with
`bind_source` are merged into every event logged while they are bound.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

LOGGER_NAME = "repo_context"
_LOGGING_CONFIGURED = False


def _handler_for(filename: str | Path | None) -> logging.Handler:
    handler: logging.Handler
    if filename:
        handler = logging.FileHandler(str(filename), encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(filename: str | Path | None = None) -> structlog.BoundLogger:
    """Set up structured logging for the repo_context package.

    The first call configures structlog and gives the ``repo_context`` logger
    its own handler, so the host application's root logger is left alone.
    A later call with a ``filename`` redirects the package's events from
    their current destination to that file.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.

    Returns:
        A structlog logger instance configured for the repo_context package.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    package_logger = logging.getLogger(LOGGER_NAME)
    if not _LOGGING_CONFIGURED:
        package_logger.setLevel(logging.INFO)
        package_logger.addHandler(_handler_for(filename))
        package_logger.propagate = False
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True
    elif filename:
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)
            handler.close()
        package_logger.addHandler(_handler_for(filename))

    return structlog.get_logger(LOGGER_NAME)


@contextmanager
def bind_source(source: str | Path) -> Iterator[None]:
    """Tag every event logged inside the block with the exported source."""
    with structlog.contextvars.bound_contextvars(source=str(source)):
        yield


logger = setup_logging()
