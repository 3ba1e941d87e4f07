# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration using structlog.

Logs are rendered as JSON in production and as colored console output in
development. Standard library loggers (``logging.getLogger(__name__)``) used
throughout the package are formatted by structlog's ProcessorFormatter, so
their records go through the same processor chain as structlog events.

Tenant scans bind ``partner_id`` and ``detector`` through bind_context() /
tenant_log_context(). The chain merges those context variables into every
rendered line, stdlib records included.

Example:
    >>> import logging
    >>> from programwatch.utils.logging import setup_logging, tenant_log_context
    >>> from programwatch.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = logging.getLogger(__name__)
    >>> with tenant_log_context(partner_id="P-001"):
    ...     logger.info("Scan finished with %d alerts", 2)
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from programwatch.core.config.settings import Settings

LOG_HANDLER_NAME = "programwatch"


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the application.

    Installs one root handler formatted by structlog. Calling it again
    replaces that handler instead of adding a second one.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if settings.is_development or settings.debug:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(LOG_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.name == LOG_HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    # Set third-party loggers to WARNING to reduce noise
    for logger_name in [
        "sqlalchemy",
        "asyncio",
        "apscheduler",
    ]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("programwatch").setLevel(log_level)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log calls in this context.

    Args:
        **kwargs: Key-value pairs to bind to the logging context.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def tenant_log_context(**kwargs: object) -> Iterator[None]:
    """Bind context variables for the duration of a block.

    Unlike bind_context(), the previous values are restored on exit, so
    nested tenant scans do not leak their partner id into each other.
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield
