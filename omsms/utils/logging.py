# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging for the tenant gateway.

Gateway modules log through the standard library (``logging.getLogger``).
setup_logging() installs a structlog ProcessorFormatter on the root logger so
those records are rendered exactly like structlog's own events: JSON outside
development, colored console output in development, and in both cases with
the request-scoped context bound by bind_context() (e.g. the tenant key).

Example:
    >>> from omsms.utils.logging import setup_logging, bind_context
    >>> from omsms.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> bind_context(tenant="acme")
    >>> logging.getLogger("omsms.router").info("Cache hit")  # carries tenant=acme
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from omsms.core.config.settings import Settings

HANDLER_NAME = "omsms"

# Third-party loggers kept at WARNING to reduce noise
_NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
    "sqlalchemy",
    "asyncpg",
    "alembic",
    "asyncio",
)


def _shared_processors() -> list[Processor]:
    # Applied to structlog events and to foreign stdlib records alike.
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(settings: "Settings") -> None:
    """Install the structlog pipeline and the root handler.

    Safe to call more than once; the previously installed handler is replaced.

    Args:
        settings: Provides log_level and the environment/debug switches.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    shared_processors = _shared_processors()

    if settings.is_development or settings.debug:
        render: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        render = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("omsms").setLevel(log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after a module.

    Args:
        name: Logger name, normally the caller's __name__.

    Returns:
        Lazy logger proxy; it is bound on first use.
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Attach key-value pairs to every record logged from the current context.

    Args:
        **kwargs: Fields added to each record.

    Example:
        >>> bind_context(tenant="acme")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop everything bound with bind_context() in the current context."""
    structlog.contextvars.clear_contextvars()
