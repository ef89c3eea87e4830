"""Structured logging for the verifier, built on structlog.

The verifier is a library, so nothing is configured on import. Module
loggers wrap stdlib loggers under ``btcverify``, which only carries a
NullHandler until the host calls :func:`setup_logging`.
"""

import logging
import sys

import structlog

from btcverify.config import Settings

LOGGER_NAME = "btcverify"

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """structlog logger over ``logging.getLogger(name)``, gated by stdlib levels."""
    return structlog.wrap_logger(logging.getLogger(name), wrapper_class=structlog.stdlib.BoundLogger)


def setup_logging(settings: Settings) -> None:
    """Route btcverify events through structlog as JSON or console lines."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    stdlib_logger = logging.getLogger(LOGGER_NAME)
    stdlib_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    if not any(isinstance(h, logging.StreamHandler) for h in stdlib_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        stdlib_logger.addHandler(handler)
