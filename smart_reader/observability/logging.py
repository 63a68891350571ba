"""
Structured Logging - structlog over the stdlib logging module

JSON lines in production, colored console output everywhere else.
"""

import logging
import sys
from typing import Optional

import structlog

from ..core.config import settings


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure structured logging once at process start.

    Args:
        level: Log level name overriding settings.log_level.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.environment == "production":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr so CLI output on stdout stays clean
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, (level or settings.log_level).upper(), logging.INFO),
    )


def get_logger(name: str = None):
    """Get a structlog logger"""
    return structlog.get_logger(name or __name__)


# Create default logger
logger = get_logger("smart_reader")
