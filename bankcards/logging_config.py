"""
Logging configuration.

Every module logs through the standard library (`logging.getLogger(__name__)`).
This module wires those loggers to a single console handler at startup via
`logging.config.dictConfig`, using either a human-readable format (local
development) or JSON lines (production log aggregation, via
python-json-logger).

What gets logged:
  - Vault initialization and card-number collisions during generation
  - Card issuance and lifecycle transitions (card IDs only)
  - Transfer start/completion (card IDs and amount)
  - Security violations (foreign-card access) at WARNING
  - Lock-wait timeouts at WARNING

Full card numbers, ciphertexts, passwords and secrets are never logged.
"""

import logging
import logging.config
import sys
from typing import Any

from bankcards.config import settings


def get_logging_config() -> dict[str, Any]:
    """Build the dictConfig for the configured LOG_LEVEL and LOG_FORMAT."""
    formatter = "json" if settings.LOG_FORMAT == "json" else "default"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.LOG_LEVEL,
                "formatter": formatter,
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": settings.LOG_LEVEL,
            "handlers": ["console"],
        },
        "loggers": {
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            # SQL echo is controlled by DEBUG on the engine, keep the logger quiet otherwise
            "sqlalchemy.engine": {
                "level": "INFO" if settings.DEBUG else "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
            "bankcards": {
                "level": settings.LOG_LEVEL,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging() -> None:
    """
    Apply the logging configuration.

    Call once at application startup, before the first request is served.
    """
    logging.config.dictConfig(get_logging_config())
    logging.getLogger(__name__).info(
        "Logging configured: level=%s, format=%s",
        settings.LOG_LEVEL,
        settings.LOG_FORMAT,
    )
