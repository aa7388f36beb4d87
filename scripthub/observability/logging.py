"""
Structured Logging - structlog configuration for ScriptHub.

Every line carries the service name and version plus whatever request
context is bound with log_context (request_id, user_id, code_id, asset_id).
ID tokens and redeem code strings are masked before rendering; a code is
as good as premium access to whoever reads it.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from scripthub.config import settings

# Event keys whose values are credentials or spendable codes
SECRET_KEYS = frozenset({"code", "token", "id_token", "authorization"})

# Libraries whose INFO output duplicates our request logs or floods them
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "google.auth.transport")


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.service_name)
    event_dict.setdefault("version", settings.api_version)
    return event_dict


def mask_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Keep only a two character prefix of secret values so lines stay correlatable."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str) and value:
            event_dict[key] = f"{value[:2]}***"
    return event_dict


def setup_logging() -> None:
    """
    Configure structlog and route the standard library through stdout.

    LOG_FORMAT=json renders one JSON object per line for log shipping,
    anything else the console renderer for local development.
    """
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context,
        mask_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """
    Bind fields to every log line emitted inside the block.

    None values are skipped, so callers can pass optional ids unconditionally.
    Values bound by an enclosing block are restored on exit.

    Usage:
        with log_context(user_id=user.uid, code_id=code_id):
            logger.info("redeem_code_success")
    """
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield
