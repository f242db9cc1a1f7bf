"""Structured logging for fcrm_chat.

This module provides a configured structlog logger with JSON output
for production and pretty console output for development. Level and
format come from ``LoggingSettings`` (``FCRM_CHAT_LOG_*``), and browser
keys and credentials are masked in every event.
"""

import logging
import sys
from typing import Any

import structlog

from fcrm_chat.config import LoggingSettings

__all__ = [
    "configure_logging",
    "get_logger",
    "mask_key",
]

# Event keys whose values never reach the output in full
SENSITIVE_KEYS = frozenset(
    {"browser_key", "app_key", "app_secret", "socket_api_key", "signature", "sig"}
)

# Transport libraries are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "socketio", "engineio")


def mask_key(value: str | None) -> str | None:
    """Shorten a browser key or secret for log output."""
    if value is None:
        return None
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


def _mask_sensitive(
    _logger: Any,
    _method: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    for key in SENSITIVE_KEYS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = mask_key(value)
    return event_dict


def configure_logging(
    settings: LoggingSettings | None = None,
    *,
    level: int | str | None = None,
    json_output: bool | None = None,
) -> None:
    """Configure structlog for the SDK.

    Explicit arguments win over ``settings``; ``settings`` defaults to
    the environment.

    Args:
        settings: Logging settings
        level: Logging level name or number
        json_output: If True, output JSON; if False, pretty console output
    """
    settings = settings or LoggingSettings()
    level = level if level is not None else settings.level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    json_output = settings.json_output if json_output is None else json_output

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _mask_sensitive,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.timestamps:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger("fcrm_chat").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


_configured = False


def _ensure_configured() -> None:
    global _configured
    if not _configured:
        configure_logging()
        _configured = True


_ensure_configured()
