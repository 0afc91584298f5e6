"""
Structured logging setup for Relaycast.

Configures structlog for JSON-formatted structured logging across the
relay, chat and gateway packages. Every log line includes timestamp,
level, service name, and event. Per-session context (session_id) is
bound at processing time with ``logger.bind``.
"""

from __future__ import annotations

import logging
import sys

import structlog

SERVICE_NAME: str = "relaycast"


def _add_service_name(
    _logger: object, _method: str, event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: str = "INFO", *, json: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Stdlib loggers (uvicorn, python-socketio, httpx) are routed through
    the same level so their output interleaves with structlog events.

    Args:
        level: Level name, e.g. ``"INFO"`` or ``"DEBUG"``.
        json: Render JSON lines when ``True``, coloured console output otherwise.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
