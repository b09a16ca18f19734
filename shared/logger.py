"""
Structured logging configuration shared by the sentiment services.
Every module logs through structlog so that entries carry the same context.
"""

import logging
import sys
from typing import Any, Iterable, Optional

import structlog
from structlog.types import EventDict

SENSITIVE_KEYS = {
    "password",
    "token",
    "api_key",
    "apikey",
    "secret",
    "authorization",
    "audio",
}

_service_context: dict = {}
_configured = False


def add_service_context(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level context to all log entries"""
    for key, value in _service_context.items():
        event_dict.setdefault(key, value)
    return event_dict


def filter_sensitive_data(
    logger: Any, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask credentials and raw audio payloads"""

    def is_sensitive(key: Any) -> bool:
        if not isinstance(key, str):
            return False
        name = key.lower()
        # exact name or a suffix such as access_token
        return any(
            name == sensitive or name.endswith("_" + sensitive)
            for sensitive in SENSITIVE_KEYS
        )

    def mask_value(key: Any, value: Any) -> Any:
        if is_sensitive(key):
            return "[REDACTED]"
        if isinstance(value, dict):
            return {k: mask_value(k, v) for k, v in value.items()}
        return value

    return {k: mask_value(k, v) for k, v in event_dict.items()}


def _shared_processors() -> Iterable:
    return [
        structlog.contextvars.merge_contextvars,
        add_service_context,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        filter_sensitive_data,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    level: str = "INFO",
    log_format: str = "console",
    service: str = "sentiment-orchestrator",
    version: str = "unknown",
    environment: str = "development",
) -> None:
    """Configure structlog and the standard library root logger"""
    global _configured

    _service_context.update(
        {"service": service, "version": version, "environment": environment}
    )

    processors = list(_shared_processors())
    if log_format == "json":
        # Loki-friendly output
        processors.append(structlog.processors.UnicodeDecoder())
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _configured = True


def is_configured() -> bool:
    return _configured


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance"""
    return structlog.get_logger(name)
