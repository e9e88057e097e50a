"""
Structured Logging with Structlog.

Every driver step logs a structured event bound to the driver name and invoice id.
Credentials and card data never reach the rendered output.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from bankgate.config import settings

# Keys whose values are replaced before rendering, matched case-insensitively
REDACTED_KEYS = frozenset(
    {"password", "userpassword", "loginaccount", "login_account", "pan", "cardnumber"}
)
REDACTED = "***"


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp service name and version on every entry."""
    event_dict["service"] = settings.service_name
    event_dict["version"] = settings.version
    return event_dict


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in REDACTED_KEYS else _scrub(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(item) for item in value)
    return value


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask merchant credentials and card numbers, including inside logged payloads."""
    return _scrub(event_dict)  # type: ignore[no-any-return]


def build_processors(log_level: str, log_format: str) -> list[Processor]:
    """Processor chain for the given level and output format."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_app_context,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    # Full tracebacks only when debugging
    if log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def setup_logging() -> None:
    """
    Configure structlog from the gateway settings.

    JSON output looks like:
    {
        "event": "sadad_settle_rejected",
        "level": "warning",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "bankgate.services.sadad",
        "service": "bankgate",
        "version": "0.1.0",
        "driver": "sadad",
        "invoice_id": "5b1e...",
        "code": "45"
    }
    """
    level = getattr(logging, settings.log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=build_processors(settings.log_level, settings.log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger for a module, e.g. ``get_logger(__name__)``."""
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Bind driver/invoice context to every log entry inside the block.

    Usage:
        with log_context(driver="sadad", invoice_id=invoice.uuid):
            logger.info("verifying_payment")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())
