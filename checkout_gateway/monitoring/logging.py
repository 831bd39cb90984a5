"""
Structured logging configuration.

All log output goes through one python-json-logger handler on the root
logger. structlog events are rendered to JSON first and arrive as the
"message" field of that record; stdlib records (uvicorn, httpx) are plain
messages. The request id bound by the API middleware is merged into every
structlog event.

Credentials never reach a log line in full; see `redact_secrets`.
"""
import logging
import sys
from typing import Any, Optional, TextIO

import structlog
from pythonjsonlogger import jsonlogger

from checkout_gateway.config import get_settings

SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "authorization",
        "client_secret",
        "paypal_client_secret",
        "token",
    }
)


def mask_secret(value: Optional[str], visible: int = 10) -> str:
    """
    Truncate a credential for diagnostics.

    Only the first `visible` characters survive, e.g. "AbCdEfGhIj...".
    Short values are fully masked so nothing useful leaks.
    """
    if not value:
        return "NOT SET"
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}..."


def add_app_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Stamp every event with the service name, environment and PayPal environment."""
    settings = get_settings()
    event_dict["app_name"] = settings.app_name
    event_dict["app_env"] = settings.app_env
    event_dict["paypal_environment"] = settings.paypal_environment
    return event_dict


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask values logged under credential-like keys."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        value = event_dict[key]
        event_dict[key] = mask_secret(value if isinstance(value, str) else str(value), 6)
    return event_dict


def setup_logging(level: Optional[str] = None, stream: TextIO = sys.stdout) -> None:
    """
    Configure structlog and the root logger.

    Args:
        level: Log level name; defaults to the LOG_LEVEL setting
        stream: Destination for log lines (the CLI passes stderr)
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_app_context,
            redact_secrets,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "@timestamp", "levelname": "level", "name": "logger"},
        )
    )

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level))

    # httpx logs every request line at INFO, including full URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.get_logger(__name__).debug("logging_configured", log_level=level)
