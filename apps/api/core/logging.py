"""
Structured logging configuration.

JSON records in production, plain text in development and tests. Fields
passed as extra={"extra_fields": {...}} are merged into JSON records after
credential-bearing keys are masked.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping
from core.config import settings

REDACTED = "[REDACTED]"

# Keys whose values must never reach a log sink
SENSITIVE_KEYS = frozenset({
    "password",
    "new_password",
    "current_password",
    "password_hash",
    "token",
    "access_token",
    "refresh_token",
    "authorization",
    "secret_key",
})


def redact(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of fields with sensitive values masked, recursing into dicts."""
    cleaned: Dict[str, Any] = {}
    for key, value in fields.items():
        if str(key).lower() in SENSITIVE_KEYS:
            cleaned[key] = REDACTED
        elif isinstance(value, Mapping):
            cleaned[key] = redact(value)
        else:
            cleaned[key] = value
    return cleaned


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "environment": settings.ENVIRONMENT,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, Mapping):
            log_data.update(redact(extra_fields))

        return json.dumps(log_data, default=str)


def setup_logging() -> logging.Logger:
    """
    Configure the root logger once per process.

    Uses JSON when LOG_FORMAT=json or in production.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Request logging middleware already records every request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return root_logger
