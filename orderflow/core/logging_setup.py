from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone

from orderflow.core.request_context import get_request_id, get_tenant_id, get_user_id

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()

_SENSITIVE_PATTERNS = [
    re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE),
    re.compile(r"(token\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    re.compile(r"(secret\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
    # Bot API URLs carry the bot token in the path
    re.compile(r"(/bot)(\d+:[A-Za-z0-9_-]+)"),
]
# customer phones: keep the country code and the last three digits
_PHONE_PATTERN = re.compile(r"(\+62)\d{5,9}(\d{3})")

_EXTRA_FIELDS = (
    "endpoint",
    "method",
    "status_code",
    "order_code",
    "failure_kind",
    "capability",
    "attempt",
)


def mask_sensitive(value: str) -> str:
    masked = value
    for pattern in _SENSITIVE_PATTERNS:
        masked = pattern.sub(r"\1***", masked)
    return _PHONE_PATTERN.sub(r"\1***\2", masked)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, enriched with the request/tenant/user context."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "tenant_id": getattr(record, "tenant_id", None) or get_tenant_id(),
            "user_id": getattr(record, "user_id", None) or get_user_id(),
            "module": record.name,
            "message": mask_sensitive(record.getMessage()),
            "duration_ms": getattr(record, "duration_ms", None),
        }
        payload.update(
            {name: getattr(record, name) for name in _EXTRA_FIELDS if getattr(record, name, None) is not None}
        )
        if record.exc_info:
            payload["exception"] = mask_sensitive(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


class PlainFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return mask_sensitive(super().format(record))


def configure_logging(level: str | None = None) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level or LOG_LEVEL)

    handler = logging.StreamHandler()
    if LOG_FORMAT == "plain":
        handler.setFormatter(PlainFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(JsonFormatter("%(message)s"))
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(level or LOG_LEVEL)
    # httpx logs every request URL at INFO, bot token included
    logging.getLogger("httpx").setLevel(logging.WARNING)
