from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from rent_manager.core.config import LOG_LEVEL
from rent_manager.core.request_context import get_client_ip, get_request_id, get_user_id

# Credentials that show up as key=value or key: value inside log messages.
SENSITIVE_KEYS = ("password", "confirm_password", "secret_answer", "secret", "token", "otp")

_BEARER = re.compile(r"(authorization\s*[:=]\s*bearer\s+)([^\s\"]+)", re.IGNORECASE)
_KEY_VALUE = re.compile(
    r"\b((?:%s)\s*[:=]\s*)([^\s\",}]+)" % "|".join(sorted(SENSITIVE_KEYS, key=len, reverse=True)),
    re.IGNORECASE,
)

_REQUEST_FIELDS = ("endpoint", "method", "status_code")
_NOISY_LOGGERS = ("passlib", "multipart")


def mask_sensitive(text: str) -> str:
    return _KEY_VALUE.sub(r"\1***", _BEARER.sub(r"\1***", text))


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the current request context."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "user_id": getattr(record, "user_id", None) or get_user_id(),
            "client_ip": getattr(record, "client_ip", None) or get_client_ip(),
            "module": record.name,
            "message": mask_sensitive(self.formatMessage(record)),
            "duration_ms": getattr(record, "duration_ms", None),
        }
        payload.update(
            {name: getattr(record, name) for name in _REQUEST_FIELDS if getattr(record, name, None) is not None}
        )
        if record.exc_info:
            payload["exception"] = mask_sensitive(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str = LOG_LEVEL) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(level)
    # passlib warns about the bcrypt version probe on every import
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.ERROR)
