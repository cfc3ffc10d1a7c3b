"""
Structured JSON logging with request_id, order_id when applicable.
Redact credentials and tokens in gateway and callback logs.
"""
from __future__ import annotations

import json
import logging
import time
from contextvars import ContextVar
from typing import Any, Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

REDACTED_KEYS = frozenset(
    {"authorization", "access_token", "client_secret", "token", "secret", "key", "x-verify"}
)

# Structured extras copied verbatim (after redaction) into the JSON line
EXTRA_FIELDS = (
    "plan",
    "payment_mode",
    "gateway_response",
    "callback_headers",
    "callback_payload",
    "status_code",
    "error",
    "url",
    "port",
    "configured_port",
    "stale_urls",
)


def _redact(obj: Any) -> Any:
    """Redact keys that might contain secrets (e.g. token response, callback headers)."""
    if isinstance(obj, dict):
        return {k: "***" if str(k).lower() in REDACTED_KEYS else _redact(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S.000Z", time.gmtime(record.created)),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        if request_id_ctx.get():
            log["request_id"] = request_id_ctx.get()
        if getattr(record, "order_id", None):
            log["order_id"] = str(record.order_id)
        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log[field] = _redact(value)
        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log, default=str)


def get_logger(name: str, level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(level.upper())
    return logger
