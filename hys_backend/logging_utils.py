from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any


_RESERVED_LOG_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "message",
}

# Query parameters that carry Enibra credentials.
_SECRET_QUERY_PATTERN = re.compile(r"(?i)\b(PAROLA|MUSTERI_KODU)=[^&\s]*")


def redact_secrets(text: str) -> str:
    return _SECRET_QUERY_PATTERN.sub(lambda match: f"{match.group(1)}=***", text)


class JsonFormatter(logging.Formatter):
    def __init__(self, service: str | None = None):
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_secrets(record.getMessage()),
        }
        if self.service:
            payload["service"] = self.service

        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_FIELDS or key.startswith("_"):
                continue
            payload[key] = redact_secrets(value) if isinstance(value, str) else value

        if record.exc_info:
            payload["exception"] = redact_secrets(self.formatException(record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_json_logging(*, level: str = "INFO", service: str | None = None) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter(service=service))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    normalized_level = (level or "INFO").strip().upper()
    if normalized_level not in logging.getLevelNamesMapping():
        normalized_level = "INFO"
    root_logger.setLevel(normalized_level)
