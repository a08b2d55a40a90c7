"""JSON logs for the profit service.

One JSON object per line. Shopify and Facebook tokens are masked wherever
they appear (message text, `extra` values, nested headers), and every line
carries the id of the HTTP request that produced it.
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
import uuid
from collections.abc import Mapping
from contextvars import ContextVar
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from storeprofit.core.config import Settings

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)

_TOKEN_PATTERNS = (
    (re.compile(r"\bshp(?:at|ca|pa|ss)_[A-Za-z0-9]{16,}\b"), "shp***"),  # Shopify Admin API
    (re.compile(r"\bEAA[A-Za-z0-9]{20,}\b"), "EAA***"),  # Graph API
    (re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._-]{10,}\b"), "Bearer ***"),
    (re.compile(r"(?i)(access_token=)[^&\s]+"), r"\1***"),
)

_SECRET_KEYS = frozenset(
    {
        "access_token",
        "accesstoken",
        "api_key",
        "authorization",
        "client_secret",
        "password",
        "secret",
        "token",
        "x-shopify-access-token",
    }
)

# Attributes every LogRecord has; anything else came in through `extra=`
_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


def set_request_id(value: str | None = None) -> str:
    """Bind a request id to the current context, generating one if missing."""
    rid = value or uuid.uuid4().hex
    _request_id.set(rid)
    return rid


def mask_secrets(value: Any) -> Any:
    """Copy of `value` with token-looking strings and secret keys masked."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return {
            k: "***" if str(k).lower() in _SECRET_KEYS else mask_secrets(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set)):
        return [mask_secrets(v) for v in value]
    text = str(value)
    for pattern, repl in _TOKEN_PATTERNS:
        text = pattern.sub(repl, text)
    return text


class JsonFormatter(logging.Formatter):
    """Render a record as a single masked JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": mask_secrets(record.getMessage()),
            "at": f"{record.module}:{record.funcName}:{record.lineno}",
            "request_id": _request_id.get(),
        }
        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_FIELDS}
        if extra:
            entry["extra"] = mask_secrets(extra)
        if record.exc_info:
            entry["exc_info"] = mask_secrets(self.formatException(record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(settings: Settings, max_bytes: int = 5 * 1024 * 1024, backup_count: int = 5) -> None:
    """Route the root logger to stdout and, when LOG_FILE_PATH is set, a rotating file."""
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file_path:
        os.makedirs(os.path.dirname(settings.log_file_path) or ".", exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                settings.log_file_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )
    formatter = JsonFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for noisy in ("apscheduler", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["JsonFormatter", "get_logger", "mask_secrets", "set_request_id", "setup_logging"]
