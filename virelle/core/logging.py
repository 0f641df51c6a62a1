"""Structured JSON logging for the rate limit service.

Callers log raw identifiers (``user_id``, ``rate_limit_key``, ``client_ip``)
in ``extra``; :class:`LogContextFilter` replaces them with short digests, so
log lines can still be grouped per caller without storing who the caller is.
Secrets are blanked outright, and the current request id is attached to
every record emitted while a request is being served.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from virelle.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

# Values never written to logs
REDACTED_KEYS: frozenset[str] = frozenset(
    {"authorization", "cookie", "set-cookie", "password", "reset_token", "token", "email"}
)

# Caller identifiers logged as digests
PSEUDONYMIZED_KEYS: frozenset[str] = frozenset(
    {"user_id", "x-user-id", "rate_limit_key", "client_ip", "x-forwarded-for"}
)

# Attributes every LogRecord carries; anything else came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_SCRUBBED_MARKER = "_virelle_scrubbed"


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identifier(value: object) -> str:
    """Return the first 16 hex chars of the SHA-256 digest of ``value``.

    ``42`` and ``"42"`` hash alike, so ids read from headers match ids
    passed around as integers.
    """

    return hashlib.sha256(str(value).encode()).hexdigest()[:16]


def _scrub(key: str, value: Any, redacted: frozenset[str], pseudonymized: frozenset[str]) -> Any:
    lowered = key.lower()
    if lowered in redacted:
        return REDACTED
    if lowered in pseudonymized and value is not None:
        return hash_identifier(value)
    if isinstance(value, Mapping):
        return {k: _scrub(str(k), v, redacted, pseudonymized) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(key, v, redacted, pseudonymized) for v in value)
    return value


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Return the fields a caller attached to ``record`` through ``extra``."""

    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class LogContextFilter(logging.Filter):
    """Attach the request id and scrub caller identifiers and secrets.

    A record is scrubbed once even when several handlers share this filter,
    so digests are never hashed a second time.
    """

    def __init__(
        self,
        *,
        redacted_keys: Iterable[str] = REDACTED_KEYS,
        pseudonymized_keys: Iterable[str] = PSEUDONYMIZED_KEYS,
    ) -> None:
        super().__init__()
        self.redacted_keys = frozenset(k.lower() for k in redacted_keys)
        self.pseudonymized_keys = frozenset(k.lower() for k in pseudonymized_keys)

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()

        if getattr(record, _SCRUBBED_MARKER, False):
            return True
        for key, value in record_extras(record).items():
            setattr(record, key, _scrub(key, value, self.redacted_keys, self.pseudonymized_keys))
        setattr(record, _SCRUBBED_MARKER, True)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record and its extras as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update((k, v) for k, v in record_extras(record).items() if v is not None)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Route the root logger through one scrubbing JSON handler.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    if cfg.output.lower() == "file":
        file_path = Path(cfg.file_path or "logs/virelle.log")
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = RotatingFileHandler(
            file_path,
            maxBytes=cfg.max_bytes,
            backupCount=cfg.backup_count,
            encoding="utf-8",
        )
    else:
        handler = logging.StreamHandler(sys.stdout)

    handler.addFilter(LogContextFilter())
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))
