"""Logging utilities with JSON formatting, redaction, and request correlation.

The server handles two kinds of data that must never end up in a log: the
caller's code and the generated page, and credentials for the model and the
quota store. Callers' emails are logged only through ``hash_identity``.

Records pass through two handler filters before formatting:

- ``RequestIdFilter`` stamps the correlation id of the current HTTP exchange
- ``SensitiveDataFilter`` redacts sensitive fields and truncates long strings,
  so provider error messages that echo the prompt stay bounded

``configure_logging`` wires both onto a stdout or rotating file handler with
either the JSON formatter or a plain text one.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from flowchart_server.core.config import LogSettings, settings

SERVICE_NAME = "flowchart-server"

REDACTED = "[REDACTED]"

DEFAULT_MAX_FIELD_CHARS = 512

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Field names whose values never reach the log, matched case-insensitively
SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        # credentials
        "api_key",
        "apikey",
        "authorization",
        "cookie",
        "password",
        "secret",
        "service_key",
        "set-cookie",
        "token",
        # payloads
        "code",
        "completion",
        "html",
        "prompt",
        # identities
        "email",
        "gmail",
        "identity",
    }
)

# Any field ending like this is treated as a credential
SENSITIVE_SUFFIXES: tuple[str, ...] = ("_key", "_token", "_secret", "_password")

# LogRecord attributes that are rendered by the formatter itself, not as extras
_RECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


def set_request_id(request_id: str | None) -> None:
    """Bind ``request_id`` to the current context.

    Tasks started afterwards inherit it, including the ones the SSE transport
    spawns for a session.
    """

    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_identity(identity: str) -> str:
    """Short, stable fingerprint of a caller identity for log correlation.

    Case and surrounding whitespace are ignored so one person's requests line
    up in the log even when the address was typed differently.
    """

    return hashlib.sha256(identity.strip().lower().encode()).hexdigest()[:16]


def build_sensitive_keys(extra: str | Iterable[str] | None = None) -> frozenset[str]:
    """Return the default sensitive keys plus ``extra``.

    Args:
        extra: Additional field names, either an iterable or a comma-separated
            string as found in ``LOG_REDACT_KEYS``.

    Returns:
        Lower-cased key set.
    """

    if extra is None:
        return SENSITIVE_KEYS_DEFAULT
    if isinstance(extra, str):
        extra = extra.split(",")
    added = {key.strip().lower() for key in extra if key.strip()}
    return SENSITIVE_KEYS_DEFAULT | added


def is_sensitive_key(key: str, sensitive_keys: Iterable[str] = SENSITIVE_KEYS_DEFAULT) -> bool:
    lowered = key.lower()
    return lowered in sensitive_keys or lowered.endswith(SENSITIVE_SUFFIXES)


def _truncate(value: str, max_chars: int | None) -> str:
    if max_chars is None or len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}...[truncated {len(value) - max_chars} chars]"


def scrub(
    value: Any,
    sensitive_keys: Iterable[str] = SENSITIVE_KEYS_DEFAULT,
    max_chars: int | None = DEFAULT_MAX_FIELD_CHARS,
) -> Any:
    """Redact nested sensitive keys and truncate long strings in ``value``.

    Mappings, lists and tuples are walked recursively; other values are
    returned as they are. ``max_chars=None`` disables truncation.
    """

    if isinstance(value, str):
        return _truncate(value, max_chars)
    if isinstance(value, Mapping):
        return {
            k: REDACTED
            if is_sensitive_key(str(k), sensitive_keys)
            else scrub(v, sensitive_keys, max_chars)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(scrub(v, sensitive_keys, max_chars) for v in value)
    return value


def record_extras(
    record: LogRecord,
    sensitive_keys: Iterable[str] = SENSITIVE_KEYS_DEFAULT,
    max_chars: int | None = DEFAULT_MAX_FIELD_CHARS,
) -> dict[str, Any]:
    """Collect the ``extra=`` fields of a record, scrubbed.

    Standard LogRecord attributes and private attributes are skipped.
    """

    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        if is_sensitive_key(key, sensitive_keys):
            extras[key] = REDACTED
        else:
            extras[key] = scrub(value, sensitive_keys, max_chars)
    return extras


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub the record's extra fields in place before any formatter sees them.

    Running as a filter, not only inside ``JsonFormatter``, keeps the plain
    text format and third-party handlers safe too.
    """

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        max_chars: int = DEFAULT_MAX_FIELD_CHARS,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))
        self.max_chars = max_chars

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in record_extras(record, self.sensitive_keys, self.max_chars).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Fixed fields come first (timestamp, level, logger, service, message,
    request_id), followed by the redacted extras and, for records logged with
    ``exc_info``, the formatted exception. Truncation is left to
    ``SensitiveDataFilter``.
    """

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT))
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "service": SERVICE_NAME,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(record_extras(record, self.sensitive_keys, max_chars=None))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Construct the handler for ``LOG_OUTPUT``.

    ``file`` writes to ``LOG_FILE_PATH`` (default ``logs/flowchart-server.log``),
    rotating at ``LOG_MAX_BYTES`` when set; anything else writes to stdout.
    """

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/flowchart-server.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Configure the root logger with request correlation and redaction.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    level = getattr(logging, cfg.level.upper(), logging.INFO)
    if settings.app.debug:
        level = logging.DEBUG

    sensitive_keys = build_sensitive_keys(cfg.redact_keys)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter(sensitive_keys, cfg.max_field_chars))

    if cfg.format.lower() == "plain":
        formatter: logging.Formatter = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = JsonFormatter(sensitive_keys=sensitive_keys)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False

    # httpx logs full request URLs at INFO; quota lookups carry the identity in the query
    logging.getLogger("httpx").setLevel(logging.WARNING)
