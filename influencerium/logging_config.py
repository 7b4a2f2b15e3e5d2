"""Logging setup for the Influencerium access layer.

``setup_logging`` installs a single root handler.  Output is plain text by
default or one JSON object per line when the format is ``json``; level and
format come from the arguments, falling back to ``INF_LOG_LEVEL`` and
``INF_LOG_FORMAT``.

Raw session tokens never reach a log sink: the handler filter rewrites any
128-hex-character run into its masked form.
"""

from __future__ import annotations

import logging
import os
import re
import traceback
from typing import TYPE_CHECKING, Any

from pythonjsonlogger.json import JsonFormatter

from influencerium.sessions.models import mask_token

if TYPE_CHECKING:
    from influencerium.config import Settings

#: Record attributes always copied into the JSON document when set.
STRUCTURED_FIELDS: tuple[str, ...] = (
    "request_id",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "user_id",
    "session_id",
)

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_RAW_TOKEN = re.compile(r"\b[0-9a-f]{128}\b")


def resolve_level(name: str | None = None) -> int:
    """Numeric level for *name* (default ``INF_LOG_LEVEL``); unknown names give INFO."""
    name = (name or os.environ.get("INF_LOG_LEVEL", "INFO")).upper()
    value = getattr(logging, name, None)
    return value if isinstance(value, int) else logging.INFO


class SessionTokenFilter(logging.Filter):
    """Replace raw session tokens in the rendered message with their masked form."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        message = record.getMessage()
        if _RAW_TOKEN.search(message):
            record.msg = _RAW_TOKEN.sub(lambda m: mask_token(m.group()), message)
            record.args = None
        return True


class StructuredJsonFormatter(JsonFormatter):
    """JSON lines with request/session fields and a list-valued ``traceback``."""

    def __init__(self) -> None:
        super().__init__(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    def add_fields(
        self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        for key in STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            log_record.pop("exc_info", None)
            log_record["traceback"] = traceback.format_exception(*record.exc_info)


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Replace the root logger's handlers with one configured stream handler."""
    numeric = resolve_level(level)
    fmt = (fmt or os.environ.get("INF_LOG_FORMAT", "text")).lower()

    handler = logging.StreamHandler()
    handler.setLevel(numeric)
    handler.addFilter(SessionTokenFilter())
    if fmt == "json":
        handler.setFormatter(StructuredJsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric)


def log_startup_info(config: Settings) -> None:
    import influencerium

    secret_configured = bool(os.environ.get("INF_JWT_SECRET") or config.jwt_secret)
    logging.getLogger("influencerium").info(
        "Influencerium access layer started",
        extra={
            "version": influencerium.__version__,
            "session_lifetime_ms": config.session_lifetime_ms,
            "rate_limit_config": config.rate_limit,
            "jwt_secret_status": "configured" if secret_configured else "dev",
        },
    )
