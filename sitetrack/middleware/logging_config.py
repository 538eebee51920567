"""
Structured logging configuration.

One stderr handler on the root logger. Every record passes through
RequestContextFilter, which stamps the current request id and account id
onto it, so service-level lines ("Payment PAY-7 approved by admin") can be
joined with the request line the timing middleware writes.

Format:
    LOG_FORMAT=json      one JSON object per line (default in production)
    LOG_FORMAT=readable  coloured single line (default elsewhere)
Level:
    LOG_LEVEL            default INFO in production, DEBUG otherwise
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes copied from ``extra=`` (or the context filter) into JSON lines
_EXTRA_FIELDS = (
    "request_id",
    "user_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "record_type",
    "record_id",
    "business_key",
    "decision",
    "archive_bytes",
)

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "fontTools")


class RequestContextFilter(logging.Filter):
    """Attach request_id / user_id from flask.g when a request is active."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = g.get("request_id")
            if getattr(record, "user_id", None) is None:
                record.user_id = g.get("current_user_id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured console lines: time, level, request id, logger, message."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        request_id = getattr(record, "request_id", None)
        rid = f" [{request_id}]" if request_id else ""
        key = getattr(record, "business_key", None)
        suffix = f" ({key})" if key and key not in record.getMessage() else ""
        line = (
            f"{color}{ts} {record.levelname:<8}{self.RESET}{rid} "
            f"{record.name}: {record.getMessage()}{suffix}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _pick_format(app) -> str:
    wanted = (app.config.get("LOG_FORMAT") or "").lower()
    if wanted in ("json", "readable"):
        return wanted
    production = not app.config.get("DEBUG") and not app.config.get("TESTING")
    return "json" if production else "readable"


def configure_logging(app):
    """Install the root handler according to LOG_LEVEL / LOG_FORMAT."""
    fmt = _pick_format(app)
    default_level = "DEBUG" if app.config.get("DEBUG") else "INFO"
    level_name = (app.config.get("LOG_LEVEL") or default_level).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    # Repeated create_app() calls (tests, CLI) must not stack handlers
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING"):
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
