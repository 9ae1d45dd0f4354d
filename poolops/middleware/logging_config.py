"""
Log formatting for PoolOps.

Call sites attach context through ``extra=``. Two groups are recognised:

    scope:    company_id, record_id, event_type   (set by services)
    request:  request_id, method, path, status, duration_ms, remote_addr
              (set by the timing middleware)

Production writes one JSON object per line with each group nested under its
own key; development prints a single readable line with the scope inline.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

SCOPE_FIELDS = ("company_id", "record_id", "event_type")
REQUEST_FIELDS = ("request_id", "method", "path", "status", "duration_ms", "remote_addr")

# Loggers that drown out the maintenance workflow at DEBUG.
QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic")


def collect(record: logging.LogRecord, names) -> dict:
    """Subset of ``extra`` attributes on *record* that are set and not None."""
    return {n: getattr(record, n) for n in names if getattr(record, n, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per line for the log shipper."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        scope = collect(record, SCOPE_FIELDS)
        if scope:
            entry["scope"] = scope
        req = collect(record, REQUEST_FIELDS)
        if req:
            entry["request"] = req
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO     poolops.x: message [company=3 record=7] (12ms)``"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    _SCOPE_LABELS = {"company_id": "company", "record_id": "record", "event_type": "event"}

    def __init__(self, use_color: bool = False):
        super().__init__()
        self.use_color = use_color

    def _level(self, name: str) -> str:
        if not self.use_color:
            return f"{name:<8}"
        return f"{self.LEVEL_COLORS.get(name, '')}{name:<8}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{ts} {self._level(record.levelname)} {record.name}: {record.getMessage()}"

        scope = collect(record, SCOPE_FIELDS)
        if scope:
            line += " [" + " ".join(f"{self._SCOPE_LABELS[k]}={v}" for k, v in scope.items()) + "]"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _level_name(app, production: bool) -> str:
    name = app.config.get("LOG_LEVEL") or os.getenv("LOG_LEVEL")
    return (name or ("INFO" if production else "DEBUG")).upper()


def configure_logging(app):
    """
    Install a single stderr handler on the root logger.

    JSON in production (neither DEBUG nor TESTING), readable otherwise.
    Level comes from LOG_LEVEL (config, then env).
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = _level_name(app, production)
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level_name, level = "INFO", logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if production:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ReadableFormatter(use_color=sys.stderr.isatty()))

    # Repeated create_app() calls in tests must not stack handlers.
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging ready: level=%s json=%s", level_name, production)
