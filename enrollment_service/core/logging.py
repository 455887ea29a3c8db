"""Logging configuration for enrollment-service.

Logs are one of the two signals this service emits; counters and
histograms live in enrollment_service/core/metrics.py.

Two formatters:

  _ContainerFormatter — human-readable, single-line, for local dev.

  _JsonFormatter — one JSON object per line for log aggregation
    (LOG_JSON=true).  Request context and the (student, course) pair a
    log line is about become top-level keys, so

      level == "WARNING" AND course_id == "..."

    is a filter, not a regex.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

# Current request ID; set by RequestContextMiddleware, "-" outside a request.
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestContextFilter(logging.Filter):
    """Copies the current request ID onto every LogRecord.

    Installed on the handler, not a logger: logger filters do not run for
    records propagated up from child loggers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


class _ContainerFormatter(logging.Formatter):
    """One line per record for a terminal or container stdout.

    Inside a request the line carries ``rid=<request id>`` so the lines of
    one enrollment or progress call can be grepped together.  WARNING and
    above also get ``[file:line]``.
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _RID_SUFFIX = "  rid=%(request_id)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # .NNN goes before the +0000 offset
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        fmt = self._BASE_FMT
        if getattr(record, "request_id", "-") != "-":
            fmt += self._RID_SUFFIX
        if record.levelno >= logging.WARNING:
            fmt += self._LOC_SUFFIX
        self._style._fmt = fmt
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines output.

    Request fields come from RequestContextMiddleware; student_id and
    course_id come from the `extra=` of domain log calls.  UUIDs and
    Decimals are written as strings.
    """

    # Lifted to top-level keys when present on the record.
    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "user_id",
        "status_code",
        "duration_ms",
        "student_id",
        "course_id",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Route all logging to stdout through one handler.

    ``json_format`` (LOG_JSON) picks the formatter.  The handler carries
    RequestContextFilter so every record, from any logger, gets the
    current request ID.  uvicorn and httpx are held at WARNING unless
    ``level_name`` is stricter.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
