# src/daer/core/logging.py
"""Logging setup for the API, the worker and the scripts.

Log calls across the package use short event names as messages
(``task.start``, ``outline.version.created``) and put identifiers in
``extra``. Every format renders those extras: JSON as top-level keys, rich
and plain as trailing ``key=value`` pairs.
"""

import json
import logging
import os
import sys
from typing import Any

_configured = False

# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

QUIET_LOGGERS = ("uvicorn.access", "asyncio", "httpx", "httpcore", "LiteLLM", "aiosqlite")


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, extras merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        for key, value in record_extras(record).items():
            payload.setdefault(key, value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class EventFormatter(logging.Formatter):
    """Human-readable line: the event followed by its extras."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = record_extras(record)
        if not extras:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in sorted(extras.items()))
        return f"{line} | {pairs}"


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def _build_handler(fmt: str, level: int, include_trace: bool) -> logging.Handler:
    if fmt == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
    elif fmt == "rich":
        from rich.logging import RichHandler

        handler = RichHandler(
            rich_tracebacks=include_trace,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(EventFormatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            EventFormatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S")
        )
    handler.setLevel(level)
    return handler


def init_logging(
    level: str | None = None,
    format: str | None = None,
    include_trace: bool | None = None,
) -> None:
    """Configure the root logger once per process.

    ``level`` usually comes from ``LOG_LEVEL`` via the config. The output
    format is ``DAER_LOG_FORMAT`` (``rich`` by default, ``json`` or
    ``plain``); ``DAER_LOG_INCLUDE_TRACE`` enables rich tracebacks.
    """
    global _configured
    if _configured:
        return

    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    fmt = (format or os.getenv("DAER_LOG_FORMAT") or "rich").lower()
    if include_trace is None:
        include_trace = _truthy(os.getenv("DAER_LOG_INCLUDE_TRACE"))
    numeric = logging.getLevelNamesMapping().get(level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_build_handler(fmt, numeric, include_trace))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))

    from daer import __version__

    get_logger("daer").info(
        "logging.configured", extra={"version": __version__, "level": level_name, "format": fmt}
    )
    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or "daer")


__all__ = ["EventFormatter", "JsonFormatter", "QUIET_LOGGERS", "get_logger", "init_logging"]
