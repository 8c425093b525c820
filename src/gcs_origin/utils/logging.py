"""Logging helpers.

Loggers are plain ``logging.Logger`` instances. ``configure_logging`` installs a
single stdout handler on the root logger, emitting either newline-delimited JSON
(for log collectors) or a human-readable line.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import sys
from typing import Any

# Attributes every LogRecord carries; anything else was passed through ``extra=``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "taskName"}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


class PlainFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s %(levelname)s %(name)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fields = _extra_fields(record)
        if not fields:
            return message
        return message + " " + " ".join(f"{k}={v}" for k, v in sorted(fields.items()))


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Replace root handlers with one stdout handler.

    Safe to call more than once; previous handlers are dropped so records are
    not emitted twice.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(stream=sys.stdout)
    # Module loggers are created at DEBUG, so the handler does the filtering.
    handler.setLevel(level.upper())
    handler.setFormatter(PlainFormatter() if fmt == "plain" else JsonFormatter())
    root.addHandler(handler)

    # uvicorn installs its own handlers; route them through ours instead.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    return logger
