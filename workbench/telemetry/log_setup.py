"""Process-wide logging setup.

Two styles are supported:

- ``json``  newline-delimited JSON records (python-json-logger), the default
- ``human`` compact single-line records for local development

Structured extras passed by ``emit_structured_error`` (``error_code``,
``session_id``, ``details``...) end up as top-level JSON keys, or as a
``k=v`` tail in human mode.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "underwriting-workbench"

_STRUCTURED_KEYS = ("error_code", "error_message", "suppressed", "session_id", "phase", "details")


def _short(value: Any, limit: int = 140) -> str:
    text = str(value).replace("\n", " ").replace("\r", " ").strip()
    return text if len(text) <= limit else text[:limit] + "..."


class _ServiceFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.service = SERVICE_NAME
        return True


class HumanFormatter(logging.Formatter):
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record)} {record.levelname} {record.name}: {record.getMessage()}"
        extras = [
            f"{key}={_short(getattr(record, key))}"
            for key in _STRUCTURED_KEYS
            if getattr(record, key, None) not in (None, {}, "")
        ]
        if extras:
            line += " | " + " ".join(extras)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def build_formatter(style: str) -> logging.Formatter:
    if style == "human":
        return HumanFormatter()
    return JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s %(service)s",
        rename_fields={"levelname": "level", "name": "logger"},
    )


def configure_logging(level: str = "INFO", style: str = "json") -> None:
    """Install a single stdout handler on the root logger and align uvicorn."""
    resolved = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(style))
    handler.addFilter(_ServiceFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(resolved)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.setLevel(resolved)
        uvicorn_logger.propagate = True
