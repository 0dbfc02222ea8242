"""
Logging Configuration — Structured logging setup.

Every module logs through ``logging.getLogger(__name__)`` and prefixes its
messages with a bracketed component tag, e.g. ``[sync]`` or ``[activate]``.
Both formatters lift that tag out of the message:

    text:  12:34:56 INFO    [sync    ] https://github.com/a/b: 3 relevant files
    json:  {"ts": ..., "level": "INFO", "component": "sync", "message": ...}

Records may carry ``repository`` and ``workspace_name`` extras; the JSON
formatter emits them as fields.

## Environment Variables

- PROMPTSYNC_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- PROMPTSYNC_LOG_FORMAT: json, text (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

CONTEXT_FIELDS = ("repository", "workspace_name")

_TAG_RE = re.compile(r"^\[(?P<tag>[a-z_-]+)\]\s*")

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def split_component(record: logging.LogRecord) -> Tuple[str, str]:
    """Return (component, message) with the leading [tag] removed."""
    message = record.getMessage()
    match = _TAG_RE.match(message)
    if match:
        return match.group("tag"), message[match.end():]
    return record.name.rsplit(".", 1)[-1], message


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        component, message = split_component(record)
        entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": component,
            "message": message,
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


class HumanFormatter(logging.Formatter):
    """Terminal output, colored when stderr is a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: Optional[bool] = None):
        super().__init__()
        self.color = sys.stderr.isatty() if color is None else color

    def format(self, record: logging.LogRecord) -> str:
        component, message = split_component(record)

        level = f"{record.levelname:7}"
        if self.color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{datetime.now():%H:%M:%S} {level} [{component[:8]:8}] {message}"


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
) -> None:
    """
    Configure the root logger once per process.

    Args:
        level: Log level name. Defaults to PROMPTSYNC_LOG_LEVEL, then INFO.
        format_type: ``json`` or ``text``. Defaults to PROMPTSYNC_LOG_FORMAT,
                     then text.
    """
    log_level = (level or os.environ.get("PROMPTSYNC_LOG_LEVEL", "INFO")).upper()
    log_format = (format_type or os.environ.get("PROMPTSYNC_LOG_FORMAT", "text")).lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if log_format == "json" else HumanFormatter())
    handler.setLevel(numeric_level)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"[logging] Configured: level={log_level}, format={log_format}"
    )
