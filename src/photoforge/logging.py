"""Logging configuration for PhotoForge.

Every module logs through ``get_logger("<module>")`` under the
``photoforge`` namespace.  The CLI configures that namespace once per
command with :func:`setup_logging`: a stderr handler, an optional log file
and, for log shippers, one JSON object per line.

Call sites may attach structured context with ``extra``; the JSON formatter
copies the fields listed in :data:`CONTEXT_FIELDS` into each record::

    logger.warning("Key %s rate limited", cred.masked,
                   extra={"credential": cred.masked, "attempt": 2})
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

NAMESPACE = "photoforge"
DEFAULT_FORMAT = "%(levelname)-5s | %(name)-20s | %(message)s"
VERBOSE_FORMAT = "%(asctime)s | %(levelname)-5s | %(name)-20s | %(message)s"

# Record attributes exported by JsonFormatter when a call site sets them.
CONTEXT_FIELDS = ("credential", "attempt", "delay_seconds", "outcome")

_setup_lock = threading.Lock()


class JsonFormatter(logging.Formatter):
    """Formats records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _make_formatter(json_logs: bool, fmt: str) -> logging.Formatter:
    return JsonFormatter() if json_logs else logging.Formatter(fmt)


def _is_console_handler(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.StreamHandler) and not isinstance(
        handler, logging.FileHandler
    )


def _reuse_or_add(
    logger: logging.Logger,
    matches: Callable[[logging.Handler], bool],
    create: Callable[[], logging.Handler],
) -> logging.Handler:
    """Return the first matching handler, dropping duplicates, or add one."""
    found = [h for h in logger.handlers if matches(h)]
    if not found:
        handler = create()
        logger.addHandler(handler)
        return handler
    for duplicate in found[1:]:
        logger.removeHandler(duplicate)
        duplicate.close()
    return found[0]


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    log_file: str | Path | None = None,
    json_logs: bool = False,
) -> None:
    """Configure the ``photoforge`` logger.

    Safe to call repeatedly: handlers are reused, never stacked.

    Args:
        level: Threshold for the whole namespace.
        verbose: Prefix console lines with a timestamp.
        log_file: Also append records to this file (always timestamped).
        json_logs: Use :class:`JsonFormatter` for every handler.
    """
    with _setup_lock:
        root = logging.getLogger(NAMESPACE)
        root.setLevel(level)

        console = _reuse_or_add(
            root, _is_console_handler, lambda: logging.StreamHandler(sys.stderr)
        )
        # sys.stderr may have been swapped since the last call
        if isinstance(console, logging.StreamHandler) and console.stream is not sys.stderr:
            console.stream = sys.stderr
        console.setFormatter(
            _make_formatter(json_logs, VERBOSE_FORMAT if verbose else DEFAULT_FORMAT)
        )

        if log_file is None:
            return
        path = os.path.abspath(os.fspath(Path(log_file).expanduser()))
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = _reuse_or_add(
            root,
            lambda h: isinstance(h, logging.FileHandler)
            and getattr(h, "baseFilename", None) == path,
            lambda: logging.FileHandler(path, encoding="utf-8"),
        )
        file_handler.setFormatter(_make_formatter(json_logs, VERBOSE_FORMAT))


def get_logger(name: str) -> logging.Logger:
    """Return the ``photoforge.<name>`` logger."""
    return logging.getLogger(f"{NAMESPACE}.{name}")
