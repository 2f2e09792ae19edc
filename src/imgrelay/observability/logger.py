"""Structured JSON logger for imgrelay.

Every log record is emitted as a single-line JSON object::

    {"ts": "2026-10-17T12:00:00.123456+00:00", "level": "INFO",
     "logger": "imgrelay.scheduler", "message": "Item completed",
     "op": "pass", "item_id": "3f2a...", "name": "photo.png"}

Usage::

    from imgrelay.observability import get_logger

    log = get_logger("imgrelay.scheduler")
    log.info("Item completed", extra={"extra_fields": {"item_id": "abc"}})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts``, ``level``, ``logger`` and ``message``.
    Fields passed via ``extra={"extra_fields": {...}}`` are merged into the
    top-level object; ``exception`` is added when ``exc_info`` is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(
            record, "extra_fields", None
        )
        if extra_fields is not None:
            log_entry.update(extra_fields)

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=str)


# One handler per configured root name so repeated calls never stack handlers.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "imgrelay",
    *,
    level: int | str = logging.WARNING,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Only the package root logger (``"imgrelay"``) gets a handler; child
    loggers such as ``"imgrelay.scheduler"`` propagate to it, so the level
    set on the root governs the whole package.  Repeated calls never add
    duplicate handlers.

    Parameters
    ----------
    name:
        Logger name.
    level:
        Initial level for the root logger, as an ``int`` or case-insensitive
        string.  Only applied the first time the root is configured.
    stream:
        Output stream for the root handler.  Defaults to ``sys.stderr``.
    """
    root_name = name.split(".", 1)[0]
    root = logging.getLogger(root_name)

    resolved_level = (
        logging.getLevelName(level.upper())
        if isinstance(level, str)
        else level
    )

    if root_name not in _configured_loggers:
        root.setLevel(resolved_level)
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)
        root.propagate = False
        _configured_loggers.add(root_name)

    return logging.getLogger(name)
