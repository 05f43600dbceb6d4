"""Logging setup: rich console output plus optional JSON-lines events.

Every JSON line carries ``ts`` (UTC ISO-8601), ``pid``, ``level``,
``logger`` and ``message``, plus any ``extra={...}`` fields the caller
attached to the record.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_RESERVED = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}

_HANDLER_TAG = "_manifestwarden_handler"


class JsonLinesFormatter(logging.Formatter):
    """Formats a record as one compact JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "pid": record.process,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(
    level: str = "INFO",
    jsonl_path: Path | None = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Attach handlers to the ``manifestwarden`` logger; safe to call repeatedly.

    Console logs go to stderr so that ``--json`` output on stdout stays
    machine-readable.
    """
    root = logging.getLogger("manifestwarden")
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    setattr(rich_handler, _HANDLER_TAG, True)
    root.addHandler(rich_handler)

    if jsonl_path is not None:
        jsonl_path = Path(jsonl_path)
        jsonl_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(jsonl_path, encoding="utf-8")
        file_handler.setFormatter(JsonLinesFormatter())
        setattr(file_handler, _HANDLER_TAG, True)
        root.addHandler(file_handler)

    return root
