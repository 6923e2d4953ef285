"""Structured logging for the engine, CLI and server.

Records are rendered as one JSON object per line on stderr, leaving stdout to
command output. Engine modules log run lifecycle events ("Run started",
"Resuming run", "Run failed", ...) and run-log appends at DEBUG, passing their
context through `extra`:

    logger.info("Run started", extra={"run_id": run_id, "tool": tool})

`run_id` and `tool` are lifted to the top level of the JSON object so the
lines of one run can be filtered with a single key; every other extra field
(checkpoint, ask_id, entry_type, error, ...) goes under `"extra"`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import IO, Any

# Attributes every LogRecord carries; anything else was passed via `extra`.
_RECORD_ATTRS: frozenset[str] = frozenset(
    logging.LogRecord("", logging.NOTSET, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

RUN_CONTEXT_FIELDS: tuple[str, ...] = ("run_id", "tool")


class JsonFormatter(logging.Formatter):
    """Render a log record as a single JSON line with run context on top."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            if key in RUN_CONTEXT_FIELDS:
                payload[key] = value
            else:
                extra[key] = value
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Checkpoint state and answers may hold arbitrary objects.
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str, *, stream: IO[str] | None = None) -> None:
    """Send all records through a single JSON handler at `level`."""

    root = logging.getLogger()

    # Re-configuring replaces the handler instead of stacking another one.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stderr)
    handler.setFormatter(JsonFormatter())

    root.addHandler(handler)
    root.setLevel(level.upper())

    # Request lines from `uvicorn` when serving `create_app()`.
    logging.getLogger("uvicorn.access").setLevel(max(root.level, logging.WARNING))
