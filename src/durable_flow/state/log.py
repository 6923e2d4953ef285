"""Append-only JSONL log of a single workflow run.

One file per run, one JSON object per line:

    {"t":"start","tool":"generate","params":{"week":"52"},"ts":1704067200000}
    {"t":"emit","emit":"status","message":"Collecting data...","data":{...},"ts":1704067201000}
    {"t":"checkpoint","id":"cp_0","state":{"step":1},"ts":1704067205000}
    {"t":"ask","id":"approve","ask":"confirm","message":"Continue?","ts":1704067211000}
    {"t":"answer","id":"approve","value":true,"ts":1704067215000}
    {"t":"return","value":{"status":"done"},"ts":1704067220000}

Lines are never rewritten. Each append is a single write of a complete line,
so a crash between appends leaves every earlier line intact.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from durable_flow.errors import InvalidRunIdError, StateLogCorruptedError

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)


class _LogEntry(BaseModel):
    ts: int = 0


class StartEntry(_LogEntry):
    t: Literal["start"] = "start"
    tool: str
    params: dict[str, Any] = Field(default_factory=dict)


class EmitEntry(_LogEntry):
    t: Literal["emit"] = "emit"
    emit: str
    message: str | None = None
    data: Any = None


class CheckpointEntry(_LogEntry):
    t: Literal["checkpoint"] = "checkpoint"
    id: str
    state: dict[str, Any] = Field(default_factory=dict)


class AskEntry(_LogEntry):
    t: Literal["ask"] = "ask"
    id: str
    ask: str
    message: str = ""


class AnswerEntry(_LogEntry):
    t: Literal["answer"] = "answer"
    id: str
    value: Any = None


class ReturnEntry(_LogEntry):
    t: Literal["return"] = "return"
    value: Any = None


class ErrorEntry(_LogEntry):
    t: Literal["error"] = "error"
    message: str
    stack: str | None = None


StateLogEntry = Annotated[
    StartEntry | EmitEntry | CheckpointEntry | AskEntry | AnswerEntry | ReturnEntry | ErrorEntry,
    Field(discriminator="t"),
]

_ENTRY_ADAPTER: TypeAdapter[StateLogEntry] = TypeAdapter(StateLogEntry)


def parse_entry(raw: dict[str, Any]) -> StateLogEntry:
    return _ENTRY_ADAPTER.validate_python(raw)


RUN_ID_PATTERN = r"^[A-Za-z0-9_.-]+$"
_RUN_ID_RE = re.compile(RUN_ID_PATTERN)


def run_log_path(run_id: str, runs_dir: Path) -> Path:
    """Log file of `run_id`, which must name a file directly inside `runs_dir`."""

    if not _RUN_ID_RE.fullmatch(run_id) or run_id in {".", ".."}:
        raise InvalidRunIdError(run_id)
    root = Path(os.path.normpath(runs_dir))
    path = Path(os.path.normpath(root / f"{run_id}.jsonl"))
    if path.parent != root:
        raise InvalidRunIdError(run_id)
    return path


class StateLog:
    """Reader/writer for the log of one run.

    The log is owned by the single executor driving the run. Nothing else
    appends to it.
    """

    def __init__(self, run_id: str, runs_dir: Path) -> None:
        self.run_id = run_id
        self.path = run_log_path(run_id, runs_dir)

    def init(self) -> None:
        """Ensure the storage directory exists."""

        self.path.parent.mkdir(parents=True, exist_ok=True)

    def exists(self) -> bool:
        return self.path.exists()

    def append(self, entry: StateLogEntry) -> StateLogEntry:
        """Timestamp `entry` and append it as one complete line."""

        stamped = entry.model_copy(update={"ts": now_ms()})
        line = json.dumps(stamped.model_dump(), ensure_ascii=False, default=str) + "\n"
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())
        logger.debug(
            "Run log entry appended",
            extra={"run_id": self.run_id, "entry_type": stamped.t},
        )
        return stamped

    def write_start(self, tool: str, params: dict[str, Any]) -> StateLogEntry:
        return self.append(StartEntry(tool=tool, params=params))

    def write_emit(self, emit: str, message: str | None = None, data: Any = None) -> StateLogEntry:
        return self.append(EmitEntry(emit=emit, message=message, data=data))

    def write_checkpoint(self, checkpoint_id: str, state: dict[str, Any]) -> StateLogEntry:
        return self.append(CheckpointEntry(id=checkpoint_id, state=state))

    def write_ask(self, ask_id: str, ask: str, message: str) -> StateLogEntry:
        return self.append(AskEntry(id=ask_id, ask=ask, message=message))

    def write_answer(self, ask_id: str, value: Any) -> StateLogEntry:
        return self.append(AnswerEntry(id=ask_id, value=value))

    def write_return(self, value: Any) -> StateLogEntry:
        return self.append(ReturnEntry(value=value))

    def write_error(self, message: str, stack: str | None = None) -> StateLogEntry:
        return self.append(ErrorEntry(message=message, stack=stack))

    def _parse_line(self, line: str, line_number: int) -> StateLogEntry:
        try:
            raw = json.loads(line)
        except json.JSONDecodeError as e:
            raise StateLogCorruptedError(self.path, line_number, str(e)) from e
        if not isinstance(raw, dict):
            raise StateLogCorruptedError(self.path, line_number, "entry is not a JSON object")
        try:
            return parse_entry(raw)
        except ValidationError as e:
            raise StateLogCorruptedError(self.path, line_number, str(e)) from e

    def stream(self) -> Iterator[StateLogEntry]:
        """Lazily yield entries in file order."""

        if not self.path.exists():
            return
        with open(self.path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if line.strip():
                    yield self._parse_line(line, line_number)

    def read_all(self) -> list[StateLogEntry]:
        """Parse every entry. A missing file is an empty run."""

        return list(self.stream())
