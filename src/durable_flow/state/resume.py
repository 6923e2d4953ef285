"""Reconstruct the resume state of a run by folding its log."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from durable_flow.state.log import (
    AnswerEntry,
    AskEntry,
    CheckpointEntry,
    ErrorEntry,
    ReturnEntry,
    StartEntry,
    StateLog,
    StateLogEntry,
)

RunStatus = Literal["running", "waiting", "completed", "failed", "paused"]


class CheckpointRecord(BaseModel):
    id: str
    state: dict[str, Any] = Field(default_factory=dict)
    ts: int


class ResumeState(BaseModel):
    """In-memory summary of a run log.

    Recomputed from the log on every resume; the log is the single source of truth.
    """

    tool: str = ""
    params: dict[str, Any] = Field(default_factory=dict)
    is_complete: bool = False
    result: Any = None
    error: str | None = None
    last_checkpoint: CheckpointRecord | None = None
    answers: dict[str, Any] = Field(default_factory=dict)
    entries: list[StateLogEntry] = Field(default_factory=list)

    def pending_asks(self) -> list[str]:
        """Ids of asks that were logged but never answered."""

        pending: list[str] = []
        for entry in self.entries:
            if isinstance(entry, AskEntry) and entry.id not in self.answers and entry.id not in pending:
                pending.append(entry.id)
        return pending

    @property
    def status(self) -> RunStatus:
        if self.is_complete:
            return "failed" if self.error is not None else "completed"
        if self.pending_asks():
            return "waiting"
        return "running"


def reconstruct(entries: Iterable[StateLogEntry]) -> ResumeState:
    """Fold log entries, in file order, into a `ResumeState`.

    Only the most recent checkpoint survives. Answers are keyed by ask id
    (last write wins). Entries after the first `return`/`error` are kept for
    audit but do not change the outcome.
    """

    state = ResumeState()
    kept: list[StateLogEntry] = []
    for entry in entries:
        kept.append(entry)
        if state.is_complete:
            continue
        match entry:
            case StartEntry():
                state.tool = entry.tool
                state.params = entry.params
            case CheckpointEntry():
                state.last_checkpoint = CheckpointRecord(id=entry.id, state=entry.state, ts=entry.ts)
            case AnswerEntry():
                state.answers[entry.id] = entry.value
            case ReturnEntry():
                state.is_complete = True
                state.result = entry.value
            case ErrorEntry():
                state.is_complete = True
                state.error = entry.message
            case _:
                pass
    state.entries = kept
    return state


def load_resume_state(run_id: str, runs_dir: Path) -> ResumeState | None:
    """Reconstruct `run_id` from disk. Returns None when the run has no entries."""

    entries = StateLog(run_id, runs_dir).read_all()
    if not entries:
        return None
    return reconstruct(entries)
