"""Exceptions raised by the workflow engine."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from durable_flow.engine.yields import Ask


class DurableFlowError(Exception):
    """Base class for all durable-flow errors."""


class NeedsInputError(DurableFlowError):
    """Input is required but no value is available.

    Raised by the in-memory executor when an ask cannot be resolved from
    pre-provided inputs or a declared default. Request/response callers catch
    this and turn it into a continuation response carrying `ask`.
    """

    def __init__(self, ask: Ask) -> None:
        from durable_flow.engine.yields import ask_message

        super().__init__(f"Input required: {ask_message(ask)}")
        self.ask = ask


class ResumeError(DurableFlowError):
    """The run log is inconsistent with the workflow being resumed."""


class StateLogCorruptedError(DurableFlowError):
    """A line of a run log could not be parsed."""

    def __init__(self, path: Path, line_number: int, reason: str) -> None:
        super().__init__(f"Corrupted run log {path} at line {line_number}: {reason}")
        self.path = path
        self.line_number = line_number


class RunNotFound(DurableFlowError):
    """No log exists for the requested run id."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run not found: {run_id}")
        self.run_id = run_id


class InvalidRunIdError(DurableFlowError, ValueError):
    """A run id that cannot name a log file inside the runs directory."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Invalid run id: {run_id!r}")
        self.run_id = run_id
