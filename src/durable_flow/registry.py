"""Enumerate, inspect and garbage-collect runs from their log files.

The registry only reads and deletes logs. It never appends to a run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from durable_flow.errors import InvalidRunIdError, RunNotFound, StateLogCorruptedError
from durable_flow.state.log import now_ms, run_log_path
from durable_flow.state.resume import CheckpointRecord, RunStatus, load_resume_state

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".jsonl"


class WorkflowRun(BaseModel):
    """External view of one run. Timestamps are epoch milliseconds."""

    run_id: str
    tool: str
    params: dict[str, Any]
    status: RunStatus
    started_at: int
    updated_at: int
    completed_at: int | None = None
    result: Any = None
    error: str | None = None
    last_checkpoint: CheckpointRecord | None = None


@dataclass
class RunRegistry:
    runs_dir: Path

    def run_ids(self) -> list[str]:
        if not self.runs_dir.exists():
            return []
        return sorted(p.name[: -len(LOG_SUFFIX)] for p in self.runs_dir.glob(f"*{LOG_SUFFIX}"))

    def get_run_info(self, run_id: str) -> WorkflowRun | None:
        state = load_resume_state(run_id, self.runs_dir)
        if state is None:
            return None

        first = state.entries[0]
        last = state.entries[-1]
        return WorkflowRun(
            run_id=run_id,
            tool=state.tool,
            params=state.params,
            status=state.status,
            started_at=first.ts,
            updated_at=last.ts,
            completed_at=last.ts if state.is_complete else None,
            result=state.result,
            error=state.error,
            last_checkpoint=state.last_checkpoint,
        )

    def list_runs(self) -> list[WorkflowRun]:
        """All runs with at least one entry, most recently started first.

        Logs that cannot be read are skipped with a warning.
        """

        runs: list[WorkflowRun] = []
        for run_id in self.run_ids():
            try:
                run = self.get_run_info(run_id)
            except (StateLogCorruptedError, InvalidRunIdError) as e:
                logger.warning("Skipping unreadable run log", extra={"run_id": run_id, "error": str(e)})
                continue
            if run is not None:
                runs.append(run)
        runs.sort(key=lambda r: r.started_at, reverse=True)
        return runs

    def delete_run(self, run_id: str) -> None:
        path = run_log_path(run_id, self.runs_dir)
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise RunNotFound(run_id) from e
        logger.info("Run deleted", extra={"run_id": run_id})

    def cleanup_runs(self, max_age: timedelta) -> int:
        """Delete finished runs last updated more than `max_age` ago.

        Running and waiting runs are never removed, whatever their age.
        Returns the number of deleted runs.
        """

        cutoff = now_ms() - int(max_age.total_seconds() * 1000)
        deleted = 0
        for run in self.list_runs():
            if run.status in ("completed", "failed") and run.updated_at < cutoff:
                self.delete_run(run.run_id)
                deleted += 1
        logger.info("Run cleanup finished", extra={"deleted": deleted, "runs_dir": str(self.runs_dir)})
        return deleted
