"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from durable_flow.config import WorkflowSettings


@pytest.fixture
def runs_dir(tmp_path: Path) -> Path:
    """Provide a temporary runs directory (created lazily by the log)."""
    return tmp_path / "runs"


@pytest.fixture
def settings(runs_dir: Path) -> WorkflowSettings:
    """Provide test settings pointing at the temporary runs directory."""
    return WorkflowSettings(runs_dir=runs_dir, strict_resume=False)


@pytest.fixture
def write_raw_log(runs_dir: Path) -> Callable[[str, list[dict[str, Any]]], Path]:
    """Write a run log line by line, with caller-controlled timestamps."""

    def _write(run_id: str, entries: list[dict[str, Any]]) -> Path:
        runs_dir.mkdir(parents=True, exist_ok=True)
        path = runs_dir / f"{run_id}.jsonl"
        path.write_text(
            "".join(json.dumps(entry) + "\n" for entry in entries),
            encoding="utf-8",
        )
        return path

    return _write
