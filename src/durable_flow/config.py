"""Configuration for durable-flow.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Run logs live under a single storage root. Each run owns exactly one file,
`<runs_dir>/<run_id>.jsonl`.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from durable_flow.state.log import run_log_path


def _default_runs_dir() -> Path:
    return Path.home() / ".durable-flow" / "runs"


class WorkflowSettings(BaseSettings):
    """Settings for the workflow engine, CLI and server.

    Environment variables:
    - DURABLE_FLOW_RUNS_DIR               (optional)
    - LOG_LEVEL                           (optional)
    - DURABLE_FLOW_STRICT_RESUME          (optional)
    - DURABLE_FLOW_CLEANUP_MAX_AGE_HOURS  (optional)
    - DURABLE_FLOW_CORS_ORIGINS           (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `WorkflowSettings(_env_file=path_to_env)`.
    """

    runs_dir: Path = Field(
        default_factory=_default_runs_dir,
        validation_alias="DURABLE_FLOW_RUNS_DIR",
        description="Directory where run logs are persisted",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    strict_resume: bool = Field(
        default=False,
        validation_alias="DURABLE_FLOW_STRICT_RESUME",
        description=(
            "If true, a resume that cannot find the last recorded checkpoint fails the run "
            "instead of re-executing the workflow from the beginning."
        ),
    )

    cleanup_max_age_hours: float = Field(
        default=168.0,
        gt=0,
        validation_alias="DURABLE_FLOW_CLEANUP_MAX_AGE_HOURS",
        description="Default age (hours) after which finished runs are garbage-collected",
    )

    # Dev-friendly CORS for a local dashboard. Override via DURABLE_FLOW_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="DURABLE_FLOW_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("runs_dir", mode="after")
    @classmethod
    def _expand_runs_dir(cls, value: Path) -> Path:
        return value.expanduser()

    def run_log_path(self, run_id: str) -> Path:
        """Path of the JSONL log backing `run_id`."""

        return run_log_path(run_id, self.runs_dir)

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
