"""Unit tests for configuration."""

from pathlib import Path

import pytest

from durable_flow.config import WorkflowSettings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test default values when nothing is configured."""
    monkeypatch.chdir(tmp_path)
    for var in (
        "DURABLE_FLOW_RUNS_DIR",
        "LOG_LEVEL",
        "DURABLE_FLOW_STRICT_RESUME",
        "DURABLE_FLOW_CLEANUP_MAX_AGE_HOURS",
    ):
        monkeypatch.delenv(var, raising=False)

    settings = WorkflowSettings()

    assert settings.runs_dir == Path.home() / ".durable-flow" / "runs"
    assert settings.log_level == "INFO"
    assert settings.strict_resume is False
    assert settings.cleanup_max_age_hours == 168.0


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test environment variables override defaults."""
    monkeypatch.setenv("DURABLE_FLOW_RUNS_DIR", str(tmp_path / "custom"))
    monkeypatch.setenv("DURABLE_FLOW_STRICT_RESUME", "true")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = WorkflowSettings()

    assert settings.runs_dir == tmp_path / "custom"
    assert settings.strict_resume is True
    assert settings.log_level == "DEBUG"


def test_settings_from_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Test values are read from an explicit .env file."""
    monkeypatch.delenv("DURABLE_FLOW_RUNS_DIR", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text(f"DURABLE_FLOW_RUNS_DIR={tmp_path / 'from-env'}\n", encoding="utf-8")

    settings = WorkflowSettings(_env_file=env_file)

    assert settings.runs_dir == tmp_path / "from-env"


def test_run_log_path_and_cors(tmp_path: Path) -> None:
    """Test derived helpers."""
    settings = WorkflowSettings(runs_dir=tmp_path, cors_origins=" http://a , ,http://b")

    assert settings.run_log_path("run_1") == tmp_path / "run_1.jsonl"
    assert settings.parsed_cors_origins() == ["http://a", "http://b"]


def test_cleanup_age_must_be_positive(tmp_path: Path) -> None:
    """Test validation of the cleanup threshold."""
    with pytest.raises(ValueError):
        WorkflowSettings(runs_dir=tmp_path, cleanup_max_age_hours=0)
