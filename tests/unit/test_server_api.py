from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

from fastapi.testclient import TestClient

from durable_flow import io
from durable_flow.config import WorkflowSettings
from durable_flow.server.app import create_app

WriteLog = Callable[[str, list[dict[str, Any]]], Path]


def pair_device(ip: str):
    yield io.emit.status(f"Connecting to {ip}")
    code = yield io.ask.text("Enter the 6-digit code:", id="code")
    yield io.checkpoint({"paired": True})
    confirmed = yield io.ask.confirm("Remember device?", default=False, id="remember")
    return {"ip": ip, "code": code, "remember": confirmed}


def _client(settings: WorkflowSettings) -> TestClient:
    return TestClient(create_app(settings, workflows={"pair": pair_device}))


def test_health_lists_workflows(settings: WorkflowSettings) -> None:
    health = _client(settings).get("/api/health").json()

    assert health["status"] == "ok"
    assert "version" in health
    assert health["workflows"] == ["pair"]


def test_invoke_returns_needs_input_then_completes(settings: WorkflowSettings) -> None:
    client = _client(settings)

    first = client.post("/api/workflows/pair/invoke", json={"params": {"ip": "10.0.0.2"}})
    assert first.status_code == 200
    body = first.json()
    assert body["status"] == "needs_input"
    assert body["ask"]["ask"] == "text"
    assert body["ask"]["id"] == "code"

    second = client.post(
        "/api/workflows/pair/invoke",
        json={"params": {"ip": "10.0.0.2"}, "inputs": {"code": "123456"}},
    )
    body = second.json()
    assert body["status"] == "completed"
    assert body["result"] == {"ip": "10.0.0.2", "code": "123456", "remember": False}


def test_unknown_workflow_is_404(settings: WorkflowSettings) -> None:
    client = _client(settings)

    assert client.post("/api/workflows/nope/invoke", json={}).status_code == 404
    assert client.post("/api/workflows/nope/runs", json={}).status_code == 404


def test_durable_run_and_run_endpoints(settings: WorkflowSettings) -> None:
    client = _client(settings)

    started = client.post(
        "/api/workflows/pair/runs",
        json={"params": {"ip": "h"}, "inputs": {"code": "1"}, "run_id": "run_api"},
    )
    assert started.status_code == 200
    outcome = started.json()
    assert outcome["status"] == "completed"
    assert outcome["run_id"] == "run_api"
    assert outcome["result"]["code"] == "1"

    runs = client.get("/api/runs").json()
    assert [r["run_id"] for r in runs] == ["run_api"]
    assert runs[0]["tool"] == "pair"

    run = client.get("/api/runs/run_api").json()
    assert run["status"] == "completed"
    assert run["last_checkpoint"]["id"] == "cp_0"

    assert client.delete("/api/runs/run_api").status_code == 204
    assert client.get("/api/runs/run_api").status_code == 404
    assert client.delete("/api/runs/run_api").status_code == 404


def test_durable_run_without_answer_fails(settings: WorkflowSettings) -> None:
    outcome = _client(settings).post(
        "/api/workflows/pair/runs", json={"params": {"ip": "h"}, "run_id": "run_missing"}
    ).json()

    assert outcome["status"] == "failed"
    assert "Enter the 6-digit code" in outcome["error"]


def test_resume_through_api(settings: WorkflowSettings, write_raw_log: WriteLog) -> None:
    write_raw_log(
        "run_resume",
        [
            {"t": "start", "tool": "pair", "params": {"ip": "h"}, "ts": 1},
            {"t": "ask", "id": "code", "ask": "text", "message": "Enter the 6-digit code:", "ts": 2},
            {"t": "answer", "id": "code", "value": "999", "ts": 3},
            {"t": "checkpoint", "id": "cp_0", "state": {"paired": True}, "ts": 4},
        ],
    )

    outcome = _client(settings).post(
        "/api/workflows/pair/runs",
        json={"run_id": "run_resume", "resume": True, "inputs": {"remember": True}},
    ).json()

    assert outcome["status"] == "completed"
    assert outcome["resumed"] is True
    assert outcome["result"] == {"ip": "h", "code": "999", "remember": True}


def test_cleanup_endpoint(settings: WorkflowSettings, write_raw_log: WriteLog) -> None:
    write_raw_log(
        "run_old",
        [
            {"t": "start", "tool": "pair", "params": {}, "ts": 1},
            {"t": "error", "message": "boom", "ts": 2},
        ],
    )
    client = _client(settings)

    assert client.post("/api/runs/cleanup", json={"max_age_hours": 0}).status_code == 422

    response = client.post("/api/runs/cleanup", json={})
    assert response.status_code == 200
    assert response.json() == {"deleted": 1}
    assert client.get("/api/runs").json() == []


def test_run_id_outside_runs_dir_is_rejected(settings: WorkflowSettings, tmp_path: Path) -> None:
    client = _client(settings)

    response = client.post(
        "/api/workflows/pair/runs",
        json={"params": {"ip": "h"}, "inputs": {"code": "1"}, "run_id": "../escaped"},
    )

    assert response.status_code == 422
    assert not (tmp_path / "escaped.jsonl").exists()
    assert list(tmp_path.rglob("*.jsonl")) == []


def test_dot_dot_run_id_is_rejected(settings: WorkflowSettings) -> None:
    client = _client(settings)

    response = client.post("/api/workflows/pair/runs", json={"run_id": ".."})

    assert response.status_code == 422


def test_corrupt_log_does_not_hide_other_runs(settings: WorkflowSettings, write_raw_log: WriteLog) -> None:
    write_raw_log("run_good", [{"t": "start", "tool": "pair", "params": {}, "ts": 1}])
    (settings.runs_dir / "run_bad.jsonl").write_text("{broken\n", encoding="utf-8")

    response = _client(settings).get("/api/runs")

    assert response.status_code == 200
    assert [r["run_id"] for r in response.json()] == ["run_good"]
