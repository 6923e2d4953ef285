"""FastAPI app factory.

Endpoints are intentionally thin wrappers over the engine and the run registry.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from durable_flow import __version__
from durable_flow.config import WorkflowSettings
from durable_flow.engine.generator import Workflow, execute_generator, prefilled_provider
from durable_flow.engine.stateful import ExecutionResult, StatefulExecutor
from durable_flow.errors import InvalidRunIdError, NeedsInputError, RunNotFound
from durable_flow.registry import RunRegistry, WorkflowRun
from durable_flow.server.models import (
    CleanupRequest,
    CleanupResponse,
    InvokeRequest,
    InvokeResponse,
    StartRunRequest,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: WorkflowSettings | None = None,
    workflows: Mapping[str, Workflow] | None = None,
) -> FastAPI:
    """Build the REST API.

    `workflows` maps the names exposed under `/api/workflows/{name}` to
    workflow callables.
    """

    settings = settings or WorkflowSettings()
    catalog: dict[str, Workflow] = dict(workflows or {})
    registry = RunRegistry(settings.runs_dir)
    executor = StatefulExecutor(settings)

    app = FastAPI(
        title="durable-flow",
        version=__version__,
        description="REST API over durable-flow runs and workflows.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Expose settings for request handlers that want to read it.
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _workflow(name: str) -> Workflow:
        workflow = catalog.get(name)
        if workflow is None:
            raise HTTPException(status_code=404, detail=f"Workflow not found: {name}")
        return workflow

    @app.get("/api/health")
    def health() -> dict[str, object]:
        return {"status": "ok", "version": __version__, "workflows": sorted(catalog)}

    @app.get("/api/runs", response_model=list[WorkflowRun])
    def list_runs() -> list[WorkflowRun]:
        return registry.list_runs()

    @app.get("/api/runs/{run_id}", response_model=WorkflowRun)
    def get_run(run_id: str) -> WorkflowRun:
        try:
            run = registry.get_run_info(run_id)
        except InvalidRunIdError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        if run is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return run

    @app.delete("/api/runs/{run_id}", status_code=204)
    def delete_run(run_id: str) -> None:
        try:
            registry.delete_run(run_id)
        except InvalidRunIdError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        except RunNotFound as e:
            raise HTTPException(status_code=404, detail="Run not found") from e

    @app.post("/api/runs/cleanup", response_model=CleanupResponse)
    def cleanup_runs(req: CleanupRequest) -> CleanupResponse:
        hours = req.max_age_hours if req.max_age_hours is not None else settings.cleanup_max_age_hours
        return CleanupResponse(deleted=registry.cleanup_runs(timedelta(hours=hours)))

    @app.post("/api/workflows/{name}/invoke", response_model=InvokeResponse)
    def invoke_workflow(name: str, req: InvokeRequest) -> InvokeResponse:
        """Run a workflow in memory with every answer supplied up front.

        A missing answer is not an error: the response carries the ask so the
        caller can supply it and invoke again.
        """

        workflow = _workflow(name)
        try:
            result = execute_generator(
                workflow, params=req.params, pre_provided_inputs=req.inputs
            )
        except NeedsInputError as e:
            logger.info("Workflow needs input", extra={"workflow": name, "ask_id": e.ask.id})
            return InvokeResponse(status="needs_input", ask=e.ask.to_wire())
        return InvokeResponse(status="completed", result=result)

    @app.post("/api/workflows/{name}/runs", response_model=ExecutionResult)
    def start_run(name: str, req: StartRunRequest) -> ExecutionResult:
        """Run (or resume) a workflow durably.

        Answers come from `inputs` or the asks' defaults; a missing answer
        fails the run.
        """

        workflow = _workflow(name)
        try:
            return executor.execute(
                workflow,
                tool=name,
                params=req.params,
                input_provider=prefilled_provider(req.inputs),
                run_id=req.run_id,
                resume=req.resume,
            )
        except InvalidRunIdError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e

    return app
