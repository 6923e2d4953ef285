"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from durable_flow.state.log import RUN_ID_PATTERN


class CleanupRequest(BaseModel):
    max_age_hours: float | None = Field(default=None, gt=0)


class CleanupResponse(BaseModel):
    deleted: int


class InvokeRequest(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)
    inputs: dict[str, Any] = Field(default_factory=dict)


class InvokeResponse(BaseModel):
    """Outcome of a request/response invocation.

    `needs_input` carries the unresolved ask (wire shape); re-submit with its
    id added to `inputs` to continue.
    """

    status: Literal["completed", "needs_input"]
    result: Any = None
    ask: dict[str, Any] | None = None


class StartRunRequest(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)
    inputs: dict[str, Any] = Field(default_factory=dict)
    run_id: str | None = Field(default=None, pattern=RUN_ID_PATTERN)
    resume: bool = False
