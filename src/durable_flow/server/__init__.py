"""FastAPI server adapter for durable-flow.

Design intent:
- Keep execution and persistence logic in `durable_flow.engine` / `durable_flow.state`
- Keep server-specific concerns (routing, CORS, request models) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from durable_flow.server.app import create_app
