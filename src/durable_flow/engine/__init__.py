"""Workflow execution engine.

- `yields`: the Ask / Emit / Checkpoint taxonomy
- `io`: constructors workflows use to build yields
- `generator`: in-memory execution
- `stateful`: durable, resumable execution backed by a run log
"""

__all__: list[str] = []
