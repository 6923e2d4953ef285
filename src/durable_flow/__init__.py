"""durable-flow.

Long-running, multi-step procedures written as plain Python generators that:
- ask an external actor for input
- emit observational output
- record durable checkpoints in an append-only JSONL run log

and can be resumed from the most recent checkpoint after a crash.
"""

__version__ = "0.1.0"

from durable_flow.config import WorkflowSettings
from durable_flow.engine import io
from durable_flow.engine.generator import execute_generator
from durable_flow.engine.stateful import ExecutionResult, StatefulExecutor, execute_stateful
from durable_flow.registry import RunRegistry, WorkflowRun

__all__ = [
    "__version__",
    "ExecutionResult",
    "RunRegistry",
    "StatefulExecutor",
    "WorkflowRun",
    "WorkflowSettings",
    "execute_generator",
    "execute_stateful",
    "io",
]
