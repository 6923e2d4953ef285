"""In-memory (non-durable) workflow execution.

A workflow is a plain Python generator function. It suspends at every `yield`
and is resumed with the resolved value:

    def connect(ip: str):
        code = yield io.ask.text("Enter the 6-digit code:", id="code")
        yield io.emit.status("Connecting...")
        return {"ok": True, "code": code}

    execute_generator(connect, params={"ip": "10.0.0.1"}, input_provider=prompt_user)

Asks without an explicit id are numbered by position (`ask_0`, `ask_1`, ...),
checkpoints likewise (`cp_0`, `cp_1`, ...). The numbering only depends on the
order of yields, so it is stable across runs of deterministic workflow code.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Generator, Mapping
from dataclasses import dataclass
from typing import Any, assert_never

from pydantic import BaseModel

from durable_flow.engine.yields import (
    Ask,
    AskConfirm,
    AskNumber,
    AskSelect,
    AskText,
    Checkpoint,
    Emit,
    SelectOption,
    Yield,
    coerce_yield,
)
from durable_flow.errors import NeedsInputError

logger = logging.getLogger(__name__)

InputProvider = Callable[[Ask], Any]
OutputHandler = Callable[[Emit], None]
Workflow = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class Step:
    """One exchange on a workflow channel.

    While `done` is false, `value` is the next suspension point. Once `done`
    is true, `value` is the workflow's return value.
    """

    done: bool
    value: Any


def wrap_as_generator(value: Any) -> Generator[Yield, Any, Any]:
    """A generator that finishes immediately with `value`."""

    yield from ()
    return value


class WorkflowChannel:
    """Two-way channel to a suspended workflow: send a value, receive the next step."""

    def __init__(self, target: Any) -> None:
        if inspect.iscoroutine(target) or inspect.isasyncgen(target):
            raise TypeError("Async workflows are not supported; use a plain generator function")
        self._gen: Generator[Any, Any, Any] = (
            target if inspect.isgenerator(target) else wrap_as_generator(target)
        )
        self._started = False

    def start(self) -> Step:
        return self.send(None)

    def send(self, value: Any) -> Step:
        try:
            if not self._started:
                self._started = True
                yielded = next(self._gen)
            else:
                yielded = self._gen.send(value)
        except StopIteration as stop:
            return Step(done=True, value=stop.value)
        return Step(done=False, value=coerce_yield(yielded))

    def close(self) -> None:
        self._gen.close()


def open_channel(workflow: Workflow | Generator[Any, Any, Any], params: Mapping[str, Any] | None = None) -> WorkflowChannel:
    """Invoke `workflow` and wrap whatever it returns in a channel.

    `workflow` may be a generator object, a zero-argument factory, or a callable
    taking `params` as keyword arguments.
    """

    if inspect.isgenerator(workflow):
        return WorkflowChannel(workflow)
    if not inspect.signature(workflow).parameters:
        return WorkflowChannel(workflow())
    return WorkflowChannel(workflow(**dict(params or {})))


class IdAllocator:
    """Positional ids for yields that do not carry their own.

    Asks and checkpoints have independent counters. Only id-less yields
    consume a number.
    """

    def __init__(self) -> None:
        self._asks = 0
        self._checkpoints = 0

    def ask_id(self, ask: Ask) -> str:
        if ask.id:
            return ask.id
        ask_id = f"ask_{self._asks}"
        self._asks += 1
        return ask_id

    def checkpoint_id(self, checkpoint: Checkpoint) -> str:
        if checkpoint.id:
            return checkpoint.id
        cp_id = f"cp_{self._checkpoints}"
        self._checkpoints += 1
        return cp_id


def resolve_default(ask: Ask) -> Any:
    """Return the ask's declared default, or raise `NeedsInputError`."""

    default = getattr(ask, "default", None)
    if default is not None:
        return default
    raise NeedsInputError(ask)


def prefilled_provider(inputs: Mapping[str, Any]) -> InputProvider:
    """Input provider answering from a fixed map of ask id -> value.

    Falls back to the ask's declared default. Raises `NeedsInputError` when
    neither is available.
    """

    def provide(ask: Ask) -> Any:
        if ask.id is not None and ask.id in inputs:
            return inputs[ask.id]
        return resolve_default(ask)

    return provide


def execute_generator(
    workflow: Workflow | Generator[Any, Any, Any],
    *,
    params: Mapping[str, Any] | None = None,
    input_provider: InputProvider | None = None,
    output_handler: OutputHandler | None = None,
    pre_provided_inputs: Mapping[str, Any] | None = None,
) -> Any:
    """Drive a workflow to completion in memory and return its result.

    Asks are answered from `pre_provided_inputs` first, then by
    `input_provider`. Without an input provider, an ask missing from the
    pre-provided inputs resolves to its declared default or raises
    `NeedsInputError`. Emits go to `output_handler` (or are discarded).
    Checkpoints are resumed with their own state.
    """

    inputs = pre_provided_inputs or {}
    ids = IdAllocator()
    channel = open_channel(workflow, params)
    try:
        step = channel.start()
        while not step.done:
            match step.value:
                case Checkpoint() as checkpoint:
                    ids.checkpoint_id(checkpoint)
                    step = channel.send(checkpoint.state)
                case Ask() as ask:
                    ask_id = ids.ask_id(ask)
                    ask = ask.model_copy(update={"id": ask_id})
                    if ask_id in inputs:
                        value = inputs[ask_id]
                    elif input_provider is not None:
                        value = input_provider(ask)
                    else:
                        value = resolve_default(ask)
                    step = channel.send(value)
                case Emit() as emit:
                    if output_handler is not None:
                        output_handler(emit)
                    step = channel.send(None)
                case other:
                    assert_never(other)
        return step.value
    finally:
        channel.close()


class ExtractedAsk(BaseModel):
    """Description of an ask reachable by a dry run of a workflow."""

    id: str
    kind: str
    message: str
    options: list[str | SelectOption] | None = None
    default: Any = None
    required: bool | None = None
    pattern: str | None = None
    dangerous: bool | None = None
    multi: bool | None = None


def _mock_answer(ask: Ask) -> Any:
    match ask:
        case AskText():
            return ask.default or ""
        case AskConfirm():
            return True
        case AskSelect():
            if not ask.options:
                return [] if ask.multi else None
            first = ask.options[0]
            value = first if isinstance(first, str) else first.value
            return [value] if ask.multi else value
        case AskNumber():
            if ask.default is not None:
                return ask.default
            return ask.min if ask.min is not None else 0
        case _:
            return getattr(ask, "default", None)


def extract_asks(workflow: Workflow, params: Mapping[str, Any] | None = None) -> list[ExtractedAsk]:
    """Dry-run a workflow with mock answers and describe every ask it reaches.

    Only asks reachable with mock inputs are found. Extraction stops at the
    first exception raised by the workflow (e.g. because it needs real
    resources) and returns what was collected so far.
    """

    asks: list[ExtractedAsk] = []
    ids = IdAllocator()
    channel: WorkflowChannel | None = None
    try:
        channel = open_channel(workflow, params)
        step = channel.start()
        while not step.done:
            match step.value:
                case Ask() as ask:
                    asks.append(
                        ExtractedAsk(
                            id=ids.ask_id(ask),
                            kind=ask.kind,
                            message=ask.message,
                            options=getattr(ask, "options", None),
                            default=getattr(ask, "default", None),
                            required=ask.required,
                            pattern=getattr(ask, "pattern", None),
                            dangerous=getattr(ask, "dangerous", None),
                            multi=getattr(ask, "multi", None),
                        )
                    )
                    step = channel.send(_mock_answer(ask))
                case Checkpoint() as checkpoint:
                    ids.checkpoint_id(checkpoint)
                    step = channel.send(checkpoint.state)
                case _:
                    step = channel.send(None)
    except Exception as e:
        logger.warning("Ask extraction incomplete", extra={"error": str(e), "found": len(asks)})
    finally:
        if channel is not None:
            channel.close()
    return asks
