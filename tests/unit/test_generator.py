"""Unit tests for in-memory workflow execution."""

from __future__ import annotations

from typing import Any

import pytest

from durable_flow import io
from durable_flow.engine.generator import (
    IdAllocator,
    WorkflowChannel,
    execute_generator,
    extract_asks,
    open_channel,
    prefilled_provider,
)
from durable_flow.engine.yields import Ask, AskText, Checkpoint, Emit, EmitStream
from durable_flow.errors import NeedsInputError


def connect(ip: str):
    code = yield io.ask.text("Enter the 6-digit code:", id="code")
    yield io.emit.status(f"Connecting to {ip}...")
    confirmed = yield io.ask.confirm("Pair device?")
    return {"ip": ip, "code": code, "confirmed": confirmed}


def test_asks_resolved_by_provider_and_emits_forwarded() -> None:
    asked: list[Ask] = []
    emitted: list[Emit] = []

    def provider(ask: Ask) -> Any:
        asked.append(ask)
        return "123456" if ask.id == "code" else True

    result = execute_generator(
        connect,
        params={"ip": "10.0.0.1"},
        input_provider=provider,
        output_handler=emitted.append,
    )

    assert result == {"ip": "10.0.0.1", "code": "123456", "confirmed": True}
    assert [a.id for a in asked] == ["code", "ask_0"]
    assert [e.kind for e in emitted] == ["status"]


def test_pre_provided_inputs_take_precedence() -> None:
    def provider(ask: Ask) -> Any:
        assert ask.id != "code", "pre-provided input should be used"
        return False

    result = execute_generator(
        connect,
        params={"ip": "h"},
        input_provider=provider,
        pre_provided_inputs={"code": "999999"},
    )

    assert result["code"] == "999999"
    assert result["confirmed"] is False


def test_missing_input_without_provider_raises_needs_input() -> None:
    with pytest.raises(NeedsInputError) as excinfo:
        execute_generator(connect, params={"ip": "h"}, pre_provided_inputs={"code": "1"})

    assert excinfo.value.ask.id == "ask_0"
    assert excinfo.value.ask.kind == "confirm"
    assert "Pair device?" in str(excinfo.value)


def test_declared_default_used_without_provider() -> None:
    def workflow():
        name = yield io.ask.text("Name?", default="anonymous")
        return name

    assert execute_generator(workflow) == "anonymous"


def test_positional_ids_are_stable_and_independent() -> None:
    def workflow():
        yield io.checkpoint({"a": 1})
        yield io.ask.text("first")
        yield io.ask.text("named", id="explicit")
        yield io.checkpoint({"b": 2}, id="cp_named")
        yield io.ask.text("second")
        yield io.checkpoint({"c": 3})
        return None

    def collect() -> list[str]:
        ids: list[str] = []

        def provider(ask: Ask) -> Any:
            assert ask.id is not None
            ids.append(ask.id)
            return ""

        execute_generator(workflow, input_provider=provider)
        return ids

    assert collect() == ["ask_0", "explicit", "ask_1"]
    assert collect() == collect()


def test_checkpoint_resumes_with_own_state() -> None:
    def workflow():
        state = yield io.checkpoint({"step": 1})
        return state

    assert execute_generator(workflow) == {"step": 1}


def test_unknown_yield_forwarded_as_stream_emit() -> None:
    emitted: list[Emit] = []

    def workflow():
        yield "raw text"
        return "done"

    assert execute_generator(workflow, output_handler=emitted.append) == "done"
    assert isinstance(emitted[0], EmitStream)
    assert emitted[0].data == "raw text"


def test_dict_yields_are_accepted() -> None:
    def workflow():
        value = yield {"ask": "number", "id": "qty", "message": "Quantity?"}
        yield {"emit": "progress", "value": 0.5}
        return value * 2

    assert execute_generator(workflow, pre_provided_inputs={"qty": 21}) == 42


def test_emits_discarded_without_handler() -> None:
    def workflow():
        yield io.emit.status("ignored")
        return 1

    assert execute_generator(workflow) == 1


def test_non_generator_workflow_returns_value() -> None:
    assert execute_generator(lambda: {"plain": True}) == {"plain": True}


def test_generator_object_accepted() -> None:
    assert execute_generator(connect("h"), pre_provided_inputs={"code": "1", "ask_0": True})["code"] == "1"


def test_workflow_exception_propagates() -> None:
    def workflow():
        yield io.emit.status("about to fail")
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        execute_generator(workflow)


def test_prefilled_provider() -> None:
    provide = prefilled_provider({"name": "Ada"})

    assert provide(AskText(id="name", message="Name?")) == "Ada"
    assert provide(AskText(id="other", message="Other?", default="x")) == "x"
    with pytest.raises(NeedsInputError):
        provide(AskText(id="missing", message="Missing?"))


def test_channel_reports_steps() -> None:
    def workflow():
        received = yield io.ask.text("?")
        return received

    channel = open_channel(workflow)
    first = channel.start()
    assert first.done is False
    assert isinstance(first.value, AskText)

    last = channel.send("answer")
    assert last.done is True
    assert last.value == "answer"


def test_channel_rejects_async_workflows() -> None:
    async def workflow() -> None:
        return None

    coro = workflow()
    try:
        with pytest.raises(TypeError):
            WorkflowChannel(coro)
    finally:
        coro.close()


def test_id_allocator_only_numbers_anonymous_yields() -> None:
    ids = IdAllocator()

    assert ids.ask_id(AskText(message="a")) == "ask_0"
    assert ids.ask_id(AskText(id="x", message="b")) == "x"
    assert ids.ask_id(AskText(message="c")) == "ask_1"
    assert ids.checkpoint_id(Checkpoint(state={})) == "cp_0"
    assert ids.checkpoint_id(Checkpoint(id="mine", state={})) == "mine"
    assert ids.checkpoint_id(Checkpoint(state={})) == "cp_1"


def test_extract_asks_dry_runs_workflow() -> None:
    def workflow(region: str):
        env = yield io.ask.select("Environment?", ["dev", "prod"], id="env")
        yield io.emit.status(f"{region}/{env}")
        ok = yield io.ask.confirm("Deploy?", dangerous=True)
        if ok:
            yield io.ask.text("Reason?", pattern=".+")
        return env

    asks = extract_asks(workflow, {"region": "eu"})

    assert [a.id for a in asks] == ["env", "ask_0", "ask_1"]
    assert asks[0].options == ["dev", "prod"]
    assert asks[1].dangerous is True
    assert asks[2].pattern == ".+"


def test_extract_asks_stops_at_first_error() -> None:
    def workflow():
        yield io.ask.text("Token?")
        raise ConnectionError("needs network")

    asks = extract_asks(workflow)

    assert [a.id for a in asks] == ["ask_0"]
