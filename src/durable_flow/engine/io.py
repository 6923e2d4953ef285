"""Ergonomic constructors for workflow yields.

Example:

    from durable_flow import io

    def deploy(env: str):
        yield io.emit.status("Starting...")
        ok = yield io.ask.confirm(f"Deploy to {env}?", dangerous=True)
        yield io.checkpoint({"step": 1, "approved": ok})
        return {"approved": ok}
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from durable_flow.engine.yields import (
    AskConfirm,
    AskDate,
    AskFile,
    AskForm,
    AskNumber,
    AskPassword,
    AskSelect,
    AskText,
    AskUrl,
    Checkpoint,
    EmitArtifact,
    EmitLog,
    EmitProgress,
    EmitStatus,
    EmitStream,
    EmitThinking,
    EmitToast,
    EmitUI,
    SelectOption,
)

# Emit helpers: output to the caller, fire and forget.


def status(message: str, type: str | None = None) -> EmitStatus:  # noqa: A002
    return EmitStatus(message=message, type=type)


def progress(value: float, message: str | None = None, meta: dict[str, Any] | None = None) -> EmitProgress:
    """Progress as a fraction between 0 and 1."""

    return EmitProgress(value=value, message=message, meta=meta)


def stream(data: Any, final: bool | None = None, content_type: str | None = None) -> EmitStream:
    return EmitStream(data=data, final=final, content_type=content_type)


def log(message: str, level: str | None = None, data: dict[str, Any] | None = None) -> EmitLog:
    return EmitLog(message=message, level=level, data=data)


def toast(message: str, type: str | None = None, duration: int | None = None) -> EmitToast:  # noqa: A002
    return EmitToast(message=message, type=type, duration=duration)


def thinking(active: bool) -> EmitThinking:
    return EmitThinking(active=active)


def artifact(type: str, **options: Any) -> EmitArtifact:  # noqa: A002
    return EmitArtifact(type=type, **options)


def ui(id: str | None = None, **options: Any) -> EmitUI:  # noqa: A002
    return EmitUI(id=id, **options)


# Ask helpers: block until the caller supplies a value.


def text(message: str, **options: Any) -> AskText:
    return AskText(message=message, **options)


def password(message: str, *, id: str | None = None, required: bool | None = None) -> AskPassword:  # noqa: A002
    return AskPassword(message=message, id=id, required=required)


def confirm(message: str, **options: Any) -> AskConfirm:
    return AskConfirm(message=message, **options)


def select(message: str, options: list[str | SelectOption | dict[str, str]], **config: Any) -> AskSelect:
    return AskSelect(message=message, options=options, **config)


def number(message: str, **options: Any) -> AskNumber:
    return AskNumber(message=message, **options)


def file(message: str, **options: Any) -> AskFile:
    return AskFile(message=message, **options)


def date(message: str, **options: Any) -> AskDate:
    return AskDate(message=message, **options)


def form(message: str, schema: dict[str, Any], **options: Any) -> AskForm:
    return AskForm(message=message, schema=schema, **options)


def url(message: str, url_value: str, **options: Any) -> AskUrl:
    return AskUrl(message=message, url=url_value, **options)


def checkpoint(state: dict[str, Any], id: str | None = None) -> Checkpoint:  # noqa: A002
    """Mark a safe resume point. Place it after the side effects it covers."""

    return Checkpoint(id=id, state=state)


emit = SimpleNamespace(
    status=status,
    progress=progress,
    stream=stream,
    log=log,
    toast=toast,
    thinking=thinking,
    artifact=artifact,
    ui=ui,
)

ask = SimpleNamespace(
    text=text,
    password=password,
    confirm=confirm,
    select=select,
    number=number,
    file=file,
    date=date,
    form=form,
    url=url,
)

__all__ = ["ask", "checkpoint", "emit"]
