"""Values a workflow may yield at a suspension point.

Every yield is exactly one of:
- an `Ask`: blocks until an external actor supplies a value
- an `Emit`: fire-and-forget output
- a `Checkpoint`: a snapshot of accumulated state marking a safe resume point

Workflows may yield the models below directly (usually via `durable_flow.io`)
or loosely-typed dicts in the wire shape, e.g. `{"ask": "text", "message": "Name?"}`
or `{"checkpoint": True, "state": {...}}`. `coerce_yield` maps both onto the
closed set of models. Anything it does not recognise becomes a `stream` emit of
the raw value.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class _YieldModel(BaseModel):
    # Loosely-typed payloads keep their extra keys.
    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)


# --------------------------------------------------------------------------- asks


class Ask(_YieldModel):
    kind: str
    id: str | None = None
    message: str = ""
    required: bool | None = None

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True, exclude={"kind"})
        return {"ask": self.kind, **data}


class AskText(Ask):
    kind: Literal["text"] = "text"
    default: str | None = None
    placeholder: str | None = None
    pattern: str | None = None
    min_length: int | None = None
    max_length: int | None = None


class AskPassword(Ask):
    kind: Literal["password"] = "password"


class AskConfirm(Ask):
    kind: Literal["confirm"] = "confirm"
    default: bool | None = None
    dangerous: bool | None = None


class SelectOption(BaseModel):
    value: str
    label: str
    description: str | None = None


class AskSelect(Ask):
    kind: Literal["select"] = "select"
    options: list[str | SelectOption] = Field(default_factory=list)
    default: str | list[str] | None = None
    multi: bool | None = None


class AskNumber(Ask):
    kind: Literal["number"] = "number"
    default: float | None = None
    min: float | None = None
    max: float | None = None
    step: float | None = None


class AskFile(Ask):
    kind: Literal["file"] = "file"
    accept: str | None = None
    multiple: bool | None = None


class AskDate(Ask):
    kind: Literal["date"] = "date"
    default: str | None = None
    min: str | None = None
    max: str | None = None
    include_time: bool | None = None


class AskForm(Ask):
    kind: Literal["form"] = "form"
    schema_: dict[str, Any] = Field(default_factory=dict, alias="schema")


class AskUrl(Ask):
    kind: Literal["url"] = "url"
    url: str = ""
    elicitation_id: str | None = None


ASK_KINDS: dict[str, type[Ask]] = {
    "text": AskText,
    "password": AskPassword,
    "confirm": AskConfirm,
    "select": AskSelect,
    "number": AskNumber,
    "file": AskFile,
    "date": AskDate,
    "form": AskForm,
    "url": AskUrl,
}


# -------------------------------------------------------------------------- emits


class Emit(_YieldModel):
    kind: str

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True, exclude={"kind"})
        return {"emit": self.kind, **data}

    @property
    def summary(self) -> str | None:
        """Short human-readable text for this emit, if it has one."""

        message = getattr(self, "message", None)
        return message if isinstance(message, str) else None


class EmitStatus(Emit):
    kind: Literal["status"] = "status"
    message: str = ""
    type: Literal["info", "success", "warning", "error"] | None = None


class EmitProgress(Emit):
    kind: Literal["progress"] = "progress"
    value: float = Field(default=0.0, ge=0.0, le=1.0)
    message: str | None = None
    meta: dict[str, Any] | None = None


class EmitStream(Emit):
    kind: Literal["stream"] = "stream"
    data: Any = None
    final: bool | None = None
    content_type: str | None = None


class EmitLog(Emit):
    kind: Literal["log"] = "log"
    message: str = ""
    level: Literal["debug", "info", "warn", "error"] | None = None
    data: dict[str, Any] | None = None


class EmitToast(Emit):
    kind: Literal["toast"] = "toast"
    message: str = ""
    type: Literal["info", "success", "warning", "error"] | None = None
    duration: int | None = None


class EmitThinking(Emit):
    kind: Literal["thinking"] = "thinking"
    active: bool = True


class EmitArtifact(Emit):
    kind: Literal["artifact"] = "artifact"
    type: str = "document"
    title: str | None = None
    url: str | None = None
    content: str | None = None
    language: str | None = None
    mime_type: str | None = None


class EmitUI(Emit):
    kind: Literal["ui-render"] = "ui-render"
    id: str | None = None
    props: dict[str, Any] | None = None
    inline: str | None = None


EMIT_KINDS: dict[str, type[Emit]] = {
    "status": EmitStatus,
    "progress": EmitProgress,
    "stream": EmitStream,
    "log": EmitLog,
    "toast": EmitToast,
    "thinking": EmitThinking,
    "artifact": EmitArtifact,
    "ui-render": EmitUI,
    "ui": EmitUI,
}


# --------------------------------------------------------------------- checkpoint


class Checkpoint(_YieldModel):
    """Snapshot of workflow state, taken after the side effects it covers."""

    id: str | None = None
    state: dict[str, Any] = Field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        return {"checkpoint": True, **data}


Yield = Ask | Emit | Checkpoint


# ------------------------------------------------------------------ classification

_LEGACY_ASK_KEYS = ("prompt", "confirm", "select")


def _from_legacy(value: dict[str, Any]) -> Yield | None:
    """Map the older single-key prompt/progress shapes onto the current models."""

    data = dict(value)
    if "prompt" in data:
        message = data.pop("prompt")
        kind = "password" if data.pop("type", None) == "password" else "text"
        return ASK_KINDS[kind].model_validate({"message": message, **data})
    if "confirm" in data:
        return AskConfirm.model_validate({"message": data.pop("confirm"), **data})
    if "select" in data:
        return AskSelect.model_validate({"message": data.pop("select"), **data})
    if "progress" in data:
        percent = float(data.pop("progress"))
        status = data.pop("status", None)
        return EmitProgress.model_validate(
            {"value": min(max(percent / 100.0, 0.0), 1.0), "message": status, **data}
        )
    if "stream" in data:
        return EmitStream.model_validate({"data": data.pop("stream"), **data})
    if "log" in data:
        return EmitLog.model_validate({"message": data.pop("log"), **data})
    return None


def _classify(value: object) -> Yield | None:
    if isinstance(value, Ask | Emit | Checkpoint):
        return value
    if not isinstance(value, dict):
        return None

    try:
        if value.get("checkpoint") is True:
            data = {k: v for k, v in value.items() if k != "checkpoint"}
            return Checkpoint.model_validate(data)

        if isinstance(value.get("ask"), str):
            ask_cls = ASK_KINDS.get(value["ask"])
            if ask_cls is None:
                return None
            data = {k: v for k, v in value.items() if k != "ask"}
            return ask_cls.model_validate(data)

        if isinstance(value.get("emit"), str):
            kind = value["emit"]
            data = {k: v for k, v in value.items() if k != "emit"}
            emit_cls = EMIT_KINDS.get(kind)
            if emit_cls is None:
                return Emit.model_validate({"kind": kind, **data})
            return emit_cls.model_validate(data)

        if any(key in value for key in (*_LEGACY_ASK_KEYS, "progress", "stream", "log")):
            return _from_legacy(value)
    except ValidationError:
        return None

    return None


def coerce_yield(value: object) -> Yield:
    """Map any yielded value onto exactly one of Ask, Emit or Checkpoint."""

    classified = _classify(value)
    if classified is not None:
        return classified

    logger.warning(
        "Unrecognised yield forwarded as stream output",
        extra={"yield_type": type(value).__name__},
    )
    return EmitStream(data=value)


def is_ask(value: object) -> bool:
    return isinstance(_classify(value), Ask)


def is_checkpoint(value: object) -> bool:
    return isinstance(_classify(value), Checkpoint)


def is_emit(value: object) -> bool:
    # Unrecognised shapes are treated as stream emits.
    classified = _classify(value)
    return classified is None or isinstance(classified, Emit)


def ask_message(ask: Ask) -> str:
    return ask.message or "Input required"
