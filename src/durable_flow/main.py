"""CLI entrypoint: run workflows durably and manage their run logs."""

from __future__ import annotations

import argparse
import getpass
import importlib
import json
import logging
import sys
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError

from durable_flow import __version__
from durable_flow.config import WorkflowSettings
from durable_flow.engine.generator import InputProvider, Workflow
from durable_flow.engine.stateful import StatefulExecutor
from durable_flow.engine.yields import (
    Ask,
    AskConfirm,
    AskForm,
    AskNumber,
    AskPassword,
    AskSelect,
    Emit,
    EmitProgress,
)
from durable_flow.errors import RunNotFound
from durable_flow.logging import configure_logging
from durable_flow.registry import RunRegistry
from durable_flow.state.log import StateLog

logger = logging.getLogger(__name__)


def _parse_assignments(values: list[str] | None, *, flag: str) -> dict[str, Any]:
    """Parse `key=value` pairs. Values are JSON when they parse as JSON, else strings."""

    out: dict[str, Any] = {}
    for item in values or []:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"{flag} expects key=value, got {item!r}")
        try:
            out[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            out[key.strip()] = raw
    return out


def _load_target(target: str) -> Workflow:
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Workflow target must look like 'package.module:function', got {target!r}")
    module = importlib.import_module(module_name)
    workflow: Any = module
    for part in attr.split("."):
        workflow = getattr(workflow, part)
    if not callable(workflow):
        raise ValueError(f"{target!r} is not callable")
    return workflow


def _format_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def _select_values(ask: AskSelect) -> list[str]:
    return [o if isinstance(o, str) else o.value for o in ask.options]


def console_input_provider(ask: Ask) -> Any:
    """Resolve asks interactively on the terminal."""

    default = getattr(ask, "default", None)
    match ask:
        case AskPassword():
            return getpass.getpass(f"{ask.message} ")
        case AskConfirm():
            hint = "[Y/n]" if default else "[y/N]"
            raw = input(f"{ask.message} {hint} ").strip().lower()
            if not raw:
                return bool(default)
            return raw in {"y", "yes", "true", "1"}
        case AskSelect():
            values = _select_values(ask)
            for idx, option in enumerate(ask.options, start=1):
                label = option if isinstance(option, str) else option.label
                print(f"  {idx}. {label}", file=sys.stderr)
            raw = input(f"{ask.message} ").strip()
            if not raw:
                return default
            picks = [p.strip() for p in raw.split(",")] if ask.multi else [raw]
            chosen = [values[int(p) - 1] if p.isdigit() else p for p in picks]
            return chosen if ask.multi else chosen[0]
        case AskNumber():
            raw = input(f"{ask.message} ").strip()
            if not raw:
                return default
            number = float(raw)
            return int(number) if number.is_integer() else number
        case AskForm():
            raw = input(f"{ask.message} (JSON) ").strip()
            return json.loads(raw) if raw else default
        case _:
            raw = input(f"{ask.message} ")
            return raw if raw or default is None else default


def console_output_handler(emit: Emit) -> None:
    if isinstance(emit, EmitProgress):
        line = f"[progress] {emit.value:.0%} {emit.message or ''}".rstrip()
    elif emit.summary:
        line = f"[{emit.kind}] {emit.summary}"
    else:
        line = f"[{emit.kind}] {json.dumps(emit.to_wire(), default=str)}"
    print(line, file=sys.stderr)


def _with_inputs(inputs: dict[str, Any], fallback: InputProvider) -> InputProvider:
    def provide(ask: Ask) -> Any:
        if ask.id is not None and ask.id in inputs:
            return inputs[ask.id]
        return fallback(ask)

    return provide


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="durable-flow",
        description="Run resumable generator workflows and manage their run logs",
    )
    parser.add_argument("--version", action="version", version=f"durable-flow {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run (or resume) a workflow durably")
    run.add_argument("target", help="Workflow callable in the form 'package.module:function'")
    run.add_argument("--tool", default=None, help="Name recorded in the run log (defaults to target)")
    run.add_argument("--run-id", default=None, help="Run id (generated when omitted)")
    run.add_argument(
        "--resume",
        action="store_true",
        help="Resume --run-id from its last checkpoint instead of starting fresh",
    )
    run.add_argument(
        "--param",
        action="append",
        default=None,
        help="Workflow parameter as key=value (repeatable; JSON values accepted)",
    )
    run.add_argument(
        "--input",
        action="append",
        default=None,
        help="Pre-provided answer as ask_id=value (repeatable; JSON values accepted)",
    )

    runs = subparsers.add_parser("runs", help="Inspect and manage run logs")
    runs_sub = runs.add_subparsers(dest="runs_command", required=True)

    runs_sub.add_parser("list", help="List runs, most recent first")

    show = runs_sub.add_parser("show", help="Show one run as JSON")
    show.add_argument("run_id")
    show.add_argument("--entries", action="store_true", help="Include the raw log entries")

    delete = runs_sub.add_parser("delete", help="Delete a run log")
    delete.add_argument("run_id")

    cleanup = runs_sub.add_parser("cleanup", help="Delete finished runs older than a given age")
    cleanup.add_argument(
        "--max-age-hours",
        type=float,
        default=None,
        help="Age threshold in hours (defaults to DURABLE_FLOW_CLEANUP_MAX_AGE_HOURS)",
    )

    return parser


def _cmd_run(args: argparse.Namespace, settings: WorkflowSettings) -> int:
    if args.resume and not args.run_id:
        print("--resume requires --run-id", file=sys.stderr)
        return 2

    workflow = _load_target(args.target)
    params = _parse_assignments(args.param, flag="--param")
    inputs = _parse_assignments(args.input, flag="--input")

    executor = StatefulExecutor(settings)
    outcome = executor.execute(
        workflow,
        tool=args.tool or args.target,
        params=params,
        input_provider=_with_inputs(inputs, console_input_provider),
        output_handler=console_output_handler,
        run_id=args.run_id,
        resume=args.resume,
    )
    print(json.dumps(outcome.model_dump(), indent=2, ensure_ascii=False, default=str))
    return 0 if outcome.status == "completed" else 1


def _cmd_runs(args: argparse.Namespace, settings: WorkflowSettings) -> int:
    registry = RunRegistry(settings.runs_dir)

    if args.runs_command == "list":
        runs = registry.list_runs()
        if not runs:
            print("No runs found")
            return 0
        for r in runs:
            print(
                f"{r.run_id}\t{r.tool}\t{r.status}\t"
                f"{_format_ts(r.started_at)}\t{_format_ts(r.updated_at)}"
            )
        return 0

    if args.runs_command == "show":
        run = registry.get_run_info(args.run_id)
        if run is None:
            print(f"Run not found: {args.run_id}", file=sys.stderr)
            return 1
        payload = run.model_dump(mode="json")
        if args.entries:
            payload["entries"] = [
                e.model_dump(mode="json") for e in StateLog(args.run_id, settings.runs_dir).read_all()
            ]
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))
        return 0

    if args.runs_command == "delete":
        try:
            registry.delete_run(args.run_id)
        except RunNotFound as e:
            print(str(e), file=sys.stderr)
            return 1
        print(f"Deleted run {args.run_id}")
        return 0

    if args.runs_command == "cleanup":
        hours = args.max_age_hours if args.max_age_hours is not None else settings.cleanup_max_age_hours
        deleted = registry.cleanup_runs(timedelta(hours=hours))
        print(f"Deleted {deleted} run(s)")
        return 0

    raise AssertionError(f"Unhandled runs command: {args.runs_command}")


_COMMANDS: dict[str, Callable[[argparse.Namespace, WorkflowSettings], int]] = {
    "run": _cmd_run,
    "runs": _cmd_runs,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        return _COMMANDS[args.command](args, settings)
    except (ValueError, ImportError, AttributeError) as e:
        logger.error("Command failed", extra={"command": args.command, "error": str(e)})
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
