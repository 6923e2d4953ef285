"""Durable workflow execution with JSONL persistence.

Runs can be interrupted (crash, restart) and resumed from their most recent
checkpoint without repeating asks or emits that already happened.

Checkpoint pattern:

    def weekly_report(week: int):
        posted = slack.post_message(channel="#eng", text="Report starting")
        yield io.checkpoint({"step": 1, "message_ts": posted.ts})

        approved = yield io.ask.confirm("Publish?", id="approve")
        issue = github.create_issue(title=f"Week {week}")
        yield io.checkpoint({"step": 2, "issue": issue.number, "approved": approved})

        return {"issue": issue.number}

A checkpoint goes after the side effects it covers. On resume the workflow is
re-run from the top in "fast-forward": asks are answered from the log, emits
are dropped, and at the last recorded checkpoint the persisted state is sent
back into the workflow. Everything after that point runs live and is logged.
"""

from __future__ import annotations

import logging
import secrets
import string
import traceback
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, assert_never

from pydantic import BaseModel

from durable_flow.config import WorkflowSettings
from durable_flow.engine.generator import (
    IdAllocator,
    InputProvider,
    OutputHandler,
    Step,
    Workflow,
    WorkflowChannel,
    open_channel,
)
from durable_flow.engine.yields import Ask, Checkpoint, Emit
from durable_flow.errors import ResumeError
from durable_flow.state.log import StateLog, now_ms
from durable_flow.state.resume import CheckpointRecord, ResumeState, RunStatus, load_resume_state

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_run_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"run_{_base36(now_ms())}_{suffix}"


class ExecutionResult(BaseModel):
    run_id: str
    result: Any = None
    error: str | None = None
    resumed: bool = False
    status: RunStatus


@dataclass
class _RunContext:
    """Per-execution collaborators and counters."""

    log: StateLog
    input_provider: InputProvider
    output_handler: OutputHandler | None
    answers: dict[str, Any]
    ids: IdAllocator = field(default_factory=IdAllocator)
    seen_ask_ids: set[str] = field(default_factory=set)

    def next_ask_id(self, ask: Ask) -> str:
        ask_id = self.ids.ask_id(ask)
        if ask_id in self.seen_ask_ids:
            logger.warning(
                "Ask id reused within one run; resume will replay only its latest answer",
                extra={"run_id": self.log.run_id, "ask_id": ask_id},
            )
        self.seen_ask_ids.add(ask_id)
        return ask_id


class StatefulExecutor:
    """Drive workflows with every suspension point recorded in a run log.

    One executor instance may drive many runs. At most one process may drive a
    given run id at a time; this is not enforced here.
    """

    def __init__(
        self,
        settings: WorkflowSettings | None = None,
        *,
        runs_dir: Path | None = None,
        strict_resume: bool | None = None,
    ) -> None:
        self.settings = settings or WorkflowSettings()
        self.runs_dir = Path(runs_dir) if runs_dir is not None else self.settings.runs_dir
        self.strict_resume = (
            self.settings.strict_resume if strict_resume is None else strict_resume
        )

    def execute(
        self,
        workflow: Workflow,
        *,
        tool: str,
        input_provider: InputProvider,
        params: Mapping[str, Any] | None = None,
        output_handler: OutputHandler | None = None,
        run_id: str | None = None,
        resume: bool = False,
    ) -> ExecutionResult:
        """Start a run, or resume `run_id` when `resume` is true.

        Resuming a finished run returns its recorded result without invoking
        the workflow. Resuming a run with no log starts it fresh.
        """

        run_id = run_id or generate_run_id()
        log = StateLog(run_id, self.runs_dir)
        log.init()

        resume_state: ResumeState | None = None
        if resume:
            resume_state = load_resume_state(run_id, self.runs_dir)
            if resume_state is None:
                logger.info("No log to resume; starting fresh", extra={"run_id": run_id})
            elif resume_state.is_complete:
                logger.info(
                    "Run already finished; returning recorded outcome",
                    extra={"run_id": run_id, "status": resume_state.status},
                )
                return ExecutionResult(
                    run_id=run_id,
                    result=resume_state.result,
                    error=resume_state.error,
                    resumed=True,
                    status=resume_state.status,
                )

        resumed = resume_state is not None
        if resume_state is not None:
            # The logged invocation is what the checkpoints were recorded against.
            tool = resume_state.tool or tool
            run_params = dict(resume_state.params)
            logger.info(
                "Resuming run",
                extra={
                    "run_id": run_id,
                    "tool": tool,
                    "checkpoint": (
                        resume_state.last_checkpoint.id if resume_state.last_checkpoint else None
                    ),
                },
            )
        else:
            run_params = dict(params or {})
            log.write_start(tool, run_params)
            logger.info("Run started", extra={"run_id": run_id, "tool": tool})

        ctx = _RunContext(
            log=log,
            input_provider=input_provider,
            output_handler=output_handler,
            answers=dict(resume_state.answers) if resume_state is not None else {},
        )

        try:
            result = self._drive(workflow, run_params, ctx, resume_state)
            log.write_return(result)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(
                "Run failed",
                extra={"run_id": run_id, "tool": tool, "error": message},
                exc_info=True,
            )
            log.write_error(message, traceback.format_exc())
            return ExecutionResult(run_id=run_id, error=message, resumed=resumed, status="failed")

        logger.info("Run completed", extra={"run_id": run_id, "tool": tool, "resumed": resumed})
        return ExecutionResult(run_id=run_id, result=result, resumed=resumed, status="completed")

    def _drive(
        self,
        workflow: Workflow,
        params: dict[str, Any],
        ctx: _RunContext,
        resume_state: ResumeState | None,
    ) -> Any:
        # The workflow body is invoked exactly once per call, resumed or not.
        channel = open_channel(workflow, params)
        try:
            step = channel.start()

            if resume_state is not None:
                target = resume_state.last_checkpoint
                if target is None:
                    self._record_missing_checkpoint(ctx, None)
                else:
                    step, found = self._fast_forward(channel, step, ctx, target)
                    if not found:
                        if self.strict_resume:
                            raise ResumeError(
                                f"Resume error: checkpoint '{target.id}' not reached by workflow"
                            )
                        # The replay ran to completion; its outcome stands.
                        self._record_missing_checkpoint(ctx, target)
                        return step.value

            return self._run_live(channel, step, ctx)
        finally:
            channel.close()

    def _fast_forward(
        self,
        channel: WorkflowChannel,
        step: Step,
        ctx: _RunContext,
        target: CheckpointRecord,
    ) -> tuple[Step, bool]:
        """Replay the workflow without side effects up to checkpoint `target`.

        Returns the step following the target checkpoint and True, or the final
        step and False if the workflow finished without reaching it.
        """

        while not step.done:
            match step.value:
                case Checkpoint() as checkpoint:
                    cp_id = ctx.ids.checkpoint_id(checkpoint)
                    if cp_id == target.id:
                        logger.info(
                            "Fast-forward reached checkpoint",
                            extra={"run_id": ctx.log.run_id, "checkpoint": cp_id},
                        )
                        return channel.send(target.state), True
                    step = channel.send(checkpoint.state)
                case Ask() as ask:
                    ask_id = ctx.next_ask_id(ask)
                    if ask_id not in ctx.answers:
                        raise ResumeError(f"Resume error: missing answer for ask '{ask_id}'")
                    step = channel.send(ctx.answers[ask_id])
                case Emit():
                    # Already delivered by the interrupted process.
                    step = channel.send(None)
                case other:
                    assert_never(other)
        return step, False

    def _record_missing_checkpoint(self, ctx: _RunContext, target: CheckpointRecord | None) -> None:
        if target is not None:
            message = (
                f"Checkpoint '{target.id}' not found during resume; "
                "keeping the outcome of the replayed workflow"
            )
        else:
            message = "No checkpoint recorded; executing from the start with recorded answers"
        logger.warning(message, extra={"run_id": ctx.log.run_id})
        ctx.log.write_emit(
            "log",
            message,
            {"emit": "log", "message": message, "level": "warn"},
        )

    def _run_live(self, channel: WorkflowChannel, step: Step, ctx: _RunContext) -> Any:
        while not step.done:
            match step.value:
                case Checkpoint() as checkpoint:
                    cp_id = ctx.ids.checkpoint_id(checkpoint)
                    ctx.log.write_checkpoint(cp_id, checkpoint.state)
                    step = channel.send(checkpoint.state)
                case Ask() as ask:
                    ask_id = ctx.next_ask_id(ask)
                    if ask_id in ctx.answers:
                        # Answered before the interruption, after the last checkpoint.
                        step = channel.send(ctx.answers[ask_id])
                        continue
                    ask = ask.model_copy(update={"id": ask_id})
                    ctx.log.write_ask(ask_id, ask.kind, ask.message)
                    value = ctx.input_provider(ask)
                    ctx.log.write_answer(ask_id, value)
                    step = channel.send(value)
                case Emit() as emit:
                    ctx.log.write_emit(emit.kind, emit.summary, emit.to_wire())
                    if ctx.output_handler is not None:
                        ctx.output_handler(emit)
                    step = channel.send(None)
                case other:
                    assert_never(other)
        return step.value


def execute_stateful(
    workflow: Workflow,
    *,
    tool: str,
    input_provider: InputProvider,
    params: Mapping[str, Any] | None = None,
    output_handler: OutputHandler | None = None,
    run_id: str | None = None,
    resume: bool = False,
    runs_dir: Path | None = None,
    settings: WorkflowSettings | None = None,
) -> ExecutionResult:
    """Convenience wrapper around `StatefulExecutor.execute`."""

    executor = StatefulExecutor(settings, runs_dir=runs_dir)
    return executor.execute(
        workflow,
        tool=tool,
        input_provider=input_provider,
        params=params,
        output_handler=output_handler,
        run_id=run_id,
        resume=resume,
    )
