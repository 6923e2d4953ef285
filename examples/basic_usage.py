#!/usr/bin/env python3
"""Durable workflow example.

This demonstrates using the engine directly:

* load settings from `.env`
* run a generator workflow with a checkpoint after each side effect
* resume the same run id after an interruption (Ctrl+C during a prompt)

Run it once, interrupt it at the second prompt, then run it again with
`--resume` and the same `--run-id`: the first prompt is not repeated.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from durable_flow import StatefulExecutor, WorkflowSettings, io
from durable_flow.logging import configure_logging
from durable_flow.main import console_input_provider, console_output_handler


def provision_device(hostname: str):
    yield io.emit.status(f"Registering {hostname}...")
    owner = yield io.ask.text("Owner email:", id="owner", pattern=r".+@.+")
    yield io.checkpoint({"registered": hostname, "owner": owner})

    region = yield io.ask.select("Region:", ["eu-west", "us-east"], id="region", default="eu-west")
    yield io.emit.progress(0.5, "Allocating resources")
    yield io.checkpoint({"region": region})

    confirmed = yield io.ask.confirm(f"Activate {hostname} in {region}?", id="activate")
    return {"hostname": hostname, "owner": owner, "region": region, "active": confirmed}


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision a device (durable workflow example).")
    parser.add_argument("--hostname", default="edge-01", help="Device hostname")
    parser.add_argument("--run-id", default=None, help="Run id to start or resume")
    parser.add_argument("--resume", action="store_true", help="Resume --run-id from its log")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowSettings()
    configure_logging(settings.log_level)

    outcome = StatefulExecutor(settings).execute(
        provision_device,
        tool="provision_device",
        params={"hostname": args.hostname},
        input_provider=console_input_provider,
        output_handler=console_output_handler,
        run_id=args.run_id,
        resume=args.resume,
    )

    print(f"Run {outcome.run_id}: {outcome.status}")
    if outcome.error:
        print(f"Error: {outcome.error}")
        return 1
    print(f"Result: {outcome.result}")
    print(f"Log: {settings.run_log_path(outcome.run_id)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
