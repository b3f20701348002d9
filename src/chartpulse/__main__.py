"""Command-line entry point.

Usage:
    python -m chartpulse                            # run the scheduler until interrupted
    python -m chartpulse run-job score-recalculation # run one job once and exit
    python -m chartpulse status                     # print the configured schedule
"""

import argparse
import asyncio
import contextlib
import json
import signal
import sys

from chartpulse.config import get_settings
from chartpulse.infrastructure.lifecycle import lifespan


async def _serve() -> int:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Windows event loops have no signal handlers; Ctrl+C still raises KeyboardInterrupt
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_event.set)

    async with lifespan(get_settings()):
        await stop_event.wait()
    return 0


async def _run_job(name: str) -> int:
    async with lifespan(get_settings(), start_scheduler=False) as container:
        try:
            ok = await container.scheduler.run_job(name)
        except ValueError as e:
            print(str(e), file=sys.stderr)
            return 2
    return 0 if ok else 1


async def _status() -> int:
    async with lifespan(get_settings(), start_scheduler=False) as container:
        print(json.dumps(container.scheduler.get_status(), indent=2))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chartpulse",
        description="Unified chart intelligence pipeline",
    )
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("serve", help="Run the update scheduler (default)")
    run_parser = subparsers.add_parser("run-job", help="Run one scheduler job now")
    run_parser.add_argument("job", help="Job name, e.g. import-new-artists")
    subparsers.add_parser("status", help="Show the configured jobs")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "run-job":
            return asyncio.run(_run_job(args.job))
        if args.command == "status":
            return asyncio.run(_status())
        return asyncio.run(_serve())
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
