"""CLI commands for the long-running pipeline processes.

Usage:
    reelindex listener          # consume change events, enqueue index jobs
    reelindex worker -c 10      # run index jobs
    reelindex scheduler         # fire recurring jobs (cleanup)
"""

from __future__ import annotations

import asyncio
import logging
import signal

import typer

from reelindex.config import settings
from reelindex.events.runtime import start_event_bus
from reelindex.jobs.worker import WorkerConfig
from reelindex.observability import configure_logging
from reelindex.runtime import build_listener, build_scheduler, build_worker, shutdown

logger = logging.getLogger(__name__)

worker_app = typer.Typer(help="Run an index job worker")
listener_app = typer.Typer(help="Run the change event listener")
scheduler_app = typer.Typer(help="Run the recurring job scheduler")


def _configure() -> None:
    configure_logging(json_format=settings.log_json, level=settings.log_level)


async def _wait_for_signal() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)
    await stop.wait()


@worker_app.callback(invoke_without_command=True)
def worker(
    concurrency: int = typer.Option(
        settings.job_concurrency, "--concurrency", "-c", help="Jobs processed at once"
    ),
    name: str = typer.Option("indexer", "--name", "-n", help="Worker name used in logs"),
) -> None:
    """Claim and run index jobs until interrupted."""
    _configure()

    async def run() -> None:
        try:
            job_worker = await build_worker(WorkerConfig(name=name, concurrency=concurrency))
            await job_worker.run()
        finally:
            await shutdown()

    asyncio.run(run())


@listener_app.callback(invoke_without_command=True)
def listener() -> None:
    """Consume change events and turn them into index jobs."""
    _configure()

    async def run() -> None:
        try:
            await build_listener()
            await start_event_bus()
            logger.info("Change listener running")
            await _wait_for_signal()
        finally:
            await shutdown()

    asyncio.run(run())


@scheduler_app.callback(invoke_without_command=True)
def scheduler() -> None:
    """Fire recurring jobs on their cron schedules."""
    _configure()

    async def run() -> None:
        try:
            job_scheduler = await build_scheduler()
            task = asyncio.create_task(job_scheduler.run())
            await _wait_for_signal()
            await job_scheduler.stop()
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        finally:
            await shutdown()

    asyncio.run(run())
