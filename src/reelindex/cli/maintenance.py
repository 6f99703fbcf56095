"""CLI commands for one-off index maintenance.

Usage:
    reelindex reindex            # publish a reindex request
    reelindex reindex --inline   # rebuild the index in this process
    reelindex cleanup            # enqueue the soft-delete purge
    reelindex cleanup --inline --retention-days 30
"""

from __future__ import annotations

import asyncio

import orjson
import typer

from reelindex.config import settings
from reelindex.events.publisher import ChangePublisher
from reelindex.events.runtime import get_event_bus
from reelindex.indexing.processor import IndexProcessor
from reelindex.indexing.reconciliation import ReconciliationJob
from reelindex.jobs.tasks import IndexJobs
from reelindex.observability import configure_logging
from reelindex.persistence.db import get_session_factory
from reelindex.runtime import get_job_queue, shutdown
from reelindex.search.index import get_search_index

reindex_app = typer.Typer(help="Rebuild the search index from the store")
cleanup_app = typer.Typer(help="Purge content soft-deleted past the retention window")


@reindex_app.callback(invoke_without_command=True)
def reindex(
    inline: bool = typer.Option(
        False, "--inline", help="Rebuild in this process instead of via the pipeline"
    ),
) -> None:
    """Rebuild the search index."""
    configure_logging(json_format=settings.log_json, level=settings.log_level)

    async def run() -> None:
        try:
            if inline:
                search_index = get_search_index()
                await search_index.ensure_index()
                count = await IndexProcessor(get_session_factory(), search_index).reindex_all()
                typer.echo(f"Indexed {count} documents")
                return

            event = await ChangePublisher(get_event_bus()).request_reindex()
            if event is None:
                typer.echo("Failed to publish reindex request", err=True)
                raise typer.Exit(code=1)
            typer.echo(f"Reindex requested (event {event.event_id})")
        finally:
            await shutdown()

    asyncio.run(run())


@cleanup_app.callback(invoke_without_command=True)
def cleanup(
    inline: bool = typer.Option(False, "--inline", help="Run the purge in this process"),
    retention_days: int = typer.Option(
        settings.cleanup_retention_days, "--retention-days", help="Keep soft-deleted items this long"
    ),
) -> None:
    """Purge soft-deleted content from the index and the store."""
    configure_logging(json_format=settings.log_json, level=settings.log_level)

    async def run() -> None:
        try:
            if inline:
                job = ReconciliationJob(get_session_factory(), get_search_index(), retention_days)
                result = await job.run()
                typer.echo(orjson.dumps(result.to_dict(), option=orjson.OPT_INDENT_2).decode())
                if result.failed:
                    raise typer.Exit(code=1)
                return

            job_id = await IndexJobs(await get_job_queue()).enqueue_cleanup()
            typer.echo(f"Cleanup enqueued (job {job_id})")
        finally:
            await shutdown()

    asyncio.run(run())
