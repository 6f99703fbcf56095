"""CLI commands for reelindex.

Provides command-line interface using Typer:
- reelindex serve: Run the API server
- reelindex listener: Consume change events
- reelindex worker: Run index jobs
- reelindex scheduler: Fire recurring jobs
- reelindex reindex: Rebuild the search index
- reelindex cleanup: Purge expired soft-deleted content

Usage:
    reelindex --help
    reelindex serve --port 8080
    reelindex worker --concurrency 10
"""

import typer

from reelindex.cli.maintenance import cleanup_app, reindex_app
from reelindex.cli.processes import listener_app, scheduler_app, worker_app
from reelindex.cli.serve import app as serve_app

app = typer.Typer(
    name="reelindex",
    help="reelindex: content discovery and search indexing",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(listener_app, name="listener")
app.add_typer(worker_app, name="worker")
app.add_typer(scheduler_app, name="scheduler")
app.add_typer(reindex_app, name="reindex")
app.add_typer(cleanup_app, name="cleanup")


@app.callback()
def callback() -> None:
    """reelindex: content discovery and search indexing."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
