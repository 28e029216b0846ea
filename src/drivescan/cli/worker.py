"""CLI command for the scan worker."""

import click

from drivescan.cli.formatting import require_connection
from drivescan.cli.services import scan_orchestrator
from drivescan.jobs.worker import ScanWorker


@click.command("worker")
@click.option(
    "--max-jobs",
    "-n",
    type=click.IntRange(min=1),
    help="Maximum number of jobs to process.",
)
@click.option(
    "--watch",
    is_flag=True,
    help="Keep polling for new jobs when the queue is empty.",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds between polls in watch mode (default: from config).",
)
@click.option(
    "--no-purge",
    is_flag=True,
    help="Don't purge old completed jobs on start.",
)
@click.pass_context
def worker_command(
    ctx: click.Context,
    max_jobs: int | None,
    watch: bool,
    poll_interval: float | None,
    no_purge: bool,
) -> None:
    """Process pending scan jobs, oldest first.

    The worker runs until:
    - Queue is empty (unless --watch)
    - --max-jobs limit reached
    - SIGTERM/SIGINT received

    Examples:

        # Process all pending jobs
        drivescan worker

        # Process at most 5 jobs
        drivescan worker --max-jobs 5

        # Run as a service
        drivescan worker --watch --poll-interval 10
    """
    conn = require_connection(ctx)
    config = ctx.obj["config"]

    factory = ctx.obj.get("orchestrator_factory", scan_orchestrator)
    with factory(conn, config) as orchestrator:
        worker = ScanWorker(
            conn,
            orchestrator,
            max_jobs=max_jobs or config.worker.max_jobs,
            watch=watch,
            poll_interval=poll_interval or config.worker.poll_interval,
            auto_purge=not no_purge and config.jobs.auto_purge,
            retention_days=config.jobs.retention_days,
            cleanup_batch_size=config.jobs.cleanup_batch_size,
            timeout_minutes=config.jobs.timeout_minutes,
        )
        processed = worker.run()

    click.echo(f"Processed {processed} job(s).")
