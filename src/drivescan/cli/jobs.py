"""CLI commands for scan job management."""

import json
import logging

import click

from drivescan.cli.formatting import get_status_color, require_connection, resolve_job
from drivescan.cli.services import scan_orchestrator
from drivescan.db.queries import get_jobs_filtered
from drivescan.db.types import ScanJob, ScanJobConfig, ScanStatus, ScanType
from drivescan.jobs.exceptions import ScanJobError
from drivescan.jobs.maintenance import purge_old_jobs
from drivescan.jobs.queue import cancel_job, create_scan_job, get_queue_stats
from drivescan.jobs.summary import generate_summary_text
from drivescan.jobs.timeout import TimeoutMonitor, fail_timed_out_jobs
from drivescan.jobs.worker import database_path_of

logger = logging.getLogger(__name__)


def _format_job_row(job: ScanJob) -> tuple[str, str, str, str, str, str, str]:
    """Format a job for table display.

    Returns:
        Tuple of (job_id, status_value, status_color, job_type, owner,
        progress, created). Color is returned separately to allow proper
        column width formatting.
    """
    progress = (
        f"{job.progress.percentage:.0f}%"
        if job.status in (ScanStatus.RUNNING, ScanStatus.CANCELLED)
        else "-"
    )
    return (
        job.id[:8],
        job.status.value,
        get_status_color(job.status),
        job.job_type.value,
        job.owner_id[:30],
        progress,
        job.created_at[:19].replace("T", " "),
    )


@click.group("jobs")
def jobs_group() -> None:
    """Manage Drive scan jobs.

    Examples:

        # Queue a scan for an owner
        drivescan jobs create alice@example.com

        # List failed jobs
        drivescan jobs list --status failed

        # Show details for a specific job
        drivescan jobs show <job-id>

        # Run one job now, in the foreground
        drivescan jobs run <job-id>
    """
    pass


@jobs_group.command("create")
@click.argument("owner_id")
@click.option(
    "--type",
    "job_type",
    type=click.Choice([t.value for t in ScanType]),
    default=ScanType.DRIVE_SCAN.value,
    help="Kind of scan.",
)
@click.option("--root-folder", help="Folder ID to list (default: My Drive root).")
@click.option("--include-trashed", is_flag=True, help="Include trashed files.")
@click.option(
    "--file-type",
    "file_types",
    multiple=True,
    help="Restrict to a MIME type (repeatable).",
)
@click.option("--max-depth", type=click.IntRange(min=1), help="Folder depth limit.")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def create_job_cmd(
    ctx: click.Context,
    owner_id: str,
    job_type: str,
    root_folder: str | None,
    include_trashed: bool,
    file_types: tuple[str, ...],
    max_depth: int | None,
    json_output: bool,
) -> None:
    """Queue a scan job for OWNER_ID."""
    conn = require_connection(ctx)

    config = ScanJobConfig(
        max_depth=max_depth,
        include_trashed=include_trashed,
        root_folder_id=root_folder,
        file_types=tuple(file_types),
    )
    try:
        job = create_scan_job(conn, owner_id, ScanType(job_type), config)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if json_output:
        click.echo(json.dumps(job.to_dict(), indent=2))
    else:
        click.echo(f"Created job {job.id}")


@jobs_group.command("list")
@click.option(
    "--status",
    "-s",
    type=click.Choice([s.value for s in ScanStatus] + ["all"]),
    default="all",
    help="Filter by job status.",
)
@click.option("--owner", "owner_id", help="Filter by owner.")
@click.option(
    "--limit",
    "-n",
    type=click.IntRange(min=1, max=10000),
    default=50,
    help="Maximum number of jobs to show.",
)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_jobs(
    ctx: click.Context,
    status: str,
    owner_id: str | None,
    limit: int,
    json_output: bool,
) -> None:
    """List scan jobs, newest first."""
    conn = require_connection(ctx)

    jobs = get_jobs_filtered(
        conn,
        status=None if status == "all" else ScanStatus(status),
        owner_id=owner_id,
        limit=limit,
    )

    if json_output:
        click.echo(json.dumps([job.to_dict() for job in jobs], indent=2))
        return

    if not jobs:
        click.echo("No jobs found.")
        return

    click.echo(
        f"{'ID':<10} {'STATUS':<12} {'TYPE':<20} "
        f"{'OWNER':<32} {'PROG':<6} {'CREATED':<20}"
    )
    click.echo("-" * 104)

    for job in jobs:
        row = _format_job_row(job)
        # Format width first, then apply color to avoid ANSI codes affecting alignment
        status_colored = click.style(f"{row[1]:<12}", fg=row[2])
        line = f"{row[0]:<10} {status_colored} {row[3]:<20} "
        line += f"{row[4]:<32} {row[5]:<6} {row[6]:<20}"
        click.echo(line)


@jobs_group.command("show")
@click.argument("job_id")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def show_job(ctx: click.Context, job_id: str, json_output: bool) -> None:
    """Show detailed information about a job.

    JOB_ID can be the full UUID or a prefix.
    """
    conn = require_connection(ctx)
    job = resolve_job(conn, job_id)

    if json_output:
        click.echo(json.dumps(job.to_dict(), indent=2))
    else:
        _output_job_human(job)


def _output_job_human(job: ScanJob) -> None:
    """Output detailed job info in human-readable format."""
    status_colored = click.style(
        job.status.value.upper(), fg=get_status_color(job.status)
    )

    click.echo(f"\nJob: {job.id}")
    click.echo("-" * 50)
    click.echo(f"  Status:      {status_colored}")
    click.echo(f"  Type:        {job.job_type.value}")
    click.echo(f"  Owner:       {job.owner_id}")
    click.echo("")
    click.echo(f"  Created:     {job.created_at}")
    if job.started_at:
        click.echo(f"  Started:     {job.started_at}")
    if job.completed_at:
        click.echo(f"  Completed:   {job.completed_at}")

    click.echo("")
    click.echo(f"  Progress:    {job.progress.percentage:.1f}%")
    if job.progress.current_step:
        click.echo(f"  Step:        {job.progress.current_step}")
    if job.worker_id:
        click.echo(f"  Worker:      {job.worker_id}")

    if job.error:
        click.echo("")
        click.echo(f"  Error:       {click.style(job.error, fg='red')}")

    summary = generate_summary_text(job.results)
    if summary:
        click.echo("")
        click.echo(f"  Summary:     {summary}")
        insights = job.results.get("insights", {})
        for action in insights.get("recommendedActions", []):
            click.echo(f"    - {action}")

    click.echo("")


@jobs_group.command("cancel")
@click.argument("job_id")
@click.pass_context
def cancel_job_cmd(ctx: click.Context, job_id: str) -> None:
    """Cancel a pending or running job.

    A pending job fails immediately. A running job stops before its next
    page and is then marked failed by its worker.
    """
    conn = require_connection(ctx)
    job = resolve_job(conn, job_id)

    if job.is_terminal:
        raise click.ClickException(
            f"Job {job.id[:8]} is already {job.status.value}."
        )

    updated = cancel_job(conn, job.id)
    if updated.status == ScanStatus.CANCELLED:
        click.echo(f"Cancellation requested for job {job.id[:8]}")
    elif updated.status == ScanStatus.FAILED:
        click.echo(f"Cancelled job {job.id[:8]}")
    else:
        raise click.ClickException(
            f"Failed to cancel job (status {updated.status.value})."
        )


@jobs_group.command("run")
@click.argument("job_id")
@click.pass_context
def run_job_cmd(ctx: click.Context, job_id: str) -> None:
    """Run a job to completion in the foreground.

    JOB_ID can be the full UUID or a prefix.
    """
    conn = require_connection(ctx)
    config = ctx.obj["config"]
    job = resolve_job(conn, job_id)

    # In-memory databases cannot be reached from the timer threads
    db_path = database_path_of(conn)
    monitor = (
        TimeoutMonitor(db_path, config.jobs.timeout_minutes) if db_path else None
    )

    factory = ctx.obj.get("orchestrator_factory", scan_orchestrator)
    with factory(conn, config) as orchestrator:
        if monitor is not None:
            monitor.schedule(job)
        try:
            results = orchestrator.run_to_completion(job.id)
        except ScanJobError as e:
            raise click.ClickException(f"Job {job.id[:8]} failed: {e}") from e
        finally:
            if monitor is not None:
                monitor.shutdown()

    summary = generate_summary_text(results.to_dict())
    click.echo(f"Job {job.id[:8]} completed: {summary}")


@jobs_group.command("cleanup")
@click.option(
    "--older-than",
    "-o",
    type=click.IntRange(min=1),
    default=None,
    help="Remove jobs completed more than N days ago (default: from config).",
)
@click.pass_context
def cleanup_jobs(ctx: click.Context, older_than: int | None) -> None:
    """Delete completed and failed jobs past the retention window."""
    conn = require_connection(ctx)
    jobs_config = ctx.obj["config"].jobs

    count = purge_old_jobs(
        conn,
        older_than or jobs_config.retention_days,
        batch_size=jobs_config.cleanup_batch_size,
    )
    click.echo(f"Deleted {count} job(s).")


@jobs_group.command("check-timeouts")
@click.option(
    "--timeout-minutes",
    type=click.IntRange(min=1),
    default=None,
    help="Running job budget in minutes (default: from config).",
)
@click.pass_context
def check_timeouts(ctx: click.Context, timeout_minutes: int | None) -> None:
    """Fail running jobs that exceeded their time budget."""
    conn = require_connection(ctx)
    minutes = timeout_minutes or ctx.obj["config"].jobs.timeout_minutes

    count = fail_timed_out_jobs(conn, minutes)
    if count > 0:
        click.echo(f"Failed {count} timed-out job(s).")
    else:
        click.echo("No timed-out jobs found.")


@jobs_group.command("stats")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def show_stats(ctx: click.Context, json_output: bool) -> None:
    """Show job counts per status."""
    conn = require_connection(ctx)
    stats = get_queue_stats(conn)

    if json_output:
        click.echo(json.dumps(stats, indent=2))
        return

    click.echo("Scan Job Status")
    click.echo("-" * 30)
    click.echo(f"  Pending:   {stats['pending']:>5}")
    click.echo(f"  Running:   {stats['running']:>5}")
    click.echo(f"  Cancelled: {stats['cancelled']:>5}")
    click.echo(f"  Completed: {stats['completed']:>5}")
    click.echo(f"  Failed:    {stats['failed']:>5}")
    click.echo("-" * 30)
    click.echo(f"  Total:     {stats['total']:>5}")
