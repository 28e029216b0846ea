"""Display helpers shared by the CLI commands."""

import click

from drivescan.db.queries import get_jobs_by_id_prefix
from drivescan.db.types import ScanJob, ScanStatus

# Map ScanStatus to terminal color names (for click.style and similar)
SCAN_STATUS_COLORS: dict[ScanStatus, str] = {
    ScanStatus.PENDING: "yellow",
    ScanStatus.RUNNING: "blue",
    ScanStatus.COMPLETED: "green",
    ScanStatus.FAILED: "red",
    ScanStatus.CANCELLED: "bright_black",
}

# Default color when status is not found
DEFAULT_STATUS_COLOR = "white"


def get_status_color(status: ScanStatus) -> str:
    """Get the terminal color for a scan status.

    Args:
        status: The job status.

    Returns:
        Color name suitable for click.style() or similar APIs.
    """
    return SCAN_STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


def require_connection(ctx: click.Context):
    """Return the database connection of the CLI context."""
    conn = ctx.obj.get("db_conn")
    if conn is None:
        raise click.ClickException("Failed to connect to database.")
    return conn


def resolve_job(conn, job_id: str) -> ScanJob:
    """Find exactly one job by full ID or prefix.

    Raises:
        click.ClickException: If no job or more than one job matches.
    """
    matching = get_jobs_by_id_prefix(conn, job_id)

    if len(matching) == 0:
        raise click.ClickException(f"Job not found: {job_id}")
    if len(matching) > 1:
        click.echo(f"Multiple jobs match '{job_id}':", err=True)
        for job in matching[:5]:
            click.echo(f"  {job.id[:8]} - {job.status.value}", err=True)
        if len(matching) > 5:
            click.echo(f"  ... and {len(matching) - 5} more", err=True)
        raise click.ClickException("Be more specific.")

    return matching[0]
