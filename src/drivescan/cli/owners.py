"""CLI commands for Drive owner connections."""

from datetime import datetime, timezone

import click

from drivescan.cli.formatting import require_connection
from drivescan.db.queries import delete_credentials, get_credentials, save_credentials
from drivescan.db.types import DriveCredentials

DEFAULT_SCOPE = "https://www.googleapis.com/auth/drive.metadata.readonly"


@click.group("owners")
def owners_group() -> None:
    """Manage the Drive connections of scan owners."""
    pass


@owners_group.command("connect")
@click.argument("owner_id")
@click.option(
    "--refresh-token",
    prompt=True,
    hide_input=True,
    help="OAuth refresh token granted by the owner.",
)
@click.option(
    "--scope",
    "scopes",
    multiple=True,
    help=f"Granted scope (repeatable, default: {DEFAULT_SCOPE}).",
)
@click.pass_context
def connect_owner(
    ctx: click.Context,
    owner_id: str,
    refresh_token: str,
    scopes: tuple[str, ...],
) -> None:
    """Store the refresh token of OWNER_ID."""
    conn = require_connection(ctx)

    if not refresh_token.strip():
        raise click.ClickException("Refresh token must not be empty.")

    save_credentials(
        conn,
        DriveCredentials(
            owner_id=owner_id,
            refresh_token=refresh_token.strip(),
            scopes=list(scopes) or [DEFAULT_SCOPE],
            updated_at=datetime.now(timezone.utc).isoformat(),
        ),
    )
    conn.commit()
    click.echo(f"Connected owner {owner_id}")


@owners_group.command("disconnect")
@click.argument("owner_id")
@click.pass_context
def disconnect_owner(ctx: click.Context, owner_id: str) -> None:
    """Remove the stored refresh token of OWNER_ID."""
    conn = require_connection(ctx)

    removed = delete_credentials(conn, owner_id)
    conn.commit()
    if not removed:
        raise click.ClickException(f"Owner not connected: {owner_id}")
    click.echo(f"Disconnected owner {owner_id}")


@owners_group.command("show")
@click.argument("owner_id")
@click.pass_context
def show_owner(ctx: click.Context, owner_id: str) -> None:
    """Show the stored connection of OWNER_ID (never the token)."""
    conn = require_connection(ctx)

    credentials = get_credentials(conn, owner_id)
    if credentials is None:
        raise click.ClickException(f"Owner not connected: {owner_id}")
    click.echo(f"Owner:    {credentials.owner_id}")
    click.echo(f"Scopes:   {', '.join(credentials.scopes) or '-'}")
    click.echo(f"Updated:  {credentials.updated_at or '-'}")
