"""CLI module for drivescan."""

import atexit
import logging
import sqlite3
from pathlib import Path

import click

from drivescan.config import get_config
from drivescan.db.connection import configure_connection, ensure_db_directory
from drivescan.db.schema import initialize_database
from drivescan.logging import configure_logging

_db_conn: sqlite3.Connection | None = None
_logging_configured: bool = False
_atexit_registered: bool = False

logger = logging.getLogger(__name__)


def _cleanup_db_connection() -> None:
    """Close the CLI database connection on exit."""
    global _db_conn
    if _db_conn is not None:
        try:
            _db_conn.close()
        except sqlite3.Error:
            pass  # Nothing left to do with a failing close at exit
        _db_conn = None


def _get_db_connection(db_path: Path) -> sqlite3.Connection | None:
    """Get a database connection for CLI context.

    Creates a persistent connection (not context-managed) shared by the
    subcommands of one process, with the same settings as get_connection().
    The connection is closed by an atexit handler; if the process is killed,
    SQLite's WAL mode handles recovery.

    Args:
        db_path: Database file.

    Returns:
        Database connection or None if connection fails.
    """
    global _db_conn, _atexit_registered

    if _db_conn is not None:
        return _db_conn

    try:
        ensure_db_directory(db_path)
        conn = configure_connection(sqlite3.connect(str(db_path), timeout=30.0))
        initialize_database(conn)
    except (sqlite3.Error, OSError, RuntimeError) as e:
        logger.warning("Failed to open database %s: %s", db_path, e)
        return None

    _db_conn = conn
    if not _atexit_registered:
        atexit.register(_cleanup_db_connection)
        _atexit_registered = True
    return conn


def _configure_logging(config) -> None:
    global _logging_configured
    if _logging_configured:
        return
    configure_logging(config.logging)
    _logging_configured = True


@click.group()
@click.version_option(package_name="drivescan")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Database file (default: ~/.drivescan/drivescan.db).",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Config file (default: ~/.drivescan/config.toml).",
)
@click.pass_context
def main(
    ctx: click.Context,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
    db_path: Path | None,
    config_path: Path | None,
) -> None:
    """drivescan - Scan Google Drive accounts into a searchable file index."""
    ctx.ensure_object(dict)

    # Preserve a config passed by tests
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = get_config(
                config_path,
                database_path=db_path,
                overrides={
                    "logging": {
                        "level": log_level,
                        "file": log_file,
                        "format": "json" if log_json else None,
                    }
                },
            )
        except ValueError as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e
    config = ctx.obj["config"]

    _configure_logging(config)

    if "db_conn" not in ctx.obj:
        ctx.obj["db_conn"] = _get_db_connection(config.database_path)


def _register_commands():
    from drivescan.cli.jobs import jobs_group
    from drivescan.cli.owners import owners_group
    from drivescan.cli.worker import worker_command

    main.add_command(jobs_group)
    main.add_command(owners_group)
    main.add_command(worker_command)


_register_commands()
