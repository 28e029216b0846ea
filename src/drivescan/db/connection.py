"""Database connection management for drivescan."""

from __future__ import annotations

import logging
import random
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DB_PATH = Path.home() / ".drivescan" / "drivescan.db"


def get_default_db_path() -> Path:
    """Return the default database path (~/.drivescan/drivescan.db)."""
    return DEFAULT_DB_PATH


def ensure_db_directory(db_path: Path) -> None:
    """Ensure the database directory exists, creating it if necessary."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def configure_connection(conn: sqlite3.Connection) -> sqlite3.Connection:
    """Apply the standard PRAGMAs and row factory to a connection."""
    conn.execute("PRAGMA foreign_keys = ON")

    # WAL allows readers (timeout monitor, CLI) alongside the worker's writes
    conn.execute("PRAGMA journal_mode = WAL")
    conn.execute("PRAGMA synchronous = NORMAL")
    conn.execute("PRAGMA busy_timeout = 10000")
    conn.execute("PRAGMA temp_store = MEMORY")

    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_connection(
    db_path: Path | None = None, timeout: float = 30.0
) -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper settings.

    Args:
        db_path: Path to the database file. Defaults to ~/.drivescan/drivescan.db.
        timeout: How long to wait for locks (seconds). Default 30s.

    Yields:
        An sqlite3 Connection object.

    Raises:
        sqlite3.OperationalError: If database is locked and timeout exceeded.
    """
    if db_path is None:
        db_path = get_default_db_path()

    ensure_db_directory(db_path)

    conn = configure_connection(sqlite3.connect(str(db_path), timeout=timeout))

    try:
        yield conn
    finally:
        conn.close()


class DatabaseLockedError(Exception):
    """Raised when the database is locked and cannot be accessed."""


def is_lock_error(error: BaseException) -> bool:
    """Return True for SQLite lock contention errors."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).casefold()
    return "locked" in message or "busy" in message


def execute_with_retry(
    func: Callable[[], T],
    max_retries: int = 5,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    jitter: float = 0.1,
) -> T:
    """Execute a function with exponential backoff retry on database lock errors.

    Args:
        func: Function to execute. Should raise sqlite3.OperationalError
            with "locked" or "busy" message on lock contention.
        max_retries: Maximum number of retry attempts. Default 5.
        base_delay: Initial delay in seconds. Default 0.1s.
        max_delay: Maximum delay between retries. Default 5.0s.
        jitter: Random jitter factor (0-1) to avoid thundering herd. Default 0.1.

    Returns:
        The return value of func.

    Raises:
        DatabaseLockedError: If all retries are exhausted on lock contention.
        Any other exception raised by func.
    """
    delay = base_delay

    for attempt in range(max_retries + 1):
        try:
            result = func()
            if attempt > 0:
                logger.info(
                    "Database operation succeeded after %d retry attempt(s)",
                    attempt,
                )
            return result
        except sqlite3.OperationalError as e:
            if not is_lock_error(e):
                raise

            if attempt >= max_retries:
                logger.warning(
                    "Database lock retry exhausted after %d attempts: %s",
                    max_retries + 1,
                    e,
                )
                raise DatabaseLockedError(
                    "Database is locked. Another process may be using it."
                ) from e

            jittered_delay = delay * (1 + random.uniform(-jitter, jitter))  # nosec B311
            logger.info(
                "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                attempt + 1,
                max_retries + 1,
                jittered_delay,
                e,
            )
            time.sleep(jittered_delay)
            delay = min(delay * 2, max_delay)

    raise RuntimeError("execute_with_retry: unexpected state")
