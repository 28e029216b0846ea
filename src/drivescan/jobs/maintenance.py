"""Job maintenance operations (cleanup of terminal jobs).

JobCleanup deletes completed and failed jobs whose completion is older than
the retention window. Each sweep is bounded; run it periodically.
"""

import logging
import sqlite3
from datetime import datetime, timedelta, timezone

from drivescan.db.queries import delete_jobs, select_expired_jobs

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30
DEFAULT_BATCH_SIZE = 100


class JobCleanup:
    """Bounded garbage collection of terminal jobs."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize the cleanup.

        Args:
            conn: Database connection.
            retention_days: Days to keep terminal jobs after completion.
            batch_size: Maximum jobs deleted per sweep.

        Raises:
            ValueError: If retention_days or batch_size is below 1.
        """
        if retention_days < 1:
            raise ValueError("retention_days must be at least 1")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.conn = conn
        self.retention_days = retention_days
        self.batch_size = batch_size

    def sweep(self, now: datetime | None = None) -> int:
        """Delete up to batch_size expired terminal jobs, oldest first.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            Number of jobs deleted.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = (now - timedelta(days=self.retention_days)).isoformat()

        try:
            job_ids = select_expired_jobs(self.conn, cutoff, self.batch_size)
            count = delete_jobs(self.conn, job_ids)
            self.conn.commit()
        except sqlite3.Error:
            self.conn.rollback()
            raise

        if count > 0:
            logger.info(
                "Deleted %d terminal job(s) completed before %s", count, cutoff
            )
        return count


def purge_old_jobs(
    conn: sqlite3.Connection,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    *,
    auto_purge: bool = True,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Run cleanup sweeps until no expired terminal job is left.

    Args:
        conn: Database connection.
        retention_days: Days to retain jobs before purging.
        auto_purge: If False, returns 0 without purging.
        batch_size: Jobs deleted per sweep.

    Returns:
        Number of jobs deleted.
    """
    if not auto_purge:
        return 0

    cleanup = JobCleanup(conn, retention_days=retention_days, batch_size=batch_size)
    now = datetime.now(timezone.utc)
    total = 0
    while True:
        deleted = cleanup.sweep(now)
        total += deleted
        if deleted < batch_size:
            return total
