"""Timeout enforcement for running scan jobs.

A worker that crashes mid-scan never writes a terminal state. The timeout
monitor force-fails such jobs once they exceed their wall-clock budget,
measured from job creation:

- TimeoutMonitor arms one timer per job, firing at created_at + budget.
- fail_timed_out_jobs() sweeps for jobs whose timer was lost with the
  process that armed it.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from drivescan.db import queries
from drivescan.db.connection import get_connection
from drivescan.db.types import ScanJob, ScanStatus
from drivescan.jobs.exceptions import ScanTimeoutError
from drivescan.jobs.progress import ProgressTracker

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MINUTES = 15

# A cancel request on a dead worker is never finalized either
_ACTIVE_STATUSES = (ScanStatus.RUNNING, ScanStatus.CANCELLED)


def check_job_timeout(
    conn: sqlite3.Connection,
    job_id: str,
    timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES,
) -> bool:
    """Force-fail a job if it is still running.

    Args:
        conn: Database connection.
        job_id: Job UUID.
        timeout_minutes: Budget reported in the error message.

    Returns:
        True if the job was failed by this call.
    """
    job = queries.get_job(conn, job_id)
    if job is None or job.status not in _ACTIVE_STATUSES or job.is_terminal:
        return False

    error = ScanTimeoutError(job_id, timeout_minutes)
    message = str(error)
    details = {
        "timedOut": True,
        "timeoutMinutes": timeout_minutes,
        "finalError": message,
        "errorType": type(error).__name__,
        "cancelled": False,
        "workerId": job.worker_id,
    }
    progress = ProgressTracker(job.progress).failed(message)

    try:
        failed = queries.fail_job(
            conn,
            job_id,
            message,
            details,
            progress,
            datetime.now(timezone.utc).isoformat(),
            only_if_statuses=_ACTIVE_STATUSES,
        )
        conn.commit()
    except sqlite3.Error:
        conn.rollback()
        raise

    if failed:
        logger.warning(
            "Job %s timed out after %d minutes (worker %s)",
            job_id,
            timeout_minutes,
            job.worker_id,
        )
    return failed


def fail_timed_out_jobs(
    conn: sqlite3.Connection,
    timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES,
    now: datetime | None = None,
) -> int:
    """Force-fail every active job created more than the budget ago.

    Args:
        conn: Database connection.
        timeout_minutes: Wall-clock budget per job.
        now: Reference time (defaults to the current UTC time).

    Returns:
        Number of jobs failed.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = (now - timedelta(minutes=timeout_minutes)).isoformat()

    count = 0
    for job_id in queries.select_active_jobs_created_before(conn, cutoff):
        if check_job_timeout(conn, job_id, timeout_minutes):
            count += 1

    if count > 0:
        logger.info("Failed %d timed-out job(s)", count)
    return count


class TimeoutMonitor:
    """Arms one watchdog timer per job.

    Each timer opens its own database connection when it fires, so the
    monitor can be shared with a worker whose connection is busy.
    Thread-safe.
    """

    def __init__(
        self,
        db_path: Path,
        timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES,
    ) -> None:
        """Initialize the monitor.

        Args:
            db_path: Database file used by the timers.
            timeout_minutes: Wall-clock budget per job, from creation.
        """
        if timeout_minutes < 1:
            raise ValueError("timeout_minutes must be at least 1")
        self.db_path = db_path
        self.timeout_minutes = timeout_minutes
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    @property
    def scheduled_job_ids(self) -> list[str]:
        with self._lock:
            return list(self._timers)

    def delay_for(self, job: ScanJob, now: datetime | None = None) -> float:
        """Seconds until the job's budget runs out (0 if already exceeded)."""
        now = now or datetime.now(timezone.utc)
        created = datetime.fromisoformat(job.created_at)
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        deadline = created + timedelta(minutes=self.timeout_minutes)
        return max((deadline - now).total_seconds(), 0.0)

    def schedule(self, job: ScanJob) -> None:
        """Arm the timer of a job, replacing any earlier one."""
        delay = self.delay_for(job)
        timer = threading.Timer(delay, self._fire, args=(job.id,))
        timer.daemon = True
        timer.name = f"timeout-{job.id[:8]}"

        with self._lock:
            previous = self._timers.pop(job.id, None)
            if previous is not None:
                previous.cancel()
            self._timers[job.id] = timer
        timer.start()
        logger.debug("Timeout for job %s armed in %.0fs", job.id, delay)

    def cancel(self, job_id: str) -> None:
        """Disarm the timer of a job, if any."""
        with self._lock:
            timer = self._timers.pop(job_id, None)
        if timer is not None:
            timer.cancel()

    def shutdown(self) -> None:
        """Disarm all timers."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def _fire(self, job_id: str) -> None:
        with self._lock:
            self._timers.pop(job_id, None)
        try:
            with get_connection(self.db_path) as conn:
                check_job_timeout(conn, job_id, self.timeout_minutes)
        except sqlite3.Error as e:
            logger.error("Timeout check for job %s failed: %s", job_id, e)
