"""Scan job queue operations.

This module provides queue operations with SQLite-based job management:
- Job creation
- Transactional claiming with BEGIN IMMEDIATE (at most one worker runs a job)
- Cancellation of pending and running jobs
- Per-status counts
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone

from drivescan.db import queries
from drivescan.db.types import (
    ScanJob,
    ScanJobConfig,
    ScanProgress,
    ScanStatus,
    ScanType,
)
from drivescan.jobs.exceptions import JobNotFoundError
from drivescan.jobs.progress import ProgressTracker

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Scan cancelled by user"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _rollback(conn: sqlite3.Connection) -> None:
    try:
        conn.execute("ROLLBACK")
    except sqlite3.Error:
        pass  # Best effort rollback


def create_scan_job(
    conn: sqlite3.Connection,
    owner_id: str,
    job_type: ScanType = ScanType.DRIVE_SCAN,
    config: ScanJobConfig | None = None,
) -> ScanJob:
    """Create and store a pending scan job.

    Args:
        conn: Database connection.
        owner_id: Owner whose Drive is scanned.
        job_type: Kind of scan.
        config: Enumeration parameters.

    Returns:
        The stored job.

    Raises:
        ValueError: If owner_id is empty.
    """
    if not owner_id or not owner_id.strip():
        raise ValueError("owner_id must not be empty")

    now = _now()
    job = ScanJob(
        id=str(uuid.uuid4()),
        owner_id=owner_id.strip(),
        status=ScanStatus.PENDING,
        job_type=job_type,
        progress=ScanProgress(current_step="Queued"),
        config=config or ScanJobConfig(),
        created_at=now,
        updated_at=now,
    )
    queries.insert_job(conn, job)
    conn.commit()
    logger.info("Created %s job %s for owner %s", job_type.value, job.id, job.owner_id)
    return job


def claim_job(
    conn: sqlite3.Connection,
    job_id: str,
    worker_id: str,
    progress: ScanProgress | None = None,
) -> bool:
    """Atomically mark a job running for this worker.

    Uses BEGIN IMMEDIATE so the check and the write happen under one write
    lock. Succeeds for a pending job, or for a job already running under
    the same worker (re-entry on retry).

    Args:
        conn: Database connection.
        job_id: Job UUID.
        worker_id: Identifier of the claiming worker.
        progress: Progress document to store with the claim.

    Returns:
        True if this worker now owns the job.

    Raises:
        sqlite3.OperationalError: On lock contention (callers may retry).
    """
    if progress is None:
        progress = ProgressTracker().initializing()

    try:
        conn.execute("BEGIN IMMEDIATE")
        claimed = queries.claim_job(conn, job_id, worker_id, progress, _now())
        conn.execute("COMMIT")
    except sqlite3.OperationalError as e:
        _rollback(conn)
        error_msg = str(e).casefold()
        if "locked" in error_msg or "busy" in error_msg:
            logger.warning("Lock contention while claiming job %s: %s", job_id, e)
        else:
            logger.error("Database error while claiming job %s: %s", job_id, e)
        raise
    except sqlite3.DatabaseError as e:
        _rollback(conn)
        logger.error("Database error while claiming job %s: %s", job_id, e)
        raise

    if claimed:
        logger.debug("Worker %s claimed job %s", worker_id, job_id)
    return claimed


def cancel_job(conn: sqlite3.Connection, job_id: str) -> ScanJob:
    """Cancel a job.

    A pending job becomes failed immediately. A running job is flagged
    ``cancelled``; its worker observes the flag before the next page and
    writes the terminal state. Terminal jobs are left unchanged.

    Args:
        conn: Database connection.
        job_id: Job UUID.

    Returns:
        The job as stored after the cancel.

    Raises:
        JobNotFoundError: If the job does not exist.
    """
    job = queries.get_job(conn, job_id)
    if job is None:
        raise JobNotFoundError(job_id, "cancel")

    now = _now()
    if job.status == ScanStatus.PENDING:
        tracker = ProgressTracker(job.progress)
        changed = queries.fail_job(
            conn,
            job_id,
            CANCELLED_MESSAGE,
            {"cancelled": True, "totalAttempts": 0, "finalError": CANCELLED_MESSAGE},
            tracker.failed(CANCELLED_MESSAGE),
            now,
            only_if_statuses=[ScanStatus.PENDING],
        )
    elif job.status == ScanStatus.RUNNING:
        changed = queries.request_job_cancel(conn, job_id, now)
    else:
        changed = False
    conn.commit()

    if changed:
        logger.info("Cancelled job %s (was %s)", job_id, job.status.value)
    else:
        logger.info("Job %s not cancelled (status %s)", job_id, job.status.value)

    return queries.get_job(conn, job_id) or job


def get_queue_stats(conn: sqlite3.Connection) -> dict[str, int]:
    """Get job counts for every status.

    Returns:
        Dictionary with a count per status value plus ``total``.
    """
    counts = queries.get_job_status_counts(conn)
    stats = {status.value: counts.get(status.value, 0) for status in ScanStatus}
    stats["total"] = sum(stats.values())
    return stats
