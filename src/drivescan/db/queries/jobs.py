"""Scan job CRUD operations for the drivescan database.

This module contains database query functions for scan job management:
- Job insert, get, filter and delete operations
- Conditional lifecycle writes (claim, progress, complete, fail, cancel)
- Selection of expired and timed-out jobs for the maintenance sweeps

Every lifecycle write is a conditional UPDATE whose WHERE clause encodes the
allowed transition, so callers learn from the returned bool whether they
still own the job.
"""

import sqlite3
from collections.abc import Iterable
from typing import Any

from drivescan.db.types import (
    ScanJob,
    ScanProgress,
    ScanStatus,
    dumps_document,
)

from .helpers import JOB_COLUMNS, _row_to_job

MAX_QUERY_LIMIT = 10000


def _validate_limit(limit: int | None) -> None:
    if limit is None:
        return
    if not isinstance(limit, int) or limit <= 0 or limit > MAX_QUERY_LIMIT:
        raise ValueError(f"Invalid limit value: {limit}")


def insert_job(conn: sqlite3.Connection, job: ScanJob) -> str:
    """Insert a new scan job record.

    Args:
        conn: Database connection.
        job: Job to insert.

    Returns:
        The ID of the inserted job.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    conn.execute(
        """
        INSERT INTO scan_jobs (
            id, owner_id, status, job_type,
            progress_json, config_json, results_json, error_details_json,
            created_at, updated_at, started_at, completed_at,
            error_message, worker_id
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            job.id,
            job.owner_id,
            job.status.value,
            job.job_type.value,
            dumps_document(job.progress.to_dict()),
            dumps_document(job.config.to_dict()),
            dumps_document(job.results),
            dumps_document(job.error_details),
            job.created_at,
            job.updated_at,
            job.started_at,
            job.completed_at,
            job.error,
            job.worker_id,
        ),
    )
    return job.id


def get_job(conn: sqlite3.Connection, job_id: str) -> ScanJob | None:
    """Get a scan job by ID.

    Args:
        conn: Database connection.
        job_id: Job UUID.

    Returns:
        ScanJob if found, None otherwise.
    """
    cursor = conn.execute(
        f"SELECT {JOB_COLUMNS} FROM scan_jobs WHERE id = ?",
        (job_id,),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return _row_to_job(row)


def get_jobs_by_id_prefix(conn: sqlite3.Connection, prefix: str) -> list[ScanJob]:
    """Get jobs whose ID starts with the given prefix (newest first)."""
    escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    cursor = conn.execute(
        f"""
        SELECT {JOB_COLUMNS} FROM scan_jobs
        WHERE id LIKE ? ESCAPE '\\'
        ORDER BY created_at DESC
        """,
        (f"{escaped}%",),
    )
    return [_row_to_job(row) for row in cursor.fetchall()]


def get_jobs_filtered(
    conn: sqlite3.Connection,
    *,
    status: ScanStatus | None = None,
    owner_id: str | None = None,
    limit: int | None = None,
) -> list[ScanJob]:
    """Get jobs with optional status and owner filters.

    Args:
        conn: Database connection.
        status: Filter by job status (None = all statuses).
        owner_id: Filter by owner (None = all owners).
        limit: Maximum number of jobs to return.

    Returns:
        List of ScanJob objects, newest first.
    """
    _validate_limit(limit)

    conditions = []
    params: list[str | int] = []
    if status is not None:
        conditions.append("status = ?")
        params.append(status.value)
    if owner_id is not None:
        conditions.append("owner_id = ?")
        params.append(owner_id)

    query = f"SELECT {JOB_COLUMNS} FROM scan_jobs"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY created_at DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    cursor = conn.execute(query, params)
    return [_row_to_job(row) for row in cursor.fetchall()]


def get_pending_jobs(
    conn: sqlite3.Connection, limit: int | None = None
) -> list[ScanJob]:
    """Get pending jobs, oldest first.

    Args:
        conn: Database connection.
        limit: Maximum number of jobs to return.

    Returns:
        List of ScanJob objects.
    """
    _validate_limit(limit)
    query = f"""
        SELECT {JOB_COLUMNS} FROM scan_jobs
        WHERE status = 'pending'
        ORDER BY created_at ASC
    """
    if limit is not None:
        cursor = conn.execute(query + " LIMIT ?", (limit,))
    else:
        cursor = conn.execute(query)
    return [_row_to_job(row) for row in cursor.fetchall()]


def get_job_status_counts(conn: sqlite3.Connection) -> dict[str, int]:
    """Count jobs per status value."""
    cursor = conn.execute("SELECT status, COUNT(*) FROM scan_jobs GROUP BY status")
    return {row[0]: row[1] for row in cursor.fetchall()}


def claim_job(
    conn: sqlite3.Connection,
    job_id: str,
    worker_id: str,
    progress: ScanProgress,
    now: str,
) -> bool:
    """Mark a job running for the given worker, if it may be claimed.

    Succeeds when the job is pending, or already running under the same
    worker (re-entry on retry). ``started_at`` is only set if unset.

    Args:
        conn: Database connection.
        job_id: Job UUID.
        worker_id: Identifier of the claiming worker.
        progress: Progress document to store.
        now: Current timestamp (ISO-8601 UTC).

    Returns:
        True if the claim succeeded.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE scan_jobs
        SET status = 'running',
            worker_id = ?,
            started_at = COALESCE(started_at, ?),
            updated_at = ?,
            progress_json = ?
        WHERE id = ?
          AND completed_at IS NULL
          AND (status = 'pending' OR (status = 'running' AND worker_id = ?))
        """,
        (
            worker_id,
            now,
            now,
            dumps_document(progress.to_dict()),
            job_id,
            worker_id,
        ),
    )
    return cursor.rowcount > 0


def update_job_progress(
    conn: sqlite3.Connection,
    job_id: str,
    progress: ScanProgress,
    now: str,
) -> bool:
    """Store a job's progress document.

    Never changes status, and never touches a job that is already terminal.

    Args:
        conn: Database connection.
        job_id: Job UUID.
        progress: Progress document to store.
        now: Current timestamp (ISO-8601 UTC).

    Returns:
        True if job was updated, False if not found or terminal.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE scan_jobs SET progress_json = ?, updated_at = ?
        WHERE id = ? AND completed_at IS NULL
        """,
        (dumps_document(progress.to_dict()), now, job_id),
    )
    return cursor.rowcount > 0


def complete_job(
    conn: sqlite3.Connection,
    job_id: str,
    worker_id: str,
    results: dict[str, Any],
    progress: ScanProgress,
    now: str,
) -> bool:
    """Write the completed terminal state for a job the worker still owns.

    Returns:
        True if the job was completed, False if the claim was lost.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE scan_jobs
        SET status = 'completed',
            results_json = ?,
            progress_json = ?,
            error_message = NULL,
            error_details_json = NULL,
            completed_at = ?,
            updated_at = ?,
            worker_id = NULL
        WHERE id = ?
          AND status = 'running'
          AND worker_id = ?
          AND completed_at IS NULL
        """,
        (
            dumps_document(results),
            dumps_document(progress.to_dict()),
            now,
            now,
            job_id,
            worker_id,
        ),
    )
    return cursor.rowcount > 0


def fail_job(
    conn: sqlite3.Connection,
    job_id: str,
    error_message: str,
    error_details: dict[str, Any] | None,
    progress: ScanProgress | None,
    now: str,
    *,
    only_if_statuses: Iterable[ScanStatus] | None = None,
) -> bool:
    """Write the failed terminal state for a job that is not yet terminal.

    Args:
        conn: Database connection.
        job_id: Job UUID.
        error_message: Human-readable error.
        error_details: Structured failure details.
        progress: Progress document to store (None keeps the stored one).
        now: Current timestamp (ISO-8601 UTC).
        only_if_statuses: Additionally require the job to be in one of these
            statuses.

    Returns:
        True if the job was failed, False if not found or already terminal.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    query = """
        UPDATE scan_jobs
        SET status = 'failed',
            error_message = ?,
            error_details_json = ?,
            progress_json = COALESCE(?, progress_json),
            results_json = NULL,
            completed_at = ?,
            updated_at = ?,
            worker_id = NULL
        WHERE id = ? AND completed_at IS NULL
    """
    params: list[Any] = [
        error_message,
        dumps_document(error_details),
        dumps_document(progress.to_dict()) if progress is not None else None,
        now,
        now,
        job_id,
    ]
    if only_if_statuses is not None:
        values = [status.value for status in only_if_statuses]
        query += f" AND status IN ({','.join('?' * len(values))})"
        params.extend(values)

    cursor = conn.execute(query, params)
    return cursor.rowcount > 0


def request_job_cancel(conn: sqlite3.Connection, job_id: str, now: str) -> bool:
    """Flag a running job as cancelled so its worker stops at the next page.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        """
        UPDATE scan_jobs SET status = 'cancelled', updated_at = ?
        WHERE id = ? AND status = 'running' AND completed_at IS NULL
        """,
        (now, job_id),
    )
    return cursor.rowcount > 0


def delete_jobs(conn: sqlite3.Connection, job_ids: list[str]) -> int:
    """Delete jobs by ID.

    Returns:
        Number of jobs deleted.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    if not job_ids:
        return 0
    placeholders = ",".join("?" * len(job_ids))
    cursor = conn.execute(
        f"DELETE FROM scan_jobs WHERE id IN ({placeholders})",
        job_ids,
    )
    return cursor.rowcount


def select_expired_jobs(
    conn: sqlite3.Connection, completed_before: str, limit: int
) -> list[str]:
    """Select terminal jobs that completed before the cutoff, oldest first.

    Args:
        conn: Database connection.
        completed_before: ISO-8601 UTC cutoff.
        limit: Maximum number of IDs to return.

    Returns:
        List of job IDs.
    """
    _validate_limit(limit)
    cursor = conn.execute(
        """
        SELECT id FROM scan_jobs
        WHERE status IN ('completed', 'failed')
          AND completed_at IS NOT NULL
          AND completed_at < ?
        ORDER BY completed_at ASC
        LIMIT ?
        """,
        (completed_before, limit),
    )
    return [row[0] for row in cursor.fetchall()]


def select_active_jobs_created_before(
    conn: sqlite3.Connection, created_before: str
) -> list[str]:
    """Select running or cancel-requested jobs created before the cutoff."""
    cursor = conn.execute(
        """
        SELECT id FROM scan_jobs
        WHERE status IN ('running', 'cancelled')
          AND completed_at IS NULL
          AND created_at < ?
        ORDER BY created_at ASC
        """,
        (created_before,),
    )
    return [row[0] for row in cursor.fetchall()]
