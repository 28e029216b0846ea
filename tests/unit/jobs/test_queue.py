"""Unit tests for scan job queue operations."""

import sqlite3

import pytest

from drivescan.db.connection import get_connection
from drivescan.db.queries import get_job, insert_job
from drivescan.db.types import ScanJobConfig, ScanStatus, ScanType
from drivescan.jobs.exceptions import JobNotFoundError
from drivescan.jobs.queue import (
    CANCELLED_MESSAGE,
    cancel_job,
    claim_job,
    create_scan_job,
    get_queue_stats,
)


class TestCreateScanJob:
    """Tests for create_scan_job."""

    def test_creates_pending_job(self, db_conn):
        config = ScanJobConfig(include_trashed=True)

        job = create_scan_job(db_conn, "owner-1", ScanType.FULL_ANALYSIS, config)

        stored = get_job(db_conn, job.id)
        assert stored.status == ScanStatus.PENDING
        assert stored.job_type == ScanType.FULL_ANALYSIS
        assert stored.config == config
        assert stored.progress.current_step == "Queued"
        assert stored.progress.percentage == 0
        assert stored.started_at is None

    @pytest.mark.parametrize("owner_id", ["", "   "])
    def test_rejects_empty_owner(self, db_conn, owner_id):
        with pytest.raises(ValueError, match="owner_id"):
            create_scan_job(db_conn, owner_id)


class TestClaimJob:
    """Tests for the transactional claim."""

    def test_claims_pending_job(self, db_conn, stored_job):
        job = stored_job()

        assert claim_job(db_conn, job.id, "worker-a")

        stored = get_job(db_conn, job.id)
        assert stored.status == ScanStatus.RUNNING
        assert stored.worker_id == "worker-a"
        assert stored.progress.current_step == "Initializing scan..."

    def test_second_worker_loses(self, db_conn, stored_job):
        """At most one worker runs a job."""
        job = stored_job()

        assert claim_job(db_conn, job.id, "worker-a")
        assert not claim_job(db_conn, job.id, "worker-b")
        assert get_job(db_conn, job.id).worker_id == "worker-a"

    def test_reentry_by_same_worker(self, db_conn, stored_job):
        job = stored_job()

        assert claim_job(db_conn, job.id, "worker-a")
        assert claim_job(db_conn, job.id, "worker-a")

    def test_unknown_job_is_not_claimed(self, db_conn):
        assert not claim_job(db_conn, "missing", "worker-a")

    def test_claim_between_connections(self, db_path, make_job):
        """Two connections racing for one job: exactly one wins."""
        job = make_job()
        with get_connection(db_path) as conn_a, get_connection(db_path) as conn_b:
            insert_job(conn_a, job)
            conn_a.commit()

            results = [
                claim_job(conn_a, job.id, "worker-a"),
                claim_job(conn_b, job.id, "worker-b"),
            ]

        assert results == [True, False]

    def test_lock_errors_propagate(self, db_conn, stored_job, monkeypatch):
        job = stored_job()

        def locked(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr("drivescan.jobs.queue.queries.claim_job", locked)

        with pytest.raises(sqlite3.OperationalError):
            claim_job(db_conn, job.id, "worker-a")
        # The failed claim left no transaction open
        assert not db_conn.in_transaction


class TestCancelJob:
    """Tests for cancel_job."""

    def test_pending_job_fails_immediately(self, db_conn, stored_job):
        job = stored_job()

        result = cancel_job(db_conn, job.id)

        assert result.status == ScanStatus.FAILED
        assert result.error == CANCELLED_MESSAGE
        assert result.error_details["cancelled"] is True
        assert result.completed_at is not None
        assert result.progress.current_step == f"Scan failed: {CANCELLED_MESSAGE}"

    def test_running_job_is_flagged(self, db_conn, stored_job):
        """A running job is left for its worker to finalize."""
        job = stored_job(status=ScanStatus.RUNNING, worker_id="worker-a")

        result = cancel_job(db_conn, job.id)

        assert result.status == ScanStatus.CANCELLED
        assert result.completed_at is None
        assert not result.is_terminal

    @pytest.mark.parametrize("status", [ScanStatus.COMPLETED, ScanStatus.FAILED])
    def test_terminal_job_unchanged(self, db_conn, stored_job, status):
        job = stored_job(status=status, completed_at="2024-01-01T00:00:00+00:00")

        result = cancel_job(db_conn, job.id)

        assert result.status == status

    def test_missing_job_raises(self, db_conn):
        with pytest.raises(JobNotFoundError, match="Cannot cancel job missing"):
            cancel_job(db_conn, "missing")


class TestGetQueueStats:
    def test_counts_every_status(self, db_conn, stored_job):
        stored_job()
        stored_job(status=ScanStatus.RUNNING)
        stored_job(status=ScanStatus.FAILED)

        stats = get_queue_stats(db_conn)

        assert stats == {
            "pending": 1,
            "running": 1,
            "completed": 0,
            "failed": 1,
            "cancelled": 0,
            "total": 3,
        }
