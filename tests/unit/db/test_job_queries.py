"""Tests for scan job queries.

Lifecycle writes are conditional UPDATEs; these tests pin down which
transitions each one allows.
"""

from datetime import datetime, timedelta, timezone

import pytest

from drivescan.db.queries import (
    claim_job,
    complete_job,
    delete_jobs,
    fail_job,
    get_job,
    get_job_status_counts,
    get_jobs_by_id_prefix,
    get_jobs_filtered,
    get_pending_jobs,
    request_job_cancel,
    select_active_jobs_created_before,
    select_expired_jobs,
    update_job_progress,
)
from drivescan.db.types import ScanJobConfig, ScanProgress, ScanStatus

NOW = "2024-06-01T12:00:00+00:00"


def _ago(**kwargs) -> str:
    return (datetime.now(timezone.utc) - timedelta(**kwargs)).isoformat()


class TestInsertAndGet:
    """Tests for insert_job and get_job."""

    def test_round_trips_documents(self, db_conn, stored_job):
        """Embedded documents survive storage."""
        job = stored_job(
            config=ScanJobConfig(
                max_depth=3,
                include_trashed=True,
                root_folder_id="folder-1",
                file_types=("application/pdf",),
            ),
            progress=ScanProgress(current_step="Queued", cursor="c1"),
        )

        loaded = get_job(db_conn, job.id)

        assert loaded is not None
        assert loaded.config == job.config
        assert loaded.progress.cursor == "c1"
        assert loaded.status == ScanStatus.PENDING
        assert loaded.results is None

    def test_get_missing_job_returns_none(self, db_conn):
        assert get_job(db_conn, "missing") is None


class TestListing:
    """Tests for filtered and prefix lookups."""

    def test_filtered_newest_first(self, db_conn, stored_job):
        """Jobs are listed newest first."""
        old = stored_job(created_at=_ago(hours=2))
        new = stored_job(created_at=_ago(hours=1))

        jobs = get_jobs_filtered(db_conn)

        assert [j.id for j in jobs] == [new.id, old.id]

    def test_filtered_by_status_and_owner(self, db_conn, stored_job):
        stored_job(owner_id="a", status=ScanStatus.FAILED)
        wanted = stored_job(owner_id="b", status=ScanStatus.FAILED)
        stored_job(owner_id="b", status=ScanStatus.PENDING)

        jobs = get_jobs_filtered(db_conn, status=ScanStatus.FAILED, owner_id="b")

        assert [j.id for j in jobs] == [wanted.id]

    def test_filtered_rejects_bad_limit(self, db_conn):
        with pytest.raises(ValueError):
            get_jobs_filtered(db_conn, limit=0)

    def test_pending_oldest_first(self, db_conn, stored_job):
        """Pending jobs are returned in creation order."""
        new = stored_job(created_at=_ago(minutes=1))
        old = stored_job(created_at=_ago(minutes=5))
        stored_job(status=ScanStatus.RUNNING, created_at=_ago(minutes=10))

        jobs = get_pending_jobs(db_conn)

        assert [j.id for j in jobs] == [old.id, new.id]

    def test_prefix_lookup_escapes_wildcards(self, db_conn, stored_job):
        """LIKE wildcards in the prefix match literally."""
        stored_job(id="abc_123")
        stored_job(id="abcX123")

        assert [j.id for j in get_jobs_by_id_prefix(db_conn, "abc_")] == ["abc_123"]
        assert len(get_jobs_by_id_prefix(db_conn, "abc")) == 2

    def test_status_counts(self, db_conn, stored_job):
        stored_job()
        stored_job()
        stored_job(status=ScanStatus.FAILED)

        assert get_job_status_counts(db_conn) == {"pending": 2, "failed": 1}


class TestClaimJob:
    """Tests for the conditional claim."""

    def test_claims_pending_job(self, db_conn, stored_job):
        job = stored_job()

        assert claim_job(db_conn, job.id, "w1", ScanProgress(), NOW)

        loaded = get_job(db_conn, job.id)
        assert loaded.status == ScanStatus.RUNNING
        assert loaded.worker_id == "w1"
        assert loaded.started_at == NOW

    def test_same_worker_reclaims_and_keeps_started_at(self, db_conn, stored_job):
        """Re-entry by the same worker succeeds; started_at is set once."""
        job = stored_job()
        claim_job(db_conn, job.id, "w1", ScanProgress(), NOW)

        assert claim_job(db_conn, job.id, "w1", ScanProgress(), "2024-06-02")
        assert get_job(db_conn, job.id).started_at == NOW

    def test_other_worker_cannot_claim(self, db_conn, stored_job):
        job = stored_job()
        claim_job(db_conn, job.id, "w1", ScanProgress(), NOW)

        assert not claim_job(db_conn, job.id, "w2", ScanProgress(), NOW)
        assert get_job(db_conn, job.id).worker_id == "w1"

    @pytest.mark.parametrize(
        "status",
        [ScanStatus.COMPLETED, ScanStatus.FAILED, ScanStatus.CANCELLED],
    )
    def test_cannot_claim_non_claimable(self, db_conn, stored_job, status):
        job = stored_job(status=status)

        assert not claim_job(db_conn, job.id, "w1", ScanProgress(), NOW)


class TestTerminalWrites:
    """Tests for complete_job, fail_job and update_job_progress."""

    def test_complete_requires_owning_worker(self, db_conn, stored_job):
        job = stored_job(status=ScanStatus.RUNNING, worker_id="w1")

        assert not complete_job(db_conn, job.id, "w2", {}, ScanProgress(), NOW)
        assert complete_job(db_conn, job.id, "w1", {"x": 1}, ScanProgress(), NOW)

        loaded = get_job(db_conn, job.id)
        assert loaded.status == ScanStatus.COMPLETED
        assert loaded.results == {"x": 1}
        assert loaded.completed_at == NOW
        assert loaded.worker_id is None

    def test_complete_refused_after_cancel_request(self, db_conn, stored_job):
        """A cancel request makes the completion write a no-op."""
        job = stored_job(status=ScanStatus.RUNNING, worker_id="w1")
        request_job_cancel(db_conn, job.id, NOW)

        assert not complete_job(db_conn, job.id, "w1", {}, ScanProgress(), NOW)
        assert get_job(db_conn, job.id).status == ScanStatus.CANCELLED

    def test_fail_never_overwrites_terminal(self, db_conn, stored_job):
        """Once completed, a job cannot become failed."""
        job = stored_job(status=ScanStatus.RUNNING, worker_id="w1")
        complete_job(db_conn, job.id, "w1", {"ok": True}, ScanProgress(), NOW)

        assert not fail_job(db_conn, job.id, "boom", None, None, NOW)

        loaded = get_job(db_conn, job.id)
        assert loaded.status == ScanStatus.COMPLETED
        assert loaded.error is None

    def test_fail_keeps_progress_when_none(self, db_conn, stored_job):
        job = stored_job(progress=ScanProgress(current_step="Queued", percentage=42))

        assert fail_job(db_conn, job.id, "boom", {"a": 1}, None, NOW)

        loaded = get_job(db_conn, job.id)
        assert loaded.status == ScanStatus.FAILED
        assert loaded.error == "boom"
        assert loaded.error_details == {"a": 1}
        assert loaded.progress.percentage == 42

    def test_fail_only_if_statuses(self, db_conn, stored_job):
        job = stored_job(status=ScanStatus.RUNNING)

        assert not fail_job(
            db_conn,
            job.id,
            "boom",
            None,
            None,
            NOW,
            only_if_statuses=[ScanStatus.PENDING],
        )
        assert get_job(db_conn, job.id).status == ScanStatus.RUNNING

    def test_progress_refused_once_terminal(self, db_conn, stored_job):
        job = stored_job()
        fail_job(db_conn, job.id, "boom", None, None, NOW)

        assert not update_job_progress(
            db_conn, job.id, ScanProgress(percentage=50), NOW
        )

    def test_cancel_request_only_for_running(self, db_conn, stored_job):
        pending = stored_job()
        running = stored_job(status=ScanStatus.RUNNING)

        assert not request_job_cancel(db_conn, pending.id, NOW)
        assert request_job_cancel(db_conn, running.id, NOW)


class TestMaintenanceSelections:
    """Tests for the selections used by cleanup and timeout sweeps."""

    def test_expired_jobs_oldest_first_and_terminal_only(self, db_conn, stored_job):
        older = stored_job(status=ScanStatus.FAILED, completed_at=_ago(days=50))
        old = stored_job(status=ScanStatus.COMPLETED, completed_at=_ago(days=40))
        stored_job(status=ScanStatus.COMPLETED, completed_at=_ago(days=1))
        stored_job(status=ScanStatus.RUNNING)

        cutoff = _ago(days=30)

        assert select_expired_jobs(db_conn, cutoff, 10) == [older.id, old.id]
        assert select_expired_jobs(db_conn, cutoff, 1) == [older.id]

    def test_active_jobs_created_before(self, db_conn, stored_job):
        running = stored_job(status=ScanStatus.RUNNING, created_at=_ago(hours=1))
        cancelling = stored_job(status=ScanStatus.CANCELLED, created_at=_ago(hours=2))
        stored_job(status=ScanStatus.RUNNING, created_at=_ago(minutes=1))
        stored_job(status=ScanStatus.PENDING, created_at=_ago(hours=3))

        ids = select_active_jobs_created_before(db_conn, _ago(minutes=30))

        assert ids == [cancelling.id, running.id]

    def test_delete_jobs(self, db_conn, stored_job):
        a = stored_job()
        b = stored_job()

        assert delete_jobs(db_conn, [a.id]) == 1
        assert delete_jobs(db_conn, []) == 0
        assert get_job(db_conn, a.id) is None
        assert get_job(db_conn, b.id) is not None
