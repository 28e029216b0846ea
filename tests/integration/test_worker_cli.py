"""Integration tests for the worker CLI command."""

import pytest

from drivescan.db.queries import get_job
from drivescan.db.types import ScanStatus
from drivescan.drive.models import DrivePage

pytestmark = pytest.mark.integration


class TestWorkerCommand:
    """Tests for 'drivescan worker'."""

    def test_processes_queue(
        self, invoke, db_conn, stored_job, fake_drive, make_entries
    ):
        first = stored_job(created_at="2024-01-01T00:00:00+00:00")
        second = stored_job(created_at="2024-01-01T00:01:00+00:00", owner_id="owner-2")
        fake_drive.script = [
            DrivePage(make_entries(3), None),
            DrivePage(make_entries(2, prefix="other"), None),
        ]

        result = invoke("worker", "--no-purge")

        assert result.exit_code == 0, result.output
        assert "Processed 2 job(s)." in result.output
        assert get_job(db_conn, first.id).status == ScanStatus.COMPLETED
        assert get_job(db_conn, second.id).results["filesFound"] == 2

    def test_max_jobs(self, invoke, db_conn, stored_job, fake_drive):
        jobs = [stored_job(), stored_job()]
        fake_drive.script = [DrivePage([], None)]

        result = invoke("worker", "--max-jobs", "1", "--no-purge")

        assert "Processed 1 job(s)." in result.output
        statuses = sorted(get_job(db_conn, job.id).status.value for job in jobs)
        assert statuses == ["completed", "pending"]

    def test_empty_queue(self, invoke):
        result = invoke("worker")

        assert result.exit_code == 0
        assert "Processed 0 job(s)." in result.output

    def test_rejects_non_positive_poll_interval(self, invoke):
        result = invoke("worker", "--poll-interval", "0")

        assert result.exit_code == 2
