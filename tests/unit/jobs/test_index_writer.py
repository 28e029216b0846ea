"""Tests for the batched file index writer."""

import sqlite3
from unittest.mock import patch

import pytest

from drivescan.db.queries import (
    count_file_index,
    get_file_index_entry,
    upsert_file_index_batch,
)
from drivescan.drive.models import DriveEntry
from drivescan.jobs.exceptions import IndexWriteError
from drivescan.jobs.index_writer import IndexWriter, IndexWriteResult


class TestIndexWriter:
    """Tests for IndexWriter.upsert."""

    def test_creates_entries(self, db_conn, make_entries):
        writer = IndexWriter(db_conn, batch_size=100)

        result = writer.upsert("owner-1", make_entries(250), "scan-1")

        assert result == IndexWriteResult(created=250, updated=0, deleted=0)
        assert count_file_index(db_conn, "owner-1") == 250

    def test_second_scan_updates(self, db_conn, make_entries):
        writer = IndexWriter(db_conn, batch_size=100)
        writer.upsert("owner-1", make_entries(10), "scan-1")

        result = writer.upsert("owner-1", make_entries(15), "scan-2")

        assert (result.created, result.updated) == (5, 10)
        entry = get_file_index_entry(db_conn, "owner-1", "file-0")
        assert entry.last_scan_id == "scan-2"

    def test_repeated_entry_counts_once(self, db_conn):
        """An entry listed twice keeps its last observation."""
        first = DriveEntry(id="f1", name="old.txt", mime_type="text/plain", size=1)
        again = DriveEntry(id="f1", name="new.txt", mime_type="text/plain", size=2)

        result = IndexWriter(db_conn).upsert("owner-1", [first, again], "scan-1")

        assert result.created == 1
        stored = get_file_index_entry(db_conn, "owner-1", "f1")
        assert stored.name == "new.txt"
        assert stored.size == 2

    def test_failed_batch_carries_partial_result(self, db_conn, make_entries):
        """Batches committed before a failure stay; the error reports them."""
        writer = IndexWriter(db_conn, batch_size=2)
        calls = []

        def flaky(conn, batch, now):
            calls.append(len(batch))
            if len(calls) == 2:
                raise sqlite3.OperationalError("disk I/O error")
            return upsert_file_index_batch(conn, batch, now)

        with patch("drivescan.jobs.index_writer.upsert_file_index_batch", flaky):
            with pytest.raises(IndexWriteError) as exc_info:
                writer.upsert("owner-1", make_entries(5), "scan-1")

        assert exc_info.value.result.created == 2
        assert exc_info.value.retryable
        assert count_file_index(db_conn, "owner-1") == 2

    def test_resume_skips_committed_rows(self, db_conn, make_entries):
        writer = IndexWriter(db_conn, batch_size=2)
        entries = make_entries(5)
        calls = []

        def flaky(conn, batch, now):
            calls.append(len(batch))
            if len(calls) == 2:
                raise sqlite3.OperationalError("disk I/O error")
            return upsert_file_index_batch(conn, batch, now)

        with patch("drivescan.jobs.index_writer.upsert_file_index_batch", flaky):
            with pytest.raises(IndexWriteError) as exc_info:
                writer.upsert("owner-1", entries, "scan-1")

        partial = exc_info.value.result
        result = writer.upsert("owner-1", entries, "scan-1", resume_from=partial)

        assert (result.created, result.updated) == (5, 0)
        assert result.rows_written == 5
        assert partial.created == 2
        assert count_file_index(db_conn, "owner-1") == 5

    def test_result_to_dict(self):
        assert IndexWriteResult(1, 2).to_dict() == {
            "created": 1,
            "updated": 2,
            "deleted": 0,
        }

    def test_rejects_bad_batch_size(self, db_conn):
        with pytest.raises(ValueError):
            IndexWriter(db_conn, batch_size=0)
