"""Tests for file index and credential queries."""

from drivescan.db.queries import (
    count_file_index,
    delete_credentials,
    get_credentials,
    get_file_index,
    get_file_index_entry,
    save_credentials,
    upsert_file_index_batch,
)
from drivescan.db.types import DriveCredentials, FileIndexEntry


def _entry(file_id: str, owner_id: str = "owner-1", **overrides) -> FileIndexEntry:
    values = {
        "id": FileIndexEntry.make_id(owner_id, file_id),
        "owner_id": owner_id,
        "file_id": file_id,
        "name": f"{file_id}.txt",
        "mime_type": "text/plain",
        "size": 10,
        "modified_time": "2024-01-01T00:00:00Z",
        "parent_id": "root",
        "checksum": f"md5-{file_id}",
        "last_scan_id": "scan-1",
    }
    values.update(overrides)
    return FileIndexEntry(**values)


class TestUpsertFileIndexBatch:
    """Tests for upsert_file_index_batch."""

    def test_counts_created_and_updated(self, db_conn):
        created, updated = upsert_file_index_batch(
            db_conn, [_entry("a"), _entry("b")], "t1"
        )
        assert (created, updated) == (2, 0)

        created, updated = upsert_file_index_batch(
            db_conn, [_entry("b"), _entry("c")], "t2"
        )
        assert (created, updated) == (1, 1)
        assert count_file_index(db_conn) == 3

    def test_merge_keeps_optional_fields_and_created_at(self, db_conn):
        """Missing checksum and parent keep the stored values."""
        upsert_file_index_batch(db_conn, [_entry("a")], "t1")
        upsert_file_index_batch(
            db_conn,
            [
                _entry(
                    "a",
                    name="renamed.txt",
                    checksum=None,
                    parent_id=None,
                    last_scan_id="scan-2",
                )
            ],
            "t2",
        )

        stored = get_file_index_entry(db_conn, "owner-1", "a")
        assert stored.name == "renamed.txt"
        assert stored.checksum == "md5-a"
        assert stored.parent_id == "root"
        assert stored.last_scan_id == "scan-2"
        assert stored.created_at == "t1"
        assert stored.updated_at == "t2"

    def test_ids_are_scoped_by_owner(self, db_conn):
        """The same remote file under two owners yields two entries."""
        upsert_file_index_batch(
            db_conn, [_entry("a", owner_id="x"), _entry("a", owner_id="y")], "t1"
        )

        assert count_file_index(db_conn, "x") == 1
        assert count_file_index(db_conn, "y") == 1
        assert get_file_index_entry(db_conn, "x", "a").id == "x_a"


class TestGetFileIndex:
    """Tests for get_file_index."""

    def test_ordered_by_name_with_limit(self, db_conn):
        upsert_file_index_batch(
            db_conn,
            [_entry("b", name="b.txt"), _entry("a", name="a.txt"), _entry("c")],
            "t1",
        )

        entries = get_file_index(db_conn, "owner-1", limit=2)

        assert [e.name for e in entries] == ["a.txt", "b.txt"]

    def test_missing_entry(self, db_conn):
        assert get_file_index_entry(db_conn, "owner-1", "nope") is None


class TestCredentials:
    """Tests for stored Drive credentials."""

    def test_save_get_replace_delete(self, db_conn):
        save_credentials(
            db_conn, DriveCredentials("o1", "rt-1", ["scope-a"], updated_at="t1")
        )
        save_credentials(
            db_conn, DriveCredentials("o1", "rt-2", ["scope-b"], updated_at="t2")
        )

        stored = get_credentials(db_conn, "o1")
        assert stored.refresh_token == "rt-2"
        assert stored.scopes == ["scope-b"]

        assert delete_credentials(db_conn, "o1")
        assert get_credentials(db_conn, "o1") is None
        assert not delete_credentials(db_conn, "o1")
