"""Tests for database schema creation and version checks."""

import sqlite3

import pytest

from drivescan.db.schema import (
    SCHEMA_VERSION,
    create_schema,
    get_schema_version,
    initialize_database,
)


@pytest.fixture
def raw_conn():
    conn = sqlite3.connect(":memory:")
    yield conn
    conn.close()


class TestInitializeDatabase:
    """Tests for initialize_database."""

    def test_creates_all_tables(self, raw_conn):
        """All tables exist after initialization."""
        initialize_database(raw_conn)

        tables = {
            row[0]
            for row in raw_conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )
        }
        assert {"_meta", "scan_jobs", "file_index", "drive_credentials"} <= tables

    def test_records_schema_version(self, raw_conn):
        """The schema version is stored in _meta."""
        initialize_database(raw_conn)

        assert get_schema_version(raw_conn) == SCHEMA_VERSION

    def test_is_idempotent(self, raw_conn):
        """Running initialization twice keeps the schema intact."""
        initialize_database(raw_conn)
        initialize_database(raw_conn)

        assert get_schema_version(raw_conn) == SCHEMA_VERSION

    def test_rejects_newer_schema(self, raw_conn):
        """A database written by a newer version is refused."""
        create_schema(raw_conn)
        raw_conn.execute(
            "UPDATE _meta SET value = ? WHERE key = 'schema_version'",
            (str(SCHEMA_VERSION + 1),),
        )
        raw_conn.commit()

        with pytest.raises(RuntimeError, match="newer"):
            initialize_database(raw_conn)

    def test_version_is_none_before_creation(self, raw_conn):
        """An empty database has no schema version."""
        assert get_schema_version(raw_conn) is None

    def test_status_check_constraint(self, raw_conn):
        """Unknown job statuses are rejected by the schema."""
        initialize_database(raw_conn)

        with pytest.raises(sqlite3.IntegrityError):
            raw_conn.execute(
                """
                INSERT INTO scan_jobs (id, owner_id, status, job_type,
                    progress_json, config_json, created_at, updated_at)
                VALUES ('j1', 'o1', 'chained', 'drive_scan', '{}', '{}',
                    '2024-01-01', '2024-01-01')
                """
            )
