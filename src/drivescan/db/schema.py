"""Database schema definition and initialization for drivescan.

This module contains the schema DDL and the initialization entry point.
Tables:
- scan_jobs: one row per enumeration request and its lifecycle
- file_index: one row per (owner, remote file) pair
- drive_credentials: stored refresh credentials used by the token provider
"""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS _meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scan_jobs (
    id TEXT PRIMARY KEY,
    owner_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    job_type TEXT NOT NULL DEFAULT 'drive_scan',

    -- Embedded documents (JSON, camelCase keys)
    progress_json TEXT,
    config_json TEXT,
    results_json TEXT,
    error_details_json TEXT,

    -- Timing
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,

    -- Outcome
    error_message TEXT,

    -- Claim owner while running
    worker_id TEXT,

    CONSTRAINT valid_status CHECK (
        status IN ('pending', 'running', 'completed', 'failed', 'cancelled')
    )
);

CREATE INDEX IF NOT EXISTS idx_scan_jobs_status ON scan_jobs(status);
CREATE INDEX IF NOT EXISTS idx_scan_jobs_owner ON scan_jobs(owner_id);
CREATE INDEX IF NOT EXISTS idx_scan_jobs_created ON scan_jobs(created_at);
CREATE INDEX IF NOT EXISTS idx_scan_jobs_completed ON scan_jobs(completed_at);

CREATE TABLE IF NOT EXISTS file_index (
    id TEXT PRIMARY KEY,  -- "<owner_id>_<file_id>"
    owner_id TEXT NOT NULL,
    file_id TEXT NOT NULL,
    name TEXT NOT NULL,
    mime_type TEXT NOT NULL,
    size INTEGER NOT NULL DEFAULT 0,
    modified_time TEXT NOT NULL,
    parent_id TEXT,
    checksum TEXT,
    version INTEGER NOT NULL DEFAULT 1,
    last_scan_id TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_file_index_owner ON file_index(owner_id);
CREATE INDEX IF NOT EXISTS idx_file_index_owner_size ON file_index(owner_id, size);

CREATE TABLE IF NOT EXISTS drive_credentials (
    owner_id TEXT PRIMARY KEY,
    refresh_token TEXT NOT NULL,
    scopes_json TEXT,
    updated_at TEXT NOT NULL
);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the database schema if it doesn't exist.

    Args:
        conn: An open database connection.
    """
    conn.executescript(SCHEMA_SQL)

    conn.execute(
        "INSERT OR IGNORE INTO _meta (key, value) VALUES ('schema_version', ?)",
        (str(SCHEMA_VERSION),),
    )
    # executescript() commits implicitly; the INSERT opens a new transaction
    # that must be committed before claim_job() can BEGIN IMMEDIATE.
    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Get the current schema version from the database.

    Args:
        conn: An open database connection.

    Returns:
        The schema version number, or None if not set.
    """
    try:
        cursor = conn.execute("SELECT value FROM _meta WHERE key = 'schema_version'")
        row = cursor.fetchone()
        return int(row[0]) if row else None
    except sqlite3.OperationalError:
        # Table doesn't exist
        return None


def initialize_database(conn: sqlite3.Connection) -> None:
    """Initialize the database with schema, creating tables if needed.

    Args:
        conn: An open database connection.

    Raises:
        RuntimeError: If the database was written by a newer schema version.
    """
    current_version = get_schema_version(conn)

    if current_version is None:
        create_schema(conn)
    elif current_version > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current_version} is newer than "
            f"supported version {SCHEMA_VERSION}"
        )
