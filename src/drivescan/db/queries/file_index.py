"""File index operations for the drivescan database.

Entries are keyed by "<owner_id>_<file_id>" and upserted with merge
semantics: optional fields missing from a newer observation keep their
stored value, and the first-seen ``created_at`` is never overwritten.
"""

import sqlite3
from collections.abc import Sequence

from drivescan.db.types import FileIndexEntry

from .helpers import FILE_INDEX_COLUMNS, _row_to_file_index_entry


def get_existing_index_ids(conn: sqlite3.Connection, ids: Sequence[str]) -> set[str]:
    """Return the subset of the given index IDs that already exist."""
    if not ids:
        return set()
    placeholders = ",".join("?" * len(ids))
    cursor = conn.execute(
        f"SELECT id FROM file_index WHERE id IN ({placeholders})",
        list(ids),
    )
    return {row[0] for row in cursor.fetchall()}


def upsert_file_index_batch(
    conn: sqlite3.Connection,
    entries: Sequence[FileIndexEntry],
    now: str,
) -> tuple[int, int]:
    """Insert or merge a batch of index entries.

    Args:
        conn: Database connection.
        entries: Entries to upsert. IDs must be unique within the batch.
        now: Current timestamp (ISO-8601 UTC).

    Returns:
        Tuple of (created, updated) counts.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    existing = get_existing_index_ids(conn, [entry.id for entry in entries])

    conn.executemany(
        """
        INSERT INTO file_index (
            id, owner_id, file_id, name, mime_type, size, modified_time,
            parent_id, checksum, version, last_scan_id, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            name = excluded.name,
            mime_type = excluded.mime_type,
            size = excluded.size,
            modified_time = excluded.modified_time,
            parent_id = COALESCE(excluded.parent_id, file_index.parent_id),
            checksum = COALESCE(excluded.checksum, file_index.checksum),
            version = excluded.version,
            last_scan_id = excluded.last_scan_id,
            updated_at = excluded.updated_at
        """,
        [
            (
                entry.id,
                entry.owner_id,
                entry.file_id,
                entry.name,
                entry.mime_type,
                entry.size,
                entry.modified_time,
                entry.parent_id,
                entry.checksum,
                entry.version,
                entry.last_scan_id,
                now,
                now,
            )
            for entry in entries
        ],
    )

    created = sum(1 for entry in entries if entry.id not in existing)
    return created, len(entries) - created


def get_file_index(
    conn: sqlite3.Connection, owner_id: str, limit: int | None = None
) -> list[FileIndexEntry]:
    """Get index entries for an owner ordered by name.

    Args:
        conn: Database connection.
        owner_id: Owner whose entries to return.
        limit: Maximum number of entries to return.

    Returns:
        List of FileIndexEntry objects.
    """
    query = f"""
        SELECT {FILE_INDEX_COLUMNS} FROM file_index
        WHERE owner_id = ?
        ORDER BY name ASC, id ASC
    """
    if limit is not None:
        if not isinstance(limit, int) or limit <= 0:
            raise ValueError(f"Invalid limit value: {limit}")
        cursor = conn.execute(query + " LIMIT ?", (owner_id, limit))
    else:
        cursor = conn.execute(query, (owner_id,))
    return [_row_to_file_index_entry(row) for row in cursor.fetchall()]


def get_file_index_entry(
    conn: sqlite3.Connection, owner_id: str, file_id: str
) -> FileIndexEntry | None:
    cursor = conn.execute(
        f"SELECT {FILE_INDEX_COLUMNS} FROM file_index WHERE id = ?",
        (FileIndexEntry.make_id(owner_id, file_id),),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return _row_to_file_index_entry(row)


def count_file_index(conn: sqlite3.Connection, owner_id: str | None = None) -> int:
    """Count index entries, optionally for a single owner."""
    if owner_id is None:
        cursor = conn.execute("SELECT COUNT(*) FROM file_index")
    else:
        cursor = conn.execute(
            "SELECT COUNT(*) FROM file_index WHERE owner_id = ?", (owner_id,)
        )
    return cursor.fetchone()[0]
