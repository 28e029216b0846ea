"""Stored Drive credential operations."""

import json
import sqlite3

from drivescan.db.types import DriveCredentials

from .helpers import _row_to_credentials


def get_credentials(conn: sqlite3.Connection, owner_id: str) -> DriveCredentials | None:
    """Get the stored refresh credential for an owner.

    Args:
        conn: Database connection.
        owner_id: Owner identifier.

    Returns:
        DriveCredentials if stored, None otherwise.
    """
    cursor = conn.execute(
        """
        SELECT owner_id, refresh_token, scopes_json, updated_at
        FROM drive_credentials WHERE owner_id = ?
        """,
        (owner_id,),
    )
    row = cursor.fetchone()
    if row is None:
        return None
    return _row_to_credentials(row)


def save_credentials(conn: sqlite3.Connection, credentials: DriveCredentials) -> None:
    """Insert or replace the refresh credential for an owner.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    conn.execute(
        """
        INSERT INTO drive_credentials (owner_id, refresh_token, scopes_json, updated_at)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(owner_id) DO UPDATE SET
            refresh_token = excluded.refresh_token,
            scopes_json = excluded.scopes_json,
            updated_at = excluded.updated_at
        """,
        (
            credentials.owner_id,
            credentials.refresh_token,
            json.dumps(credentials.scopes),
            credentials.updated_at,
        ),
    )


def delete_credentials(conn: sqlite3.Connection, owner_id: str) -> bool:
    """Remove the stored credential for an owner.

    Note:
        This function does NOT commit. Caller must manage transactions.
    """
    cursor = conn.execute(
        "DELETE FROM drive_credentials WHERE owner_id = ?", (owner_id,)
    )
    return cursor.rowcount > 0
