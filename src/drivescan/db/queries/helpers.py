"""Shared helper functions for database queries.

This module provides utility functions used across multiple query modules:
- Row mapping functions to convert database rows to typed dataclasses
- The column lists selected by the job queries
"""

import json
import sqlite3

from drivescan.db.types import (
    DriveCredentials,
    FileIndexEntry,
    ScanJob,
    ScanJobConfig,
    ScanProgress,
    ScanStatus,
    ScanType,
    loads_document,
)

JOB_COLUMNS = """
    id, owner_id, status, job_type,
    progress_json, config_json, results_json, error_details_json,
    created_at, updated_at, started_at, completed_at,
    error_message, worker_id
"""

FILE_INDEX_COLUMNS = """
    id, owner_id, file_id, name, mime_type, size, modified_time,
    parent_id, checksum, version, last_scan_id, created_at, updated_at
"""


def _row_to_job(row: sqlite3.Row) -> ScanJob:
    """Convert a database row to ScanJob using named columns.

    Args:
        row: sqlite3.Row from a SELECT query on the scan_jobs table.

    Returns:
        ScanJob instance populated from the row.
    """
    return ScanJob(
        id=row["id"],
        owner_id=row["owner_id"],
        status=ScanStatus(row["status"]),
        job_type=ScanType(row["job_type"]),
        progress=ScanProgress.from_dict(loads_document(row["progress_json"])),
        config=ScanJobConfig.from_dict(loads_document(row["config_json"])),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        results=loads_document(row["results_json"]),
        error=row["error_message"],
        error_details=loads_document(row["error_details_json"]),
        worker_id=row["worker_id"],
    )


def _row_to_file_index_entry(row: sqlite3.Row) -> FileIndexEntry:
    """Convert a database row to FileIndexEntry using named columns."""
    return FileIndexEntry(
        id=row["id"],
        owner_id=row["owner_id"],
        file_id=row["file_id"],
        name=row["name"],
        mime_type=row["mime_type"],
        size=row["size"],
        modified_time=row["modified_time"],
        parent_id=row["parent_id"],
        checksum=row["checksum"],
        version=row["version"],
        last_scan_id=row["last_scan_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_credentials(row: sqlite3.Row) -> DriveCredentials:
    scopes = json.loads(row["scopes_json"]) if row["scopes_json"] else []
    return DriveCredentials(
        owner_id=row["owner_id"],
        refresh_token=row["refresh_token"],
        scopes=scopes,
        updated_at=row["updated_at"],
    )
