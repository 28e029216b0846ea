"""Database module for drivescan.

This module provides the public API for database operations. Types,
connection helpers and schema entry points are re-exported here; query
functions live in drivescan.db.queries.

Module organization:
- types.py: Enums, dataclasses, and document helpers
- connection.py: Connection factory and lock-retry helper
- schema.py: Schema creation and version check
- queries/: CRUD operations per table
"""

from .connection import (
    DatabaseLockedError,
    execute_with_retry,
    get_connection,
    get_default_db_path,
)
from .schema import SCHEMA_VERSION, initialize_database
from .types import (
    TERMINAL_STATUSES,
    DriveCredentials,
    FileIndexEntry,
    ScanJob,
    ScanJobConfig,
    ScanProgress,
    ScanStatus,
    ScanType,
)

__all__ = [
    "DatabaseLockedError",
    "execute_with_retry",
    "get_connection",
    "get_default_db_path",
    "SCHEMA_VERSION",
    "initialize_database",
    "TERMINAL_STATUSES",
    "DriveCredentials",
    "FileIndexEntry",
    "ScanJob",
    "ScanJobConfig",
    "ScanProgress",
    "ScanStatus",
    "ScanType",
]
