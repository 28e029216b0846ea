"""Database query operations package.

Functions are organized by table but re-exported here for convenience.

Module organization:
- helpers.py: Row mapping functions and column lists
- jobs.py: Scan job lifecycle operations
- file_index.py: File index upserts and lookups
- credentials.py: Stored Drive refresh credentials

Usage:
    from drivescan.db.queries import get_job, upsert_file_index_batch
"""

# Credential operations
from .credentials import delete_credentials, get_credentials, save_credentials

# File index operations
from .file_index import (
    count_file_index,
    get_existing_index_ids,
    get_file_index,
    get_file_index_entry,
    upsert_file_index_batch,
)

# Job operations
from .jobs import (
    claim_job,
    complete_job,
    delete_jobs,
    fail_job,
    get_job,
    get_job_status_counts,
    get_jobs_by_id_prefix,
    get_jobs_filtered,
    get_pending_jobs,
    insert_job,
    request_job_cancel,
    select_expired_jobs,
    select_active_jobs_created_before,
    update_job_progress,
)

__all__ = [
    # Credentials
    "delete_credentials",
    "get_credentials",
    "save_credentials",
    # File index
    "count_file_index",
    "get_existing_index_ids",
    "get_file_index",
    "get_file_index_entry",
    "upsert_file_index_batch",
    # Jobs
    "claim_job",
    "complete_job",
    "delete_jobs",
    "fail_job",
    "get_job",
    "get_job_status_counts",
    "get_jobs_by_id_prefix",
    "get_jobs_filtered",
    "get_pending_jobs",
    "insert_job",
    "request_job_cancel",
    "select_expired_jobs",
    "select_active_jobs_created_before",
    "update_job_progress",
]
