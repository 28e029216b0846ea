"""Scan job system for drivescan.

This module provides the scan job pipeline:
- exceptions: Custom exception types for scan job errors
- queue: Job creation, transactional claim, cancellation
- progress: Progress documents and their best-effort storage
- duplicates: Duplicate grouping of enumerated files
- index_writer: Batched file index upserts
- summary: Scan results, insights and summary text
- orchestrator: Runs one job through bounded retries to a terminal state
- timeout: Force-fails jobs that outlive their budget
- maintenance: Cleanup of expired terminal jobs
- worker: Polls the queue and runs pending jobs
"""

from drivescan.jobs.duplicates import DuplicateDetector
from drivescan.jobs.exceptions import (
    ConcurrentModificationError,
    IndexWriteError,
    JobNotFoundError,
    JobValidationError,
    PageFetchError,
    PersistenceError,
    ScanCancelledError,
    ScanFailedError,
    ScanJobError,
    ScanTimeoutError,
)
from drivescan.jobs.index_writer import IndexWriter, IndexWriteResult
from drivescan.jobs.maintenance import JobCleanup, purge_old_jobs
from drivescan.jobs.orchestrator import (
    ErrorClassification,
    RetryPolicy,
    ScanOrchestrator,
    classify_scan_error,
)
from drivescan.jobs.progress import (
    DatabaseProgressReporter,
    NullProgressReporter,
    ProgressReporter,
    ProgressTracker,
)
from drivescan.jobs.queue import (
    cancel_job,
    claim_job,
    create_scan_job,
    get_queue_stats,
)
from drivescan.jobs.summary import ScanResults, generate_summary_text
from drivescan.jobs.timeout import (
    TimeoutMonitor,
    check_job_timeout,
    fail_timed_out_jobs,
)
from drivescan.jobs.worker import ScanWorker

__all__ = [
    # Exceptions
    "ConcurrentModificationError",
    "IndexWriteError",
    "JobNotFoundError",
    "JobValidationError",
    "PageFetchError",
    "PersistenceError",
    "ScanCancelledError",
    "ScanFailedError",
    "ScanJobError",
    "ScanTimeoutError",
    # Queue
    "cancel_job",
    "claim_job",
    "create_scan_job",
    "get_queue_stats",
    # Pipeline
    "DatabaseProgressReporter",
    "DuplicateDetector",
    "ErrorClassification",
    "IndexWriteResult",
    "IndexWriter",
    "NullProgressReporter",
    "ProgressReporter",
    "ProgressTracker",
    "RetryPolicy",
    "ScanOrchestrator",
    "ScanResults",
    "classify_scan_error",
    "generate_summary_text",
    # Maintenance
    "JobCleanup",
    "TimeoutMonitor",
    "ScanWorker",
    "check_job_timeout",
    "fail_timed_out_jobs",
    "purge_old_jobs",
]
