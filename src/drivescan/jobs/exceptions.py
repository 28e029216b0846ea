"""Custom exceptions for scan job processing.

This module provides specific exception types for scan job operations,
enabling callers to handle different error conditions appropriately.
The ``retryable`` attribute tells the orchestrator's retry loop whether
another attempt may succeed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from drivescan.jobs.index_writer import IndexWriteResult


class ScanJobError(Exception):
    """Base exception for scan job errors.

    All job-related exceptions inherit from this class, allowing callers
    to catch all job errors with a single except clause if desired.
    """

    retryable = False


class JobValidationError(ScanJobError):
    """Raised when a job cannot be processed as stored (e.g. no owner)."""

    def __init__(self, job_id: str, message: str) -> None:
        self.job_id = job_id
        super().__init__(message)


class JobNotFoundError(JobValidationError):
    """Raised when a job doesn't exist in the database.

    Attributes:
        job_id: The ID of the job that was not found.
        operation: The operation that was attempted (e.g., "run", "cancel").
    """

    def __init__(self, job_id: str, operation: str) -> None:
        """Initialize the exception.

        Args:
            job_id: The ID of the job that was not found.
            operation: The operation that was attempted.
        """
        self.operation = operation
        super().__init__(job_id, f"Cannot {operation} job {job_id}: not found")


class ScanCancelledError(ScanJobError):
    """Raised when the job was cancelled by its owner."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__("Scan cancelled by user")


class ConcurrentModificationError(ScanJobError):
    """Raised when a job was modified by another process.

    This occurs when another worker holds the claim, or when another
    component (the timeout monitor, a cancel of a pending job) already
    made the job terminal.

    Attributes:
        job_id: The ID of the job that was concurrently modified.
    """

    def __init__(self, job_id: str, message: str | None = None) -> None:
        self.job_id = job_id
        default_msg = f"Job {job_id} was modified by another process"
        super().__init__(message or default_msg)


class PageFetchError(ScanJobError):
    """A page fetch failed transiently; the attempt ends and may be retried."""

    retryable = True

    def __init__(self, page_number: int, cause: Exception) -> None:
        self.page_number = page_number
        self.cause = cause
        super().__init__(f"Page {page_number}: {cause}")


class PersistenceError(ScanJobError):
    """Raised when a job or index write fails."""

    retryable = True


class IndexWriteError(PersistenceError):
    """Raised when an index batch fails.

    Attributes:
        result: Counts for the batches committed before the failure.
    """

    def __init__(self, message: str, result: IndexWriteResult) -> None:
        self.result = result
        super().__init__(message)


class ScanFailedError(ScanJobError):
    """Raised after a job was written as failed.

    Attributes:
        job_id: The failed job.
        attempts: Number of attempts made.
        cause: The error of the final attempt.
    """

    def __init__(self, job_id: str, attempts: int, cause: BaseException) -> None:
        self.job_id = job_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Scan {job_id} failed after {attempts} attempt(s): {cause}")


class ScanTimeoutError(ScanJobError):
    """A running job exceeded its wall-clock budget."""

    def __init__(self, job_id: str, timeout_minutes: int) -> None:
        self.job_id = job_id
        self.timeout_minutes = timeout_minutes
        super().__init__(f"Scan timed out after {timeout_minutes} minutes")
