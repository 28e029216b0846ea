"""Scan orchestrator: drives one scan job to a terminal state.

ScanOrchestrator.run_to_completion() validates the job, acquires a token,
claims the job, pages through the Drive listing, writes the file index,
detects duplicates and stores the results. Each attempt is wrapped in a
bounded retry loop with exponential backoff.

Every path out of run_to_completion() leaves the job completed or failed,
except when there is nothing this orchestrator may write: the job does not
exist, another worker holds it, or another component already made it
terminal.
"""

from __future__ import annotations

import logging
import os
import socket
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from drivescan.db import queries
from drivescan.db.connection import (
    DatabaseLockedError,
    execute_with_retry,
    is_lock_error,
)
from drivescan.db.types import ScanJob, ScanProgress, ScanStatus
from drivescan.drive.exceptions import (
    DriveAuthError,
    DriveError,
    DriveRateLimitError,
    DriveServiceError,
    NoConnectionError,
    TokenError,
)
from drivescan.drive.models import MAX_PAGE_SIZE, DriveEntry, build_query
from drivescan.drive.protocols import DriveClient, TokenProvider
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
)
from drivescan.jobs.index_writer import IndexWriter, IndexWriteResult
from drivescan.jobs.progress import DatabaseProgressReporter, ProgressTracker
from drivescan.jobs.queue import claim_job
from drivescan.jobs.summary import ScanResults
from drivescan.logging import job_context

logger = logging.getLogger(__name__)


class ErrorClassification(Enum):
    """Classification of scan errors for retry decisions.

    Values:
        TRANSIENT: Another attempt may succeed (rate limit, token service
            down, rejected token, database lock).
        PERMANENT: Retrying won't help (invalid job, no Drive connection).
        CANCELLED: The owner cancelled; fail now without backoff.
        SUPERSEDED: The job is gone, held by another worker, or already
            terminal; nothing may be written.
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"
    SUPERSEDED = "superseded"


def classify_scan_error(exception: BaseException) -> ErrorClassification:
    """Classify an exception raised during a scan attempt.

    Args:
        exception: The exception to classify.

    Returns:
        ErrorClassification deciding what the retry loop does next.
    """
    if isinstance(exception, ScanCancelledError):
        return ErrorClassification.CANCELLED
    if isinstance(exception, (ConcurrentModificationError, JobNotFoundError)):
        return ErrorClassification.SUPERSEDED
    if isinstance(exception, (JobValidationError, NoConnectionError)):
        return ErrorClassification.PERMANENT

    # Rejected tokens end the attempt; the next one acquires a fresh token
    if isinstance(
        exception, (TokenError, DriveAuthError, DriveRateLimitError, DriveServiceError)
    ):
        return ErrorClassification.TRANSIENT
    if isinstance(exception, DriveError):
        return ErrorClassification.PERMANENT

    if isinstance(exception, ScanJobError):
        return (
            ErrorClassification.TRANSIENT
            if exception.retryable
            else ErrorClassification.PERMANENT
        )
    if isinstance(exception, DatabaseLockedError) or is_lock_error(exception):
        return ErrorClassification.TRANSIENT
    if isinstance(exception, sqlite3.Error):
        return ErrorClassification.TRANSIENT

    # Default to permanent (don't retry unknown errors)
    return ErrorClassification.PERMANENT


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff between scan attempts."""

    max_retries: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_ms(self, retry_number: int) -> int:
        """Delay before retry ``retry_number`` (1-based): 2000, 4000, 8000..."""
        return min(self.base_delay_ms * 2**retry_number, self.max_delay_ms)


@dataclass
class _ScanState:
    """Enumeration state kept across the attempts of one run."""

    scan_id: str
    entries: list[DriveEntry] = field(default_factory=list)
    total_bytes: int = 0
    pages: int = 0
    cursor: str | None = None
    enumeration_done: bool = False
    index_result: IndexWriteResult | None = None
    partial_index_result: IndexWriteResult | None = None
    errors: list[str] = field(default_factory=list)


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class ScanOrchestrator:
    """Runs scan jobs to a terminal state.

    All collaborators are injected so tests can substitute fakes.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        token_provider: TokenProvider,
        drive_client: DriveClient,
        *,
        index_writer: IndexWriter | None = None,
        duplicate_detector: DuplicateDetector | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        worker_id: str | None = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            conn: Database connection (used from a single thread).
            token_provider: Resolves access tokens per owner.
            drive_client: Paginated Drive listing.
            index_writer: File index writer (defaults to one on conn).
            duplicate_detector: Duplicate grouping.
            retry_policy: Attempts and backoff.
            sleep: Called with the backoff delay in seconds.
            clock: Monotonic clock in seconds, for processing times.
            worker_id: Claim identity (defaults to host:pid).
            page_size: Entries requested per page.
        """
        self.conn = conn
        self.token_provider = token_provider
        self.drive_client = drive_client
        self.index_writer = index_writer or IndexWriter(conn)
        self.duplicate_detector = duplicate_detector or DuplicateDetector()
        self.retry_policy = retry_policy or RetryPolicy()
        self.worker_id = worker_id or default_worker_id()
        self.page_size = page_size
        self._sleep = sleep
        self._clock = clock

    def run_to_completion(self, job_id: str) -> ScanResults:
        """Drive a job through all attempts to a terminal state.

        Args:
            job_id: Job UUID.

        Returns:
            The results stored with the completed job.

        Raises:
            JobNotFoundError: The job does not exist (nothing written).
            ConcurrentModificationError: Another worker holds the job, or it
                became terminal elsewhere (nothing written).
            ScanCancelledError: The owner cancelled; the job is failed.
            ScanFailedError: A permanent error or exhausted retries; the job
                is failed.
            PersistenceError: The failure itself could not be recorded.
        """
        job = queries.get_job(self.conn, job_id)
        if job is None:
            raise JobNotFoundError(job_id, "run")

        with job_context(job.id, job.owner_id):
            return self._run(job)

    def _run(self, job: ScanJob) -> ScanResults:
        started = self._clock()
        state = _ScanState(scan_id=f"scan_{job.id}_{int(time.time() * 1000)}")
        tracker = ProgressTracker(job.progress)
        reporter = DatabaseProgressReporter(self.conn, job.id)
        policy = self.retry_policy

        logger.info("Starting scan of job %s for owner %s", job.id, job.owner_id)

        attempt = 0
        while True:
            attempt += 1
            try:
                results = self._attempt(job.id, state, tracker, reporter, started)
            except Exception as e:
                classification = classify_scan_error(e)

                if classification is ErrorClassification.SUPERSEDED:
                    logger.warning("Abandoning job %s: %s", job.id, e)
                    raise

                if classification is ErrorClassification.CANCELLED:
                    logger.info("Job %s cancelled during attempt %d", job.id, attempt)
                    self._record_failure(
                        job.id, state, tracker, attempt, e, started, cancelled=True
                    )
                    raise

                if (
                    classification is ErrorClassification.PERMANENT
                    or attempt >= policy.max_attempts
                ):
                    logger.error(
                        "Job %s failed after %d attempt(s) (%s): %s",
                        job.id,
                        attempt,
                        classification.value,
                        e,
                    )
                    self._record_failure(job.id, state, tracker, attempt, e, started)
                    raise ScanFailedError(job.id, attempt, e) from e

                delay_ms = max(policy.delay_ms(attempt), _retry_after_ms(e))
                logger.warning(
                    "Attempt %d/%d of job %s failed: %s; retrying in %dms",
                    attempt,
                    policy.max_attempts,
                    job.id,
                    e,
                    delay_ms,
                )
                self._sleep(delay_ms / 1000)
                continue

            logger.info(
                "Job %s completed: %d files, %d duplicate groups in %d attempt(s)",
                job.id,
                results.files_found,
                results.duplicates_detected,
                attempt,
            )
            return results

    def _attempt(
        self,
        job_id: str,
        state: _ScanState,
        tracker: ProgressTracker,
        reporter: DatabaseProgressReporter,
        started: float,
    ) -> ScanResults:
        job = self._load_for_attempt(job_id)
        token = self.token_provider.get_valid_access_token(job.owner_id)
        self._claim(job.id, tracker)

        if not state.enumeration_done:
            self._enumerate(job, token, state, tracker, reporter)

        reporter.report(tracker.stage(90, "Updating file index..."))
        if state.index_result is None:
            try:
                state.index_result = self.index_writer.upsert(
                    job.owner_id,
                    state.entries,
                    state.scan_id,
                    resume_from=state.partial_index_result,
                )
            except IndexWriteError as e:
                state.partial_index_result = e.result
                raise

        reporter.report(tracker.stage(95, "Analyzing for duplicates..."))
        groups = self.duplicate_detector.group(state.entries)

        results = ScanResults(
            scan_id=state.scan_id,
            files_found=len(state.entries),
            duplicates_detected=len(groups),
            total_size=state.total_bytes,
            pages_processed=state.pages,
            processing_time_ms=self._elapsed_ms(started),
            scan_type=job.job_type.value,
            index_changes=state.index_result.to_dict(),
            errors_encountered=list(state.errors),
        )
        final_progress = tracker.completed(len(state.entries), state.total_bytes)
        self._complete(job.id, results, final_progress)
        return results

    def _load_for_attempt(self, job_id: str) -> ScanJob:
        job = queries.get_job(self.conn, job_id)
        if job is None:
            raise JobNotFoundError(job_id, "run")
        if job.status == ScanStatus.CANCELLED:
            raise ScanCancelledError(job_id)
        if job.is_terminal:
            raise ConcurrentModificationError(
                job_id, f"Job {job_id} is already {job.status.value}"
            )
        if not job.owner_id:
            raise JobValidationError(job_id, f"Job {job_id} has no owner")
        return job

    def _claim(self, job_id: str, tracker: ProgressTracker) -> None:
        progress = tracker.initializing()
        claimed = execute_with_retry(
            lambda: claim_job(self.conn, job_id, self.worker_id, progress)
        )
        if not claimed:
            self._raise_lost_claim(job_id)

    def _raise_lost_claim(self, job_id: str) -> None:
        job = queries.get_job(self.conn, job_id)
        if job is None:
            raise JobNotFoundError(job_id, "run")
        if job.status == ScanStatus.CANCELLED:
            raise ScanCancelledError(job_id)
        raise ConcurrentModificationError(
            job_id,
            f"Job {job_id} is {job.status.value} under worker {job.worker_id}",
        )

    def _check_still_owned(self, job_id: str) -> None:
        job = queries.get_job(self.conn, job_id)
        if job is None:
            raise JobNotFoundError(job_id, "run")
        if job.status == ScanStatus.CANCELLED:
            raise ScanCancelledError(job_id)
        if job.is_terminal or job.worker_id != self.worker_id:
            raise ConcurrentModificationError(job_id)

    def _enumerate(
        self,
        job: ScanJob,
        token: str,
        state: _ScanState,
        tracker: ProgressTracker,
        reporter: DatabaseProgressReporter,
    ) -> None:
        query = build_query(job.config)
        if state.pages:
            logger.info("Resuming job %s at page %d", job.id, state.pages + 1)

        while True:
            self._check_still_owned(job.id)
            page_number = state.pages + 1
            try:
                page = self.drive_client.list_page(
                    token, state.cursor, query=query, page_size=self.page_size
                )
            except DriveAuthError:
                # Providers without a cache have nothing to forget
                invalidate = getattr(self.token_provider, "invalidate", None)
                if invalidate is not None:
                    invalidate(job.owner_id)
                raise
            except (DriveRateLimitError, DriveServiceError) as e:
                message = f"Page {page_number}: {e}"
                state.errors.append(message)
                logger.warning("Page fetch failed for job %s: %s", job.id, message)
                raise PageFetchError(page_number, e) from e

            state.entries.extend(page.entries)
            state.total_bytes += sum(entry.size for entry in page.entries)
            state.pages = page_number
            state.cursor = page.next_page_token

            progress = tracker.page_fetched(
                len(state.entries), state.total_bytes, state.cursor
            )
            reporter.report(progress)
            logger.debug(
                "Job %s page %d: %d files so far",
                job.id,
                page_number,
                len(state.entries),
            )
            if not state.cursor:
                break

        state.enumeration_done = True

    def _complete(
        self, job_id: str, results: ScanResults, progress: ScanProgress
    ) -> None:
        def write() -> bool:
            try:
                completed = queries.complete_job(
                    self.conn,
                    job_id,
                    self.worker_id,
                    results.to_dict(),
                    progress,
                    _now(),
                )
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise
            return completed

        if not execute_with_retry(write):
            # A cancel request that arrived after the last page lands here
            self._raise_lost_claim(job_id)

    def _record_failure(
        self,
        job_id: str,
        state: _ScanState,
        tracker: ProgressTracker,
        attempts: int,
        error: BaseException,
        started: float,
        *,
        cancelled: bool = False,
    ) -> None:
        message = str(error)
        details = {
            "totalRetries": max(attempts - 1, 0),
            "totalAttempts": attempts,
            "finalError": message,
            "errorType": type(error).__name__,
            "processingTimeMs": self._elapsed_ms(started),
            "errorsEncountered": list(state.errors),
            "cancelled": cancelled,
        }
        progress = tracker.failed(message)

        def write() -> bool:
            try:
                failed = queries.fail_job(
                    self.conn, job_id, message, details, progress, _now()
                )
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise
            return failed

        try:
            written = execute_with_retry(write)
        except (DatabaseLockedError, sqlite3.Error) as e:
            logger.error("Could not record failure of job %s: %s", job_id, e)
            raise PersistenceError(
                f"Could not record failure of job {job_id}: {e}"
            ) from e

        if not written:
            raise ConcurrentModificationError(
                job_id, f"Job {job_id} became terminal before its failure was recorded"
            ) from error

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _retry_after_ms(error: BaseException) -> int:
    """Wait requested by the Drive API for a rate-limited page, in ms."""
    if isinstance(error, PageFetchError):
        error = error.cause
    if isinstance(error, DriveRateLimitError) and error.retry_after:
        return int(error.retry_after * 1000)
    return 0
