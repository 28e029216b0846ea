"""Progress tracking for scan jobs.

ProgressTracker is a pure state object that produces the progress document
for each step of a scan. DatabaseProgressReporter merges those documents
into the stored job; its writes are best-effort and never fail a scan.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from drivescan.db.queries import update_job_progress
from drivescan.db.types import ScanProgress

logger = logging.getLogger(__name__)

# Enumeration progress stays below this until post-processing begins
ENUMERATION_CAP = 90.0

# Minimum page estimate used while the real page count is unknown
MIN_PAGE_ESTIMATE = 10


def format_size(size_bytes: int) -> str:
    """Format a byte count in GB with two decimals."""
    return f"{size_bytes / 1024 / 1024 / 1024:.2f} GB"


class ProgressTracker:
    """Builds the progress document for each scan step.

    Counts and percentage never decrease, so a retried attempt that resumes
    from a cursor continues from where the failed attempt stopped.
    """

    def __init__(self, initial: ScanProgress | None = None) -> None:
        self._progress = replace(initial) if initial is not None else ScanProgress()

    def snapshot(self) -> ScanProgress:
        """Return a copy of the current progress."""
        return replace(self._progress)

    def _set_percentage(self, value: float) -> None:
        value = max(0.0, min(100.0, value))
        self._progress.percentage = max(self._progress.percentage, value)

    def initializing(self) -> ScanProgress:
        """Mark the start (or re-entry) of an attempt."""
        self._progress.current_step = "Initializing scan..."
        return self.snapshot()

    def page_fetched(
        self, files_found: int, bytes_found: int, cursor: str | None
    ) -> ScanProgress:
        """Record one more successfully fetched page.

        Args:
            files_found: Running total of entries enumerated so far.
            bytes_found: Running total of bytes enumerated so far.
            cursor: Continuation token of the next page (None when done).

        Returns:
            The updated progress.
        """
        progress = self._progress
        progress.pages_processed += 1
        pages = progress.pages_processed

        progress.current = pages
        progress.total = max(pages + 1, MIN_PAGE_ESTIMATE)
        progress.files_processed = max(progress.files_processed, files_found)
        progress.bytes_processed = max(progress.bytes_processed, bytes_found)
        progress.cursor = cursor
        self._set_percentage(
            min(ENUMERATION_CAP, pages / max(pages + 1, MIN_PAGE_ESTIMATE) * 90)
        )
        progress.current_step = (
            f"Scanning: {progress.files_processed:,} files found "
            f"({format_size(progress.bytes_processed)})"
        )
        return self.snapshot()

    def stage(self, percentage: float, step: str) -> ScanProgress:
        """Move to a post-processing stage."""
        self._set_percentage(percentage)
        self._progress.current_step = step
        return self.snapshot()

    def completed(self, files_found: int, bytes_found: int) -> ScanProgress:
        """Build the final progress of a completed scan."""
        progress = self._progress
        progress.current = files_found
        progress.total = files_found
        progress.files_processed = files_found
        progress.bytes_processed = bytes_found
        progress.cursor = None
        progress.percentage = 100.0
        progress.current_step = f"Scan completed: {files_found} files processed"
        return self.snapshot()

    def failed(self, message: str) -> ScanProgress:
        """Build the final progress of a failed scan."""
        self._progress.current_step = f"Scan failed: {message}"
        return self.snapshot()


class ProgressReporter(Protocol):
    """Protocol for publishing progress documents."""

    def report(self, progress: ScanProgress) -> bool:
        """Publish a progress document.

        Args:
            progress: The progress to publish.

        Returns:
            True if the progress was stored.
        """
        ...


class DatabaseProgressReporter:
    """Progress reporter that stores job progress in the database.

    Handles errors gracefully since progress updates are non-critical.
    """

    def __init__(self, conn: sqlite3.Connection, job_id: str) -> None:
        """Initialize database progress reporter.

        Args:
            conn: Database connection.
            job_id: ID of the job to update progress for.
        """
        self.conn = conn
        self.job_id = job_id

    def report(self, progress: ScanProgress) -> bool:
        """Store progress; returns False if the write failed or was refused."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            updated = update_job_progress(self.conn, self.job_id, progress, now)
            self.conn.commit()
        except sqlite3.Error as e:
            logger.warning("Failed to update progress for job %s: %s", self.job_id, e)
            try:
                self.conn.rollback()
            except sqlite3.Error:
                pass  # Best effort rollback
            return False
        if not updated:
            logger.debug("Progress for job %s not stored (terminal)", self.job_id)
        return updated


class NullProgressReporter:
    """No-op progress reporter for tests."""

    def report(self, progress: ScanProgress) -> bool:
        """No-op."""
        return True
