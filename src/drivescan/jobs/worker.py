"""Scan worker for processing queued scan jobs.

This module provides the worker that drains the scan queue:
- Pending jobs are run oldest first through the ScanOrchestrator
- A timeout timer is armed for every job it picks up
- Optional job limit and watch mode with a poll interval
- Graceful shutdown on SIGTERM/SIGINT
- Job cleanup and timeout sweep on start
"""

import logging
import os
import signal
import sqlite3
import threading
import time
from pathlib import Path

from drivescan.db.queries import get_pending_jobs
from drivescan.db.types import ScanJob
from drivescan.jobs.exceptions import ScanJobError
from drivescan.jobs.maintenance import DEFAULT_BATCH_SIZE, purge_old_jobs
from drivescan.jobs.orchestrator import ScanOrchestrator
from drivescan.jobs.timeout import (
    DEFAULT_TIMEOUT_MINUTES,
    TimeoutMonitor,
    fail_timed_out_jobs,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


def database_path_of(conn: sqlite3.Connection) -> Path | None:
    """Return the file behind a connection, or None for in-memory databases."""
    # PRAGMA database_list returns (seq, name, file) tuples
    row = conn.execute("PRAGMA database_list").fetchone()
    if row and row[2]:
        return Path(row[2])
    return None


class ScanWorker:
    """Worker for processing scan jobs from the queue."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        orchestrator: ScanOrchestrator,
        *,
        monitor: TimeoutMonitor | None = None,
        max_jobs: int | None = None,
        watch: bool = False,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        auto_purge: bool = True,
        retention_days: int = 30,
        cleanup_batch_size: int = DEFAULT_BATCH_SIZE,
        timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES,
    ) -> None:
        """Initialize the scan worker.

        Args:
            conn: Database connection (shared with the orchestrator).
            orchestrator: Runs each job to a terminal state.
            monitor: Timeout monitor. Defaults to one on the connection's
                database file; in-memory databases get none.
            max_jobs: Maximum jobs to process (None = unlimited).
            watch: Keep polling when the queue is empty.
            poll_interval: Seconds between polls in watch mode.
            auto_purge: Whether to purge old jobs on start.
            retention_days: Days to keep completed and failed jobs.
            cleanup_batch_size: Jobs deleted per cleanup sweep.
            timeout_minutes: Wall-clock budget per job.
        """
        if max_jobs is not None and max_jobs < 1:
            raise ValueError("max_jobs must be at least 1")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.conn = conn
        self.orchestrator = orchestrator
        self.max_jobs = max_jobs
        self.watch = watch
        self.poll_interval = poll_interval
        self.auto_purge = auto_purge
        self.retention_days = retention_days
        self.cleanup_batch_size = cleanup_batch_size
        self.timeout_minutes = timeout_minutes

        if monitor is None:
            db_path = database_path_of(conn)
            if db_path is not None:
                monitor = TimeoutMonitor(db_path, timeout_minutes)
        self.monitor = monitor

        # State
        self._shutdown = threading.Event()
        self._jobs_processed = 0
        self._attempted: set[str] = set()
        self._previous_handlers: dict[int, object] = {}

    @property
    def jobs_processed(self) -> int:
        return self._jobs_processed

    def request_shutdown(self) -> None:
        """Stop after the current job."""
        self._shutdown.set()

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            return
        for signum in (signal.SIGTERM, signal.SIGINT):
            self._previous_handlers[signum] = signal.signal(
                signum, self._signal_handler
            )

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _signal_handler(self, signum: int, frame) -> None:
        """Handle shutdown signals."""
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, requesting shutdown...", sig_name)
        self.request_shutdown()

    def _should_continue(self) -> bool:
        """Check if worker should continue processing."""
        if self._shutdown.is_set():
            return False

        if self.max_jobs is not None and self._jobs_processed >= self.max_jobs:
            logger.info("Reached max jobs limit (%d)", self.max_jobs)
            return False

        return True

    def _run_maintenance(self) -> None:
        """Purge expired jobs and fail jobs that outlived their budget."""
        count = purge_old_jobs(
            self.conn,
            self.retention_days,
            auto_purge=self.auto_purge,
            batch_size=self.cleanup_batch_size,
        )
        if count > 0:
            logger.info("Purged %d old job(s)", count)
        fail_timed_out_jobs(self.conn, self.timeout_minutes)

    def _next_job(self) -> ScanJob | None:
        # A job whose failure could not be recorded stays pending; run it once
        for job in get_pending_jobs(self.conn):
            if job.id not in self._attempted:
                return job
        return None

    def process_job(self, job: ScanJob) -> None:
        """Run a single job to a terminal state.

        Failures are logged; the orchestrator has already recorded them on
        the job, so the worker moves on to the next one.

        Args:
            job: The pending job to run.
        """
        self._attempted.add(job.id)
        if self.monitor is not None:
            self.monitor.schedule(job)

        try:
            logger.info("Processing job %s for owner %s", job.id[:8], job.owner_id)
            self.orchestrator.run_to_completion(job.id)
        except ScanJobError as e:
            logger.error("Job %s did not complete: %s", job.id[:8], e)
        except Exception:
            logger.exception("Job %s failed with exception", job.id[:8])
        finally:
            if self.monitor is not None:
                self.monitor.cancel(job.id)
            self._jobs_processed += 1

    def run(self) -> int:
        """Run the worker until limits are reached or the queue is empty.

        In watch mode an empty queue is polled again after poll_interval
        seconds until shutdown is requested.

        Returns:
            Number of jobs processed.
        """
        start_time = time.time()
        self._jobs_processed = 0

        config_parts = [f"PID={os.getpid()}"]
        if self.max_jobs is not None:
            config_parts.append(f"max_jobs={self.max_jobs}")
        if self.watch:
            config_parts.append(f"watch={self.poll_interval}s")
        config_parts.append(f"auto_purge={self.auto_purge}")
        logger.info("Starting scan worker: %s", ", ".join(config_parts))

        self._setup_signal_handlers()
        try:
            self._run_maintenance()

            while self._should_continue():
                job = self._next_job()
                if job is None:
                    if not self.watch:
                        logger.info("Queue is empty")
                        break
                    if self._shutdown.wait(self.poll_interval):
                        break
                    fail_timed_out_jobs(self.conn, self.timeout_minutes)
                    continue

                self.process_job(job)
        finally:
            if self.monitor is not None:
                self.monitor.shutdown()
            self._restore_signal_handlers()

        elapsed = time.time() - start_time
        logger.info(
            "Worker finished: %d job(s) in %.1f seconds",
            self._jobs_processed,
            elapsed,
        )
        return self._jobs_processed
