"""Wiring of the scan orchestrator from configuration."""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from drivescan.config import DriveScanConfig
from drivescan.drive import GoogleDriveClient, RefreshTokenProvider
from drivescan.jobs.index_writer import IndexWriter
from drivescan.jobs.orchestrator import RetryPolicy, ScanOrchestrator


@contextmanager
def scan_orchestrator(
    conn: sqlite3.Connection, config: DriveScanConfig
) -> Iterator[ScanOrchestrator]:
    """Build an orchestrator backed by the real Drive API.

    The HTTP clients are closed when the context exits.
    """
    token_provider = RefreshTokenProvider(conn, config.drive)
    drive_client = GoogleDriveClient(config.drive)
    try:
        yield ScanOrchestrator(
            conn,
            token_provider,
            drive_client,
            index_writer=IndexWriter(conn, batch_size=config.scan.index_batch_size),
            retry_policy=RetryPolicy(
                max_retries=config.scan.max_retries,
                base_delay_ms=config.scan.base_delay_ms,
                max_delay_ms=config.scan.max_delay_ms,
            ),
            page_size=config.scan.page_size,
        )
    finally:
        drive_client.close()
        token_provider.close()
