"""Shared test fixtures for drivescan."""

import logging
import os
import sqlite3
import uuid
from collections.abc import Iterator
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from drivescan.config import clear_config_cache
from drivescan.db.queries import insert_job
from drivescan.db.schema import initialize_database
from drivescan.db.types import (
    ScanJob,
    ScanJobConfig,
    ScanProgress,
    ScanStatus,
    ScanType,
)
from drivescan.drive.models import DriveEntry, DrivePage


@pytest.fixture
def db_conn() -> Iterator[sqlite3.Connection]:
    """Create an in-memory database with schema."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    initialize_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Create a file database with schema and return its path."""
    path = tmp_path / "drivescan.db"
    conn = sqlite3.connect(str(path))
    initialize_database(conn)
    conn.close()
    return path


@pytest.fixture
def make_job():
    """Factory for ScanJob instances with sensible defaults."""

    def _make(**overrides) -> ScanJob:
        now = datetime.now(timezone.utc).isoformat()
        job = ScanJob(
            id=str(uuid.uuid4()),
            owner_id="owner-1",
            status=ScanStatus.PENDING,
            job_type=ScanType.DRIVE_SCAN,
            progress=ScanProgress(current_step="Queued"),
            config=ScanJobConfig(),
            created_at=now,
            updated_at=now,
        )
        return replace(job, **overrides)

    return _make


@pytest.fixture
def stored_job(db_conn, make_job):
    """Insert a job built by make_job and commit it."""

    def _store(**overrides) -> ScanJob:
        job = make_job(**overrides)
        insert_job(db_conn, job)
        db_conn.commit()
        return job

    return _store


def _make_entries(
    count: int, start: int = 0, size: int = 1024, prefix: str = "file"
) -> list[DriveEntry]:
    """Build distinct Drive entries (unique names and checksums)."""
    return [
        DriveEntry(
            id=f"{prefix}-{i}",
            name=f"{prefix}_{i}.txt",
            mime_type="text/plain",
            size=size,
            modified_time="2024-01-01T00:00:00Z",
            parent_id="root",
            checksum=f"md5-{prefix}-{i}",
        )
        for i in range(start, start + count)
    ]


class FakeDriveClient:
    """Drive client that replays a script of pages and errors.

    Each call to list_page() consumes the next script item: a DrivePage is
    returned, an exception is raised.
    """

    def __init__(self, script: list[DrivePage | Exception] | None = None) -> None:
        self.script = list(script or [])
        self.calls: list[tuple[str, str | None]] = []
        self.queries: list[str | None] = []

    def list_page(
        self,
        access_token: str,
        page_token: str | None = None,
        *,
        query: str | None = None,
        page_size: int = 1000,
    ) -> DrivePage:
        self.calls.append((access_token, page_token))
        self.queries.append(query)
        if not self.script:
            raise AssertionError("FakeDriveClient script exhausted")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeTokenProvider:
    """Token provider that hands out numbered tokens or scripted errors."""

    def __init__(self, errors: list[Exception] | None = None) -> None:
        self.errors = list(errors or [])
        self.requests: list[str] = []
        self.invalidated: list[str] = []

    def get_valid_access_token(self, owner_id: str) -> str:
        self.requests.append(owner_id)
        if self.errors:
            raise self.errors.pop(0)
        return f"token-{len(self.requests)}"

    def invalidate(self, owner_id: str) -> None:
        self.invalidated.append(owner_id)


@pytest.fixture
def make_entries():
    """Factory for distinct Drive entries."""
    return _make_entries


@pytest.fixture
def fake_drive() -> FakeDriveClient:
    return FakeDriveClient()


@pytest.fixture
def fake_tokens() -> FakeTokenProvider:
    return FakeTokenProvider()


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path):
    """Point drivescan at a temporary data directory for every test.

    Clears DRIVESCAN_* variables from the real environment and the config
    file cache, so no test reads the developer's configuration.
    """
    data_dir = tmp_path / ".drivescan"
    data_dir.mkdir(parents=True, exist_ok=True)

    env = {k: v for k, v in os.environ.items() if not k.startswith("DRIVESCAN_")}
    env["DRIVESCAN_DATA_DIR"] = str(data_dir)
    env["DRIVESCAN_CONFIG_PATH"] = str(data_dir / "config.toml")

    clear_config_cache()
    with patch.dict(os.environ, env, clear=True):
        yield data_dir
    clear_config_cache()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo handler changes made by configure_logging()."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
