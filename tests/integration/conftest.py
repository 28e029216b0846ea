"""Fixtures for CLI integration tests.

Commands run through click's CliRunner against the in-memory test database.
The Drive API is replaced by the scripted fakes from the top-level conftest,
injected through the ``orchestrator_factory`` hook of the CLI context.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path

import pytest
from click.testing import CliRunner

from drivescan.cli import main
from drivescan.config.models import DriveScanConfig, LoggingConfig
from drivescan.jobs.orchestrator import ScanOrchestrator


@pytest.fixture
def cli_config(tmp_path: Path) -> DriveScanConfig:
    """Configuration used by CLI invocations (quiet logging)."""
    return DriveScanConfig(
        database_path=tmp_path / "drivescan.db",
        logging=LoggingConfig(level="error"),
    )


@pytest.fixture
def invoke(db_conn, cli_config, fake_tokens, fake_drive):
    """Invoke the drivescan CLI with the test database and fake Drive."""
    runner = CliRunner()

    @contextmanager
    def orchestrator_factory(conn, config):
        yield ScanOrchestrator(
            conn,
            fake_tokens,
            fake_drive,
            sleep=lambda seconds: None,
            worker_id="cli-test",
        )

    def _invoke(*args: str, input: str | None = None):
        obj = {
            "db_conn": db_conn,
            "config": cli_config,
            "orchestrator_factory": orchestrator_factory,
        }
        return runner.invoke(main, list(args), obj=obj, input=input)

    return _invoke
