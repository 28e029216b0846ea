"""Job context for structured logging.

Uses contextvars so that every record logged while a scan runs carries the
job and owner it belongs to, including records from the Drive client and
the database helpers.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Generator

_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_owner_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "owner_id", default=None
)

# Length of the job id prefix shown in text logs
TAG_LENGTH = 8


def set_job_context(job_id: str, owner_id: str | None = None) -> None:
    """Set the current job context."""
    _job_id.set(job_id)
    _owner_id.set(owner_id)


def clear_job_context() -> None:
    """Clear the current job context."""
    _job_id.set(None)
    _owner_id.set(None)


@contextmanager
def job_context(
    job_id: str, owner_id: str | None = None
) -> Generator[None, None, None]:
    """Context manager for job processing context.

    Sets job context on entry and restores the previous one on exit.

    Example:
        with job_context(job.id, job.owner_id):
            logger.info("Fetching page")  # Record carries job_id and owner_id
    """
    old_job_id = _job_id.get()
    old_owner_id = _owner_id.get()
    try:
        set_job_context(job_id, owner_id)
        yield
    finally:
        _job_id.set(old_job_id)
        _owner_id.set(old_owner_id)


def get_job_context() -> tuple[str | None, str | None]:
    """Get current job context as (job_id, owner_id)."""
    return _job_id.get(), _owner_id.get()


class JobContextFilter(logging.Filter):
    """Logging filter that injects job context into log records.

    Adds job_id and owner_id attributes, plus a compact job_tag such as
    ``[J1a2b3c4d] `` for the text format.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject job context into log record. Never filters records out."""
        job_id, owner_id = get_job_context()

        record.job_id = job_id
        record.owner_id = owner_id
        record.job_tag = f"[J{job_id[:TAG_LENGTH]}] " if job_id else ""

        return True
