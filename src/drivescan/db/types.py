"""Data type definitions for the drivescan database.

This module contains the enums and dataclasses for the database layer:
- Job records (ScanJob) with their embedded progress and config documents
- File index records (FileIndexEntry)
- Stored Drive credentials (DriveCredentials)

JSON documents embedded in job rows (progress, config, results, error details)
are serialized with camelCase keys so that external consumers see the same
field names regardless of which component wrote the row.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ScanStatus(Enum):
    """Status of a scan job.

    State transitions:
        pending   -> running    (worker claims the job)
        pending   -> failed     (validation error, cancel before claim)
        running   -> completed  (enumeration and post-processing finished)
        running   -> failed     (retries exhausted, timeout, cancellation)
        running   -> cancelled  (user cancel request, finalized by the worker)
        cancelled -> failed     (worker observes the cancel request)

    Terminal states: completed, failed
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({ScanStatus.COMPLETED, ScanStatus.FAILED})


class ScanType(Enum):
    """Kind of scan requested."""

    DRIVE_SCAN = "drive_scan"
    FULL_ANALYSIS = "full_analysis"
    DUPLICATE_DETECTION = "duplicate_detection"


@dataclass
class ScanProgress:
    """Progress document stored with a scan job."""

    current: int = 0
    total: int = 0
    percentage: float = 0.0
    current_step: str = ""
    files_processed: int = 0
    bytes_processed: int = 0
    pages_processed: int = 0
    cursor: str | None = None  # Continuation token of the next page

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "percentage": self.percentage,
            "currentStep": self.current_step,
            "filesProcessed": self.files_processed,
            "bytesProcessed": self.bytes_processed,
            "pagesProcessed": self.pages_processed,
            "cursor": self.cursor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScanProgress:
        if not data:
            return cls()
        return cls(
            current=int(data.get("current", 0)),
            total=int(data.get("total", 0)),
            percentage=float(data.get("percentage", 0.0)),
            current_step=data.get("currentStep", ""),
            files_processed=int(data.get("filesProcessed", 0)),
            bytes_processed=int(data.get("bytesProcessed", 0)),
            pages_processed=int(data.get("pagesProcessed", 0)),
            cursor=data.get("cursor"),
        )


@dataclass(frozen=True)
class ScanJobConfig:
    """Enumeration parameters. Immutable after job creation."""

    max_depth: int | None = None
    include_trashed: bool = False
    root_folder_id: str | None = None
    file_types: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "maxDepth": self.max_depth,
            "includeTrashed": self.include_trashed,
            "rootFolderId": self.root_folder_id,
            "fileTypes": list(self.file_types),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScanJobConfig:
        if not data:
            return cls()
        return cls(
            max_depth=data.get("maxDepth"),
            include_trashed=bool(data.get("includeTrashed", False)),
            root_folder_id=data.get("rootFolderId"),
            file_types=tuple(data.get("fileTypes") or ()),
        )


@dataclass
class ScanJob:
    """Database record for the scan_jobs table."""

    id: str  # UUID v4
    owner_id: str
    status: ScanStatus
    job_type: ScanType
    progress: ScanProgress
    config: ScanJobConfig

    # Timing (all ISO-8601 UTC)
    created_at: str
    updated_at: str
    started_at: str | None = None
    completed_at: str | None = None

    # Outcome
    results: dict[str, Any] | None = None  # Populated only when completed
    error: str | None = None  # Populated only when failed
    error_details: dict[str, Any] | None = None

    # Claim owner while running
    worker_id: str | None = None

    @property
    def is_terminal(self) -> bool:
        """True once the job reached completed or failed."""
        return self.status in TERMINAL_STATUSES or self.completed_at is not None

    def to_dict(self) -> dict[str, Any]:
        """Render the job document with its external field names."""
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "status": self.status.value,
            "type": self.job_type.value,
            "progress": self.progress.to_dict(),
            "config": self.config.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "results": self.results,
            "error": self.error,
            "errorDetails": self.error_details,
        }


@dataclass
class FileIndexEntry:
    """Database record for the file_index table.

    One row per (owner, remote file) pair. The id is the owner id and the
    remote file id joined with an underscore.
    """

    id: str
    owner_id: str
    file_id: str
    name: str
    mime_type: str
    size: int
    modified_time: str
    parent_id: str | None = None
    checksum: str | None = None
    version: int = 1
    last_scan_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @staticmethod
    def make_id(owner_id: str, file_id: str) -> str:
        return f"{owner_id}_{file_id}"


@dataclass
class DriveCredentials:
    """Stored OAuth refresh credential for an owner."""

    owner_id: str
    refresh_token: str
    scopes: list[str] = field(default_factory=list)
    updated_at: str | None = None


def dumps_document(value: dict[str, Any] | None) -> str | None:
    """Serialize an embedded JSON document, preserving None."""
    if value is None:
        return None
    return json.dumps(value, sort_keys=True)


def loads_document(value: str | None) -> dict[str, Any] | None:
    """Deserialize an embedded JSON document, preserving None."""
    if value is None:
        return None
    return json.loads(value)
