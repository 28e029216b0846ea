"""Batched persistence of enumerated entries into the file index."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from drivescan.db.queries import upsert_file_index_batch
from drivescan.db.types import FileIndexEntry
from drivescan.drive.models import DriveEntry
from drivescan.jobs.exceptions import IndexWriteError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


@dataclass
class IndexWriteResult:
    """Counts of index rows touched by an upsert."""

    created: int = 0
    updated: int = 0
    deleted: int = 0

    # Rows committed so far, in write order
    rows_written: int = field(default=0, compare=False)

    def to_dict(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
        }


class IndexWriter:
    """Upserts entries into the file index in bounded atomic batches.

    Each batch commits on its own; a failure leaves earlier batches in
    place. Upserts are idempotent, so a later scan completes the index.
    """

    def __init__(
        self, conn: sqlite3.Connection, batch_size: int = DEFAULT_BATCH_SIZE
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.conn = conn
        self.batch_size = batch_size

    def upsert(
        self,
        owner_id: str,
        entries: Sequence[DriveEntry],
        scan_id: str,
        *,
        resume_from: IndexWriteResult | None = None,
    ) -> IndexWriteResult:
        """Insert or merge the entries of one scan.

        Args:
            owner_id: Owner of the entries.
            entries: Enumerated entries.
            scan_id: Scan confirming the entries.
            resume_from: Partial result of an earlier call with the same
                entries. Its committed rows are skipped and its counts are
                carried into the returned result.

        Returns:
            Created, updated and deleted counts (deleted is always 0).

        Raises:
            IndexWriteError: A batch failed; carries the counts of the
                batches committed before it.
        """
        result = IndexWriteResult()
        if resume_from is not None:
            result = replace(resume_from)
        rows = _dedupe(_to_index_entry(owner_id, entry, scan_id) for entry in entries)

        for start in range(result.rows_written, len(rows), self.batch_size):
            batch = rows[start : start + self.batch_size]
            now = datetime.now(timezone.utc).isoformat()
            try:
                created, updated = upsert_file_index_batch(self.conn, batch, now)
                self.conn.commit()
            except sqlite3.Error as e:
                try:
                    self.conn.rollback()
                except sqlite3.Error:
                    pass  # Best effort rollback
                batch_number = start // self.batch_size + 1
                logger.error(
                    "Index batch %d failed after %d created, %d updated: %s",
                    batch_number,
                    result.created,
                    result.updated,
                    e,
                )
                raise IndexWriteError(
                    f"Index batch {batch_number} failed: {e}", result
                ) from e
            result.created += created
            result.updated += updated
            result.rows_written += len(batch)

        logger.debug(
            "Indexed %d entries for owner %s (%d created, %d updated)",
            len(rows),
            owner_id,
            result.created,
            result.updated,
        )
        return result


def _to_index_entry(owner_id: str, entry: DriveEntry, scan_id: str) -> FileIndexEntry:
    return FileIndexEntry(
        id=FileIndexEntry.make_id(owner_id, entry.id),
        owner_id=owner_id,
        file_id=entry.id,
        name=entry.name,
        mime_type=entry.mime_type,
        size=entry.size,
        modified_time=entry.modified_time,
        parent_id=entry.parent_id,
        checksum=entry.checksum,
        version=entry.version,
        last_scan_id=scan_id,
    )


def _dedupe(rows) -> list[FileIndexEntry]:
    # A listing can repeat an entry across pages; keep the last observation
    by_id: dict[str, FileIndexEntry] = {}
    for row in rows:
        by_id.pop(row.id, None)
        by_id[row.id] = row
    return list(by_id.values())
