"""Duplicate detection over enumerated Drive entries.

Entries are bucketed by exact byte size, then sub-grouped by checksum when
one is present, or by a normalized form of the name otherwise. Empty files
are never reported as duplicates.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from drivescan.drive.models import DriveEntry

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_name(name: str) -> str:
    """Lowercase a name and strip everything but ASCII letters and digits."""
    return _NON_ALNUM.sub("", name.lower())


def duplicate_key(entry: DriveEntry) -> tuple[str, str]:
    """Return the grouping key of an entry within its size bucket.

    Keys are tagged so a checksum can never collide with a normalized name.
    """
    if entry.checksum:
        return ("checksum", entry.checksum)
    return ("name", normalize_name(entry.name))


class DuplicateDetector:
    """Groups entries judged identical by size plus checksum-or-name."""

    def group(self, entries: Iterable[DriveEntry]) -> list[list[DriveEntry]]:
        """Return the duplicate groups of the entries.

        Args:
            entries: Entries to classify.

        Returns:
            Groups of two or more entries, in first-seen order.
        """
        groups: dict[tuple[int, tuple[str, str]], list[DriveEntry]] = {}
        for entry in entries:
            if entry.size <= 0:
                continue
            groups.setdefault((entry.size, duplicate_key(entry)), []).append(entry)
        return [members for members in groups.values() if len(members) >= 2]
