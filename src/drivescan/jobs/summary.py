"""Scan results and their human-readable summaries.

Builds the results document stored with a completed job, including the
duplicate-based quality score and the recommended actions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from drivescan.jobs.progress import format_size

MIN_QUALITY_SCORE = 20
ARCHIVE_CANDIDATE_RATIO = 0.05


def quality_score(duplicate_groups: int, total_files: int) -> int:
    """Heuristic score in [20, 100]; fewer duplicate groups score higher.

    Args:
        duplicate_groups: Number of duplicate groups found.
        total_files: Number of files enumerated.

    Returns:
        ``max(20, 100 - round(groups / files * 100))``, or 100 without files.
    """
    if total_files <= 0:
        return 100
    # Percentage rounded half up, in integer arithmetic
    percent = (200 * duplicate_groups + total_files) // (2 * total_files)
    return max(MIN_QUALITY_SCORE, 100 - percent)


def archive_candidates(total_files: int) -> int:
    return int(total_files * ARCHIVE_CANDIDATE_RATIO)


def recommended_actions(duplicate_groups: int, total_files: int) -> list[str]:
    if duplicate_groups > 0:
        first = (
            f"Remove {duplicate_groups} groups of duplicate files to save storage"
        )
    else:
        first = "No duplicates found"
    return [
        first,
        f"Archive {archive_candidates(total_files)} old files to improve organization",
        "Set up automated organization rules",
    ]


@dataclass
class ScanResults:
    """Summary produced once per completed scan."""

    scan_id: str
    files_found: int
    duplicates_detected: int
    total_size: int
    pages_processed: int
    processing_time_ms: int
    scan_type: str
    index_changes: dict[str, int] = field(default_factory=dict)
    errors_encountered: list[str] = field(default_factory=list)

    @property
    def quality_score(self) -> int:
        return quality_score(self.duplicates_detected, self.files_found)

    def to_dict(self) -> dict[str, Any]:
        """Render the results document with its external field names."""
        return {
            "scanId": self.scan_id,
            "filesFound": self.files_found,
            "duplicatesDetected": self.duplicates_detected,
            "totalSize": self.total_size,
            "pagesProcessed": self.pages_processed,
            "processingTimeMs": self.processing_time_ms,
            "errorsEncountered": list(self.errors_encountered),
            "insights": {
                "totalFiles": self.files_found,
                "duplicateGroups": self.duplicates_detected,
                "totalSize": self.total_size,
                "archiveCandidates": archive_candidates(self.files_found),
                "qualityScore": self.quality_score,
                "recommendedActions": recommended_actions(
                    self.duplicates_detected, self.files_found
                ),
                "scanType": self.scan_type,
                "indexChanges": dict(self.index_changes),
            },
        }


def generate_summary_text(results: dict | None) -> str | None:
    """Generate a one-line summary from a stored results document.

    Args:
        results: Parsed results document, or None.

    Returns:
        Human-readable summary, or None if no results are available.
    """
    if not results:
        return None

    insights = results.get("insights", {})
    files = results.get("filesFound", 0)
    groups = results.get("duplicatesDetected", 0)
    parts = [
        f"{files:,} files ({format_size(results.get('totalSize', 0))})",
        f"{groups} duplicate group{'s' if groups != 1 else ''}",
        f"quality score {insights.get('qualityScore', 100)}",
    ]
    errors = results.get("errorsEncountered") or []
    if errors:
        parts.append(f"{len(errors)} page error{'s' if len(errors) != 1 else ''}")
    return ", ".join(parts)
