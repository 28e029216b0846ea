"""Tests for duplicate detection."""

import pytest

from drivescan.drive.models import DriveEntry
from drivescan.jobs.duplicates import DuplicateDetector, duplicate_key, normalize_name


def _entry(file_id: str, name: str, size: int, checksum: str | None = None):
    return DriveEntry(
        id=file_id, name=name, mime_type="text/plain", size=size, checksum=checksum
    )


class TestNormalizeName:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Report.PDF", "reportpdf"),
            ("report (1).pdf", "report1pdf"),
            ("  Q3_summary-final  ", "q3summaryfinal"),
            ("", ""),
        ],
    )
    def test_normalization(self, name, expected):
        assert normalize_name(name) == expected


class TestDuplicateKey:
    def test_checksum_and_name_keys_never_collide(self):
        """A checksum equal to a normalized name is a different key."""
        by_checksum = _entry("1", "x", 10, checksum="abc")
        by_name = _entry("2", "ABC", 10)

        assert duplicate_key(by_checksum) == ("checksum", "abc")
        assert duplicate_key(by_name) == ("name", "abc")
        assert duplicate_key(by_checksum) != duplicate_key(by_name)


class TestDuplicateDetector:
    """Tests for DuplicateDetector.group."""

    def test_groups_by_size_and_checksum(self):
        a = _entry("a", "one.txt", 100, "h1")
        b = _entry("b", "two.txt", 100, "h1")
        c = _entry("c", "three.txt", 100, "h2")

        groups = DuplicateDetector().group([a, b, c])

        assert groups == [[a, b]]

    def test_same_checksum_different_size_not_grouped(self):
        a = _entry("a", "one.txt", 100, "h1")
        b = _entry("b", "one.txt", 101, "h1")

        assert DuplicateDetector().group([a, b]) == []

    def test_falls_back_to_normalized_name(self):
        a = _entry("a", "Budget 2024.xlsx", 50)
        b = _entry("b", "budget_2024.XLSX", 50)

        assert DuplicateDetector().group([a, b]) == [[a, b]]

    def test_checksum_entry_not_grouped_with_name_only_entry(self):
        a = _entry("a", "same.txt", 50, "h1")
        b = _entry("b", "same.txt", 50)

        assert DuplicateDetector().group([a, b]) == []

    def test_empty_files_are_skipped(self):
        a = _entry("a", "empty.txt", 0)
        b = _entry("b", "empty.txt", 0)

        assert DuplicateDetector().group([a, b]) == []

    def test_groups_in_first_seen_order(self):
        x1 = _entry("x1", "x", 10, "hx")
        y1 = _entry("y1", "y", 20, "hy")
        x2 = _entry("x2", "x", 10, "hx")
        y2 = _entry("y2", "y", 20, "hy")
        x3 = _entry("x3", "x", 10, "hx")

        groups = DuplicateDetector().group([x1, y1, x2, y2, x3])

        assert groups == [[x1, x2, x3], [y1, y2]]

    def test_no_entries(self):
        assert DuplicateDetector().group([]) == []
