"""Tests for scan results, insights and summary text."""

import pytest

from drivescan.jobs.summary import (
    ScanResults,
    archive_candidates,
    generate_summary_text,
    quality_score,
    recommended_actions,
)


class TestQualityScore:
    """Tests for the duplicate-based quality score."""

    @pytest.mark.parametrize(
        "groups,files,expected",
        [
            (0, 0, 100),
            (0, 2500, 100),
            (3, 2500, 100),
            (1, 3, 67),
            (1, 2, 50),
            (1, 200, 99),  # 0.5% rounds half up
            (10, 10, 20),  # floor
            (50, 100, 50),
        ],
    )
    def test_score(self, groups, files, expected):
        assert quality_score(groups, files) == expected


class TestInsights:
    def test_archive_candidates_floor_five_percent(self):
        assert archive_candidates(0) == 0
        assert archive_candidates(19) == 0
        assert archive_candidates(2500) == 125

    def test_recommended_actions_with_duplicates(self):
        actions = recommended_actions(4, 100)

        assert actions == [
            "Remove 4 groups of duplicate files to save storage",
            "Archive 5 old files to improve organization",
            "Set up automated organization rules",
        ]

    def test_recommended_actions_without_duplicates(self):
        assert recommended_actions(0, 10)[0] == "No duplicates found"


class TestScanResults:
    """Tests for the results document."""

    def test_to_dict_shape(self):
        results = ScanResults(
            scan_id="scan_1",
            files_found=2500,
            duplicates_detected=3,
            total_size=1024,
            pages_processed=3,
            processing_time_ms=42,
            scan_type="drive_scan",
            index_changes={"created": 2500, "updated": 0, "deleted": 0},
            errors_encountered=["Page 2: boom"],
        )

        data = results.to_dict()

        assert data["scanId"] == "scan_1"
        assert data["filesFound"] == 2500
        assert data["duplicatesDetected"] == 3
        assert data["pagesProcessed"] == 3
        assert data["errorsEncountered"] == ["Page 2: boom"]
        insights = data["insights"]
        assert insights["totalFiles"] == 2500
        assert insights["duplicateGroups"] == 3
        assert insights["archiveCandidates"] == 125
        assert insights["qualityScore"] == 100
        assert insights["scanType"] == "drive_scan"
        assert insights["indexChanges"] == {"created": 2500, "updated": 0, "deleted": 0}
        assert len(insights["recommendedActions"]) == 3


class TestGenerateSummaryText:
    def test_none_without_results(self):
        assert generate_summary_text(None) is None
        assert generate_summary_text({}) is None

    def test_summary_line(self):
        text = generate_summary_text(
            {
                "filesFound": 2500,
                "totalSize": 1024**3,
                "duplicatesDetected": 1,
                "insights": {"qualityScore": 100},
                "errorsEncountered": ["Page 2: boom"],
            }
        )

        assert text == (
            "2,500 files (1.00 GB), 1 duplicate group, quality score 100, "
            "1 page error"
        )
