"""Tests for Drive payload models and query building."""

import pytest
from pydantic import ValidationError

from drivescan.db.types import ScanJobConfig
from drivescan.drive.models import (
    DriveFileModel,
    FileListModel,
    TokenResponseModel,
    build_query,
)


class TestDriveFileModel:
    """Tests for DriveFileModel parsing."""

    @pytest.mark.parametrize("raw,expected", [("123", 123), ("", 0), (None, 0)])
    def test_int64_strings(self, raw, expected):
        model = DriveFileModel.model_validate({"id": "f", "size": raw})

        assert model.size == expected

    def test_non_numeric_size_is_rejected(self):
        with pytest.raises(ValidationError):
            DriveFileModel.model_validate({"id": "f", "size": "big"})

    def test_defaults(self):
        entry = DriveFileModel.model_validate({"id": "f"}).to_entry()

        assert entry.mime_type == "application/octet-stream"
        assert entry.size == 0
        assert entry.version == 1
        assert entry.checksum is None

    def test_unknown_fields_ignored(self):
        page = FileListModel.model_validate(
            {"kind": "drive#fileList", "files": [{"id": "f", "owners": []}]}
        ).to_page()

        assert [entry.id for entry in page.entries] == ["f"]


class TestTokenResponseModel:
    def test_requires_access_token(self):
        with pytest.raises(ValidationError):
            TokenResponseModel.model_validate({"expires_in": 3600})

    def test_default_expiry(self):
        assert TokenResponseModel(access_token="a").expires_in == 3600


class TestBuildQuery:
    """Tests for build_query."""

    def test_default_excludes_trash(self):
        assert build_query(ScanJobConfig()) == "trashed = false"

    def test_include_trashed_and_nothing_else(self):
        assert build_query(ScanJobConfig(include_trashed=True)) == ""

    def test_root_folder(self):
        query = build_query(ScanJobConfig(root_folder_id="abc"))

        assert query == "trashed = false and 'abc' in parents"

    def test_multiple_file_types(self):
        query = build_query(
            ScanJobConfig(include_trashed=True, file_types=("a/b", "c/d"))
        )

        assert query == "(mimeType = 'a/b' or mimeType = 'c/d')"

    def test_quotes_are_escaped(self):
        query = build_query(
            ScanJobConfig(include_trashed=True, root_folder_id="it's")
        )

        assert query == "'it\\'s' in parents"
