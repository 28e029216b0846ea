"""Drive API payload models.

Pydantic models validate the raw ``files.list`` and OAuth token payloads;
the scan code only sees the DriveEntry and DrivePage dataclasses built
from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, field_validator

from drivescan.db.types import ScanJobConfig

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Fields requested from files.list
FILES_LIST_FIELDS = (
    "nextPageToken, "
    "files(id, name, mimeType, size, modifiedTime, parents, md5Checksum, version)"
)

MAX_PAGE_SIZE = 1000


@dataclass(frozen=True)
class DriveEntry:
    """One remote file as consumed by the scan."""

    id: str
    name: str
    mime_type: str
    size: int = 0
    modified_time: str = ""
    parent_id: str | None = None
    checksum: str | None = None
    version: int = 1


@dataclass(frozen=True)
class DrivePage:
    """One page of a listing plus the continuation token of the next page."""

    entries: list[DriveEntry] = field(default_factory=list)
    next_page_token: str | None = None


class DriveFileModel(BaseModel):
    """A file resource from the Drive v3 API (subset of fields)."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")
    # Drive sends int64 values as strings; Google-native documents omit size
    size: int = 0
    modified_time: str = Field(default="", alias="modifiedTime")
    parents: list[str] = Field(default_factory=list)
    md5_checksum: str | None = Field(default=None, alias="md5Checksum")
    version: int = 1

    @field_validator("size", "version", mode="before")
    @classmethod
    def parse_int64(cls, v: object) -> object:
        """Treat missing or empty int64 strings as zero."""
        if v is None or v == "":
            return 0
        return v

    def to_entry(self) -> DriveEntry:
        return DriveEntry(
            id=self.id,
            name=self.name,
            mime_type=self.mime_type,
            size=self.size,
            modified_time=self.modified_time,
            parent_id=self.parents[0] if self.parents else None,
            checksum=self.md5_checksum or None,
            version=self.version or 1,
        )


class FileListModel(BaseModel):
    """Response body of ``GET /drive/v3/files``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    files: list[DriveFileModel] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")

    def to_page(self) -> DrivePage:
        return DrivePage(
            entries=[item.to_entry() for item in self.files],
            next_page_token=self.next_page_token or None,
        )


class TokenResponseModel(BaseModel):
    """Response body of the OAuth token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int = Field(default=3600, ge=0)
    token_type: str = "Bearer"
    scope: str | None = None


def _quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_query(config: ScanJobConfig) -> str:
    """Build the ``q`` filter of a listing from the job's scan parameters.

    Args:
        config: The job's enumeration parameters.

    Returns:
        A Drive query string, e.g. ``trashed = false and 'root' in parents``.
    """
    clauses = []
    if not config.include_trashed:
        clauses.append("trashed = false")
    if config.root_folder_id:
        clauses.append(f"{_quote(config.root_folder_id)} in parents")
    if config.file_types:
        mime_clauses = [f"mimeType = {_quote(t)}" for t in config.file_types]
        if len(mime_clauses) == 1:
            clauses.append(mime_clauses[0])
        else:
            clauses.append("(" + " or ".join(mime_clauses) + ")")
    return " and ".join(clauses)
