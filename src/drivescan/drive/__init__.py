"""Drive collaborators: listing client, token provider and their contracts."""

from drivescan.drive.auth import RefreshTokenProvider
from drivescan.drive.client import GoogleDriveClient
from drivescan.drive.exceptions import (
    DriveAuthError,
    DriveError,
    DriveRateLimitError,
    DriveServiceError,
    NoConnectionError,
    TokenError,
)
from drivescan.drive.models import DriveEntry, DrivePage, build_query
from drivescan.drive.protocols import DriveClient, TokenProvider

__all__ = [
    "DriveAuthError",
    "DriveClient",
    "DriveEntry",
    "DriveError",
    "DrivePage",
    "DriveRateLimitError",
    "DriveServiceError",
    "GoogleDriveClient",
    "NoConnectionError",
    "RefreshTokenProvider",
    "TokenError",
    "TokenProvider",
    "build_query",
]
