"""Contracts of the external collaborators used by the scan orchestrator."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from drivescan.drive.models import MAX_PAGE_SIZE, DrivePage


@runtime_checkable
class TokenProvider(Protocol):
    """Resolves a valid bearer credential for an owner.

    Providers that cache tokens may also define ``invalidate(owner_id)``;
    the orchestrator calls it when Drive rejects a token.
    """

    def get_valid_access_token(self, owner_id: str) -> str:
        """Return an access token for the owner.

        Raises:
            NoConnectionError: The owner has no usable connection (terminal).
            TokenError: The token could not be obtained right now (transient).
        """
        ...


@runtime_checkable
class DriveClient(Protocol):
    """Paginated listing of remote entries."""

    def list_page(
        self,
        access_token: str,
        page_token: str | None = None,
        *,
        query: str | None = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> DrivePage:
        """Fetch one page of entries.

        Raises:
            DriveAuthError: The access token was rejected.
            DriveRateLimitError: Quota exceeded.
            DriveServiceError: The service failed or could not be reached.
        """
        ...
