"""Google Drive v3 API client for file listing.

This module provides an HTTP client for the ``files.list`` endpoint and maps
its failure modes onto the exceptions in drivescan.drive.exceptions.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from drivescan.config.models import DriveConfig
from drivescan.drive.exceptions import (
    DriveAuthError,
    DriveError,
    DriveRateLimitError,
    DriveServiceError,
)
from drivescan.drive.models import (
    FILES_LIST_FIELDS,
    MAX_PAGE_SIZE,
    DrivePage,
    FileListModel,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_REASONS = frozenset(
    {
        "dailyLimitExceeded",
        "quotaExceeded",
        "rateLimitExceeded",
        "userRateLimitExceeded",
    }
)


def _error_reasons(response: httpx.Response) -> set[str]:
    """Extract the ``error.errors[].reason`` values of an API error body."""
    try:
        body = response.json()
    except ValueError:
        return set()
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return set()
    return {
        item.get("reason", "")
        for item in error.get("errors", [])
        if isinstance(item, dict)
    }


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class GoogleDriveClient:
    """HTTP client for the Drive v3 ``files.list`` endpoint."""

    def __init__(
        self,
        config: DriveConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Endpoint and timeout configuration.
            transport: Optional httpx transport (used by tests).
        """
        config = config or DriveConfig()
        self._base_url = config.api_url.rstrip("/")
        self._timeout = config.timeout_seconds
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def list_page(
        self,
        access_token: str,
        page_token: str | None = None,
        *,
        query: str | None = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> DrivePage:
        """Fetch one page of files.

        Args:
            access_token: Bearer token of the owner.
            page_token: Continuation token from the previous page.
            query: Drive ``q`` filter.
            page_size: Entries per page, capped at 1000.

        Returns:
            DrivePage with the entries and the next page token.

        Raises:
            DriveAuthError: If the token is rejected (401, or 403 not quota).
            DriveRateLimitError: If a quota is exceeded (429, 403 rate limit).
            DriveServiceError: On 5xx, timeouts, connection or payload errors.
            DriveError: On any other rejected request (e.g. a bad query).
        """
        params: dict[str, str | int] = {
            "pageSize": min(max(page_size, 1), MAX_PAGE_SIZE),
            "fields": FILES_LIST_FIELDS,
            "includeItemsFromAllDrives": "true",
            "supportsAllDrives": "true",
        }
        if page_token:
            params["pageToken"] = page_token
        if query:
            params["q"] = query

        client = self._get_client()
        try:
            response = client.get(
                "/files",
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.ConnectError as e:
            raise DriveServiceError(f"Cannot connect to Drive API: {e}") from e
        except httpx.TimeoutException as e:
            raise DriveServiceError(f"Drive API timeout: {e}") from e
        except httpx.HTTPError as e:
            raise DriveServiceError(f"Drive API request failed: {e}") from e

        self._raise_for_status(response)

        try:
            page = FileListModel.model_validate(response.json()).to_page()
        except (ValueError, ValidationError) as e:
            raise DriveServiceError(f"Unexpected files.list response: {e}") from e

        logger.debug(
            "Fetched %d entries (next page: %s)",
            len(page.entries),
            "yes" if page.next_page_token else "no",
        )
        return page

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 401:
            raise DriveAuthError("Access token rejected", status_code=status)
        if status == 429:
            raise DriveRateLimitError(
                "Drive API rate limit exceeded",
                status_code=status,
                retry_after=_retry_after(response),
            )
        if status == 403:
            reasons = _error_reasons(response)
            if reasons & RATE_LIMIT_REASONS:
                raise DriveRateLimitError(
                    f"Drive API quota exceeded ({', '.join(sorted(reasons))})",
                    status_code=status,
                    retry_after=_retry_after(response),
                )
            raise DriveAuthError("Access to Drive denied", status_code=status)
        if status >= 500:
            raise DriveServiceError(
                f"Drive API server error: HTTP {status}", status_code=status
            )
        raise DriveError(
            f"Drive API request rejected: HTTP {status}", status_code=status
        )
