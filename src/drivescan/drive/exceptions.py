"""Exceptions raised by the Drive collaborators.

The hierarchy separates failures the scan may retry (rate limits, server
errors, a token endpoint that is briefly unavailable) from those it may not
(no stored credential, consent revoked).
"""


class DriveError(Exception):
    """Base exception for Drive API and token errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class DriveAuthError(DriveError):
    """Access token was rejected (expired or revoked).

    Not retried within an attempt; the next attempt acquires a fresh token.
    """


class DriveRateLimitError(DriveError):
    """Drive API quota or rate limit exceeded.

    Attributes:
        retry_after: Seconds suggested by the server, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, status_code)


class DriveServiceError(DriveError):
    """Drive API unavailable, timed out, or returned an unexpected response."""


class TokenError(DriveError):
    """Access token could not be obtained right now (transient)."""


class NoConnectionError(TokenError):
    """Owner has no usable Drive connection (no credential or consent revoked).

    Attributes:
        owner_id: The owner whose connection is missing.
    """

    def __init__(self, owner_id: str, reason: str = "no stored credential") -> None:
        self.owner_id = owner_id
        self.reason = reason
        super().__init__(f"No Drive connection for owner {owner_id}: {reason}")
