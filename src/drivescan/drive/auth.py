"""Access token provider backed by stored refresh tokens.

RefreshTokenProvider exchanges an owner's stored refresh token at the OAuth
token endpoint and caches the resulting access token until shortly before
it expires.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable

import httpx
from pydantic import ValidationError

from drivescan.config.models import DriveConfig
from drivescan.db.queries import get_credentials
from drivescan.drive.exceptions import NoConnectionError, TokenError
from drivescan.drive.models import TokenResponseModel

logger = logging.getLogger(__name__)

# Refresh this many seconds before the reported expiry
EXPIRY_MARGIN_SECONDS = 60


class RefreshTokenProvider:
    """TokenProvider that refreshes access tokens over HTTP.

    Thread-safe: the token cache is protected by a lock.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: DriveConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the provider.

        Args:
            conn: Database connection used to read stored credentials.
            config: OAuth client and endpoint configuration.
            transport: Optional httpx transport (used by tests).
            clock: Monotonic clock used for expiry checks.
        """
        self._conn = conn
        self._config = config or DriveConfig()
        self._transport = transport
        self._clock = clock
        self._client: httpx.Client | None = None
        self._cache: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def invalidate(self, owner_id: str) -> None:
        """Forget the cached access token of an owner."""
        with self._lock:
            self._cache.pop(owner_id, None)

    def get_valid_access_token(self, owner_id: str) -> str:
        """Return a cached or freshly refreshed access token.

        Args:
            owner_id: Owner whose token is requested.

        Returns:
            The access token.

        Raises:
            NoConnectionError: No stored credential, no OAuth client
                configured, or the refresh token was revoked.
            TokenError: The token endpoint failed or could not be reached.
        """
        with self._lock:
            cached = self._cache.get(owner_id)
            if cached is not None and cached[1] > self._clock():
                return cached[0]

        credentials = get_credentials(self._conn, owner_id)
        if credentials is None:
            raise NoConnectionError(owner_id)
        if not self._config.client_id or not self._config.client_secret:
            raise NoConnectionError(owner_id, "OAuth client is not configured")

        token = self._refresh(owner_id, credentials.refresh_token)
        with self._lock:
            self._cache[owner_id] = (
                token.access_token,
                self._clock() + max(token.expires_in - EXPIRY_MARGIN_SECONDS, 0),
            )
        logger.debug(
            "Refreshed access token for owner %s (expires in %ds)",
            owner_id,
            token.expires_in,
        )
        return token.access_token

    def _refresh(self, owner_id: str, refresh_token: str) -> TokenResponseModel:
        client = self._get_client()
        try:
            response = client.post(
                self._config.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                    "client_id": self._config.client_id,
                    "client_secret": self._config.client_secret,
                },
            )
        except httpx.ConnectError as e:
            raise TokenError(f"Cannot connect to token endpoint: {e}") from e
        except httpx.TimeoutException as e:
            raise TokenError(f"Token endpoint timeout: {e}") from e
        except httpx.HTTPError as e:
            raise TokenError(f"Token refresh failed: {e}") from e

        if response.status_code in (400, 401):
            error = _oauth_error(response)
            if error == "invalid_grant":
                raise NoConnectionError(owner_id, "refresh token revoked or expired")
            raise TokenError(
                f"Token refresh rejected: {error or 'unknown error'}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise TokenError(
                f"Token endpoint error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return TokenResponseModel.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TokenError(f"Unexpected token response: {e}") from e


def _oauth_error(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        return error if isinstance(error, str) else None
    return None
