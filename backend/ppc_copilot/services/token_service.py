"""
Token Service — Login with Amazon (LwA) refresh-token exchange.
Caches the access token in memory and refreshes it shortly before expiry.
"""

import logging
import time
from typing import Callable, Optional
import httpx
from ppc_copilot.exceptions import ConfigurationError, UpstreamRequestError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://api.amazon.com/auth/o2/token"

# Refresh 60 seconds before actual expiry
REFRESH_BUFFER_SECONDS = 60

DEFAULT_EXPIRES_IN = 3600


async def refresh_access_token(
    http: httpx.AsyncClient,
    client_id: str,
    client_secret: str,
    refresh_token: str,
    token_url: str = TOKEN_URL,
) -> dict:
    """
    Exchange a refresh token for a new access token via Amazon LwA.
    Returns dict with access_token, expires_in, token_type.
    """
    response = await http.post(
        token_url,
        data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=30,
    )
    if response.is_error:
        raise UpstreamRequestError("LwA token refresh failed", response.status_code, response.text)
    return response.json()


class AccessTokenProvider:
    """
    Process-wide access token cache for one set of LwA credentials.
    The token is reused until REFRESH_BUFFER_SECONDS before its declared expiry.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_url: str = TOKEN_URL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._http = http
        self.client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self.token_url = token_url
        self._clock = clock
        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    def _is_fresh(self) -> bool:
        return bool(self._access_token) and self._clock() < self._expires_at - REFRESH_BUFFER_SECONDS

    async def get_token(self) -> str:
        if self._is_fresh():
            return self._access_token

        if not (self.client_id and self._client_secret and self._refresh_token):
            raise ConfigurationError("Amazon Ads credentials not configured")

        logger.info("Access token missing or expiring, refreshing via LwA...")
        token_data = await refresh_access_token(
            self._http,
            client_id=self.client_id,
            client_secret=self._client_secret,
            refresh_token=self._refresh_token,
            token_url=self.token_url,
        )
        expires_in = token_data.get("expires_in") or DEFAULT_EXPIRES_IN
        self._access_token = token_data["access_token"]
        self._expires_at = self._clock() + expires_in

        # Amazon may rotate the refresh token
        if token_data.get("refresh_token"):
            self._refresh_token = token_data["refresh_token"]

        logger.info(f"Access token refreshed, expires in {expires_in}s")
        return self._access_token

    def invalidate(self) -> None:
        self._access_token = None
        self._expires_at = 0.0
