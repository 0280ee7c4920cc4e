"""
Strava OAuth flow.

Handles:
- Authorization URL generation
- Code exchange for tokens
- Token refresh
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx

from fitsync.config import settings
from .errors import StravaAPIError, TokenRefreshError

logger = logging.getLogger(__name__)


class StravaOAuth:
    """
    Strava OAuth handler.

    Usage:
        oauth = StravaOAuth(http_client)
        auth_url = oauth.get_authorization_url(
            redirect_uri="https://example.com/api/v1/auth/callback",
            state="..."
        )
        tokens = await oauth.exchange_code(code)
        tokens = await oauth.refresh_token(refresh_token)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        oauth_url: Optional[str] = None,
    ):
        self.http = http_client
        self.client_id = client_id or settings.strava_client_id
        self.client_secret = client_secret or settings.strava_client_secret
        base = (oauth_url or settings.strava_oauth_url).rstrip("/")
        self.authorize_url = f"{base}/authorize"
        self.token_url = f"{base}/token"

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def get_authorization_url(
        self,
        redirect_uri: str,
        state: Optional[str] = None,
        scope: str = "read,activity:read"
    ) -> str:
        """
        Generate Strava OAuth authorization URL.

        Args:
            redirect_uri: URL to redirect after authorization
            state: Optional state parameter for CSRF protection
            scope: OAuth scope

        Returns:
            Authorization URL string
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": scope,
            "approval_prompt": "force",
        }
        if state:
            params["state"] = state

        return f"{self.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict:
        """
        Exchange authorization code for tokens.

        Returns:
            {
                "access_token": "...",
                "refresh_token": "...",
                "expires_at": 1234567890,
                "expires_in": 21600,
                "athlete": {"id": 123, "firstname": "...", ...}
            }

        Raises:
            StravaAPIError: If token exchange fails
        """
        response = await self._post_token({
            "code": code,
            "grant_type": "authorization_code",
        })
        if response.status_code != 200:
            logger.error(f"Strava token exchange failed: {response.text}")
            raise StravaAPIError(
                f"Token exchange failed: {response.status_code}",
                status=response.status_code,
            )
        return response.json()

    async def refresh_token(self, refresh_token: str) -> dict:
        """
        Refresh an expired access token.

        Strava may rotate the refresh token, so callers must persist
        the returned one.

        Raises:
            TokenRefreshError: If token refresh fails for any reason
        """
        if not self.configured:
            raise TokenRefreshError("Strava client credentials not configured")

        try:
            response = await self._post_token({
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            })
        except httpx.HTTPError as e:
            logger.error(f"Strava token refresh request failed: {e}")
            raise TokenRefreshError("Failed to refresh token") from e

        if response.status_code != 200:
            logger.error(f"Strava token refresh failed: {response.text}")
            raise TokenRefreshError(
                f"Token refresh failed: {response.status_code}"
            )
        return response.json()

    async def _post_token(self, payload: dict) -> httpx.Response:
        return await self.http.post(
            self.token_url,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                **payload,
            }
        )
