"""
Access token management.

TokenManager hands out a valid Strava access token, refreshing it
shortly before expiry and writing the new token back to its store.

Stores:
- MemoryTokenStore: process-local (scripts, tests)
- CookieTokenStore: the three session cookies of the dashboard
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from fastapi import Request, Response

from .errors import StravaAuthError, TokenRefreshError
from .oauth import StravaOAuth

logger = logging.getLogger(__name__)

# Refresh when the token expires within this many seconds
REFRESH_MARGIN_SECONDS = 5 * 60

ACCESS_TOKEN_COOKIE = "strava_access_token"
REFRESH_TOKEN_COOKIE = "strava_refresh_token"
EXPIRES_AT_COOKIE = "strava_expires_at"
LONG_LIVED_COOKIE_SECONDS = 60 * 60 * 24 * 365

# request.state attribute holding cookie writes made during the request
PENDING_COOKIES_STATE = "strava_pending_cookies"


@dataclass
class StoredToken:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None  # Unix timestamp (seconds)


@dataclass
class NewTokenData:
    access_token: str
    expires_at: int
    expires_in: int


@dataclass
class TokenData:
    """Result of get_valid_access_token."""

    access_token: str
    needs_refresh: bool = False
    new_token_data: Optional[NewTokenData] = None


class TokenStore(Protocol):
    def load(self) -> StoredToken: ...

    def save(
        self,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: int,
        expires_in: int,
    ) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    """Token store kept in process memory."""

    def __init__(self, token: Optional[StoredToken] = None):
        self.token = token or StoredToken()

    def load(self) -> StoredToken:
        return StoredToken(
            self.token.access_token,
            self.token.refresh_token,
            self.token.expires_at,
        )

    def save(self, access_token, refresh_token, expires_at, expires_in) -> None:
        self.token.access_token = access_token
        if refresh_token:
            self.token.refresh_token = refresh_token
        self.token.expires_at = expires_at

    def clear(self) -> None:
        self.token = StoredToken()


class CookieTokenStore:
    """
    Token store backed by the dashboard's session cookies.

    Reads from the incoming request and writes to the outgoing response.
    Every write is also recorded on request.state so an error response
    built by an exception handler can carry it (see apply_pending_cookies).
    The access-token cookie lives exactly as long as the token, so the
    browser drops it at the same moment Strava stops accepting it.
    """

    def __init__(self, request: Request, response: Response, secure: bool = False):
        self.request = request
        self.response = response
        self.secure = secure
        self._written: dict[str, Optional[str]] = {}

    def _cookie(self, name: str) -> Optional[str]:
        if name in self._written:
            return self._written[name]
        return self.request.cookies.get(name)

    def load(self) -> StoredToken:
        expires_at = self._cookie(EXPIRES_AT_COOKIE)
        try:
            expires = int(expires_at) if expires_at else None
        except ValueError:
            logger.warning(f"Ignoring malformed expiry cookie: {expires_at!r}")
            expires = None
        return StoredToken(
            access_token=self._cookie(ACCESS_TOKEN_COOKIE),
            refresh_token=self._cookie(REFRESH_TOKEN_COOKIE),
            expires_at=expires,
        )

    def save(self, access_token, refresh_token, expires_at, expires_in) -> None:
        self._set(ACCESS_TOKEN_COOKIE, access_token, max(int(expires_in), 0))
        if refresh_token:
            self._set(REFRESH_TOKEN_COOKIE, refresh_token, LONG_LIVED_COOKIE_SECONDS)
        self._set(EXPIRES_AT_COOKIE, str(expires_at), LONG_LIVED_COOKIE_SECONDS)

    def clear(self) -> None:
        for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, EXPIRES_AT_COOKIE):
            self._set(name, None, 0)

    def _set(self, name: str, value: Optional[str], max_age: int) -> None:
        _write_cookie(self.response, name, value, max_age, self.secure)
        self._written[name] = value

        pending = getattr(self.request.state, PENDING_COOKIES_STATE, None)
        if pending is None:
            pending = []
            setattr(self.request.state, PENDING_COOKIES_STATE, pending)
        pending.append((name, value, max_age, self.secure))


def _write_cookie(
    response: Response,
    name: str,
    value: Optional[str],
    max_age: int,
    secure: bool
) -> None:
    if value is None:
        response.delete_cookie(name)
        return
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="lax",
    )


def apply_pending_cookies(request: Request, response: Response) -> Response:
    """
    Replay the token cookies written during this request onto response.

    Exception handlers build a fresh response, which would otherwise
    drop a token refreshed earlier in the same request.
    """
    for name, value, max_age, secure in getattr(request.state, PENDING_COOKIES_STATE, []):
        _write_cookie(response, name, value, max_age, secure)
    return response


def persist_token_response(store: TokenStore, payload: dict) -> NewTokenData:
    """
    Save a Strava token response (code exchange or refresh) to a store.

    Raises:
        TokenRefreshError: If the payload lacks the token fields
    """
    try:
        access_token = payload["access_token"]
        expires_at = int(payload["expires_at"])
    except (KeyError, TypeError, ValueError) as e:
        raise TokenRefreshError("Malformed token response") from e

    expires_in = int(payload.get("expires_in") or max(expires_at - int(time.time()), 0))
    store.save(access_token, payload.get("refresh_token"), expires_at, expires_in)
    return NewTokenData(
        access_token=access_token,
        expires_at=expires_at,
        expires_in=expires_in,
    )


class TokenManager:
    """
    Provides a valid access token, refreshing it when needed.

    Usage:
        manager = TokenManager(CookieTokenStore(request, response), oauth)
        token = await manager.get_valid_access_token()
        client.set_access_token(token.access_token)
    """

    def __init__(
        self,
        store: TokenStore,
        oauth: StravaOAuth,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.oauth = oauth
        self._clock = clock
        self._lock = asyncio.Lock()

    def _needs_refresh(self, token: StoredToken) -> bool:
        if not token.access_token:
            return True
        if token.expires_at is None:
            return False
        return token.expires_at < self._clock() + REFRESH_MARGIN_SECONDS

    async def get_valid_access_token(self) -> TokenData:
        """
        Return a usable access token.

        Raises:
            StravaAuthError: No access token and no refresh token
            TokenRefreshError: The refresh exchange failed
        """
        # Serialized so concurrent callers share one refresh
        async with self._lock:
            token = self.store.load()

            if self._needs_refresh(token) and token.refresh_token:
                logger.info("Refreshing Strava access token")
                payload = await self.oauth.refresh_token(token.refresh_token)
                new_token = persist_token_response(self.store, payload)
                return TokenData(
                    access_token=new_token.access_token,
                    needs_refresh=True,
                    new_token_data=new_token,
                )

            if not token.access_token:
                raise StravaAuthError("No access token available")

            return TokenData(access_token=token.access_token)
