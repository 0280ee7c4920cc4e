"""
Strava API client.

Typed wrapper over the Strava endpoints the dashboard mirrors.
Every call goes through the shared RequestQueue (rate limiting,
retries) and, unless disabled, the shared ResponseCache.

Strava API Limits:
- 600 requests per 15 minutes (we stop at 550)
- 30,000 requests per day
"""

import logging
from typing import Any, Optional

import httpx

from fitsync.config import settings
from .cache import ResponseCache, get_cache_key
from .errors import StravaAPIError, StravaAuthError, StravaRateLimitError
from .queue import RequestQueue

logger = logging.getLogger(__name__)


# Queue priorities (higher runs first)
PRIORITY_ATHLETE = 10
PRIORITY_STATS = 9
PRIORITY_RECENT_ACTIVITIES = 8
PRIORITY_ACTIVITY = 7
PRIORITY_OLDER_ACTIVITIES = 5

# Cache TTLs (seconds). Recent pages change often, finished activities don't.
TTL_ATHLETE = 10 * 60
TTL_STATS = 5 * 60
TTL_RECENT_ACTIVITIES = 2 * 60
TTL_OLDER_ACTIVITIES = 5 * 60
TTL_ACTIVITY = 10 * 60


def _parse_retry_after(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default


def raise_for_strava_status(response: httpx.Response) -> None:
    """
    Convert a non-2xx Strava response into a typed error.

    Raises:
        StravaRateLimitError: On 429, with the rate-limit headers attached
        StravaAPIError: On any other non-2xx status
    """
    if response.is_success:
        return

    if response.status_code == 429:
        raise StravaRateLimitError(
            _error_message(response, "Rate Limit Exceeded"),
            limit=response.headers.get("X-RateLimit-Limit"),
            usage=response.headers.get("X-RateLimit-Usage"),
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
        )

    raise StravaAPIError(
        _error_message(response, f"HTTP error! status: {response.status_code}"),
        status=response.status_code,
    )


class StravaClient:
    """
    Async client for the Strava API.

    Usage:
        client = StravaClient(http_client, queue, cache)
        client.set_access_token(token.access_token)
        athlete = await client.get_athlete()
        activities = await client.get_activities(per_page=30, page=1)
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        queue: RequestQueue,
        cache: ResponseCache,
        api_url: Optional[str] = None,
        access_token: Optional[str] = None,
    ):
        self.http = http_client
        self.queue = queue
        self.cache = cache
        self.api_url = (api_url or settings.strava_api_url).rstrip("/")
        self._access_token = access_token

    def set_access_token(self, token: str) -> None:
        self._access_token = token

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        priority: int = 0
    ) -> Any:
        """
        Queue an authenticated GET and return the decoded JSON body.

        Raises:
            StravaAuthError: If no access token has been set
            StravaRateLimitError: If Strava keeps answering 429
            StravaAPIError: If Strava returns another error
        """
        if not self._access_token:
            raise StravaAuthError("Access token not set")

        # Bound now so a later set_access_token can't leak into queued calls
        headers = {"Authorization": f"Bearer {self._access_token}"}
        url = f"{self.api_url}{endpoint}"

        async def execute() -> Any:
            try:
                response = await self.http.get(url, headers=headers, params=params)
            except httpx.HTTPError as e:
                raise StravaAPIError(f"Request to Strava failed: {e}") from e

            if "X-RateLimit-Usage" in response.headers:
                logger.debug(
                    f"Strava rate limit: {response.headers.get('X-RateLimit-Usage')} "
                    f"/ {response.headers.get('X-RateLimit-Limit')}"
                )

            raise_for_strava_status(response)
            try:
                return response.json()
            except ValueError as e:
                # No status: a 2xx with a broken body is an upstream failure
                raise StravaAPIError(f"Invalid JSON from Strava: {e}") from e

        return await self.queue.add(endpoint, execute, priority)

    async def _cached(
        self,
        endpoint: str,
        params: Optional[dict],
        priority: int,
        ttl: float,
        use_cache: bool
    ) -> Any:
        key = get_cache_key(endpoint, params)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        data = await self._request(endpoint, params, priority)
        self.cache.set(key, data, ttl)
        return data

    # -------------------------------------------------------------------------
    # API Calls
    # -------------------------------------------------------------------------

    async def get_athlete(self, use_cache: bool = True) -> dict:
        """Get authenticated athlete profile."""
        return await self._cached("/athlete", None, PRIORITY_ATHLETE, TTL_ATHLETE, use_cache)

    async def get_athlete_stats(self, athlete_id: int, use_cache: bool = True) -> dict:
        """Get ride/run/swim totals for an athlete."""
        return await self._cached(
            f"/athletes/{athlete_id}/stats",
            None,
            PRIORITY_STATS,
            TTL_STATS,
            use_cache,
        )

    async def get_activities(
        self,
        per_page: int = 30,
        page: int = 1,
        use_cache: bool = True
    ) -> list[dict]:
        """
        Get one page of the athlete's activities, newest first.

        Page 1 is served ahead of older pages and cached for less time.
        """
        recent = page == 1
        return await self._cached(
            "/athlete/activities",
            {"per_page": per_page, "page": page},
            PRIORITY_RECENT_ACTIVITIES if recent else PRIORITY_OLDER_ACTIVITIES,
            TTL_RECENT_ACTIVITIES if recent else TTL_OLDER_ACTIVITIES,
            use_cache,
        )

    async def get_activity(self, activity_id: int | str, use_cache: bool = True) -> dict:
        """Get detailed activity, including splits and all segment efforts."""
        return await self._cached(
            f"/activities/{activity_id}",
            {"include_all_efforts": True},
            PRIORITY_ACTIVITY,
            TTL_ACTIVITY,
            use_cache,
        )

    def clear_cache(self) -> None:
        self.cache.clear()
