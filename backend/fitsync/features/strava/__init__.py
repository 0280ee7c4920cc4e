"""
Strava integration module.

Usage:
    from fitsync.features.strava import StravaClient, RequestQueue, ResponseCache
    from fitsync.features.strava.sync import SyncService

Components:
- StravaOAuth: OAuth flow (auth URL, code exchange, refresh)
- TokenManager: Hands out a valid access token, refreshing when needed
- ResponseCache: Per-endpoint TTL cache for API responses
- RequestQueue: Priority, rate-limited, retrying executor for API calls
- StravaClient: API client (athlete, stats, activities)

Models:
- Athlete, Activity, AthleteStats, SyncLog
"""

from .errors import (
    StravaError,
    StravaAuthError,
    TokenRefreshError,
    StravaRateLimitError,
    StravaAPIError,
    SyncPartialFailure,
)
from .models import Athlete, Activity, AthleteStats, SyncLog
from .oauth import StravaOAuth
from .tokens import (
    TokenManager,
    TokenData,
    TokenStore,
    StoredToken,
    MemoryTokenStore,
    CookieTokenStore,
    persist_token_response,
    apply_pending_cookies,
)
from .cache import ResponseCache, get_cache_key
from .queue import RequestQueue
from .client import StravaClient
from .repository import (
    AthleteRepository,
    ActivityRepository,
    AthleteStatsRepository,
    SyncLogRepository,
)

__all__ = [
    # Errors
    "StravaError",
    "StravaAuthError",
    "TokenRefreshError",
    "StravaRateLimitError",
    "StravaAPIError",
    "SyncPartialFailure",
    # Models
    "Athlete",
    "Activity",
    "AthleteStats",
    "SyncLog",
    # OAuth / tokens
    "StravaOAuth",
    "TokenManager",
    "TokenData",
    "TokenStore",
    "StoredToken",
    "MemoryTokenStore",
    "CookieTokenStore",
    "persist_token_response",
    "apply_pending_cookies",
    # Client
    "ResponseCache",
    "get_cache_key",
    "RequestQueue",
    "StravaClient",
    # Repositories
    "AthleteRepository",
    "ActivityRepository",
    "AthleteStatsRepository",
    "SyncLogRepository",
]
