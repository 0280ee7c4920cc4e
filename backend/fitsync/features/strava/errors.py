"""
Strava error types.

Every failure in the sync pipeline is one of these:
- StravaAuthError: no usable token (user must log in again)
- TokenRefreshError: refresh-token exchange failed
- StravaRateLimitError: upstream answered 429
- StravaAPIError: any other non-2xx or transport failure
- SyncPartialFailure: a sub-sync failed inside sync_all (recorded, not raised)
"""

from dataclasses import dataclass
from typing import Optional


class StravaError(Exception):
    """Base Strava error."""

    status: Optional[int] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StravaAuthError(StravaError):
    """No access token and no usable refresh token."""

    status = 401


class TokenRefreshError(StravaAuthError):
    """The refresh-token exchange failed."""


class StravaRateLimitError(StravaError):
    """
    Strava rate limit exceeded (HTTP 429).

    Carries the raw rate-limit headers so the dashboard can show
    usage and a countdown instead of a generic error.
    """

    status = 429

    def __init__(
        self,
        message: str = "Rate Limit Exceeded",
        limit: Optional[str] = None,
        usage: Optional[str] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.limit = limit
        self.usage = usage
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        return {
            "error": "Rate Limit Exceeded",
            "message": (
                "You have exceeded the Strava API rate limit. "
                "Please try again later."
            ),
            "rate_limit_limit": self.limit,
            "rate_limit_usage": self.usage,
            "retry_after": self.retry_after,
            "is_rate_limit": True,
        }


class StravaAPIError(StravaError):
    """Non-2xx response (or transport failure when status is None)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


@dataclass
class SyncPartialFailure:
    """A sub-sync that failed inside sync_all without aborting its siblings."""

    sync_type: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)
