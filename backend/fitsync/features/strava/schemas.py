"""
Strava schemas.

Pydantic models for the sync API.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class SyncType(str, Enum):
    ATHLETE = "athlete"
    ACTIVITIES = "activities"
    STATS = "stats"
    ALL = "all"


class SyncRequest(BaseModel):
    """Manual sync trigger."""

    type: SyncType
    force: bool = False
    sync_all: bool = False  # Whole activity history instead of the latest 200


class SyncFailure(BaseModel):
    sync_type: str
    error: str


class SyncResponse(BaseModel):
    success: bool = True
    athlete: Optional[dict[str, Any]] = None
    activities: Optional[int] = None
    stats: Optional[dict[str, Any]] = None
    failures: list[SyncFailure] = []
