"""
Strava sync services.

Provides:
- SyncService: Mirrors athlete, stats and activities into the database
- SyncAllResult: Outcome of SyncService.sync_all
"""

from .service import SyncService, SyncAllResult
from .config import (
    SyncConfig,
    SYNC_TYPE_ACTIVITIES,
    SYNC_TYPE_ACTIVITY,
    SYNC_TYPE_ATHLETE,
    SYNC_TYPE_STATS,
)

__all__ = [
    # Services
    "SyncService",
    "SyncAllResult",
    # Config
    "SyncConfig",
    "SYNC_TYPE_ACTIVITIES",
    "SYNC_TYPE_ACTIVITY",
    "SYNC_TYPE_ATHLETE",
    "SYNC_TYPE_STATS",
]
