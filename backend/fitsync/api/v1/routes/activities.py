"""
Activity Routes

- /activities - Paginated activities from the local mirror
- /activities/{activity_id} - One detailed activity
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.api.deps import get_sync_service
from fitsync.db.session import get_async_db
from fitsync.features.strava import ActivityRepository, StravaError
from fitsync.features.strava.sync import SyncConfig, SyncService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/activities")
async def list_activities(
    per_page: int = Query(default=30, ge=1, le=200),
    page: int = Query(default=1, ge=1),
    type: Optional[str] = Query(default=None, description="Activity type filter"),
    force_sync: bool = Query(default=False),
    sync: SyncService = Depends(get_sync_service),
    db: AsyncSession = Depends(get_async_db),
):
    """
    List stored activities, newest first.

    Syncs from Strava when nothing is stored yet or force_sync is set.
    If that sync fails but stored activities exist, they are returned.
    The type filter never triggers a sync: an empty filtered page with a
    non-empty store is a valid answer.
    """
    repo = ActivityRepository(db)

    if force_sync or await repo.count_activities() == 0:
        try:
            await sync.sync_activities(SyncConfig.DEFAULT_ACTIVITY_LIMIT, force_sync)
        except StravaError as e:
            if await repo.count_activities() == 0:
                raise
            logger.warning(f"Sync failed, returning stored activities: {e}")

    offset = (page - 1) * per_page
    return await repo.get_activities(per_page, offset, type)


@router.get("/activities/{activity_id}")
async def get_activity(
    activity_id: int,
    force_sync: bool = Query(default=False),
    sync: SyncService = Depends(get_sync_service),
    db: AsyncSession = Depends(get_async_db),
):
    """Get one activity, fetching the detailed version on a miss."""
    repo = ActivityRepository(db)
    activity = await repo.get_activity(activity_id)

    if activity is None or force_sync:
        try:
            await sync.sync_activity(activity_id)
            activity = await repo.get_activity(activity_id)
        except StravaError as e:
            if activity is None:
                raise
            logger.warning(f"Sync failed, returning stored activity {activity_id}: {e}")

    if activity is None:
        raise HTTPException(status_code=404, detail="Activity not found")

    return activity
