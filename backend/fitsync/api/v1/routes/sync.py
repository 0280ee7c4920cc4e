"""
Sync Routes

- /sync - Trigger a manual sync (athlete, activities, stats or all)
- /sync/logs - Recent sync attempts
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.api.deps import get_authorized_client, get_sync_service
from fitsync.db.session import get_async_db
from fitsync.features.strava import StravaClient, SyncLogRepository
from fitsync.features.strava.schemas import SyncRequest, SyncResponse, SyncType
from fitsync.features.strava.sync import SyncConfig, SyncService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync(
    body: SyncRequest,
    client: StravaClient = Depends(get_authorized_client),
    sync: SyncService = Depends(get_sync_service),
):
    """Run a sync now and report what was mirrored."""
    logger.info(f"Manual sync requested: type={body.type.value} force={body.force}")

    if body.type == SyncType.ATHLETE:
        return SyncResponse(athlete=await sync.sync_athlete())

    if body.type == SyncType.ACTIVITIES:
        limit = 0 if body.sync_all else SyncConfig.DEFAULT_ACTIVITY_LIMIT
        return SyncResponse(activities=await sync.sync_activities(limit, body.force))

    athlete = await client.get_athlete()
    if body.type == SyncType.STATS:
        return SyncResponse(stats=await sync.sync_athlete_stats(athlete["id"]))

    result = await sync.sync_all(athlete["id"], body.force, body.sync_all)
    return SyncResponse(**result.to_dict())


@router.get("/sync/logs")
async def sync_logs(
    limit: int = Query(default=20, ge=1, le=200),
    db: AsyncSession = Depends(get_async_db),
):
    """Most recent sync attempts, newest first."""
    logs = await SyncLogRepository(db).get_recent(limit)
    return [
        {
            "sync_type": log.sync_type,
            "status": log.status,
            "items_synced": log.items_synced,
            "error_message": log.error_message,
            "timestamp": log.created_at,
        }
        for log in logs
    ]
