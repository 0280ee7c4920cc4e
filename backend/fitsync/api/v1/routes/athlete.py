"""
Athlete Routes

- /athlete - Athlete profile and totals, served from the local mirror
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.api.deps import get_authorized_client, get_sync_service
from fitsync.db.session import get_async_db
from fitsync.features.strava import (
    AthleteRepository,
    AthleteStatsRepository,
    StravaClient,
    StravaError,
    StravaRateLimitError,
)
from fitsync.features.strava.sync import SyncService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/athlete")
async def get_athlete(
    force_sync: bool = Query(default=False),
    client: StravaClient = Depends(get_authorized_client),
    sync: SyncService = Depends(get_sync_service),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Get athlete profile and stats.

    Reads from the local mirror; syncs from Strava when the mirror is
    empty or force_sync is set, falling back to the live API if the
    sync itself fails.
    """
    # Cached for 10 minutes, used to learn the athlete ID
    live_athlete = await client.get_athlete()
    athlete_id = live_athlete["id"]

    athlete = await AthleteRepository(db).get_athlete(athlete_id)
    if athlete is None or force_sync:
        try:
            await sync.sync_athlete()
            athlete = await AthleteRepository(db).get_athlete(athlete_id)
        except StravaRateLimitError:
            raise
        except StravaError as e:
            logger.warning(f"Athlete sync failed, using live data: {e}")
        athlete = athlete or live_athlete

    stats = await AthleteStatsRepository(db).get_stats()
    if stats is None or force_sync:
        try:
            stats = await sync.sync_athlete_stats(athlete_id)
        except StravaRateLimitError:
            raise
        except StravaError as e:
            logger.warning(f"Stats sync failed, getting from API: {e}")
            stats = await client.get_athlete_stats(athlete_id)

    if not stats:
        raise HTTPException(status_code=404, detail="Athlete data not found")

    return {"athlete": athlete, "stats": stats}
