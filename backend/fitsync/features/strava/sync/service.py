"""
Strava sync orchestration.

Mirrors the athlete profile, stats and activities into the local
database. Every write is an upsert keyed by the Strava ID, so running
a sync twice is harmless.

Sync Flow (sync_all):
1. Athlete profile
2. Activities (latest 200, or the whole history)
3. Athlete stats
A failure in one step is recorded and the next step still runs.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..client import StravaClient
from ..errors import SyncPartialFailure
from ..models import SyncLog
from ..repository import (
    ActivityRepository,
    AthleteRepository,
    AthleteStatsRepository,
    SyncLogRepository,
)
from ..tokens import TokenManager
from .config import (
    SyncConfig,
    SYNC_TYPE_ACTIVITIES,
    SYNC_TYPE_ACTIVITY,
    SYNC_TYPE_ATHLETE,
    SYNC_TYPE_STATS,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncAllResult:
    athlete: Optional[dict] = None
    activities: int = 0
    stats: Optional[dict] = None
    failures: list[SyncPartialFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "athlete": self.athlete,
            "activities": self.activities,
            "stats": self.stats,
            "failures": [
                {"sync_type": f.sync_type, "error": f.message}
                for f in self.failures
            ],
        }


class SyncService:
    """
    Main sync orchestrator.

    The client, queue and cache are shared process-wide; the session and
    token manager belong to the current request.

    Usage:
        service = SyncService(db, client, token_manager)
        synced = await service.sync_activities(limit=200)
        result = await service.sync_all(athlete_id)
    """

    def __init__(
        self,
        db: AsyncSession,
        client: StravaClient,
        tokens: TokenManager,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.client = client
        self.tokens = tokens
        self._sleep = sleep
        self._now = now
        self.athletes = AthleteRepository(db)
        self.activities = ActivityRepository(db)
        self.stats = AthleteStatsRepository(db)
        self.sync_logs = SyncLogRepository(db)

    async def _authorize(self) -> None:
        token = await self.tokens.get_valid_access_token()
        self.client.set_access_token(token.access_token)

    async def _log_success(self, sync_type: str, items: int) -> None:
        await self.sync_logs.record(sync_type, SyncLog.STATUS_SUCCESS, items)
        await self.db.commit()

    async def _log_failure(self, sync_type: str, error: Exception, items: int = 0) -> None:
        """Roll back the failed unit of work and record the error."""
        try:
            await self.db.rollback()
            await self.sync_logs.record(sync_type, SyncLog.STATUS_ERROR, items, str(error))
            await self.db.commit()
        except SQLAlchemyError:
            logger.exception(f"Could not write {sync_type} sync log")

    # -------------------------------------------------------------------------
    # Single-resource syncs
    # -------------------------------------------------------------------------

    async def sync_athlete(self) -> dict:
        """Fetch the athlete profile and store it."""
        try:
            await self._authorize()
            athlete = await self.client.get_athlete(use_cache=False)
            await self.athletes.upsert_athlete(athlete)
            await self._log_success(SYNC_TYPE_ATHLETE, 1)
            return athlete
        except Exception as e:
            logger.error(f"Error syncing athlete: {e}")
            await self._log_failure(SYNC_TYPE_ATHLETE, e)
            raise

    async def sync_athlete_stats(self, athlete_id: int) -> dict:
        """Fetch athlete totals and store them."""
        try:
            await self._authorize()
            stats = await self.client.get_athlete_stats(athlete_id, use_cache=False)
            await self.stats.upsert_stats(athlete_id, stats)
            await self._log_success(SYNC_TYPE_STATS, 1)
            return stats
        except Exception as e:
            logger.error(f"Error syncing athlete stats: {e}")
            await self._log_failure(SYNC_TYPE_STATS, e)
            raise

    async def sync_activity(self, activity_id: int | str) -> dict:
        """Fetch one detailed activity (splits, efforts) and store it."""
        try:
            await self._authorize()
            activity = await self.client.get_activity(activity_id, use_cache=False)
            await self.activities.upsert_activity(activity)
            await self._log_success(SYNC_TYPE_ACTIVITY, 1)
            return activity
        except Exception as e:
            logger.error(f"Error syncing activity {activity_id}: {e}")
            await self._log_failure(SYNC_TYPE_ACTIVITY, e)
            raise

    # -------------------------------------------------------------------------
    # Activity history
    # -------------------------------------------------------------------------

    async def _is_fresh(self) -> bool:
        latest = await self.activities.get_latest_start_date()
        if latest is None:
            return False
        age = self._now() - latest
        return age < timedelta(seconds=SyncConfig.FRESHNESS_WINDOW_SECONDS)

    async def sync_activities(
        self,
        limit: int = SyncConfig.DEFAULT_ACTIVITY_LIMIT,
        force: bool = False
    ) -> int:
        """
        Page through the athlete's activities and upsert each one.

        Args:
            limit: Stop once at least this many were synced; 0 syncs everything
            force: Sync even if the newest stored activity is recent

        Returns:
            Number of activities synced
        """
        synced = 0
        committed = 0
        try:
            await self._authorize()

            if not force and limit != 0 and await self._is_fresh():
                logger.info("Activities are recent, skipping sync")
                return 0

            sync_all = limit == 0
            per_page = SyncConfig.ACTIVITIES_PER_PAGE
            page = 1
            logger.info(
                f"Starting sync: {'ALL activities' if sync_all else f'up to {limit} activities'}"
            )

            while sync_all or synced < limit:
                # Bypass the cache: a sync must see current data
                activities = await self.client.get_activities(
                    per_page=per_page, page=page, use_cache=False
                )
                if not activities:
                    break

                for activity in activities:
                    await self.activities.upsert_activity(activity)
                    synced += 1
                    if synced % SyncConfig.PROGRESS_LOG_EVERY == 0:
                        logger.info(f"Synced {synced} activities...")
                await self.db.commit()
                committed = synced

                if len(activities) < per_page:
                    break

                page += 1
                if page % SyncConfig.PAGE_BATCH_SIZE == 0:
                    await self._sleep(SyncConfig.PAGE_BATCH_PAUSE_SECONDS)

            logger.info(f"Sync complete: {synced} activities synced")
            await self._log_success(SYNC_TYPE_ACTIVITIES, synced)
            return synced
        except Exception as e:
            logger.error(f"Error syncing activities after {synced}: {e}")
            # Pages committed before the failure stay; only count those
            await self._log_failure(SYNC_TYPE_ACTIVITIES, e, committed)
            raise

    # -------------------------------------------------------------------------
    # Everything
    # -------------------------------------------------------------------------

    async def sync_all(
        self,
        athlete_id: int,
        force: bool = False,
        sync_all_activities: bool = False
    ) -> SyncAllResult:
        """
        Sync athlete, activities and stats.

        Each step is independent: a failing stats endpoint does not undo
        or block an activity sync. Failures are collected in the result.
        """
        result = SyncAllResult()

        try:
            result.athlete = await self.sync_athlete()
        except Exception as e:
            logger.warning(f"Athlete sync failed, continuing: {e}")
            result.failures.append(SyncPartialFailure(SYNC_TYPE_ATHLETE, e))

        try:
            result.activities = await self.sync_activities(
                0 if sync_all_activities else SyncConfig.DEFAULT_ACTIVITY_LIMIT,
                force,
            )
        except Exception as e:
            logger.warning(f"Activity sync failed, continuing: {e}")
            result.failures.append(SyncPartialFailure(SYNC_TYPE_ACTIVITIES, e))

        try:
            result.stats = await self.sync_athlete_stats(athlete_id)
        except Exception as e:
            logger.warning(f"Stats sync failed, continuing: {e}")
            result.failures.append(SyncPartialFailure(SYNC_TYPE_STATS, e))

        return result
