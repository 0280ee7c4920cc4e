"""
Strava repositories.

Data access layer for mirrored Strava data. Writes are upserts keyed
by the Strava ID, so re-syncing the same data never duplicates rows.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from fitsync.shared.repository import BaseRepository
from .mapping import (
    activity_to_row,
    athlete_to_row,
    row_to_activity,
    row_to_athlete,
    row_to_stats,
    stats_to_row,
)
from .models import Activity, Athlete, AthleteStats, SyncLog


class AthleteRepository(BaseRepository[Athlete]):
    """Repository for the mirrored athlete profile."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Athlete)

    async def upsert_athlete(self, payload: dict) -> Athlete:
        """Insert or update the athlete from a Strava /athlete payload."""
        row = athlete_to_row(payload)
        return await self.upsert(row.pop("id"), **row)

    async def get_athlete(self, athlete_id: int) -> Optional[dict]:
        athlete = await self.get_by_id(int(athlete_id))
        return row_to_athlete(athlete) if athlete else None


class ActivityRepository(BaseRepository[Activity]):
    """Repository for mirrored activities."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Activity)

    async def upsert_activity(self, payload: dict) -> Activity:
        """
        Insert or update an activity from a Strava payload.

        Args:
            payload: Summary or detailed activity as returned by Strava

        Returns:
            The stored Activity
        """
        row = activity_to_row(payload)
        return await self.upsert(row.pop("id"), **row)

    async def get_activity(self, activity_id: int | str) -> Optional[dict]:
        """Get a stored activity in Strava shape, or None."""
        activity = await self.get_by_id(str(activity_id))
        return row_to_activity(activity) if activity else None

    async def get_activities(
        self,
        limit: int = 30,
        offset: int = 0,
        activity_type: Optional[str] = None
    ) -> list[dict]:
        """
        Get stored activities, newest first.

        Args:
            limit: Maximum activities to return
            offset: Pagination offset
            activity_type: Filter by type ("All" or None means no filter)

        Returns:
            Activities in Strava shape
        """
        query = select(Activity).order_by(desc(Activity.start_date))
        if activity_type and activity_type != "All":
            query = query.where(Activity.type == activity_type)
        query = query.offset(offset).limit(limit)

        result = await self.db.execute(query)
        return [row_to_activity(a) for a in result.scalars().all()]

    async def count_activities(self, activity_type: Optional[str] = None) -> int:
        if activity_type and activity_type != "All":
            return await self.count(type=activity_type)
        return await self.count()

    async def get_latest_start_date(self) -> Optional[datetime]:
        """Start date (UTC) of the most recent stored activity."""
        result = await self.db.execute(select(func.max(Activity.start_date)))
        return result.scalar()


class AthleteStatsRepository(BaseRepository[AthleteStats]):
    """Repository for the singleton athlete stats row."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AthleteStats)

    async def upsert_stats(self, athlete_id: int, payload: dict) -> AthleteStats:
        return await self.upsert(
            AthleteStats.SINGLETON_ID,
            **stats_to_row(athlete_id, payload)
        )

    async def get_stats(self) -> Optional[dict]:
        stats = await self.get_by_id(AthleteStats.SINGLETON_ID)
        return row_to_stats(stats) if stats else None


class SyncLogRepository(BaseRepository[SyncLog]):
    """Repository for the sync audit trail."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, SyncLog)

    async def record(
        self,
        sync_type: str,
        status: str,
        items_synced: int = 0,
        error_message: Optional[str] = None
    ) -> SyncLog:
        """Append one sync attempt."""
        return await self.create(
            sync_type=sync_type,
            status=status,
            items_synced=items_synced,
            error_message=error_message[:500] if error_message else None,
        )

    async def get_recent(self, limit: int = 20) -> list[SyncLog]:
        result = await self.db.execute(
            select(SyncLog).order_by(desc(SyncLog.created_at), desc(SyncLog.id)).limit(limit)
        )
        return list(result.scalars().all())
