"""
Tests for Strava payload mapping and repositories (in-memory SQLite).
"""

from datetime import datetime

import pytest

from conftest import make_activity
from fitsync.features.strava.mapping import activity_to_row, parse_datetime
from fitsync.features.strava.models import SyncLog
from fitsync.features.strava.repository import (
    ActivityRepository,
    AthleteRepository,
    AthleteStatsRepository,
    SyncLogRepository,
)


DETAILED_EXTRAS = {
    "description": "Tempo along the river",
    "average_heartrate": 151.2,
    "max_heartrate": 178.0,
    "calories": 712.0,
    "splits_metric": [
        {"distance": 1000.0, "elapsed_time": 298, "split": 1, "average_speed": 3.36},
        {"distance": 1000.0, "elapsed_time": 301, "split": 2, "average_speed": 3.32},
    ],
    "best_efforts": [{"name": "1k", "elapsed_time": 280, "pr_rank": None}],
    "laps": [],
}


# =============================================================================
# Mapping
# =============================================================================

class TestActivityMapping:
    """Payload to row conversion."""

    def test_id_stored_as_string(self):
        assert activity_to_row(make_activity(12345))["id"] == "12345"

    def test_missing_required_numbers_default_to_zero(self):
        payload = make_activity(1)
        del payload["distance"]
        del payload["moving_time"]

        row = activity_to_row(payload)

        assert row["distance"] == 0.0
        assert row["moving_time"] == 0

    def test_missing_optional_numbers_stay_none(self):
        row = activity_to_row(make_activity(1))

        assert row["average_heartrate"] is None
        assert row["calories"] is None
        assert row["splits_metric"] is None

    def test_missing_id_rejected(self):
        payload = make_activity(1)
        del payload["id"]

        with pytest.raises(ValueError):
            activity_to_row(payload)

    def test_type_falls_back_to_sport_type(self):
        row = activity_to_row(make_activity(1, type=None, sport_type="TrailRun"))
        assert row["type"] == "TrailRun"

    def test_start_date_converted_to_naive_utc(self):
        assert parse_datetime("2024-05-01T09:00:00+02:00") == datetime(2024, 5, 1, 7, 0)
        assert parse_datetime("2024-05-01T07:00:00Z") == datetime(2024, 5, 1, 7, 0)

    def test_local_start_keeps_wall_time(self):
        value = parse_datetime("2024-05-01T09:00:00Z", keep_wall_time=True)
        assert value == datetime(2024, 5, 1, 9, 0)


# =============================================================================
# Activities
# =============================================================================

class TestActivityRepository:
    """Activity upserts and queries."""

    async def test_upsert_is_idempotent(self, db_session):
        repo = ActivityRepository(db_session)

        await repo.upsert_activity(make_activity(42, name="First"))
        await db_session.commit()
        await repo.upsert_activity(make_activity(42, name="Second", distance=5000.0))
        await db_session.commit()

        assert await repo.count_activities() == 1
        stored = await repo.get_activity(42)
        assert stored["name"] == "Second"
        assert stored["distance"] == 5000.0

    async def test_int_and_string_ids_are_the_same_row(self, db_session):
        repo = ActivityRepository(db_session)

        await repo.upsert_activity(make_activity(7))
        await repo.upsert_activity(make_activity(7, id="7", name="Renamed"))
        await db_session.commit()

        assert await repo.count_activities() == 1
        assert (await repo.get_activity("7"))["name"] == "Renamed"

    async def test_nested_collections_round_trip(self, db_session, session_factory):
        payload = make_activity(99, **DETAILED_EXTRAS)
        await ActivityRepository(db_session).upsert_activity(payload)
        await db_session.commit()

        # Read through a separate session so nothing comes from the identity map
        async with session_factory() as fresh:
            stored = await ActivityRepository(fresh).get_activity(99)

        assert stored["id"] == 99
        assert stored["splits_metric"] == DETAILED_EXTRAS["splits_metric"]
        assert stored["best_efforts"] == DETAILED_EXTRAS["best_efforts"]
        assert stored["laps"] == []
        assert stored["segment_efforts"] is None
        assert stored["average_heartrate"] == 151.2
        assert stored["description"] == "Tempo along the river"
        assert stored["map"]["summary_polyline"] == "abc~def"
        assert stored["start_date"] == "2024-05-01T07:00:00Z"

    async def test_absent_optional_fields_read_back_as_none(self, db_session):
        repo = ActivityRepository(db_session)
        await repo.upsert_activity(make_activity(5))
        await db_session.commit()

        stored = await repo.get_activity(5)

        assert stored["average_heartrate"] is None
        assert stored["average_watts"] is None
        assert stored["max_speed"] == 4.9

    async def test_missing_activity_is_none(self, db_session):
        assert await ActivityRepository(db_session).get_activity(123) is None

    async def test_get_activities_newest_first(self, db_session):
        repo = ActivityRepository(db_session)
        await repo.upsert_activity(make_activity(1, start_date="2024-01-01T07:00:00Z"))
        await repo.upsert_activity(make_activity(2, start_date="2024-03-01T07:00:00Z"))
        await repo.upsert_activity(make_activity(3, start_date="2024-02-01T07:00:00Z"))
        await db_session.commit()

        activities = await repo.get_activities(limit=2)

        assert [a["id"] for a in activities] == [2, 3]
        assert [a["id"] for a in await repo.get_activities(limit=2, offset=2)] == [1]

    async def test_filter_by_type(self, db_session):
        repo = ActivityRepository(db_session)
        await repo.upsert_activity(make_activity(1, type="Run"))
        await repo.upsert_activity(make_activity(2, type="Ride"))
        await db_session.commit()

        rides = await repo.get_activities(activity_type="Ride")

        assert [a["id"] for a in rides] == [2]
        assert len(await repo.get_activities(activity_type="All")) == 2
        assert await repo.count_activities("Ride") == 1

    async def test_latest_start_date(self, db_session):
        repo = ActivityRepository(db_session)
        assert await repo.get_latest_start_date() is None

        await repo.upsert_activity(make_activity(1, start_date="2024-01-01T07:00:00Z"))
        await repo.upsert_activity(make_activity(2, start_date="2024-06-01T07:00:00Z"))
        await db_session.commit()

        assert await repo.get_latest_start_date() == datetime(2024, 6, 1, 7, 0)


# =============================================================================
# Athlete, stats, sync logs
# =============================================================================

class TestAthleteRepository:
    """Athlete profile upserts."""

    async def test_upsert_and_read(self, db_session):
        repo = AthleteRepository(db_session)

        await repo.upsert_athlete({"id": 7, "firstname": "Ada", "weight": 61.5})
        await repo.upsert_athlete({"id": 7, "firstname": "Ada", "city": "Berlin"})
        await db_session.commit()

        athlete = await repo.get_athlete(7)
        assert athlete["city"] == "Berlin"
        assert athlete["weight"] is None
        assert await repo.count() == 1

    async def test_unknown_athlete(self, db_session):
        assert await AthleteRepository(db_session).get_athlete(1) is None


class TestAthleteStatsRepository:
    """Singleton stats row."""

    async def test_single_row_replaced(self, db_session, session_factory):
        repo = AthleteStatsRepository(db_session)
        totals = {"count": 3, "distance": 30000.0, "moving_time": 9000}

        await repo.upsert_stats(7, {"biggest_ride_distance": 100.0, "recent_run_totals": totals})
        await repo.upsert_stats(7, {"biggest_ride_distance": 120.0, "all_run_totals": totals})
        await db_session.commit()

        async with session_factory() as fresh:
            stats = await AthleteStatsRepository(fresh).get_stats()
            assert await AthleteStatsRepository(fresh).count() == 1

        assert stats["biggest_ride_distance"] == 120.0
        assert stats["all_run_totals"] == totals
        assert stats["recent_run_totals"] is None

    async def test_no_stats(self, db_session):
        assert await AthleteStatsRepository(db_session).get_stats() is None


class TestSyncLogRepository:
    """Sync audit trail."""

    async def test_record_and_read_newest_first(self, db_session):
        repo = SyncLogRepository(db_session)

        await repo.record("athlete", SyncLog.STATUS_SUCCESS, 1)
        await repo.record("activities", SyncLog.STATUS_ERROR, 30, "boom")
        await db_session.commit()

        logs = await repo.get_recent()

        assert [log.sync_type for log in logs] == ["activities", "athlete"]
        assert logs[0].status == "error"
        assert logs[0].items_synced == 30
        assert logs[0].error_message == "boom"

    async def test_long_error_message_truncated(self, db_session):
        repo = SyncLogRepository(db_session)

        log = await repo.record("activities", SyncLog.STATUS_ERROR, 0, "x" * 2000)

        assert len(log.error_message) == 500
