"""Pytest configuration and fixtures for backend tests."""

import asyncio
from datetime import datetime
from typing import AsyncGenerator

import pytest
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fitsync.models.base import Base
from fitsync.features.strava import models  # noqa: F401  (registers tables)


# -------------------------------------------------------------------------
# Time
# -------------------------------------------------------------------------

class FakeClock:
    """Manual clock whose sleep() advances time instead of waiting."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# -------------------------------------------------------------------------
# Database Fixtures
# -------------------------------------------------------------------------

@pytest.fixture
async def async_engine():
    """Create an async in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# -------------------------------------------------------------------------
# Strava payloads
# -------------------------------------------------------------------------

def make_activity(activity_id: int, start_date: str = "2024-05-01T07:00:00Z", **overrides) -> dict:
    """Summary activity as returned by /athlete/activities."""
    activity = {
        "id": activity_id,
        "name": f"Morning Run {activity_id}",
        "distance": 10012.4,
        "moving_time": 3011,
        "elapsed_time": 3120,
        "total_elevation_gain": 87.0,
        "type": "Run",
        "sport_type": "Run",
        "start_date": start_date,
        "start_date_local": start_date,
        "timezone": "(GMT+01:00) Europe/Berlin",
        "average_speed": 3.325,
        "max_speed": 4.9,
        "achievement_count": 2,
        "kudos_count": 5,
        "comment_count": 0,
        "athlete_count": 1,
        "map": {"id": f"a{activity_id}", "summary_polyline": "abc~def", "polyline": None},
    }
    activity.update(overrides)
    return activity


def make_page(start_id: int, count: int) -> list[dict]:
    return [make_activity(start_id + i) for i in range(count)]


def iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")
