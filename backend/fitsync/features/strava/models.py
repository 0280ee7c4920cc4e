"""
Strava-related database models.

Models:
- Athlete: Mirrored athlete profile
- Activity: Mirrored activity, keyed by the Strava activity ID
- AthleteStats: Singleton row with the athlete's totals
- SyncLog: Append-only audit trail of sync attempts

Local rows are a best-effort mirror; Strava stays authoritative.
"""

from datetime import datetime

from sqlalchemy import Column, String, DateTime, Integer, Float, BigInteger, Text

from fitsync.models.base import Base


class Athlete(Base):
    """Strava athlete profile."""

    __tablename__ = "athletes"

    id = Column(BigInteger, primary_key=True, autoincrement=False)  # Strava athlete ID

    username = Column(String(255), nullable=True)
    firstname = Column(String(255), nullable=True)
    lastname = Column(String(255), nullable=True)
    profile = Column(Text, nullable=True)  # Avatar URL
    profile_medium = Column(Text, nullable=True)

    city = Column(String(255), nullable=True)
    state = Column(String(255), nullable=True)
    country = Column(String(255), nullable=True)
    sex = Column(String(8), nullable=True)
    weight = Column(Float, nullable=True)
    ftp = Column(Integer, nullable=True)

    follower_count = Column(Integer, nullable=True)
    friend_count = Column(Integer, nullable=True)
    measurement_preference = Column(String(16), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Athlete {self.id} {self.firstname} {self.lastname}>"


class Activity(Base):
    """
    Mirrored Strava activity.

    Nested collections (splits, efforts, laps) are stored as JSON text.
    """

    __tablename__ = "activities"

    id = Column(String(32), primary_key=True)  # Strava activity ID as string

    name = Column(String(255), nullable=False, default="")
    type = Column(String(50), nullable=False, index=True)  # Run, Ride, Walk, ...
    sport_type = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    gear_id = Column(String(32), nullable=True)

    start_date = Column(DateTime, nullable=False, index=True)  # UTC
    start_date_local = Column(DateTime, nullable=True)
    timezone = Column(String(64), nullable=True)

    # Core metrics
    distance = Column(Float, nullable=False, default=0.0)  # meters
    moving_time = Column(Integer, nullable=False, default=0)  # seconds
    elapsed_time = Column(Integer, nullable=False, default=0)  # seconds
    total_elevation_gain = Column(Float, nullable=False, default=0.0)  # meters
    average_speed = Column(Float, nullable=False, default=0.0)  # m/s
    max_speed = Column(Float, nullable=True)

    # Optional sensor data (NULL = not measured)
    average_cadence = Column(Float, nullable=True)
    average_heartrate = Column(Float, nullable=True)
    max_heartrate = Column(Float, nullable=True)
    average_watts = Column(Float, nullable=True)
    kilojoules = Column(Float, nullable=True)
    elev_high = Column(Float, nullable=True)
    elev_low = Column(Float, nullable=True)
    calories = Column(Float, nullable=True)
    suffer_score = Column(Float, nullable=True)

    # Social counters
    achievement_count = Column(Integer, nullable=False, default=0)
    kudos_count = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)
    athlete_count = Column(Integer, nullable=False, default=1)

    # Map
    summary_polyline = Column(Text, nullable=True)
    polyline = Column(Text, nullable=True)

    # JSON-serialized nested arrays
    splits_metric = Column(Text, nullable=True)
    splits_standard = Column(Text, nullable=True)
    segment_efforts = Column(Text, nullable=True)
    best_efforts = Column(Text, nullable=True)
    laps = Column(Text, nullable=True)

    # Sync metadata
    synced_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Activity {self.id} {self.type} {self.distance}m>"


class AthleteStats(Base):
    """
    Athlete totals. Single row with id=1.

    Totals blocks ({count, distance, moving_time, ...}) are stored as JSON text.
    """

    __tablename__ = "athlete_stats"

    SINGLETON_ID = 1

    id = Column(Integer, primary_key=True, autoincrement=False)
    athlete_id = Column(BigInteger, nullable=False)

    biggest_ride_distance = Column(Float, nullable=True)
    biggest_climb_elevation_gain = Column(Float, nullable=True)

    recent_ride_totals = Column(Text, nullable=True)
    all_ride_totals = Column(Text, nullable=True)
    ytd_ride_totals = Column(Text, nullable=True)
    recent_run_totals = Column(Text, nullable=True)
    all_run_totals = Column(Text, nullable=True)
    ytd_run_totals = Column(Text, nullable=True)
    recent_swim_totals = Column(Text, nullable=True)
    all_swim_totals = Column(Text, nullable=True)
    ytd_swim_totals = Column(Text, nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SyncLog(Base):
    """
    One row per top-level sync attempt.

    Audit trail only; nothing reads it to decide what to sync.
    """

    __tablename__ = "sync_logs"

    STATUS_SUCCESS = "success"
    STATUS_ERROR = "error"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_type = Column(String(32), nullable=False)  # athlete, activities, activity, stats
    status = Column(String(16), nullable=False)
    items_synced = Column(Integer, nullable=False, default=0)
    error_message = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f"<SyncLog {self.sync_type} {self.status} {self.items_synced}>"
