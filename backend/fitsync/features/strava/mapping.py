"""
Translation between Strava payloads and stored rows.

Rules:
- Activity IDs are stored as strings
- Required numeric fields default to 0 when Strava omits them
- Optional numeric fields stay None when absent ("not measured" != 0)
- Nested collections are stored as JSON text and parsed back unchanged
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from .models import Activity, Athlete, AthleteStats

ACTIVITY_JSON_FIELDS = (
    "splits_metric",
    "splits_standard",
    "segment_efforts",
    "best_efforts",
    "laps",
)

ACTIVITY_OPTIONAL_FLOATS = (
    "max_speed",
    "average_cadence",
    "average_heartrate",
    "max_heartrate",
    "average_watts",
    "kilojoules",
    "elev_high",
    "elev_low",
    "calories",
    "suffer_score",
)

STATS_TOTALS_FIELDS = (
    "recent_ride_totals",
    "all_ride_totals",
    "ytd_ride_totals",
    "recent_run_totals",
    "all_run_totals",
    "ytd_run_totals",
    "recent_swim_totals",
    "all_swim_totals",
    "ytd_swim_totals",
)


# =============================================================================
# Scalars
# =============================================================================

def optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_datetime(value: Any, keep_wall_time: bool = False) -> Optional[datetime]:
    """
    Parse a Strava ISO-8601 timestamp into a naive datetime.

    Aware values are converted to UTC unless keep_wall_time is set
    (start_date_local carries a misleading "Z" suffix).
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))

    if parsed.tzinfo is not None and not keep_wall_time:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.replace(tzinfo=None)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def dump_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, separators=(",", ":"))


def load_json(text: Optional[str]) -> Any:
    if text is None:
        return None
    return json.loads(text)


# =============================================================================
# Activity
# =============================================================================

def activity_to_row(payload: dict) -> dict:
    """
    Convert a Strava activity (summary or detailed) to Activity column values.

    Raises:
        ValueError: If the payload has no id or start_date
    """
    if payload.get("id") is None:
        raise ValueError("Activity payload has no id")

    start_date = parse_datetime(payload.get("start_date"))
    if start_date is None:
        raise ValueError(f"Activity {payload['id']} has no start_date")

    activity_map = payload.get("map") or {}

    row = {
        "id": str(payload["id"]),
        "name": payload.get("name") or "",
        "type": payload.get("type") or payload.get("sport_type") or "Workout",
        "sport_type": payload.get("sport_type"),
        "description": payload.get("description"),
        "gear_id": payload.get("gear_id"),
        "start_date": start_date,
        "start_date_local": parse_datetime(
            payload.get("start_date_local"), keep_wall_time=True
        ),
        "timezone": payload.get("timezone"),
        "distance": optional_float(payload.get("distance")) or 0.0,
        "moving_time": optional_int(payload.get("moving_time")) or 0,
        "elapsed_time": optional_int(payload.get("elapsed_time")) or 0,
        "total_elevation_gain": optional_float(payload.get("total_elevation_gain")) or 0.0,
        "average_speed": optional_float(payload.get("average_speed")) or 0.0,
        "achievement_count": optional_int(payload.get("achievement_count")) or 0,
        "kudos_count": optional_int(payload.get("kudos_count")) or 0,
        "comment_count": optional_int(payload.get("comment_count")) or 0,
        "athlete_count": optional_int(payload.get("athlete_count")) or 1,
        "summary_polyline": activity_map.get("summary_polyline"),
        "polyline": activity_map.get("polyline"),
        "synced_at": datetime.utcnow(),
    }
    for field in ACTIVITY_OPTIONAL_FLOATS:
        row[field] = optional_float(payload.get(field))
    for field in ACTIVITY_JSON_FIELDS:
        row[field] = dump_json(payload.get(field))
    return row


def row_to_activity(activity: Activity) -> dict:
    """Convert a stored Activity back to the Strava activity shape."""
    data = {
        "id": int(activity.id) if activity.id.isdigit() else activity.id,
        "name": activity.name,
        "type": activity.type,
        "sport_type": activity.sport_type,
        "description": activity.description,
        "gear_id": activity.gear_id,
        "start_date": format_datetime(activity.start_date),
        "start_date_local": format_datetime(activity.start_date_local),
        "timezone": activity.timezone,
        "distance": activity.distance,
        "moving_time": activity.moving_time,
        "elapsed_time": activity.elapsed_time,
        "total_elevation_gain": activity.total_elevation_gain,
        "average_speed": activity.average_speed,
        "achievement_count": activity.achievement_count,
        "kudos_count": activity.kudos_count,
        "comment_count": activity.comment_count,
        "athlete_count": activity.athlete_count,
        "map": {
            "id": activity.id,
            "summary_polyline": activity.summary_polyline or "",
            "polyline": activity.polyline or "",
        },
    }
    for field in ACTIVITY_OPTIONAL_FLOATS:
        data[field] = getattr(activity, field)
    for field in ACTIVITY_JSON_FIELDS:
        data[field] = load_json(getattr(activity, field))
    return data


# =============================================================================
# Athlete
# =============================================================================

ATHLETE_TEXT_FIELDS = (
    "username",
    "firstname",
    "lastname",
    "profile",
    "profile_medium",
    "city",
    "state",
    "country",
    "sex",
    "measurement_preference",
)


def athlete_to_row(payload: dict) -> dict:
    if payload.get("id") is None:
        raise ValueError("Athlete payload has no id")

    row = {"id": int(payload["id"])}
    for field in ATHLETE_TEXT_FIELDS:
        row[field] = payload.get(field)
    row["weight"] = optional_float(payload.get("weight"))
    row["ftp"] = optional_int(payload.get("ftp"))
    row["follower_count"] = optional_int(payload.get("follower_count"))
    row["friend_count"] = optional_int(payload.get("friend_count"))
    return row


def row_to_athlete(athlete: Athlete) -> dict:
    data = {"id": athlete.id}
    for field in ATHLETE_TEXT_FIELDS:
        data[field] = getattr(athlete, field)
    data.update(
        weight=athlete.weight,
        ftp=athlete.ftp,
        follower_count=athlete.follower_count,
        friend_count=athlete.friend_count,
    )
    return data


# =============================================================================
# Stats
# =============================================================================

def stats_to_row(athlete_id: int, payload: dict) -> dict:
    row = {
        "athlete_id": int(athlete_id),
        "biggest_ride_distance": optional_float(payload.get("biggest_ride_distance")),
        "biggest_climb_elevation_gain": optional_float(
            payload.get("biggest_climb_elevation_gain")
        ),
    }
    for field in STATS_TOTALS_FIELDS:
        row[field] = dump_json(payload.get(field))
    return row


def row_to_stats(stats: AthleteStats) -> dict:
    data = {
        "biggest_ride_distance": stats.biggest_ride_distance,
        "biggest_climb_elevation_gain": stats.biggest_climb_elevation_gain,
    }
    for field in STATS_TOTALS_FIELDS:
        data[field] = load_json(getattr(stats, field))
    return data
