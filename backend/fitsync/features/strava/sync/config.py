"""
Strava sync configuration constants.

Contains all configuration values for sync behavior.
"""


class SyncConfig:
    """Configuration for sync behavior."""

    # Strava's page-size ceiling for /athlete/activities as used by the sync
    ACTIVITIES_PER_PAGE = 30

    # Default number of activities for a regular (non-full) sync
    DEFAULT_ACTIVITY_LIMIT = 200

    # Skip a non-forced sync if the newest stored activity is this recent
    FRESHNESS_WINDOW_SECONDS = 5 * 60

    # Pause between page batches, on top of the request queue's own pacing
    PAGE_BATCH_SIZE = 10
    PAGE_BATCH_PAUSE_SECONDS = 1.0

    # Log progress every N activities
    PROGRESS_LOG_EVERY = 50


# Sync types written to the sync log
SYNC_TYPE_ATHLETE = "athlete"
SYNC_TYPE_ACTIVITIES = "activities"
SYNC_TYPE_ACTIVITY = "activity"
SYNC_TYPE_STATS = "stats"
