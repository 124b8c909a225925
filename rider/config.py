"""Configuration settings for Rider."""

import os

CONFIG = {
    "gps_poll_interval": 1,  # seconds between GPS fixes while tracking
    "gps_fix_timeout": 10,  # seconds to wait for a single termux-location fix
    "min_point_distance": 5,  # meters - drop fixes closer than this to the previous point
    "new_miles_interval": 3,  # seconds between new-miles reconciliations while tracking
    "log_interval": 10,  # seconds between STATE log entries
    "db_path": "rider_rides.db",
    # Remote service
    "api_base_url": os.environ.get("RIDER_API_BASE_URL", "https://wandrer.earth"),
    "api_token": os.environ.get("RIDER_API_TOKEN"),
    "athlete_id": os.environ.get("RIDER_ATHLETE_ID"),
    "api_timeout": 30,  # seconds
    "upload_endpoint": "/api/v1/gpx_activities",
    "preview_endpoint": "/api/v1/gpx_activities/preview",
    # Upload retry
    "upload_retry_base_delay": 1.0,  # seconds, doubled per retry
    "upload_retry_max_delay": 60.0,  # seconds
    "upload_max_retries": 5,
    "upload_auto_retry": True,  # sweep pending/failed rides when monitoring starts
    "network_check_interval": 30,  # seconds between reachability checks
    # Display
    "default_activity_type": "bike",
    "default_units": "meters",  # "meters" or "feet"
}
