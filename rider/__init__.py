"""Rider - GPS ride recorder with new-miles tracking and upload."""

from .config import CONFIG
from .errors import RiderError, RideStateError, LocationPermissionError, ApiError, UploadError
from .models import GPSPoint, RouteSegment, LocationPermission, Ride
from .logger import Logger
from .geo import haversine_distance, path_distance, backoff_delay, retry_with_backoff
from .gps import GPS, GPSRecorder, GPSPlayback
from .gpx import build_gpx, parse_gpx
from .ride_store import RideStore
from .location_store import LocationStore
from .location_service import LocationService
from .storage import RideDB
from .api import WandrerClient
from .ride_service import RideService
from .upload_monitor import UploadMonitor
from .app import RideRecorder
from .__main__ import main

__all__ = [
    "CONFIG",
    "RiderError",
    "RideStateError",
    "LocationPermissionError",
    "ApiError",
    "UploadError",
    "GPSPoint",
    "RouteSegment",
    "LocationPermission",
    "Ride",
    "Logger",
    "haversine_distance",
    "path_distance",
    "backoff_delay",
    "retry_with_backoff",
    "GPS",
    "GPSRecorder",
    "GPSPlayback",
    "build_gpx",
    "parse_gpx",
    "RideStore",
    "LocationStore",
    "LocationService",
    "RideDB",
    "WandrerClient",
    "RideService",
    "UploadMonitor",
    "RideRecorder",
    "main",
]
