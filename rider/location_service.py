"""Feeds GPS fixes into the location and ride stores."""

from typing import Optional

from .config import CONFIG
from .errors import LocationPermissionError
from .geo import point_distance
from .gps import PERMISSION_DENIED
from .location_store import LocationStore
from .logger import Logger
from .models import GPSPoint, TRACKING
from .ride_store import RideStore


class LocationService:
    """Permission handling and per-fix bookkeeping for a GPS source"""

    def __init__(self, gps_source, location_store: LocationStore, ride_store: RideStore,
                 logger: Optional[Logger] = None):
        self.gps_source = gps_source
        self.location_store = location_store
        self.ride_store = ride_store
        self.logger = logger or Logger()

    def set_gps_source(self, source):
        self.gps_source = source

    def request_location_permissions(self) -> bool:
        store = self.location_store
        store.set_location_permission(is_checking_permission=True)
        try:
            granted, error = self.gps_source.request_permission()
        except OSError as e:
            granted, error = False, str(e) or "Failed to request permissions"

        store.set_location_permission(
            has_permission=granted,
            is_checking_permission=False,
            permission_error=None if granted else (error or PERMISSION_DENIED),
        )
        if not granted:
            self.logger.error("Location permission denied", {"error": store.location_permission.permission_error})
        return granted

    def start_location_tracking(self):
        if not self.request_location_permissions():
            raise LocationPermissionError("Location permissions not granted")
        self.location_store.set_gps_active(True)
        self.logger.log("Location tracking started")

    def stop_location_tracking(self):
        if self.location_store.is_gps_active:
            self.logger.log("Location tracking stopped")
        self.location_store.set_gps_active(False)

    def poll(self) -> Optional[GPSPoint]:
        """Read one fix from the source while tracking is active"""
        if not self.location_store.is_gps_active:
            return None
        point = self.gps_source.get_location()
        if point is not None:
            self.handle_location(point)
        return point

    def handle_location(self, point: GPSPoint) -> bool:
        """Process a fix. Returns True if it was added to the ride."""
        self.location_store.set_current_location(point)
        if self.ride_store.recording_state != TRACKING:
            return False

        previous = self.location_store.last_segment_point()
        if previous is not None and point_distance(previous, point) < CONFIG["min_point_distance"]:
            return False

        self.ride_store.add_point(point)
        self.location_store.add_route_point(point)
        self.update_distance_and_speed()
        return True

    def update_distance_and_speed(self):
        store = self.location_store
        self.ride_store.update_ride_stats(store.total_distance, store.active_duration())

    def get_current_location(self) -> Optional[GPSPoint]:
        if not self.request_location_permissions():
            return None
        point = self.gps_source.get_location()
        if point is None:
            self.logger.error("Failed to get current location")
        return point
