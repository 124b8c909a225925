"""Main Rider application."""

import time
from datetime import datetime
from typing import Optional

from .api import WandrerClient
from .config import CONFIG
from .errors import LocationPermissionError, UploadError
from .geo import retry_with_backoff
from .gps import GPS, GPSRecorder, GPSPlayback
from .gpx import build_gpx
from .location_service import LocationService
from .location_store import LocationStore
from .logger import Logger
from .models import Ride, TRACKING, PAUSED, FINISHING, NOT_TRACKING
from .ride_service import RideService
from .ride_store import RideStore
from .storage import RideDB
from .units import format_distance, format_duration, format_speed


class RideRecorder:
    """Ties the GPS source, stores and services into one recording session"""

    def __init__(self, gps_source=None, db: Optional[RideDB] = None, client=None,
                 logger: Optional[Logger] = None, clock=None, monitor=None):
        self.gps_source = gps_source or GPS()
        if clock is None:
            clock = self.gps_source.current_time if isinstance(self.gps_source, GPSPlayback) else time.time
        self.clock = clock
        self.logger = logger or Logger()
        self.db = db or RideDB()
        self.client = client or WandrerClient()

        self.ride_store = RideStore(clock=clock)
        self.location_store = LocationStore(clock=clock)
        self.location_service = LocationService(self.gps_source, self.location_store,
                                                self.ride_store, self.logger)
        self.ride_service = RideService(self.db, self.client, self.ride_store, self.logger)
        self.ride_store.set_saved_rides(self.ride_service.get_local_rides())
        self.monitor = monitor

        self.last_reconcile_time = 0.0
        self.last_reconciled_points = 0
        self.last_log_update = 0.0

    # Recording controls

    def start(self, activity_type: Optional[str] = None) -> Ride:
        if activity_type:
            self.ride_store.set_activity_type(activity_type)
        ride = self.ride_store.start_recording()
        self.location_store.clear_route()
        self.location_store.start_new_segment()
        try:
            self.location_service.start_location_tracking()
        except LocationPermissionError:
            self.ride_store.cancel_recording()
            self.location_store.clear_route()
            raise
        self.last_reconcile_time = self.clock()
        self.last_reconciled_points = 0
        self.logger.log("Recording started", {"ride_id": ride.id, "activity_type": ride.activity_type})
        return ride

    def pause(self):
        self.ride_store.pause_recording()
        self.location_store.end_current_segment()
        self.location_service.stop_location_tracking()
        self.logger.log("Recording paused", self.get_state())

    def resume(self):
        self.ride_store.resume_recording()
        self.location_store.start_new_segment()
        try:
            self.location_service.start_location_tracking()
        except LocationPermissionError:
            self.location_store.end_current_segment()
            self.ride_store.pause_recording()
            raise
        self.logger.log("Recording resumed", {"segment": self.location_store.current_segment_index})

    def stop(self):
        self.ride_store.stop_recording()
        self.location_store.end_current_segment()
        self.location_service.stop_location_tracking()
        self.logger.log("Recording stopped", self.get_state())

    def cancel(self):
        ride_id = self.ride_store.current_ride.id if self.ride_store.current_ride else None
        self.ride_store.cancel_recording()
        self.location_service.stop_location_tracking()
        self.location_store.clear_route()
        self.logger.log("Ride discarded", {"ride_id": ride_id})

    def finish(self, name: str, upload: bool = True) -> Ride:
        """Save the stopped ride locally and upload it"""
        ride = self.ride_store.save_ride(
            name,
            segments=self.location_store.closed_segments(),
            duration=self.location_store.active_duration(),
        )
        self.ride_service.save_ride_locally(ride)
        self.location_store.clear_route()

        if upload:
            try:
                self.ride_service.upload_ride(ride)
            except UploadError as e:
                self.logger.log("Upload failed, will retry later", {"ride_id": ride.id, "error": str(e)})
                if self.monitor is not None and self.monitor.is_monitoring:
                    self.monitor.check_and_retry_pending_uploads()
        return ride

    # Periodic work

    def reconcile_new_miles(self) -> Optional[float]:
        """Ask the service how many new miles the ride so far covers"""
        ride = self.ride_store.current_ride
        self.last_reconcile_time = self.clock()
        if ride is None or not ride.points:
            return None

        snapshot = Ride(id=ride.id, start_time=ride.start_time, name=ride.name or ride.id,
                        activity_type=ride.activity_type,
                        segments=self.location_store.closed_segments())
        new_miles = self.ride_service.get_new_miles(build_gpx(snapshot))
        self.last_reconciled_points = len(ride.points)
        if new_miles is None:
            return None
        self.ride_store.update_current_ride(new_miles=new_miles)
        return new_miles

    def tick(self):
        """One GPS poll plus due periodic work"""
        if self.ride_store.recording_state == TRACKING:
            self.location_service.poll()

        now = self.clock()
        ride = self.ride_store.current_ride
        if (self.ride_store.recording_state == TRACKING and ride is not None
                and len(ride.points) > self.last_reconciled_points
                and now - self.last_reconcile_time >= CONFIG["new_miles_interval"]):
            self.reconcile_new_miles()

        if now - self.last_log_update >= CONFIG["log_interval"]:
            self.logger.log("STATE", self.get_state())
            self.last_log_update = now

    def get_state(self) -> dict:
        """Get current state as dict for logging"""
        ride = self.ride_store.current_ride
        state = {
            "recording_state": self.ride_store.recording_state,
            "distance_km": round(self.location_store.total_distance, 3),
            "duration_s": round(self.location_store.active_duration(), 1),
            "speed_kmh": round(self.location_store.current_speed, 1),
            "segments": len(self.location_store.route_segments),
            "gps_status": self.gps_source.get_status() if hasattr(self.gps_source, "get_status") else "unknown",
        }
        if ride is not None:
            state["ride_id"] = ride.id
            state["points"] = len(ride.points)
            state["new_miles"] = ride.new_miles
        if self.location_store.current_location:
            loc = self.location_store.current_location
            state["location"] = {"lat": loc.latitude, "lon": loc.longitude, "accuracy": loc.accuracy}
        return state

    def get_poll_interval(self) -> float:
        """Get poll interval, respecting playback speed if applicable"""
        if isinstance(self.gps_source, GPSPlayback):
            return self.gps_source.get_poll_interval()
        return CONFIG["gps_poll_interval"]

    def is_playback_finished(self) -> bool:
        if isinstance(self.gps_source, GPSPlayback):
            return self.gps_source.is_finished()
        return False

    def wait_for_fix(self) -> bool:
        """Block until the source yields a first fix (retrying with backoff)"""
        def try_gps():
            point = self.location_service.get_current_location()
            if point:
                self.location_store.set_current_location(point)
            return point

        point = retry_with_backoff(try_gps, max_time=30.0, initial_delay=1.0, max_delay=8.0,
                                   description="GPS fix", logger=self.logger)
        if not point:
            self.logger.error("Could not get GPS location after retries")
            return False
        self.logger.log("Got GPS fix", {"lat": point.latitude, "lon": point.longitude,
                                        "accuracy": point.accuracy})
        return True

    def run(self, name: Optional[str] = None, activity_type: Optional[str] = None,
            upload: bool = True) -> Optional[Ride]:
        """Record until interrupted (or playback ends), then save and upload"""
        print("\n=== Rider ===")
        if isinstance(self.gps_source, GPSPlayback):
            print(f"Playback mode: {self.gps_source.speed}x speed")
        else:
            print("Press Ctrl+C to stop")
            if not self.wait_for_fix():
                print("Could not get GPS location")
                return None
        print()

        if self.monitor is not None:
            self.monitor.start_monitoring()

        ride = None
        try:
            self.start(activity_type)
            while True:
                self.tick()
                if self.is_playback_finished():
                    self.logger.log("Playback finished")
                    break
                time.sleep(self.get_poll_interval())
        except KeyboardInterrupt:
            print("\nRecording interrupted")
            self.logger.log("Recording interrupted by user")
        except LocationPermissionError as e:
            self.logger.error("Cannot record", {"error": str(e)})
            print(f"Cannot record: {e}")
        finally:
            if self.ride_store.recording_state in (TRACKING, PAUSED):
                self.stop()
            if self.ride_store.recording_state == FINISHING:
                ride_name = name or datetime.fromtimestamp(self.clock()).strftime("Ride %Y-%m-%d %H:%M")
                ride = self.finish(ride_name, upload=upload)

            if isinstance(self.gps_source, GPSRecorder):
                self.gps_source.save()

            if ride is not None:
                self.print_summary(ride)
            if self.monitor is not None:
                self.monitor.stop_monitoring()
        return ride

    def print_summary(self, ride: Ride, units: str = CONFIG["default_units"]):
        summary = {
            "ride_id": ride.id,
            "distance_km": round(ride.distance, 3),
            "duration_s": round(ride.duration, 1),
            "points": len(ride.points),
            "segments": len(ride.segments),
            "upload_status": ride.upload_status,
            "new_miles": ride.new_miles,
        }
        self.logger.log("Ride summary", summary)

        print("\nRide summary:")
        print(f"  Name: {ride.name}")
        print(f"  Distance: {format_distance(ride.distance, units)}")
        print(f"  Duration: {format_duration(ride.duration)}")
        print(f"  Avg speed: {format_speed(ride.average_speed, units)}")
        print(f"  Max speed: {format_speed(ride.max_speed, units)}")
        if ride.new_miles is not None:
            print(f"  New miles: {format_distance(ride.new_miles, units)}")
        print(f"  Upload: {ride.upload_status}")

    def close(self):
        if self.ride_store.recording_state != NOT_TRACKING:
            self.logger.log("Closing with unsaved ride", {"state": self.ride_store.recording_state})
        self.db.close()
        self.logger.close()
