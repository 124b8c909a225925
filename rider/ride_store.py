"""Ride recording state machine and saved ride list."""

import threading
import time
from dataclasses import replace
from typing import Callable, Optional

from .config import CONFIG
from .errors import RideStateError
from .models import (
    Ride, GPSPoint, RouteSegment,
    NOT_TRACKING, TRACKING, PAUSED, FINISHING,
    MS_TO_KMH, recording_activity_type,
)

# action -> (states it is allowed from, resulting state)
TRANSITIONS = {
    "start": ((NOT_TRACKING,), TRACKING),
    "pause": ((TRACKING,), PAUSED),
    "resume": ((PAUSED,), TRACKING),
    "stop": ((TRACKING, PAUSED), FINISHING),
    "cancel": ((TRACKING, PAUSED, FINISHING), NOT_TRACKING),
    "save": ((FINISHING,), NOT_TRACKING),
}


class RideStore:
    """Holds the recording state, the ride being recorded and saved rides.

    Upload retries update saved rides from timer threads, so every
    mutation runs under ``lock``. Listeners are called with the lock held
    and may run on any thread.
    """

    def __init__(self, activity_type: Optional[str] = None, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.lock = threading.RLock()
        self.recording_state = NOT_TRACKING
        self.current_ride: Optional[Ride] = None
        self.saved_rides: list[Ride] = []
        self.activity_type = activity_type or CONFIG["default_activity_type"]
        self._listeners: list[Callable[["RideStore"], None]] = []

    def subscribe(self, listener: Callable[["RideStore"], None]) -> Callable[[], None]:
        """Register a change listener; returns an unsubscribe function"""
        with self.lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def _transition(self, action: str) -> str:
        allowed, target = TRANSITIONS[action]
        if self.recording_state not in allowed:
            raise RideStateError(action, self.recording_state)
        return target

    def set_recording_state(self, state: str):
        with self.lock:
            self.recording_state = state
            self._notify()

    def set_activity_type(self, activity_type: str):
        recording_activity_type(activity_type)  # validates
        with self.lock:
            self.activity_type = activity_type
            self._notify()

    # Recording lifecycle

    def start_recording(self) -> Ride:
        with self.lock:
            target = self._transition("start")
            now = self.clock()
            self.current_ride = Ride(
                id=Ride.make_id(now),
                start_time=now,
                activity_type=recording_activity_type(self.activity_type),
            )
            self.recording_state = target
            self._notify()
            return self.current_ride

    def pause_recording(self):
        with self.lock:
            self.recording_state = self._transition("pause")
            self._notify()

    def resume_recording(self):
        with self.lock:
            self.recording_state = self._transition("resume")
            self._notify()

    def stop_recording(self):
        with self.lock:
            self.recording_state = self._transition("stop")
            self._notify()

    def cancel_recording(self):
        with self.lock:
            self.recording_state = self._transition("cancel")
            self.current_ride = None
            self._notify()

    def save_ride(self, name: str, segments: Optional[list[RouteSegment]] = None,
                  duration: Optional[float] = None) -> Ride:
        """Complete the current ride and append it to saved rides"""
        with self.lock:
            target = self._transition("save")
            name = (name or "").strip()
            if not name:
                raise ValueError("Ride name is required")
            if self.current_ride is None:
                raise RideStateError("save", "no ride is recorded")

            now = self.clock()
            ride = self.current_ride
            ride.name = name
            ride.end_time = now
            if segments is not None:
                ride.segments = list(segments)
            if duration is None:
                duration = now - ride.start_time
            ride.duration = max(ride.duration, duration)
            ride.average_speed = _average_speed(ride.distance, ride.duration)

            self.saved_rides.append(ride)
            self.current_ride = None
            self.recording_state = target
            self._notify()
            return ride

    # Current ride

    def update_current_ride(self, **changes):
        with self.lock:
            if self.current_ride is None:
                return
            self.current_ride = replace(self.current_ride, **changes)
            self._notify()

    def add_point(self, point: GPSPoint):
        with self.lock:
            if self.current_ride is None:
                return
            self.current_ride.points.append(point)
            if point.speed:
                self.current_ride.max_speed = max(self.current_ride.max_speed, point.speed * MS_TO_KMH)
            self._notify()

    def update_ride_stats(self, distance: float, duration: float):
        """Set distance (km) and moving duration (s); duration never goes backwards"""
        with self.lock:
            ride = self.current_ride
            if ride is None:
                return
            ride.distance = distance
            ride.duration = max(ride.duration, duration)
            ride.average_speed = _average_speed(distance, ride.duration)
            self._notify()

    # Saved rides

    def set_saved_rides(self, rides: list[Ride]):
        with self.lock:
            self.saved_rides = list(rides)
            self._notify()

    def get_ride(self, ride_id: str) -> Optional[Ride]:
        with self.lock:
            for ride in self.saved_rides:
                if ride.id == ride_id:
                    return ride
        return None

    def update_ride(self, ride_id: str, **changes):
        with self.lock:
            self.saved_rides = [
                replace(ride, **changes) if ride.id == ride_id else ride
                for ride in self.saved_rides
            ]
            self._notify()

    def update_ride_upload_status(self, ride_id: str, status: str):
        self.update_ride(ride_id, upload_status=status)

    def delete_ride(self, ride_id: str):
        with self.lock:
            self.saved_rides = [ride for ride in self.saved_rides if ride.id != ride_id]
            self._notify()


def _average_speed(distance_km: float, duration_s: float) -> float:
    if distance_km <= 0 or duration_s <= 0:
        return 0.0
    return distance_km / duration_s * 3600
