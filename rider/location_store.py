"""Live location state: current fix, route points and segments, distance."""

import time
from dataclasses import replace
from typing import Callable, Optional

from .geo import point_distance
from .models import GPSPoint, RouteSegment, LocationPermission, MS_TO_KMH


class LocationStore:
    """Route geometry of the recording, split into segments at pause boundaries"""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.current_location: Optional[GPSPoint] = None
        self.route_points: list[GPSPoint] = []
        self.route_segments: list[RouteSegment] = []
        self.current_segment_index = -1
        self.total_distance = 0.0  # km
        self.current_speed = 0.0  # km/h
        self.gps_accuracy: Optional[float] = None
        self.is_gps_active = False
        self.location_permission = LocationPermission()

    @property
    def current_segment(self) -> Optional[RouteSegment]:
        if 0 <= self.current_segment_index < len(self.route_segments):
            return self.route_segments[self.current_segment_index]
        return None

    def set_current_location(self, location: GPSPoint):
        self.current_location = location
        self.current_speed = (location.speed or 0) * MS_TO_KMH
        self.gps_accuracy = location.accuracy

    def last_segment_point(self) -> Optional[GPSPoint]:
        segment = self.current_segment
        if segment is None or not segment.is_open or not segment.points:
            return None
        return segment.points[-1]

    def add_route_point(self, point: GPSPoint) -> float:
        """Append a point; returns the distance it added in km.

        Distance is only accumulated between points of the same open
        segment, so a pause never contributes the gap it leaves behind.
        """
        self.route_points.append(point)
        segment = self.current_segment
        if segment is None or not segment.is_open:
            return 0.0

        increment = 0.0
        if segment.points:
            increment = point_distance(segment.points[-1], point) / 1000
        segment.points.append(point)
        self.total_distance += increment
        return increment

    def start_new_segment(self) -> RouteSegment:
        segment = RouteSegment(start_time=self.clock())
        self.route_segments.append(segment)
        self.current_segment_index = len(self.route_segments) - 1
        return segment

    def end_current_segment(self):
        segment = self.current_segment
        if segment is None or not segment.is_open:
            return
        segment.end_time = self.clock()

    def active_duration(self, now: Optional[float] = None) -> float:
        """Seconds spent inside segments; the open segment counts up to now"""
        if now is None:
            now = self.clock()
        return sum(segment.duration(now) for segment in self.route_segments)

    def closed_segments(self) -> list[RouteSegment]:
        """Copies of all segments, any open one closed at the current time"""
        now = self.clock()
        return [
            replace(seg, points=list(seg.points), end_time=seg.end_time if seg.end_time is not None else now)
            for seg in self.route_segments
        ]

    def clear_route(self):
        self.route_points = []
        self.route_segments = []
        self.current_segment_index = -1
        self.total_distance = 0.0
        self.current_speed = 0.0

    def update_distance(self, distance: float):
        self.total_distance = distance

    def update_speed(self, speed: float):
        self.current_speed = speed

    def set_gps_accuracy(self, accuracy: Optional[float]):
        self.gps_accuracy = accuracy

    def set_gps_active(self, active: bool):
        self.is_gps_active = active

    def set_location_permission(self, **status):
        self.location_permission = replace(self.location_permission, **status)

    def calculate_new_miles(self, existing_geometry=None) -> float:
        """Local new-miles estimate.

        Without intersecting against already traveled geometry every km is
        new; the remote preview replaces this figure while recording.
        """
        return self.total_distance
