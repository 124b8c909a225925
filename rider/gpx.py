"""GPX export and import of rides."""

import re
from datetime import datetime, timezone
from typing import Optional

import gpxpy
import gpxpy.gpx

from .models import Ride, GPSPoint

CREATOR = "Rider"


def _to_datetime(timestamp: Optional[float]) -> Optional[datetime]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def build_gpx(ride: Ride) -> str:
    """Build a GPX 1.1 document for a ride.

    Each recording segment becomes its own <trkseg>, so consumers never
    draw a line across a pause.
    """
    gpx = gpxpy.gpx.GPX()
    gpx.creator = CREATOR
    gpx.name = ride.name or ride.id
    gpx.time = _to_datetime(ride.start_time)

    track = gpxpy.gpx.GPXTrack(name=ride.name or ride.id)
    track.type = ride.activity_type
    gpx.tracks.append(track)

    for points in ride.point_segments():
        segment = gpxpy.gpx.GPXTrackSegment()
        for point in points:
            segment.points.append(gpxpy.gpx.GPXTrackPoint(
                latitude=point.latitude,
                longitude=point.longitude,
                elevation=point.altitude,
                time=_to_datetime(point.timestamp),
            ))
        track.segments.append(segment)

    return gpx.to_xml(version="1.1")


def parse_gpx(text: str) -> list[list[GPSPoint]]:
    """Parse GPX text into per-segment lists of points.

    Points without a time get one second after their predecessor.
    """
    gpx = gpxpy.parse(text)
    segments = []
    last_timestamp = 0.0
    for track in gpx.tracks:
        for segment in track.segments:
            points = []
            for tp in segment.points:
                if tp.time is not None:
                    timestamp = tp.time.timestamp()
                else:
                    timestamp = last_timestamp + 1
                last_timestamp = timestamp
                points.append(GPSPoint(
                    latitude=tp.latitude,
                    longitude=tp.longitude,
                    timestamp=timestamp,
                    altitude=tp.elevation,
                ))
            if points:
                segments.append(points)
    return segments


def gpx_filename(name: str) -> str:
    """Upload file name for a ride name"""
    return re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE) + ".gpx"
