"""Data classes for Rider."""

from dataclasses import dataclass, asdict, field
from typing import Optional

# Recording states
NOT_TRACKING = "not_tracking"
TRACKING = "tracking"
PAUSED = "paused"
FINISHING = "finishing"
RECORDING_STATES = (NOT_TRACKING, TRACKING, PAUSED, FINISHING)

# Upload statuses
PENDING = "pending"
UPLOADING = "uploading"
UPLOADED = "uploaded"
FAILED = "failed"
UPLOAD_STATUSES = (PENDING, UPLOADING, UPLOADED, FAILED)

# Activity types ("combined" is a display filter, recorded as bike)
BIKE = "bike"
FOOT = "foot"
COMBINED = "combined"
ACTIVITY_TYPES = (BIKE, FOOT, COMBINED)
ACTIVITY_TYPE_LABELS = {BIKE: "Bike", FOOT: "Foot", COMBINED: "Both"}

MS_TO_KMH = 3.6


def recording_activity_type(activity_type: str) -> str:
    """Activity type a ride is actually recorded as"""
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type}")
    return BIKE if activity_type == COMBINED else activity_type


@dataclass
class GPSPoint:
    latitude: float
    longitude: float
    timestamp: float  # epoch seconds
    altitude: Optional[float] = None
    speed: Optional[float] = None  # m/s
    accuracy: Optional[float] = None  # meters
    heading: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "GPSPoint":
        return cls(**d)


@dataclass
class RouteSegment:
    """Contiguous run of points between a start/resume and a pause/stop"""
    start_time: float
    points: list[GPSPoint] = field(default_factory=list)
    end_time: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def duration(self, now: float) -> float:
        end = self.end_time if self.end_time is not None else now
        return max(0.0, end - self.start_time)

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "points": [p.to_dict() for p in self.points],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RouteSegment":
        return cls(
            start_time=d["start_time"],
            end_time=d.get("end_time"),
            points=[GPSPoint.from_dict(p) for p in d.get("points", [])],
        )


@dataclass
class LocationPermission:
    has_permission: bool = False
    is_checking_permission: bool = False
    permission_error: Optional[str] = None


@dataclass
class Ride:
    id: str
    start_time: float
    activity_type: str = BIKE
    name: str = ""
    end_time: Optional[float] = None
    duration: float = 0.0  # seconds of moving time
    distance: float = 0.0  # km
    average_speed: float = 0.0  # km/h
    max_speed: float = 0.0  # km/h
    points: list[GPSPoint] = field(default_factory=list)
    segments: list[RouteSegment] = field(default_factory=list)
    new_miles: Optional[float] = None
    upload_status: str = PENDING
    gpx_data: Optional[str] = None
    retry_count: int = 0

    @classmethod
    def make_id(cls, start_time: float) -> str:
        return f"ride_{int(start_time * 1000)}"

    def point_segments(self) -> list[list[GPSPoint]]:
        """Points grouped by segment; a ride without segments is one run"""
        if self.segments:
            return [seg.points for seg in self.segments if seg.points]
        return [self.points] if self.points else []

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "distance": self.distance,
            "average_speed": self.average_speed,
            "max_speed": self.max_speed,
            "points": [p.to_dict() for p in self.points],
            "segments": [s.to_dict() for s in self.segments],
            "activity_type": self.activity_type,
            "new_miles": self.new_miles,
            "upload_status": self.upload_status,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Ride":
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            start_time=d["start_time"],
            end_time=d.get("end_time"),
            duration=d.get("duration", 0.0),
            distance=d.get("distance", 0.0),
            average_speed=d.get("average_speed", 0.0),
            max_speed=d.get("max_speed", 0.0),
            points=[GPSPoint.from_dict(p) for p in d.get("points", [])],
            segments=[RouteSegment.from_dict(s) for s in d.get("segments", [])],
            activity_type=d.get("activity_type", BIKE),
            new_miles=d.get("new_miles"),
            upload_status=d.get("upload_status", PENDING),
            gpx_data=d.get("gpx_data"),
            retry_count=d.get("retry_count", 0),
        )
