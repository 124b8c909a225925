"""Shared fixtures for Rider tests."""

import pytest

from rider.errors import ApiError
from rider.logger import Logger
from rider.models import GPSPoint, Ride
from rider.storage import RideDB

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeClient:
    """Stands in for WandrerClient"""

    def __init__(self, new_miles=1.5, preview=0.8):
        self.new_miles = new_miles
        self.preview = preview
        self.uploads = []
        self.previews = []
        self.fail_uploads = 0
        self.fail_preview = False
        self.reachable = True

    def upload_gpx(self, gpx, name, activity_type):
        self.uploads.append({"gpx": gpx, "name": name, "activity_type": activity_type})
        if self.fail_uploads:
            self.fail_uploads -= 1
            raise ApiError("POST /api/v1/gpx_activities returned 503", status_code=503)
        return {"success": True, "new_miles": self.new_miles, "ride_id": "42"}

    def preview_new_miles(self, gpx):
        self.previews.append(gpx)
        if self.fail_preview:
            raise ApiError("POST /api/v1/gpx_activities/preview failed: timeout")
        return self.preview

    def is_reachable(self):
        return self.reachable


class FakeGPS:
    """GPS source returning queued points"""

    def __init__(self, points=None, granted=True, error=None):
        self.points = list(points or [])
        self.granted = granted
        self.error = error
        self.calls = 0

    def request_permission(self):
        return self.granted, self.error

    def get_location(self, timeout=None):
        self.calls += 1
        if not self.points:
            return None
        return self.points.pop(0)

    def get_status(self):
        return "Fake GPS"


class FakeTimer:
    """threading.Timer replacement fired by hand"""

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.started = False
        self.cancelled = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args, **self.kwargs)


def build_point(i: int, t0: float = T0, lat0: float = 51.5, lon0: float = -0.12,
                step: float = 0.0001, speed=5.0, accuracy=5.0) -> GPSPoint:
    """Point i of a track heading north roughly 11 m per step, one second apart"""
    return GPSPoint(
        latitude=lat0 + i * step,
        longitude=lon0,
        timestamp=t0 + i,
        altitude=20.0,
        speed=speed,
        accuracy=accuracy,
    )


@pytest.fixture
def make_point():
    return build_point


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_gps():
    return FakeGPS


@pytest.fixture
def timers():
    created = []

    def factory(interval, function, args=None, kwargs=None):
        timer = FakeTimer(interval, function, args, kwargs)
        created.append(timer)
        return timer

    factory.created = created
    return factory


@pytest.fixture
def logger():
    return Logger(echo=False)


@pytest.fixture
def db(tmp_path):
    database = RideDB(str(tmp_path / "rides.db"))
    yield database
    database.close()


@pytest.fixture
def sample_ride():
    def _make(ride_id="ride_1700000000000", name="Morning Ride", start=T0, n=5, **changes):
        points = [build_point(i, t0=start) for i in range(n)]
        ride = Ride(
            id=ride_id,
            name=name,
            start_time=start,
            end_time=start + n,
            duration=float(n),
            distance=0.05,
            points=points,
        )
        for key, value in changes.items():
            setattr(ride, key, value)
        return ride
    return _make
