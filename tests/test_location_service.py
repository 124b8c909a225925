"""Tests for the location service."""

import pytest

from rider.errors import LocationPermissionError
from rider.location_service import LocationService
from rider.location_store import LocationStore
from rider.ride_store import RideStore


@pytest.fixture
def stores(clock):
    return LocationStore(clock=clock), RideStore(clock=clock)


def make_service(source, stores, logger):
    location_store, ride_store = stores
    return LocationService(source, location_store, ride_store, logger)


def start_tracking(service):
    service.ride_store.start_recording()
    service.location_store.start_new_segment()
    service.start_location_tracking()


class TestPermissions:

    def test_granted(self, fake_gps, stores, logger):
        service = make_service(fake_gps(), stores, logger)
        assert service.request_location_permissions()
        permission = service.location_store.location_permission
        assert permission.has_permission
        assert not permission.is_checking_permission
        assert permission.permission_error is None

    def test_denied_blocks_tracking(self, fake_gps, stores, logger):
        service = make_service(fake_gps(granted=False), stores, logger)
        with pytest.raises(LocationPermissionError):
            service.start_location_tracking()
        permission = service.location_store.location_permission
        assert not permission.has_permission
        assert permission.permission_error == "Location permission denied"
        assert not service.location_store.is_gps_active

    def test_source_error_reported(self, stores, logger):
        class BrokenSource:
            def request_permission(self):
                raise OSError("location service unavailable")

        service = make_service(BrokenSource(), stores, logger)
        assert not service.request_location_permissions()
        assert service.location_store.location_permission.permission_error == "location service unavailable"

    def test_get_current_location_requires_permission(self, fake_gps, stores, logger, make_point):
        service = make_service(fake_gps([make_point(0)], granted=False), stores, logger)
        assert service.get_current_location() is None


class TestHandleLocation:

    def test_not_tracking_only_updates_current_location(self, fake_gps, stores, logger, make_point):
        service = make_service(fake_gps(), stores, logger)
        point = make_point(0)
        assert not service.handle_location(point)
        assert service.location_store.current_location == point
        assert service.location_store.route_points == []

    def test_tracking_adds_points_and_stats(self, fake_gps, stores, logger, make_point, clock):
        service = make_service(fake_gps(), stores, logger)
        start_tracking(service)
        for i in range(3):
            clock.advance(1)
            assert service.handle_location(make_point(i))

        ride = service.ride_store.current_ride
        assert len(ride.points) == 3
        assert ride.distance == pytest.approx(service.location_store.total_distance)
        assert ride.distance > 0.02
        assert ride.duration == 3

    def test_paused_points_are_not_recorded(self, fake_gps, stores, logger, make_point):
        service = make_service(fake_gps(), stores, logger)
        start_tracking(service)
        service.handle_location(make_point(0))
        service.ride_store.pause_recording()
        assert not service.handle_location(make_point(1))
        assert len(service.ride_store.current_ride.points) == 1

    def test_jitter_below_min_distance_dropped(self, fake_gps, stores, logger, make_point):
        service = make_service(fake_gps(), stores, logger)
        start_tracking(service)
        assert service.handle_location(make_point(0))
        # ~1 m away
        assert not service.handle_location(make_point(0, step=0.00001, lat0=51.50001))
        assert len(service.location_store.route_points) == 1


class TestPolling:

    def test_poll_inactive_does_not_touch_source(self, fake_gps, stores, logger, make_point):
        source = fake_gps([make_point(0)])
        service = make_service(source, stores, logger)
        assert service.poll() is None
        assert source.calls == 0

    def test_poll_feeds_fix(self, fake_gps, stores, logger, make_point):
        source = fake_gps([make_point(0)])
        service = make_service(source, stores, logger)
        start_tracking(service)
        assert service.poll() == make_point(0)
        assert len(service.ride_store.current_ride.points) == 1

    def test_stop_tracking(self, fake_gps, stores, logger):
        service = make_service(fake_gps(), stores, logger)
        service.start_location_tracking()
        service.stop_location_tracking()
        assert not service.location_store.is_gps_active
