"""Tests for upload retry scheduling."""

import pytest

from rider.config import CONFIG
from rider.models import PENDING, UPLOADING, UPLOADED, FAILED
from rider.ride_service import RideService
from rider.ride_store import RideStore
from rider.upload_monitor import UploadMonitor


@pytest.fixture
def service(db, fake_client, clock, logger):
    return RideService(db, fake_client, RideStore(clock=clock), logger)


@pytest.fixture
def monitor(service, timers):
    monitor = UploadMonitor(service, timer_factory=timers)
    monitor.is_monitoring = True
    return monitor


def retry_timers(timers):
    return [t for t in timers.created if t.interval != CONFIG["network_check_interval"]]


def test_schedules_pending_and_failed_with_backoff(monitor, service, timers, sample_ride):
    service.save_ride_locally(sample_ride("ride_1", start=1.0))
    service.save_ride_locally(sample_ride("ride_2", start=2.0, upload_status=FAILED, retry_count=2))
    service.save_ride_locally(sample_ride("ride_3", start=3.0, upload_status=UPLOADED))

    assert monitor.check_and_retry_pending_uploads() == 2
    assert [t.interval for t in timers.created] == [1.0, 4.0]
    assert all(t.started and t.daemon for t in timers.created)
    assert monitor.rides_being_retried == {"ride_1", "ride_2"}

    # Already scheduled rides are not scheduled again
    assert monitor.check_and_retry_pending_uploads() == 0
    assert len(timers.created) == 2


def test_successful_retry(monitor, service, timers, sample_ride):
    service.save_ride_locally(sample_ride())
    monitor.check_and_retry_pending_uploads()
    timers.created[0].fire()

    ride = service.db.get_rides()[0]
    assert ride.upload_status == UPLOADED
    assert monitor.rides_being_retried == set()
    assert monitor.retry_timers == {}


def test_backoff_until_max_retries(monitor, service, fake_client, timers, sample_ride):
    service.save_ride_locally(sample_ride())
    fake_client.fail_uploads = 100
    monitor.check_and_retry_pending_uploads()

    while len(timers.created) < 10:
        pending = [t for t in timers.created if not getattr(t, "fired", False)]
        if not pending:
            break
        timer = pending[0]
        timer.fired = True
        timer.fire()

    assert [t.interval for t in timers.created] == [1.0, 2.0, 4.0, 8.0, 16.0]
    assert len(fake_client.uploads) == 5
    ride = service.db.get_rides()[0]
    assert ride.retry_count == 5
    assert ride.upload_status == FAILED
    assert monitor.rides_being_retried == set()

    # Exhausted rides are left alone by later sweeps
    assert monitor.check_and_retry_pending_uploads() == 0


def test_stop_cancels_everything(monitor, service, timers, sample_ride):
    service.save_ride_locally(sample_ride())
    monitor.check_and_retry_pending_uploads()
    monitor.stop_monitoring()
    assert timers.created[0].cancelled
    assert monitor.retry_timers == {}
    assert monitor.rides_being_retried == set()
    assert not monitor.is_monitoring


def test_failure_when_stopped_does_not_reschedule(service, fake_client, timers, sample_ride):
    monitor = UploadMonitor(service, timer_factory=timers)
    service.save_ride_locally(sample_ride())
    fake_client.fail_uploads = 1
    ride = service.db.get_rides()[0]
    assert not monitor.retry_upload_with_backoff(ride)
    assert timers.created == []
    stored = service.db.get_rides()[0]
    assert stored.retry_count == 1
    assert stored.upload_status == FAILED


def test_manual_retry_resets_count(monitor, service, timers, sample_ride):
    service.save_ride_locally(sample_ride(upload_status=FAILED, retry_count=5))
    ride_id = service.db.get_rides()[0].id
    assert monitor.retry_ride_upload(ride_id)
    stored = service.db.get_ride(ride_id)
    assert stored.retry_count == 0
    assert stored.upload_status == UPLOADED


def test_manual_retry_cancels_scheduled_timer(monitor, service, timers, sample_ride):
    service.save_ride_locally(sample_ride())
    monitor.check_and_retry_pending_uploads()
    ride_id = service.db.get_rides()[0].id
    monitor.retry_ride_upload(ride_id)
    assert timers.created[0].cancelled
    # Firing the stale timer afterwards does nothing
    timers.created[0].fire()
    assert len(service.client.uploads) == 1


def test_manual_retry_unknown_ride(monitor):
    assert not monitor.retry_ride_upload("ride_missing")


def test_start_monitoring_sweeps_and_checks_network(service, timers, sample_ride, monkeypatch):
    monkeypatch.setitem(CONFIG, "upload_auto_retry", True)
    monitor = UploadMonitor(service, timer_factory=timers)
    service.save_ride_locally(sample_ride())

    monitor.start_monitoring()
    monitor.start_monitoring()
    assert len(retry_timers(timers)) == 1
    network = [t for t in timers.created if t.interval == CONFIG["network_check_interval"]]
    assert len(network) == 1

    # Network check reschedules itself; the ride is already queued
    network[0].fire()
    assert len([t for t in timers.created if t.interval == CONFIG["network_check_interval"]]) == 2
    assert len(retry_timers(timers)) == 1
    monitor.stop_monitoring()


def test_auto_retry_disabled(service, timers, sample_ride, monkeypatch):
    monkeypatch.setitem(CONFIG, "upload_auto_retry", False)
    monitor = UploadMonitor(service, timer_factory=timers)
    service.save_ride_locally(sample_ride(upload_status=PENDING))
    monitor.start_monitoring()
    assert monitor.is_monitoring
    assert timers.created == []


def test_manual_retry_of_ride_already_uploading(monitor, service, fake_client, sample_ride):
    ride = service.save_ride_locally(sample_ride())
    service.db.update_upload_status(ride.id, UPLOADING)

    assert not monitor.retry_ride_upload(ride.id)
    assert fake_client.uploads == []
    assert service.db.get_ride(ride.id).upload_status == UPLOADING
    assert monitor.rides_being_retried == set()


def test_manual_retry_leaves_running_retry_alone(monitor, service, fake_client, sample_ride):
    ride = service.save_ride_locally(sample_ride())
    # Timer already fired and its upload is under way
    monitor.rides_being_retried.add(ride.id)

    assert not monitor.retry_ride_upload(ride.id)
    assert fake_client.uploads == []
    assert monitor.rides_being_retried == {ride.id}


def test_skipped_retry_is_not_a_success(monitor, service, sample_ride):
    ride = service.save_ride_locally(sample_ride(upload_status=UPLOADED))
    monitor.rides_being_retried.add(ride.id)
    assert not monitor.retry_upload_with_backoff(ride)
    assert monitor.rides_being_retried == set()
