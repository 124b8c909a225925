"""Background retry of pending and failed ride uploads."""

import threading
from typing import Callable, Optional

from .config import CONFIG
from .errors import UploadError
from .geo import backoff_delay
from .logger import Logger
from .models import Ride, PENDING, FAILED
from .ride_service import RideService


class UploadMonitor:
    """Schedules upload retries with exponential backoff.

    Each ride is retried at most ``upload_max_retries`` times; the delay
    before a retry is ``backoff_delay(retry_count)`` (1 s doubling up to
    60 s). Timers run on background threads; ``timer_factory`` is
    swappable so tests can fire them by hand.
    """

    def __init__(self, ride_service: RideService, logger: Optional[Logger] = None,
                 timer_factory: Callable[..., threading.Timer] = threading.Timer):
        self.ride_service = ride_service
        self.logger = logger or ride_service.logger
        self.timer_factory = timer_factory
        self.is_monitoring = False
        self.network_timer: Optional[threading.Timer] = None
        self.retry_timers: dict[str, threading.Timer] = {}
        self.rides_being_retried: set[str] = set()
        self.lock = threading.RLock()

    def _delay(self, retry_count: int) -> float:
        return backoff_delay(
            retry_count,
            base=CONFIG["upload_retry_base_delay"],
            max_delay=CONFIG["upload_retry_max_delay"],
        )

    def _start_timer(self, delay: float, func, *args) -> threading.Timer:
        timer = self.timer_factory(delay, func, args=args)
        timer.daemon = True
        timer.start()
        return timer

    def start_monitoring(self):
        if self.is_monitoring:
            return
        self.is_monitoring = True
        self.logger.log("Upload monitor started", {"auto_retry": CONFIG["upload_auto_retry"]})
        if CONFIG["upload_auto_retry"]:
            self.check_and_retry_pending_uploads()
            self._schedule_network_check()

    def stop_monitoring(self):
        with self.lock:
            self.is_monitoring = False
            if self.network_timer:
                self.network_timer.cancel()
                self.network_timer = None
            for timer in self.retry_timers.values():
                timer.cancel()
            self.retry_timers.clear()
            self.rides_being_retried.clear()
        self.logger.log("Upload monitor stopped")

    def _schedule_network_check(self):
        self.network_timer = self._start_timer(CONFIG["network_check_interval"], self._network_check)

    def _network_check(self):
        if not self.is_monitoring:
            return
        if self.ride_service.client.is_reachable():
            self.logger.log("Network available, checking for pending uploads")
            self.check_and_retry_pending_uploads()
        with self.lock:
            if self.is_monitoring:
                self._schedule_network_check()

    def check_and_retry_pending_uploads(self) -> int:
        """Schedule a retry for each pending/failed ride. Returns how many were scheduled."""
        rides = self.ride_service.db.get_rides_by_status(PENDING, FAILED)
        scheduled = 0
        with self.lock:
            for ride in rides:
                if ride.id in self.retry_timers or ride.id in self.rides_being_retried:
                    continue
                if ride.retry_count >= CONFIG["upload_max_retries"]:
                    continue
                delay = self._delay(ride.retry_count)
                self.logger.log("Scheduling upload retry", {"ride_id": ride.id, "delay": delay})
                self.rides_being_retried.add(ride.id)
                self.retry_timers[ride.id] = self._start_timer(delay, self._fire_retry, ride.id)
                scheduled += 1
        return scheduled

    def _fire_retry(self, ride_id: str):
        with self.lock:
            self.retry_timers.pop(ride_id, None)
            if ride_id not in self.rides_being_retried:
                return
        ride = self.ride_service.db.get_ride(ride_id)
        if ride is None:
            with self.lock:
                self.rides_being_retried.discard(ride_id)
            return
        self.retry_upload_with_backoff(ride)

    def retry_upload_with_backoff(self, ride: Ride) -> bool:
        """Try one upload; on failure schedule the next attempt. Returns success."""
        self.logger.log("Retrying upload", {"ride_id": ride.id, "attempt": ride.retry_count + 1})
        try:
            response = self.ride_service.upload_ride(ride)
        except UploadError as e:
            return self._handle_failure(ride, e)

        with self.lock:
            self.rides_being_retried.discard(ride.id)
        if response is None:
            self.logger.log("Upload retry skipped", {"ride_id": ride.id})
            return False
        self.logger.log("Upload retry succeeded", {"ride_id": ride.id})
        return True

    def _handle_failure(self, ride: Ride, error: UploadError) -> bool:
        ride.retry_count += 1
        self.ride_service.db.set_retry_count(ride.id, ride.retry_count)
        max_retries = CONFIG["upload_max_retries"]

        with self.lock:
            if ride.retry_count < max_retries and self.is_monitoring:
                delay = self._delay(ride.retry_count)
                self.logger.log("Scheduling next retry", {
                    "ride_id": ride.id, "delay": delay,
                    "attempt": f"{ride.retry_count + 1}/{max_retries}",
                    "error": str(error),
                })
                self.retry_timers[ride.id] = self._start_timer(delay, self._fire_retry, ride.id)
                return False

            self.rides_being_retried.discard(ride.id)

        if ride.retry_count >= max_retries:
            self.logger.error("Max retries reached", {"ride_id": ride.id})
        self.ride_service.db.update_upload_status(ride.id, FAILED)
        if self.ride_service.ride_store is not None:
            self.ride_service.ride_store.update_ride_upload_status(ride.id, FAILED)
        return False

    def retry_ride_upload(self, ride_id: str) -> bool:
        """Manual retry: cancel any scheduled attempt, reset the count, upload now"""
        with self.lock:
            timer = self.retry_timers.pop(ride_id, None)
            if timer:
                timer.cancel()
            elif ride_id in self.rides_being_retried:
                # A timer thread is uploading it right now
                self.logger.log("Upload already in progress", {"ride_id": ride_id})
                return False
            self.rides_being_retried.add(ride_id)

        ride = self.ride_service.db.get_ride(ride_id)
        if ride is None:
            with self.lock:
                self.rides_being_retried.discard(ride_id)
            self.logger.error("Ride not found", {"ride_id": ride_id})
            return False

        ride.retry_count = 0
        self.ride_service.db.set_retry_count(ride_id, 0)
        return self.retry_upload_with_backoff(ride)
