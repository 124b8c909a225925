"""Geographic and retry utility functions."""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .logger import Logger
    from .models import GPSPoint

EARTH_RADIUS_M = 6371000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def point_distance(p1: "GPSPoint", p2: "GPSPoint") -> float:
    """Distance between two GPS points in meters"""
    return haversine_distance(p1.latitude, p1.longitude, p2.latitude, p2.longitude)


def path_distance(points: Iterable["GPSPoint"]) -> float:
    """Total distance along consecutive points in meters"""
    total = 0.0
    prev = None
    for point in points:
        if prev is not None:
            total += point_distance(prev, point)
        prev = point
    return total


def backoff_delay(retry_count: int, base: float = 1.0, max_delay: float = 60.0) -> float:
    """Exponential backoff delay in seconds for the given retry count"""
    return min(base * (2 ** retry_count), max_delay)


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation",
                       logger: "Logger | None" = None, sleep=time.sleep):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging
        logger: Logger for retry messages (printed when omitted)
        sleep: Sleep function, swappable in tests

    Returns:
        The result of func() on success, or None if all retries failed
    """
    log = logger.log if logger else print
    start_time = time.time()
    delay = initial_delay
    attempt = 1

    while True:
        result = func()
        if result:
            return result

        elapsed = time.time() - start_time
        if elapsed >= max_time:
            log(f"Failed to complete {description} after {elapsed:.1f}s ({attempt} attempts)")
            return None

        remaining = max_time - elapsed
        sleep_time = min(delay, remaining, max_delay)
        if sleep_time > 0:
            log(f"Retrying {description} in {sleep_time:.1f}s (attempt {attempt})...")
            sleep(sleep_time)

        delay = min(delay * 2, max_delay)
        attempt += 1
