"""Exceptions raised by Rider."""

from typing import Optional


class RiderError(Exception):
    """Base class for Rider errors"""


class RideStateError(RiderError):
    """A recording transition was requested from a state that does not allow it"""

    def __init__(self, action: str, state: str):
        super().__init__(f"Cannot {action} while {state}")
        self.action = action
        self.state = state


class LocationPermissionError(RiderError):
    """Location permission was not granted"""


class ApiError(RiderError):
    """Request to the remote service failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UploadError(RiderError):
    """A ride could not be uploaded"""

    def __init__(self, ride_id: str, message: str):
        super().__init__(f"Upload of {ride_id} failed: {message}")
        self.ride_id = ride_id
