"""Local persistence and upload of recorded rides."""

from typing import Callable, Optional

from .errors import ApiError, UploadError
from .geo import point_distance
from .gpx import build_gpx
from .logger import Logger
from .models import Ride, GPSPoint, PENDING, UPLOADING, UPLOADED, FAILED, MS_TO_KMH
from .ride_store import RideStore
from .storage import RideDB


class RideService:
    """Saves rides to the local database and uploads them"""

    def __init__(self, db: RideDB, client, ride_store: Optional[RideStore] = None,
                 logger: Optional[Logger] = None):
        self.db = db
        self.client = client
        self.ride_store = ride_store
        self.logger = logger or Logger()
        recovered = self.db.recover_interrupted_uploads()
        if recovered:
            self.logger.log("Recovered interrupted uploads", {"rides": recovered})

    def _refresh_store(self):
        if self.ride_store is not None:
            self.ride_store.set_saved_rides(self.db.get_rides())

    def _set_status(self, ride: Ride, status: str):
        ride.upload_status = status
        self.db.update_upload_status(ride.id, status)
        if self.ride_store is not None:
            self.ride_store.update_ride_upload_status(ride.id, status)

    def save_ride_locally(self, ride: Ride) -> Ride:
        """Persist a ride and its GPX"""
        gpx = build_gpx(ride)
        self.db.save_ride(ride, gpx)
        ride.gpx_data = gpx
        self._refresh_store()
        self.logger.log("Ride saved", {"ride_id": ride.id, "points": len(ride.points),
                                       "distance_km": round(ride.distance, 3)})
        return ride

    def get_local_rides(self) -> list[Ride]:
        return self.db.get_rides()

    def delete_local_ride(self, ride_id: str) -> bool:
        deleted = self.db.delete_ride(ride_id)
        if self.ride_store is not None:
            self.ride_store.delete_ride(ride_id)
        self.logger.log("Ride deleted" if deleted else "Ride not found", {"ride_id": ride_id})
        return deleted

    def _resolve_gpx(self, ride: Ride) -> str:
        gpx = ride.gpx_data or self.db.get_gpx(ride.id)
        if not gpx:
            gpx = build_gpx(ride)
            self.db.save_gpx(ride.id, gpx)
        return gpx

    def upload_ride(self, ride: Ride, on_progress: Optional[Callable[[int], None]] = None) -> Optional[dict]:
        """Upload a ride. Returns the service response, or None if skipped.

        Rides already uploaded or with an upload in flight are skipped, so
        repeated calls never create duplicate activities.
        """
        if self.db.get_ride(ride.id) is None:
            self.db.save_ride(ride)
        if not self.db.claim_upload(ride.id):
            stored = self.db.get_ride(ride.id)
            self.logger.log("Upload skipped", {"ride_id": ride.id,
                                               "status": stored.upload_status if stored else None})
            return None

        ride.upload_status = UPLOADING
        if self.ride_store is not None:
            self.ride_store.update_ride_upload_status(ride.id, UPLOADING)
        if on_progress:
            on_progress(0)
        try:
            gpx = self._resolve_gpx(ride)
            response = self.client.upload_gpx(gpx, ride.name or ride.id, ride.activity_type)
        except ApiError as e:
            self._set_status(ride, FAILED)
            self.logger.error("Upload failed", {"ride_id": ride.id, "error": str(e),
                                                "status_code": e.status_code})
            raise UploadError(ride.id, str(e)) from e

        self._set_status(ride, UPLOADED)
        if on_progress:
            on_progress(100)

        new_miles = response.get("new_miles") if isinstance(response, dict) else None
        if new_miles is not None:
            ride.new_miles = new_miles
            self.db.set_new_miles(ride.id, new_miles)
            self._refresh_store()
        self.logger.log("Ride uploaded", {"ride_id": ride.id, "new_miles": new_miles})
        return response

    def retry_failed_uploads(self) -> int:
        """Upload every pending or failed ride. Returns how many succeeded."""
        uploaded = 0
        for ride in self.db.get_rides_by_status(PENDING, FAILED):
            try:
                if self.upload_ride(ride) is not None:
                    uploaded += 1
            except UploadError as e:
                self.logger.error("Retry failed", {"ride_id": ride.id, "error": str(e)})
        return uploaded

    def get_new_miles(self, gpx: str) -> Optional[float]:
        """New miles for a track from the remote service, None if unavailable"""
        try:
            return self.client.preview_new_miles(gpx)
        except ApiError as e:
            self.logger.error("New miles lookup failed", {"error": str(e)})
            return None

    def get_gpx_data(self, ride_id: str) -> Optional[str]:
        return self.db.get_gpx(ride_id)

    def get_all_gpx_data(self) -> dict[str, str]:
        return self.db.get_all_gpx()

    @staticmethod
    def calculate_ride_stats(points: list[GPSPoint]) -> dict:
        """Distance (km), average and max speed (km/h) and duration (s) of a track"""
        if len(points) < 2:
            return {"distance": 0.0, "average_speed": 0.0, "max_speed": 0.0, "duration": 0.0}

        total_distance = 0.0
        for prev, point in zip(points, points[1:]):
            total_distance += point_distance(prev, point) / 1000
        max_speed = max((p.speed * MS_TO_KMH for p in points if p.speed), default=0.0)

        duration = points[-1].timestamp - points[0].timestamp
        average_speed = total_distance / duration * 3600 if duration > 0 else 0.0
        return {
            "distance": total_distance,
            "average_speed": average_speed,
            "max_speed": max_speed,
            "duration": duration,
        }
