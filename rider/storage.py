"""SQLite storage for recorded rides and their GPX."""

import json
import sqlite3
import threading
from typing import Optional

from .config import CONFIG
from .models import Ride, GPSPoint, RouteSegment, PENDING, UPLOADING, FAILED


class RideDB:
    """SQLite database of rides with upload status tracking"""

    def __init__(self, db_path: Optional[str] = None):
        self.conn = sqlite3.connect(db_path or CONFIG["db_path"], check_same_thread=False)
        self.lock = threading.RLock()
        self._init_schema()

    def _init_schema(self):
        """Create database tables"""
        with self.lock:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS rides (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    activity_type TEXT NOT NULL,
                    start_time REAL NOT NULL,
                    end_time REAL,
                    duration REAL DEFAULT 0,
                    distance REAL DEFAULT 0,
                    average_speed REAL DEFAULT 0,
                    max_speed REAL DEFAULT 0,
                    new_miles REAL,
                    upload_status TEXT NOT NULL DEFAULT 'pending',
                    retry_count INTEGER DEFAULT 0,
                    points TEXT NOT NULL DEFAULT '[]',
                    segments TEXT NOT NULL DEFAULT '[]'
                )
            """)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS ride_gpx (
                    ride_id TEXT PRIMARY KEY,
                    gpx TEXT NOT NULL
                )
            """)
            self.conn.commit()

    _COLUMNS = ("id, name, activity_type, start_time, end_time, duration, distance, "
                "average_speed, max_speed, new_miles, upload_status, retry_count, points, segments")

    @staticmethod
    def _row_to_ride(row) -> Ride:
        return Ride(
            id=row[0],
            name=row[1],
            activity_type=row[2],
            start_time=row[3],
            end_time=row[4],
            duration=row[5] or 0.0,
            distance=row[6] or 0.0,
            average_speed=row[7] or 0.0,
            max_speed=row[8] or 0.0,
            new_miles=row[9],
            upload_status=row[10],
            retry_count=row[11] or 0,
            points=[GPSPoint.from_dict(p) for p in json.loads(row[12])],
            segments=[RouteSegment.from_dict(s) for s in json.loads(row[13])],
        )

    def save_ride(self, ride: Ride, gpx: Optional[str] = None):
        """Insert or replace a ride (and optionally its GPX)"""
        with self.lock:
            self.conn.execute(f"""
                INSERT OR REPLACE INTO rides ({self._COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                ride.id, ride.name, ride.activity_type, ride.start_time, ride.end_time,
                ride.duration, ride.distance, ride.average_speed, ride.max_speed,
                ride.new_miles, ride.upload_status, ride.retry_count,
                json.dumps([p.to_dict() for p in ride.points]),
                json.dumps([s.to_dict() for s in ride.segments]),
            ))
            if gpx is not None:
                self.conn.execute(
                    "INSERT OR REPLACE INTO ride_gpx (ride_id, gpx) VALUES (?, ?)",
                    (ride.id, gpx)
                )
            self.conn.commit()

    def get_rides(self) -> list[Ride]:
        """All rides, oldest first"""
        with self.lock:
            cursor = self.conn.execute(f"SELECT {self._COLUMNS} FROM rides ORDER BY start_time")
            return [self._row_to_ride(row) for row in cursor.fetchall()]

    def get_ride(self, ride_id: str) -> Optional[Ride]:
        with self.lock:
            cursor = self.conn.execute(f"SELECT {self._COLUMNS} FROM rides WHERE id = ?", (ride_id,))
            row = cursor.fetchone()
        return self._row_to_ride(row) if row else None

    def get_rides_by_status(self, *statuses: str) -> list[Ride]:
        placeholders = ", ".join("?" for _ in statuses)
        with self.lock:
            cursor = self.conn.execute(
                f"SELECT {self._COLUMNS} FROM rides WHERE upload_status IN ({placeholders}) ORDER BY start_time",
                statuses
            )
            return [self._row_to_ride(row) for row in cursor.fetchall()]

    def delete_ride(self, ride_id: str) -> bool:
        """Delete a ride and its GPX. Returns True if the ride existed."""
        with self.lock:
            cursor = self.conn.execute("DELETE FROM rides WHERE id = ?", (ride_id,))
            self.conn.execute("DELETE FROM ride_gpx WHERE ride_id = ?", (ride_id,))
            self.conn.commit()
            return cursor.rowcount > 0

    def update_upload_status(self, ride_id: str, status: str):
        with self.lock:
            self.conn.execute("UPDATE rides SET upload_status = ? WHERE id = ?", (status, ride_id))
            self.conn.commit()

    def claim_upload(self, ride_id: str) -> bool:
        """Move a pending or failed ride to 'uploading'.

        Returns False if the ride is missing or already uploading/uploaded,
        so only one caller ever gets to upload a ride.
        """
        with self.lock:
            cursor = self.conn.execute(
                "UPDATE rides SET upload_status = ? WHERE id = ? AND upload_status IN (?, ?)",
                (UPLOADING, ride_id, PENDING, FAILED)
            )
            self.conn.commit()
            return cursor.rowcount > 0

    def set_retry_count(self, ride_id: str, retry_count: int):
        with self.lock:
            self.conn.execute("UPDATE rides SET retry_count = ? WHERE id = ?", (retry_count, ride_id))
            self.conn.commit()

    def set_new_miles(self, ride_id: str, new_miles: float):
        with self.lock:
            self.conn.execute("UPDATE rides SET new_miles = ? WHERE id = ?", (new_miles, ride_id))
            self.conn.commit()

    def recover_interrupted_uploads(self) -> int:
        """Rides left 'uploading' by a crash go back to 'pending'. Returns count."""
        with self.lock:
            cursor = self.conn.execute(
                "UPDATE rides SET upload_status = ? WHERE upload_status = ?",
                (PENDING, UPLOADING)
            )
            self.conn.commit()
            return cursor.rowcount

    def save_gpx(self, ride_id: str, gpx: str):
        with self.lock:
            self.conn.execute(
                "INSERT OR REPLACE INTO ride_gpx (ride_id, gpx) VALUES (?, ?)",
                (ride_id, gpx)
            )
            self.conn.commit()

    def get_gpx(self, ride_id: str) -> Optional[str]:
        with self.lock:
            cursor = self.conn.execute("SELECT gpx FROM ride_gpx WHERE ride_id = ?", (ride_id,))
            row = cursor.fetchone()
        return row[0] if row else None

    def get_all_gpx(self) -> dict[str, str]:
        with self.lock:
            cursor = self.conn.execute("SELECT ride_id, gpx FROM ride_gpx")
            return {row[0]: row[1] for row in cursor.fetchall()}

    def get_stats(self) -> dict:
        """Get overall riding stats"""
        with self.lock:
            cursor = self.conn.execute("""
                SELECT
                    COUNT(*),
                    SUM(distance),
                    SUM(duration),
                    SUM(new_miles),
                    SUM(CASE WHEN upload_status = 'uploaded' THEN 1 ELSE 0 END)
                FROM rides
            """)
            row = cursor.fetchone()
        return {
            "total_rides": row[0] or 0,
            "total_distance_km": row[1] or 0.0,
            "total_duration_s": row[2] or 0.0,
            "total_new_miles": row[3] or 0.0,
            "uploaded_rides": row[4] or 0,
        }

    def close(self):
        with self.lock:
            self.conn.close()
