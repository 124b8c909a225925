"""GPS access and recording/playback."""

import json
import shutil
import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import CONFIG
from .models import GPSPoint

PERMISSION_DENIED = "Location permission denied"


class GPS:
    """GPS access via Termux API"""

    COMMAND = "termux-location"

    def __init__(self):
        self.last_location: Optional[GPSPoint] = None
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None

    def request_permission(self) -> tuple[bool, Optional[str]]:
        """Check that location can be read. Returns (granted, error message)."""
        if not shutil.which(self.COMMAND):
            return False, f"{PERMISSION_DENIED} ({self.COMMAND} not found)"
        try:
            result = subprocess.run(
                [self.COMMAND, "-p", "gps", "-r", "last"],
                capture_output=True,
                text=True,
                timeout=CONFIG["gps_fix_timeout"]
            )
        except subprocess.TimeoutExpired:
            # A slow fix is not a refusal
            return True, None
        if result.returncode != 0 or "permission" in (result.stderr or "").lower():
            return False, PERMISSION_DENIED
        return True, None

    def get_location(self, timeout: Optional[int] = None) -> Optional[GPSPoint]:
        """Get current location using termux-location"""
        if timeout is None:
            timeout = CONFIG["gps_fix_timeout"]
        try:
            result = subprocess.run(
                [self.COMMAND, "-p", "gps", "-r", "once"],
                capture_output=True,
                text=True,
                timeout=timeout
            )

            if result.returncode != 0:
                self.consecutive_failures += 1
                self.last_error = result.stderr.strip() if result.stderr else "unknown error"
                return None

            if not result.stdout or not result.stdout.strip():
                self.consecutive_failures += 1
                self.last_error = "empty response"
                return None

            point = parse_termux_location(json.loads(result.stdout))
            self.last_location = point
            self.consecutive_failures = 0
            self.last_error = None
            return point

        except subprocess.TimeoutExpired:
            self.consecutive_failures += 1
            self.last_error = "timeout"
            return None
        except (json.JSONDecodeError, KeyError) as e:
            self.consecutive_failures += 1
            self.last_error = f"bad response: {e}"
            return None
        except FileNotFoundError:
            self.consecutive_failures += 1
            self.last_error = f"{self.COMMAND} not found"
            return None

    def get_status(self) -> str:
        """Get GPS status string"""
        if self.consecutive_failures == 0:
            acc = f", accuracy {self.last_location.accuracy:.0f}m" if self.last_location and self.last_location.accuracy else ""
            return f"GPS OK{acc}"
        return f"GPS: {self.consecutive_failures} consecutive failures ({self.last_error})"


def parse_termux_location(data: dict, timestamp: Optional[float] = None) -> GPSPoint:
    """Build a GPSPoint from termux-location JSON output"""
    return GPSPoint(
        latitude=data["latitude"],
        longitude=data["longitude"],
        timestamp=timestamp if timestamp is not None else time.time(),
        altitude=data.get("altitude"),
        speed=data.get("speed"),
        accuracy=data.get("accuracy"),
        heading=data.get("bearing"),
    )


class GPSRecorder:
    """Records GPS trace to file"""

    def __init__(self, gps, record_path: str):
        self.gps = gps
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def request_permission(self) -> tuple[bool, Optional[str]]:
        return self.gps.request_permission()

    def get_location(self, timeout: Optional[int] = None) -> Optional[GPSPoint]:
        """Get location and record it"""
        point = self.gps.get_location(timeout)

        # Record even failed attempts
        entry = {
            "elapsed": time.time() - self.start_time,
            "timestamp": time.time(),
            "location": point.to_dict() if point else None,
            "status": self.gps.get_status()
        }
        self.trace.append(entry)

        return point

    def get_status(self) -> str:
        return self.gps.get_status()

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)


class GPSPlayback:
    """Plays back a recorded JSON trace or a GPX track"""

    def __init__(self, trace: list[dict], speed: float = 1.0, source: str = "trace"):
        self.trace = trace
        self.speed = speed
        self.source = source
        self.index = 0
        self.last_location: Optional[GPSPoint] = None
        self.consecutive_failures = 0

    @classmethod
    def from_file(cls, playback_path: str, speed: float = 1.0) -> "GPSPlayback":
        """Load a JSON trace written by GPSRecorder, or any GPX file"""
        path = Path(playback_path)
        if path.suffix.lower() == ".gpx":
            from .gpx import parse_gpx
            segments = parse_gpx(path.read_text())
            return cls(trace_from_points([p for seg in segments for p in seg]), speed, str(path))
        with open(path) as f:
            data = json.load(f)
        return cls(data["trace"], speed, str(path))

    def request_permission(self) -> tuple[bool, Optional[str]]:
        return True, None

    def get_location(self, timeout: Optional[int] = None) -> Optional[GPSPoint]:
        """Get next location from trace sequentially"""
        if self.index >= len(self.trace):
            return None

        entry = self.trace[self.index]
        self.index += 1

        if entry["location"]:
            point = GPSPoint.from_dict(entry["location"])
            self.last_location = point
            self.consecutive_failures = 0
            return point
        self.consecutive_failures += 1
        return None

    def current_time(self) -> float:
        """Clock that follows the trace, so replayed rides keep their real duration"""
        if not self.trace:
            return time.time()
        entry = self.trace[max(0, min(self.index, len(self.trace)) - 1)]
        if entry.get("location"):
            return entry["location"]["timestamp"]
        return entry.get("timestamp", time.time())

    def get_poll_interval(self) -> float:
        """Get the interval to wait between polls based on trace timing and speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return CONFIG["gps_poll_interval"] / self.speed

        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        delta = curr_elapsed - prev_elapsed

        interval = delta / self.speed
        return max(0.0, min(interval, 5.0))

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        return f"Playback: {self.consecutive_failures} failures ({progress})"


def trace_from_points(points: list[GPSPoint]) -> list[dict]:
    """Turn points into trace entries with elapsed times relative to the first"""
    if not points:
        return []
    start = points[0].timestamp
    return [
        {
            "elapsed": p.timestamp - start,
            "timestamp": p.timestamp,
            "location": p.to_dict(),
            "status": "GPX",
        }
        for p in points
    ]
