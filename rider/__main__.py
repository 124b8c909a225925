#!/usr/bin/env python3
"""
Rider - GPS ride recorder with new-miles tracking

Usage:
    python -m rider [name] [options]

Options:
    --activity TYPE     bike, foot or combined (default: bike)
    --record FILE       Record GPS trace to JSON file for debugging
    --playback FILE     Play back a JSON trace or GPX file instead of live GPS
    --speed FACTOR      Playback speed multiplier (default: 1.0)
    --log FILE          Log file path (default: rider_TIMESTAMP.log)
    --db FILE           Ride database (default: rider_rides.db)
    --no-upload         Save the ride locally without uploading it
    --units UNITS       meters or feet for printed figures
    --list              List saved rides and exit
    --stats             Print overall stats and exit
    --upload ID         Upload (or re-upload) a saved ride and exit
    --retry-failed      Retry every pending/failed upload with backoff and exit
    --delete ID         Delete a saved ride and exit
    --export-gpx ID FILE  Write a saved ride's GPX to FILE and exit
"""

import argparse
import sys
import time
from datetime import datetime
from pathlib import Path

from .api import WandrerClient
from .app import RideRecorder
from .config import CONFIG
from .errors import UploadError
from .gps import GPS, GPSRecorder, GPSPlayback
from .logger import Logger
from .models import ACTIVITY_TYPES, PENDING, FAILED
from .ride_service import RideService
from .storage import RideDB
from .units import METRIC, IMPERIAL, format_distance, format_duration
from .upload_monitor import UploadMonitor


def _list_rides(service: RideService, units: str):
    rides = service.get_local_rides()
    if not rides:
        print("No saved rides")
        return
    for ride in rides:
        started = datetime.fromtimestamp(ride.start_time).strftime("%Y-%m-%d %H:%M")
        new_miles = format_distance(ride.new_miles, units) if ride.new_miles is not None else "--"
        print(f"{ride.id}  {started}  {ride.name:<24.24}  {ride.activity_type:<4}  "
              f"{format_distance(ride.distance, units):>9}  {format_duration(ride.duration):>8}  "
              f"new {new_miles:>9}  {ride.upload_status}")


def _print_stats(db: RideDB, units: str):
    stats = db.get_stats()
    print(f"Rides: {stats['total_rides']} ({stats['uploaded_rides']} uploaded)")
    print(f"Distance: {format_distance(stats['total_distance_km'], units)}")
    print(f"Moving time: {format_duration(stats['total_duration_s'])}")
    print(f"New miles: {format_distance(stats['total_new_miles'], units)}")


def _retry_failed(service: RideService, logger: Logger) -> int:
    """Run the upload monitor until every queued ride is uploaded or gives up"""
    # An explicit retry gives exhausted rides a fresh set of attempts
    for ride in service.db.get_rides_by_status(PENDING, FAILED):
        service.db.set_retry_count(ride.id, 0)

    monitor = UploadMonitor(service, logger)
    monitor.is_monitoring = True
    monitor.check_and_retry_pending_uploads()
    try:
        while monitor.rides_being_retried:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nRetry interrupted")
    finally:
        monitor.stop_monitoring()
    remaining = service.db.get_rides_by_status(PENDING, FAILED)
    print(f"{len(remaining)} ride(s) still not uploaded")
    return 1 if remaining else 0


def main():
    parser = argparse.ArgumentParser(
        description="Rider - GPS ride recorder with new-miles tracking"
    )
    parser.add_argument("name", nargs="?",
                        help="Ride name (default: date and time of the ride)")
    parser.add_argument("--activity", choices=ACTIVITY_TYPES, default=CONFIG["default_activity_type"],
                        help="Activity type (default: bike)")
    parser.add_argument("--record", metavar="FILE",
                        help="Record GPS trace to JSON file")
    parser.add_argument("--playback", metavar="FILE",
                        help="Play back a JSON trace or GPX file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path (default: rider_TIMESTAMP.log)")
    parser.add_argument("--db", metavar="FILE", default=CONFIG["db_path"],
                        help=f"Ride database (default: {CONFIG['db_path']})")
    parser.add_argument("--no-upload", action="store_true",
                        help="Save the ride locally without uploading")
    parser.add_argument("--units", choices=(METRIC, IMPERIAL), default=CONFIG["default_units"],
                        help="Units for printed figures")
    parser.add_argument("--list", action="store_true",
                        help="List saved rides and exit")
    parser.add_argument("--stats", action="store_true",
                        help="Print overall stats and exit")
    parser.add_argument("--upload", metavar="ID",
                        help="Upload a saved ride and exit")
    parser.add_argument("--retry-failed", action="store_true",
                        help="Retry pending/failed uploads with backoff and exit")
    parser.add_argument("--delete", metavar="ID",
                        help="Delete a saved ride and exit")
    parser.add_argument("--export-gpx", nargs=2, metavar=("ID", "FILE"),
                        help="Write a saved ride's GPX to FILE and exit")

    args = parser.parse_args()

    if args.speed <= 0:
        parser.error("--speed must be positive")
    if args.record and args.playback:
        parser.error("--record and --playback cannot be used together")

    # Ride management: early exits
    if args.list or args.stats or args.upload or args.retry_failed or args.delete or args.export_gpx:
        logger = Logger(args.log)
        db = RideDB(args.db)
        service = RideService(db, WandrerClient(), logger=logger)
        status = 0
        try:
            if args.list:
                _list_rides(service, args.units)
            if args.stats:
                _print_stats(db, args.units)
            if args.upload:
                ride = db.get_ride(args.upload)
                if ride is None:
                    print(f"Ride not found: {args.upload}")
                    status = 1
                else:
                    try:
                        response = service.upload_ride(ride)
                        if response is None:
                            print(f"Ride {ride.id} already {ride.upload_status}")
                        elif response.get("new_miles") is not None:
                            print(f"Upload complete! {format_distance(response['new_miles'], args.units)} new miles added!")
                        else:
                            print("Upload complete!")
                    except UploadError as e:
                        print(f"Upload failed: {e}")
                        status = 1
            if args.retry_failed:
                status = _retry_failed(service, logger) or status
            if args.delete:
                if not service.delete_local_ride(args.delete):
                    print(f"Ride not found: {args.delete}")
                    status = 1
            if args.export_gpx:
                ride_id, output = args.export_gpx
                gpx = service.get_gpx_data(ride_id)
                if gpx is None:
                    print(f"No GPX for ride: {ride_id}")
                    status = 1
                else:
                    Path(output).write_text(gpx)
                    print(f"GPX saved to {output}")
        finally:
            db.close()
            logger.close()
        sys.exit(status)

    # Determine log path
    log_path = args.log
    if not log_path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = f"rider_{timestamp}.log"

    # Set up GPS source
    if args.playback:
        if not Path(args.playback).exists():
            print(f"Playback file not found: {args.playback}")
            sys.exit(1)
        gps_source = GPSPlayback.from_file(args.playback, args.speed)
    elif args.record:
        gps_source = GPSRecorder(GPS(), args.record)
    else:
        gps_source = GPS()

    logger = Logger(log_path)
    recorder = RideRecorder(gps_source=gps_source, db=RideDB(args.db), logger=logger)
    recorder.monitor = UploadMonitor(recorder.ride_service, logger)
    try:
        ride = recorder.run(args.name, args.activity, upload=not args.no_upload)
    finally:
        recorder.close()
    sys.exit(0 if ride is not None else 1)


if __name__ == "__main__":
    main()
