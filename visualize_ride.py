#!/usr/bin/env python3
"""
Visualize a saved ride on a map.

Usage:
    python visualize_ride.py [RIDE_ID] [--db rider_rides.db] [--output map.html]

Without RIDE_ID the most recent ride is drawn. Each recording segment is
drawn separately; pauses show as dashed gray connectors.
"""

import argparse
from pathlib import Path

import folium
from folium import plugins

from rider import RideDB
from rider.models import Ride
from rider.units import format_distance, format_duration

SEGMENT_COLORS = ["blue", "purple", "darkgreen", "cadetblue"]


def accuracy_color(accuracy) -> str:
    if accuracy is None:
        return "gray"
    if accuracy < 10:
        return "green"
    if accuracy < 20:
        return "orange"
    return "red"


def create_ride_map(ride: Ride, output_path: str) -> bool:
    """Create map visualization of a ride. Returns False if it has no points."""
    runs = ride.point_segments()
    points = [p for run in runs for p in run]
    if not points:
        print(f"Ride {ride.id} has no points")
        return False

    center_lat = sum(p.latitude for p in points) / len(points)
    center_lon = sum(p.longitude for p in points) / len(points)

    m = folium.Map(location=[center_lat, center_lon], zoom_start=15)
    folium.TileLayer("CartoDB positron", name="Light").add_to(m)
    folium.TileLayer("CartoDB dark_matter", name="Dark").add_to(m)

    for i, run in enumerate(runs):
        coords = [[p.latitude, p.longitude] for p in run]
        if len(coords) > 1:
            folium.PolyLine(
                coords,
                weight=4,
                color=SEGMENT_COLORS[i % len(SEGMENT_COLORS)],
                opacity=0.8,
                popup=f"Segment {i + 1} ({len(run)} points)"
            ).add_to(m)

    # Pause gaps are not part of the ride distance
    gaps_group = folium.FeatureGroup(name="Pauses", show=True)
    for prev_run, next_run in zip(runs, runs[1:]):
        a, b = prev_run[-1], next_run[0]
        folium.PolyLine(
            [[a.latitude, a.longitude], [b.latitude, b.longitude]],
            weight=2,
            color="gray",
            dash_array="6 6",
            popup=f"Paused {format_duration(b.timestamp - a.timestamp)}"
        ).add_to(gaps_group)
    gaps_group.add_to(m)

    points_group = folium.FeatureGroup(name="GPS Points", show=False)
    for i, p in enumerate(points):
        speed = f"{p.speed * 3.6:.1f} km/h" if p.speed is not None else "unknown"
        popup = f"""
            <b>Point {i + 1}</b><br>
            Time: {format_duration(p.timestamp - points[0].timestamp)}<br>
            Lat: {p.latitude:.6f}<br>
            Lon: {p.longitude:.6f}<br>
            Accuracy: {p.accuracy if p.accuracy is not None else 'unknown'}m<br>
            Speed: {speed}
        """
        folium.CircleMarker(
            location=[p.latitude, p.longitude],
            radius=4,
            color=accuracy_color(p.accuracy),
            fill=True,
            popup=folium.Popup(popup, max_width=200)
        ).add_to(points_group)
    points_group.add_to(m)

    folium.Marker(
        [points[0].latitude, points[0].longitude],
        popup="Start",
        icon=folium.Icon(color="green", icon="play")
    ).add_to(m)
    folium.Marker(
        [points[-1].latitude, points[-1].longitude],
        popup="End",
        icon=folium.Icon(color="red", icon="stop")
    ).add_to(m)

    folium.LayerControl().add_to(m)

    new_miles = format_distance(ride.new_miles) if ride.new_miles is not None else "--"
    legend_html = f"""
    <div style="
        position: fixed;
        bottom: 50px;
        left: 50px;
        z-index: 1000;
        background-color: white;
        padding: 10px;
        border-radius: 5px;
        border: 2px solid grey;
        font-family: Arial;
        font-size: 12px;
    ">
        <b>{ride.name or ride.id}</b><br>
        <hr style="margin: 5px 0">
        Activity: {ride.activity_type}<br>
        Distance: {format_distance(ride.distance)}<br>
        Moving time: {format_duration(ride.duration)}<br>
        New miles: {new_miles}<br>
        Segments: {len(runs)}<br>
        Points: {len(points)}<br>
        Upload: {ride.upload_status}
    </div>
    """
    m.get_root().html.add_child(folium.Element(legend_html))

    plugins.Fullscreen().add_to(m)

    m.save(output_path)
    print(f"Ride map saved to {output_path}")
    print(f"  {len(points)} points in {len(runs)} segment(s)")
    return True


def main():
    parser = argparse.ArgumentParser(description="Visualize a saved ride on a map")
    parser.add_argument("ride_id", nargs="?", help="Ride ID (default: most recent)")
    parser.add_argument("--db", default="rider_rides.db", help="Ride database")
    parser.add_argument("-o", "--output", default="ride_map.html",
                        help="Output HTML file (default: ride_map.html)")

    args = parser.parse_args()

    if not Path(args.db).exists():
        print(f"Database not found: {args.db}")
        return 1

    db = RideDB(args.db)
    try:
        if args.ride_id:
            ride = db.get_ride(args.ride_id)
        else:
            rides = db.get_rides()
            ride = rides[-1] if rides else None
    finally:
        db.close()

    if ride is None:
        print("Ride not found")
        return 1
    return 0 if create_ride_map(ride, args.output) else 1


if __name__ == "__main__":
    exit(main())
