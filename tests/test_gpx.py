"""Tests for GPX export and import."""

import pytest

from rider.gpx import build_gpx, parse_gpx, gpx_filename
from rider.models import RouteSegment


def test_each_segment_becomes_a_trkseg(sample_ride, make_point):
    ride = sample_ride(name="Evening Loop")
    ride.segments = [
        RouteSegment(start_time=0, end_time=3, points=[make_point(i) for i in range(3)]),
        RouteSegment(start_time=10, end_time=12, points=[make_point(i) for i in range(10, 12)]),
    ]
    xml = build_gpx(ride)

    assert xml.count("<trkseg>") == 2
    assert "Evening Loop" in xml
    assert 'version="1.1"' in xml

    segments = parse_gpx(xml)
    assert [len(s) for s in segments] == [3, 2]
    first = segments[0][0]
    assert first.latitude == pytest.approx(ride.segments[0].points[0].latitude)
    assert first.timestamp == pytest.approx(ride.segments[0].points[0].timestamp)
    assert first.altitude == pytest.approx(20.0)


def test_ride_without_segments_is_single_track(sample_ride):
    ride = sample_ride(n=4)
    segments = parse_gpx(build_gpx(ride))
    assert len(segments) == 1
    assert len(segments[0]) == 4


def test_points_without_time_are_spaced_one_second():
    xml = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk><trkseg>
    <trkpt lat="51.5" lon="-0.12"></trkpt>
    <trkpt lat="51.5001" lon="-0.12"></trkpt>
  </trkseg></trk>
</gpx>"""
    points = parse_gpx(xml)[0]
    assert points[1].timestamp - points[0].timestamp == 1
    assert points[0].altitude is None


@pytest.mark.parametrize("name,expected", [
    ("Morning Ride #1", "Morning_Ride__1.gpx"),
    ("commute", "commute.gpx"),
])
def test_gpx_filename(name, expected):
    assert gpx_filename(name) == expected
