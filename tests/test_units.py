"""Tests for unit conversion and formatting."""

import pytest

from rider.units import (
    METRIC, IMPERIAL,
    convert_distance, convert_speed, convert_elevation, unit_labels,
    format_distance, format_short_distance, format_speed, format_elevation, format_duration,
)


def test_metric_values_pass_through():
    assert convert_distance(10, METRIC) == 10
    assert convert_speed(25, METRIC) == 25
    assert convert_elevation(100, METRIC) == 100


def test_imperial_conversions():
    assert convert_distance(10, IMPERIAL) == pytest.approx(6.21371)
    assert convert_speed(20, IMPERIAL) == pytest.approx(12.42742)
    assert convert_elevation(100, IMPERIAL) == pytest.approx(328.084)


def test_unknown_unit_rejected():
    with pytest.raises(ValueError):
        convert_distance(1, "furlongs")


def test_labels():
    assert unit_labels(METRIC) == {"distance": "km", "speed": "km/h", "elevation": "m"}
    assert unit_labels(IMPERIAL) == {"distance": "mi", "speed": "mph", "elevation": "ft"}


def test_format_distance():
    assert format_distance(1.5) == "1.50km"
    assert format_distance(10, IMPERIAL) == "6.21mi"


def test_format_short_distance():
    assert format_short_distance(0.35) == "350m"
    assert format_short_distance(1.2) == "1.20km"
    assert format_short_distance(0.5, IMPERIAL) == "0.31mi"


def test_format_speed_and_elevation():
    assert format_speed(20) == "20.0 km/h"
    assert format_speed(20, IMPERIAL) == "12.4 mph"
    assert format_elevation(100) == "100 m"
    assert format_elevation(100, IMPERIAL) == "328 ft"


@pytest.mark.parametrize("seconds,expected", [
    (0, "0:00"),
    (65, "1:05"),
    (3599, "59:59"),
    (3725, "1:02:05"),
    (-5, "0:00"),
])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
