"""Unit conversion and display formatting."""

METRIC = "meters"
IMPERIAL = "feet"

KM_TO_MILES = 0.621371
M_TO_FEET = 3.28084


def _check_unit(unit: str):
    if unit not in (METRIC, IMPERIAL):
        raise ValueError(f"Unknown unit system: {unit}")


def convert_distance(km: float, unit: str) -> float:
    _check_unit(unit)
    return km * KM_TO_MILES if unit == IMPERIAL else km


def convert_speed(kmh: float, unit: str) -> float:
    _check_unit(unit)
    return kmh * KM_TO_MILES if unit == IMPERIAL else kmh


def convert_elevation(meters: float, unit: str) -> float:
    _check_unit(unit)
    return meters * M_TO_FEET if unit == IMPERIAL else meters


def unit_labels(unit: str) -> dict:
    _check_unit(unit)
    if unit == IMPERIAL:
        return {"distance": "mi", "speed": "mph", "elevation": "ft"}
    return {"distance": "km", "speed": "km/h", "elevation": "m"}


def format_distance(km: float, unit: str = METRIC) -> str:
    """Format a distance given in km, e.g. '12.34km' or '7.67mi'"""
    return f"{convert_distance(km, unit):.2f}{unit_labels(unit)['distance']}"


def format_short_distance(km: float, unit: str = METRIC) -> str:
    """Like format_distance, but whole meters below 1 km (metric only)"""
    if unit == METRIC and km < 1:
        return f"{round(km * 1000)}m"
    return format_distance(km, unit)


def format_speed(kmh: float, unit: str = METRIC) -> str:
    return f"{convert_speed(kmh, unit):.1f} {unit_labels(unit)['speed']}"


def format_elevation(meters: float, unit: str = METRIC) -> str:
    return f"{round(convert_elevation(meters, unit))} {unit_labels(unit)['elevation']}"


def format_duration(seconds: float) -> str:
    """Format seconds as m:ss, or h:mm:ss from one hour up"""
    total = int(max(0, seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
