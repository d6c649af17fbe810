"""
Angle and coordinate helpers shared by the simulators.
"""

import math

from ..const import EARTH_RADIUS_M, KNOTS_TO_MPS, MAX_SPEED_KNOTS


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def normalize_degrees(angle: float) -> float:
    """
    Normalize an angle to [0, 360).

    Idempotent: normalizing an already-normalized angle returns it unchanged.
    """
    result = math.fmod(angle, 360.0)
    if result < 0.0:
        result += 360.0
    # Tiny negative inputs round up to exactly 360.0
    if result >= 360.0:
        result -= 360.0
    return result


def normalize_longitude(longitude: float) -> float:
    """Normalize a longitude to (-180, 180]."""
    result = normalize_degrees(longitude + 180.0) - 180.0
    if result == -180.0:
        return 180.0
    return result


def clamp_speed(speed_knots: float) -> float:
    """Clamp speed over ground to the hardware envelope [0, 102.2] knots."""
    return clamp(speed_knots, 0.0, MAX_SPEED_KNOTS)


def advance_position(
    latitude: float,
    longitude: float,
    speed_knots: float,
    heading: float,
    dt_seconds: float,
) -> tuple[float, float]:
    """
    Move a point along a great circle.

    Args:
        latitude: Start latitude in degrees
        longitude: Start longitude in degrees
        speed_knots: Speed over ground (already clamped)
        heading: Course over ground in degrees (already normalized)
        dt_seconds: Time step

    Returns:
        (latitude, longitude) with latitude in [-90, 90] and longitude in (-180, 180]
    """
    distance = speed_knots * KNOTS_TO_MPS * max(dt_seconds, 0.0)
    angular = distance / EARTH_RADIUS_M

    lat = math.radians(latitude)
    lon = math.radians(longitude)
    course = math.radians(heading)

    sin_lat = math.sin(lat)
    cos_lat = math.cos(lat)

    # asin domain guard against round-off just past +/-1
    new_lat = math.asin(clamp(
        sin_lat * math.cos(angular) + cos_lat * math.sin(angular) * math.cos(course),
        -1.0,
        1.0,
    ))
    new_lon = lon + math.atan2(
        math.sin(course) * math.sin(angular) * cos_lat,
        math.cos(angular) - sin_lat * math.sin(new_lat),
    )

    return (
        clamp(math.degrees(new_lat), -90.0, 90.0),
        normalize_longitude(math.degrees(new_lon)),
    )
