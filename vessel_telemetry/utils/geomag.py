"""
Magnetic variation lookup backed by the World Magnetic Model (pygeomag).

The model is only valid for a limited span of years, so the decimal year fed
to it is clamped to 2020-2029. Any failure inside the model yields 0.0.
"""

from datetime import datetime, timezone
from functools import lru_cache

from pygeomag import GeoMag

from ..logging import get_logger


logger = get_logger("simulation.geomag")

MODEL_MIN_YEAR = 2020.0
MODEL_MAX_YEAR = 2029.999


@lru_cache(maxsize=1)
def _model() -> GeoMag:
    return GeoMag()


def decimal_year(moment: datetime) -> float:
    """Convert a datetime to a fractional year (2025-07-02 ~= 2025.5)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    start = datetime(moment.year, 1, 1, tzinfo=timezone.utc)
    end = datetime(moment.year + 1, 1, 1, tzinfo=timezone.utc)
    return moment.year + (moment - start).total_seconds() / (end - start).total_seconds()


def magnetic_variation(latitude: float, longitude: float, moment: datetime) -> float:
    """
    Magnetic declination in degrees (east positive) at sea level.

    Args:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        moment: Time of the reading

    Returns:
        Declination in degrees, or 0.0 if the model fails
    """
    year = min(max(decimal_year(moment), MODEL_MIN_YEAR), MODEL_MAX_YEAR)
    try:
        result = _model().calculate(
            glat=latitude,
            glon=longitude,
            alt=0,
            time=year,
            allow_date_outside_lifespan=True,
        )
        return float(result.d)
    except Exception as e:
        logger.debug(f"Geomagnetic model failed at ({latitude}, {longitude}): {e}")
        return 0.0
