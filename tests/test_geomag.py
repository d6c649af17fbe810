"""
Tests for the magnetic variation lookup.
"""

import math
from datetime import datetime, timezone

import pytest

from vessel_telemetry.utils import geomag


class _RecordingModel:
    def __init__(self, declination=4.5, error=None):
        self.declination = declination
        self.error = error
        self.times = []

    def calculate(self, glat, glon, alt, time, allow_date_outside_lifespan=False):
        self.times.append(time)
        if self.error:
            raise self.error
        return type("Result", (), {"d": self.declination})()


def test_decimal_year():
    assert geomag.decimal_year(datetime(2025, 1, 1, tzinfo=timezone.utc)) == 2025.0
    assert geomag.decimal_year(datetime(2024, 7, 2, tzinfo=timezone.utc)) == pytest.approx(2024.5, abs=0.01)


def test_variation_from_model():
    variation = geomag.magnetic_variation(59.9, 10.7, datetime(2025, 6, 1, tzinfo=timezone.utc))

    assert math.isfinite(variation)
    assert -180.0 <= variation <= 180.0


def test_year_is_clamped(monkeypatch):
    model = _RecordingModel()
    monkeypatch.setattr(geomag, "_model", lambda: model)

    geomag.magnetic_variation(0.0, 0.0, datetime(2040, 1, 1, tzinfo=timezone.utc))
    geomag.magnetic_variation(0.0, 0.0, datetime(2010, 1, 1, tzinfo=timezone.utc))

    assert model.times == [geomag.MODEL_MAX_YEAR, geomag.MODEL_MIN_YEAR]


def test_model_failure_yields_zero(monkeypatch):
    monkeypatch.setattr(geomag, "_model", lambda: _RecordingModel(error=ValueError("bad input")))

    assert geomag.magnetic_variation(10.0, 10.0, datetime(2025, 1, 1, tzinfo=timezone.utc)) == 0.0
