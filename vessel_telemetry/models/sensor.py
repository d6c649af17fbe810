"""
Sensor data models.

SensorConfig holds per-kind broker parameters; GpsState and GyroState hold
the simulated readings. All validation of API payloads happens here, before
anything reaches a store.
"""

import math
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from ..const import MAX_SPEED_KNOTS, PITCH_LIMIT, ROLL_LIMIT, YAW_RATE_LIMIT
from ..errors import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorKind(str, Enum):
    """Simulated instrument kinds."""

    GPS = "gps"
    GYRO = "gyro"

    @property
    def update_type(self) -> str:
        """Envelope type for a state update."""
        return f"{self.value}_update"

    @property
    def delete_type(self) -> str:
        """Envelope type for the terminal delete notification."""
        return f"{self.value}_delete"


def _require_mapping(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _number(name: str, value: Any, low: float, high: float, high_inclusive: bool = True) -> float:
    """Validate a finite number within [low, high] (or [low, high))."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"'{name}' must be a number")
    value = float(value)
    if not math.isfinite(value):
        raise ValidationError(f"'{name}' must be finite")
    above = value > high if high_inclusive else value >= high
    if value < low or above:
        closing = "]" if high_inclusive else ")"
        raise ValidationError(f"'{name}' must be in [{low:g}, {high:g}{closing}, got {value:g}")
    return value


def _boolean(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"'{name}' must be a boolean")
    return value


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class SensorConfig:
    """
    Broker connection parameters for one sensor kind.

    Every field is optional because configuration may be supplied piecemeal.
    A sensor cannot run until host, port and interval are all set.
    """

    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = None
    interval: int | None = None  # milliseconds
    topics: list[str] | None = None

    # Fields whose change requires a new broker session
    CONNECTION_FIELDS: ClassVar[tuple[str, ...]] = ("host", "port", "username", "password")
    REQUIRED_FIELDS: ClassVar[tuple[str, ...]] = ("host", "port", "interval")

    def missing_fields(self) -> list[str]:
        return [name for name in self.REQUIRED_FIELDS if getattr(self, name) is None]

    def is_complete(self) -> bool:
        """True when the sensor may be created or started."""
        return not self.missing_fields()

    def has_broker(self) -> bool:
        """True when enough is known to attempt a broker connection."""
        return self.host is not None and self.port is not None

    def connection_key(self) -> tuple[Any, ...]:
        return tuple(getattr(self, name) for name in self.CONNECTION_FIELDS)

    def merged(self, changes: dict[str, Any]) -> "SensorConfig":
        """Return a copy with every present field overwritten."""
        merged = replace(self, **changes)
        if merged.topics is not None:
            merged.topics = list(merged.topics)
        return merged

    def copy(self) -> "SensorConfig":
        return self.merged({})

    def to_dict(self, include_password: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_password:
            data.pop("password")
        return data

    @classmethod
    def parse_patch(cls, payload: Any) -> dict[str, Any]:
        """
        Validate a partial configuration payload.

        Absent and null fields are dropped, so they preserve the prior value.

        Raises:
            ValidationError: On unknown fields or invalid values
        """
        payload = _require_mapping(payload)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(payload) - known)
        if unknown:
            raise ValidationError(f"Unknown config fields: {', '.join(unknown)}")

        changes: dict[str, Any] = {}
        for name, value in payload.items():
            if value is None:
                continue
            if name in ("host", "username", "password"):
                if not isinstance(value, str) or (name == "host" and not value.strip()):
                    raise ValidationError(f"'{name}' must be a non-empty string")
                changes[name] = value.strip() if name == "host" else value
            elif name == "port":
                if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 65535:
                    raise ValidationError("'port' must be an integer in [1, 65535]")
                changes[name] = value
            elif name == "interval":
                if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                    raise ValidationError("'interval' must be a positive number of milliseconds")
                changes[name] = value
            elif name == "topics":
                if not isinstance(value, list) or not all(isinstance(t, str) and t for t in value):
                    raise ValidationError("'topics' must be a list of non-empty strings")
                changes[name] = list(value)
        return changes


# ---------------------------------------------------------------------------
# Sensor state
# ---------------------------------------------------------------------------


@dataclass
class SensorState:
    """Common part of every simulated reading."""

    is_running: bool = False
    last_update: datetime = field(default_factory=utcnow)

    # name -> (low, high, high_inclusive); subclasses fill this in
    RANGES: ClassVar[dict[str, tuple[float, float, bool]]] = {}

    def copy(self) -> "SensorState":
        return replace(self)

    def apply(self, changes: dict[str, Any], now: datetime | None = None) -> None:
        """Apply validated changes in place and refresh last_update."""
        for name, value in changes.items():
            setattr(self, name, value)
        self.last_update = now or utcnow()

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["last_update"] = self.last_update.isoformat()
        return data

    @classmethod
    def _parse(cls, payload: Any, partial: bool) -> dict[str, Any]:
        payload = _require_mapping(payload)
        writable = set(cls.RANGES) | {"is_running"}
        unknown = sorted(set(payload) - writable)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

        if not partial:
            missing = sorted(name for name in writable if payload.get(name) is None)
            if missing:
                raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        changes: dict[str, Any] = {}
        for name, value in payload.items():
            if value is None:
                continue
            if name == "is_running":
                changes[name] = _boolean(name, value)
            else:
                low, high, inclusive = cls.RANGES[name]
                changes[name] = _number(name, value, low, high, inclusive)
        return changes

    @classmethod
    def parse_create(cls, payload: Any) -> dict[str, Any]:
        """Validate a full creation payload."""
        return cls._parse(payload, partial=False)

    @classmethod
    def parse_patch(cls, payload: Any) -> dict[str, Any]:
        """Validate a partial update payload."""
        return cls._parse(payload, partial=True)


@dataclass
class GpsState(SensorState):
    """Position sensor reading. Speed in knots, angles in degrees."""

    latitude: float = 0.0
    longitude: float = 0.0
    speed: float = 0.0
    heading: float = 0.0
    variation: float = 0.0  # magnetic variation, derived every step

    RANGES: ClassVar[dict[str, tuple[float, float, bool]]] = {
        "latitude": (-90.0, 90.0, True),
        "longitude": (-180.0, 180.0, True),
        "speed": (0.0, MAX_SPEED_KNOTS, True),
        "heading": (0.0, 360.0, False),
    }


@dataclass
class GyroState(SensorState):
    """Orientation sensor reading. Angles in degrees, yaw rate in degrees/second."""

    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0
    yaw_rate: float = 0.0

    RANGES: ClassVar[dict[str, tuple[float, float, bool]]] = {
        "yaw": (0.0, 360.0, False),
        "pitch": (-PITCH_LIMIT, PITCH_LIMIT, True),
        "roll": (-ROLL_LIMIT, ROLL_LIMIT, True),
        "yaw_rate": (-YAW_RATE_LIMIT, YAW_RATE_LIMIT, True),
    }


STATE_TYPES: dict[SensorKind, type[SensorState]] = {
    SensorKind.GPS: GpsState,
    SensorKind.GYRO: GyroState,
}
