"""
Exception hierarchy shared by the stores, the sensor service and the API.
"""


class TelemetryError(Exception):
    """Base class for all application errors."""

    status = 500


class ValidationError(TelemetryError):
    """Malformed or out-of-range input. State is left untouched."""

    status = 400


class NotFoundError(TelemetryError):
    """The requested sensor instance does not exist."""

    status = 404


class PreconditionError(TelemetryError):
    """Operation conflicts with current state (incomplete config, duplicate instance)."""

    status = 409


class BrokerUnavailableError(TelemetryError):
    """A proposed broker configuration could not be connected to."""

    status = 502
