"""
Logging configuration for Vessel Telemetry.

All loggers live under the ``vessel_telemetry`` namespace. Components that
serve one sensor kind log through a SensorLogger, which tags every record
with the kind so the console shows e.g. ``[gps]`` in the kind's color.

Console output can be colored; file output rotates and is never colored.
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any


ROOT_LOGGER = "vessel_telemetry"

RESET = "\033[0m"

LEVEL_COLORS = {
    logging.DEBUG: "\033[2;36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;91m",
}

# First component of the logger name below the root
COMPONENT_COLORS = {
    "config": "\033[35m",
    "mqtt": "\033[34m",
    "simulation": "\033[36m",
    "stream": "\033[94m",
    "api": "\033[32m",
}

KIND_COLORS = {
    "gps": "\033[93m",
    "gyro": "\033[95m",
}

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _paint(text: str, color: str | None) -> str:
    return f"{color}{text}{RESET}" if color else text


class TelemetryFormatter(logging.Formatter):
    """
    Formatter that renders the sensor kind tag and optional ANSI colors.

    The kind tag is taken from ``record.sensor_kind`` (set by SensorLogger)
    and prepended to the message.
    """

    def __init__(self, fmt: str, datefmt: str | None = None, use_colors: bool = False):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        saved = record.levelname, record.name, record.msg
        kind = getattr(record, "sensor_kind", None)

        if self.use_colors:
            record.levelname = _paint(f"{record.levelname:8}", LEVEL_COLORS.get(record.levelno))
            component = record.name.removeprefix(f"{ROOT_LOGGER}.").split(".", 1)[0]
            record.name = _paint(record.name, COMPONENT_COLORS.get(component))
        else:
            record.levelname = f"{record.levelname:8}"

        if kind:
            tag = f"[{kind}]"
            record.msg = f"{_paint(tag, KIND_COLORS.get(kind)) if self.use_colors else tag} {record.msg}"

        try:
            return super().format(record)
        finally:
            record.levelname, record.name, record.msg = saved


class SensorLogger(logging.LoggerAdapter):
    """Logger adapter that tags records with a sensor kind."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("sensor_kind", self.extra["sensor_kind"])
        kwargs["extra"] = extra
        return msg, kwargs


@dataclass
class LogConfig:
    """Resolved logging settings (from the CLI or the config file)."""

    console_level: str = "INFO"
    console_colors: bool = True

    file_enabled: bool = False
    file_path: str = "vessel-telemetry.log"
    file_level: str = "DEBUG"
    file_max_bytes: int = 10 * 1024 * 1024
    file_backup_count: int = 5

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    # component name -> level, e.g. {"mqtt": "debug"}
    module_levels: dict[str, str] | None = None


def get_log_level(level_str: str) -> int:
    """Convert a level name to a logging constant (INFO if unknown)."""
    return LEVELS.get(level_str.lower(), logging.INFO)


def setup_logging(config: LogConfig | None = None) -> None:
    """
    Install console and optional file handlers on the package logger.

    Calling it again replaces the handlers of the previous call, so the CLI
    can configure early logging and the config file can refine it later.
    """
    config = config or LogConfig()

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(get_log_level(config.console_level))
    console.setFormatter(
        TelemetryFormatter(
            config.format,
            config.date_format,
            use_colors=config.console_colors and sys.stdout.isatty(),
        )
    )
    root.addHandler(console)

    if config.file_enabled:
        Path(config.file_path).parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            config.file_path,
            maxBytes=config.file_max_bytes,
            backupCount=config.file_backup_count,
        )
        rotating.setLevel(get_log_level(config.file_level))
        rotating.setFormatter(TelemetryFormatter(config.format, config.date_format))
        root.addHandler(rotating)

    for component, level in (config.module_levels or {}).items():
        get_logger(component).setLevel(get_log_level(level))

    # Broker and HTTP access chatter
    for noisy in ("aiomqtt", "paho", "aiohttp.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, namespaced under vessel_telemetry."""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_sensor_logger(name: str, kind: str) -> SensorLogger:
    """Component logger whose records carry the sensor kind."""
    return SensorLogger(get_logger(name), {"sensor_kind": kind})
