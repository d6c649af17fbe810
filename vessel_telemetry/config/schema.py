"""
Configuration schema.

Dataclasses for every configuration section, built from a parsed
ConfigDocument. Values that cannot be used raise ValueError, which the
loader turns into a ConfigError.
"""

from dataclasses import dataclass, field
from typing import Any

from ..const import (
    DEFAULT_API_PORT,
    DEFAULT_CLIENT_ID_PREFIX,
    DEFAULT_MQTT_KEEPALIVE,
    DEFAULT_SERVER_HOST,
    DEFAULT_STREAM_PORT,
)
from ..models.sensor import SensorConfig, SensorKind
from .lexer import Duration
from .parser import Block, ConfigDocument


def _port(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 65535:
        raise ValueError(f"'{name}' must be a port number in [1, 65535], got {value!r}")
    return value


def _interval_ms(value: Any) -> int:
    """Durations carry units; bare numbers are milliseconds."""
    if isinstance(value, Duration):
        ms = round(value * 1000)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        ms = round(value)
    else:
        raise ValueError(f"'interval' must be a duration or milliseconds, got {value!r}")
    if ms <= 0:
        raise ValueError("'interval' must be positive")
    return ms


@dataclass
class ServerConfig:
    """Listener addresses and broker session defaults."""

    host: str = DEFAULT_SERVER_HOST
    api_port: int = DEFAULT_API_PORT
    stream_port: int = DEFAULT_STREAM_PORT
    verify_broker: bool = False
    client_id_prefix: str = DEFAULT_CLIENT_ID_PREFIX
    keepalive: int = DEFAULT_MQTT_KEEPALIVE

    @classmethod
    def from_block(cls, block: Block | None) -> "ServerConfig":
        """Create ServerConfig from a parsed 'server' block."""
        if block is None:
            return cls()

        keepalive = block.get_value("keepalive", DEFAULT_MQTT_KEEPALIVE)
        if isinstance(keepalive, Duration):
            keepalive = round(keepalive)

        return cls(
            host=str(block.get_value("host", DEFAULT_SERVER_HOST)),
            api_port=_port(block.get_value("api_port", DEFAULT_API_PORT), "api_port"),
            stream_port=_port(block.get_value("stream_port", DEFAULT_STREAM_PORT), "stream_port"),
            verify_broker=bool(block.get_value("verify_broker", False)),
            client_id_prefix=str(block.get_value("client_id_prefix", DEFAULT_CLIENT_ID_PREFIX)),
            keepalive=int(keepalive),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    file: str | None = None
    file_level: str = "debug"
    file_max_size: int = 10  # MB
    file_keep: int = 5
    colors: bool = True
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    modules: dict[str, str] = field(default_factory=dict)  # component -> level

    @classmethod
    def from_block(cls, block: Block | None) -> "LoggingConfig":
        """
        Create LoggingConfig from a parsed 'logging' block.

        Per-component levels use a two-value directive:
            module mqtt debug;
        """
        if block is None:
            return cls()

        modules: dict[str, str] = {}
        for directive in block.directives:
            if directive.name == "module":
                if len(directive.values) != 2:
                    raise ValueError(f"'module' takes a component and a level (line {directive.line})")
                modules[str(directive.values[0])] = str(directive.values[1])

        defaults = cls()
        return cls(
            level=str(block.get_value("level", defaults.level)),
            file=block.get_value("file"),
            file_level=str(block.get_value("file_level", defaults.file_level)),
            file_max_size=int(block.get_value("file_max_size", defaults.file_max_size)),
            file_keep=int(block.get_value("file_keep", defaults.file_keep)),
            colors=bool(block.get_value("colors", defaults.colors)),
            format=str(block.get_value("format", defaults.format)),
            modules=modules,
        )


def sensor_config_from_block(block: Block | None) -> SensorConfig:
    """
    Build the initial broker configuration for a sensor kind.

    Example:
        gps {
            host 192.168.1.10;
            port 1883;
            interval 1s;
            topic "vessel/gps";
        }
    """
    if block is None:
        return SensorConfig()

    port = block.get_value("port")
    interval = block.get_value("interval")
    topics = [str(t) for t in block.get_all_values("topic")]
    username = block.get_value("username")
    password = block.get_value("password")
    host = block.get_value("host")

    return SensorConfig(
        host=str(host) if host is not None else None,
        port=_port(port, "port") if port is not None else None,
        username=str(username) if username is not None else None,
        password=str(password) if password is not None else None,
        interval=_interval_ms(interval) if interval is not None else None,
        topics=topics or None,
    )


@dataclass
class Config:
    """Root configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    sensors: dict[SensorKind, SensorConfig] = field(
        default_factory=lambda: {kind: SensorConfig() for kind in SensorKind}
    )

    @classmethod
    def from_document(cls, doc: ConfigDocument) -> "Config":
        """Create Config from a parsed document."""
        return cls(
            server=ServerConfig.from_block(doc.get_block("server")),
            logging=LoggingConfig.from_block(doc.get_block("logging")),
            sensors={
                kind: sensor_config_from_block(doc.get_block(kind.value))
                for kind in SensorKind
            },
        )
