"""
Configuration loader with file reading and validation.
"""

from pathlib import Path

from ..models.sensor import SensorKind
from .lexer import LexerError
from .parser import Block, ConfigDocument, ParseError, parse_config, parse_config_file
from .schema import Config


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


SENSOR_DIRECTIVES = {"host", "port", "username", "password", "interval", "topic"}


class ConfigLoader:
    """
    Loads and validates configuration from files or strings.

    Usage:
        loader = ConfigLoader()
        config = loader.load_file("/etc/vessel-telemetry/config.conf")
        warnings = loader.validate(config)
    """

    KNOWN_DIRECTIVES = {
        "server": {"host", "api_port", "stream_port", "verify_broker", "client_id_prefix", "keepalive"},
        "logging": {"level", "file", "file_level", "file_max_size", "file_keep", "colors", "format", "module"},
        **{kind.value: SENSOR_DIRECTIVES for kind in SensorKind},
    }

    def __init__(self):
        self.last_document: ConfigDocument | None = None

    def _build(self, document: ConfigDocument) -> Config:
        self.last_document = document
        try:
            return Config.from_document(document)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def load_file(self, path: str | Path) -> Config:
        """
        Load configuration from a file.

        Raises:
            ConfigError: If the file cannot be read, parsed or interpreted
        """
        path = Path(path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        if not path.is_file():
            raise ConfigError(f"Not a file: {path}")

        try:
            document = parse_config_file(path)
        except (LexerError, ParseError, OSError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e
        return self._build(document)

    def load_string(self, source: str, filename: str = "<string>", base_path: str | Path | None = None) -> Config:
        """
        Load configuration from a string.

        Raises:
            ConfigError: If the source cannot be parsed or interpreted
        """
        try:
            document = parse_config(source, filename, Path(base_path) if base_path else None)
        except (LexerError, ParseError, OSError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e
        return self._build(document)

    def validate(self, config: Config) -> list[str]:
        """
        Validate configuration and return warnings (empty if no issues).
        """
        warnings: list[str] = []

        if self.last_document:
            warnings.extend(self._check_unknown(self.last_document))

        if config.server.api_port == config.server.stream_port:
            warnings.append(
                f"API and stream listeners share port {config.server.api_port}"
            )

        for kind, sensor in config.sensors.items():
            if sensor.host and sensor.port is None:
                warnings.append(f"{kind.value}: broker host set without a port")
            if sensor.has_broker() and not sensor.topics:
                warnings.append(f"{kind.value}: no topics configured, updates go to WebSocket only")
            if sensor.password and not sensor.username:
                warnings.append(f"{kind.value}: password set without a username")

        return warnings

    def _check_unknown(self, document: ConfigDocument) -> list[str]:
        warnings: list[str] = []

        def check_block(block: Block) -> None:
            known = self.KNOWN_DIRECTIVES.get(block.type)
            if known is None:
                warnings.append(f"Unknown block '{block.type}' (line {block.line})")
                return
            for directive in block.directives:
                if directive.name not in known:
                    warnings.append(
                        f"Unknown directive '{directive.name}' in {block.type} block (line {directive.line})"
                    )
            for nested in block.blocks:
                warnings.append(f"Unexpected nested block '{nested.type}' in {block.type} (line {nested.line})")

        for block in document.blocks:
            check_block(block)
        for directive in document.directives:
            warnings.append(f"Unknown top-level directive '{directive.name}' (line {directive.line})")

        return warnings
