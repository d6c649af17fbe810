"""
Entry point for Vessel Telemetry.

Usage:
    python -m vessel_telemetry [/path/to/config.conf]
    python -m vessel_telemetry --help
"""

import argparse
import asyncio
import sys
from pathlib import Path

from . import __version__
from .app import run_app
from .config.loader import ConfigError, ConfigLoader
from .logging import LogConfig, get_logger, setup_logging


logger = get_logger("main")


def validate_config(config_path: str) -> int:
    """Validate configuration file and print warnings."""
    try:
        loader = ConfigLoader()
        config = loader.load_file(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    warnings = loader.validate(config)
    if warnings:
        print(f"Configuration warnings ({len(warnings)}):")
        for warning in warnings:
            print(f"  - {warning}")

    print("\nConfiguration summary:")
    print(f"  REST API: {config.server.host}:{config.server.api_port}")
    print(f"  WebSocket: {config.server.host}:{config.server.stream_port}")
    print(f"  Broker verification: {'enabled' if config.server.verify_broker else 'disabled'}")
    for kind, sensor in config.sensors.items():
        broker = f"{sensor.host}:{sensor.port}" if sensor.has_broker() else "not configured"
        interval = f"{sensor.interval} ms" if sensor.interval else "default"
        print(f"  {kind.value}: broker {broker}, interval {interval}, {len(sensor.topics or [])} topic(s)")

    print("\nConfiguration is valid!")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="vessel-telemetry",
        description="Simulated vessel GPS and gyro telemetry over MQTT and WebSocket",
    )

    parser.add_argument(
        "config",
        nargs="?",
        default=None,
        help="Path to configuration file (defaults are used when omitted)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging (INFO level)")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging (DEBUG level)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Quiet mode (only errors)")
    parser.add_argument("--log-file", metavar="PATH", help="Write logs to file")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--validate", action="store_true", help="Validate configuration and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args()

    if args.config is not None and not Path(args.config).exists():
        print(f"Configuration file not found: {args.config}", file=sys.stderr)
        return 1

    log_config = LogConfig()
    if args.debug:
        log_config.console_level = "debug"
    elif args.verbose:
        log_config.console_level = "info"
    elif args.quiet:
        log_config.console_level = "error"
    else:
        log_config.console_level = "warning"

    if args.no_color:
        log_config.console_colors = False

    if args.log_file:
        log_config.file_enabled = True
        log_config.file_path = args.log_file

    setup_logging(log_config)

    if args.validate:
        if args.config is None:
            print("--validate requires a configuration file", file=sys.stderr)
            return 1
        return validate_config(args.config)

    # Only pass the CLI logging config when the user asked for something specific
    explicit = args.debug or args.verbose or args.quiet or args.no_color or args.log_file
    try:
        asyncio.run(run_app(args.config, cli_log_config=log_config if explicit else None))
        return 0
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except OSError as e:
        logger.error(f"Failed to start listeners: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
