"""
Main application orchestrator.

Handles:
- Store, simulator, broker connection and dispatcher wiring
- REST API and WebSocket listeners
- Graceful shutdown
"""

import asyncio
import signal
from contextlib import suppress
from pathlib import Path

from aiohttp import web

from .api import create_api_app
from .config.loader import ConfigLoader
from .config.schema import Config, LoggingConfig
from .logging import LogConfig, get_logger, setup_logging
from .models.sensor import SensorKind
from .mqtt.client import BrokerConnection, ClientFactory, create_client
from .service import SensorService
from .simulation import SIMULATORS, Simulator
from .store import ConfigStore, StateStore
from .stream import Dispatcher, SubscriberRegistry, create_stream_app


logger = get_logger("app")


class Application:
    """
    Main application class.

    Each sensor kind gets its own config store, state store, broker
    connection and simulator; the dispatcher and subscriber registry are
    shared.
    """

    def __init__(self, config: Config, client_factory: ClientFactory = create_client):
        """
        Initialize application.

        Args:
            config: Application configuration
            client_factory: MQTT client factory (replaced in tests)
        """
        self.config = config
        server = config.server

        self.registry = SubscriberRegistry()
        self.config_stores = {
            kind: ConfigStore(kind, config.sensors.get(kind)) for kind in SensorKind
        }
        self.state_stores = {kind: StateStore(kind) for kind in SensorKind}
        self.connections = {
            kind: BrokerConnection(
                kind,
                self.config_stores[kind],
                client_id_prefix=server.client_id_prefix,
                keepalive=server.keepalive,
                client_factory=client_factory,
            )
            for kind in SensorKind
        }
        self.dispatcher = Dispatcher(self.registry, self.config_stores, self.connections)
        self.simulators: list[Simulator] = [
            SIMULATORS[kind](self.config_stores[kind], self.state_stores[kind], self.dispatcher.notify)
            for kind in SensorKind
        ]
        self.services = {
            kind: SensorService(
                kind,
                self.config_stores[kind],
                self.state_stores[kind],
                self.connections[kind],
                self.dispatcher,
                verify_broker=server.verify_broker,
            )
            for kind in SensorKind
        }

        self.api_app = create_api_app(self.services)
        self.stream_app = create_stream_app(self.registry)

        self._runners: list[web.AppRunner] = []
        self._tasks: list[asyncio.Task] = []
        self._shutdown_event = asyncio.Event()

    async def _start_listener(self, app: web.Application, port: int, label: str) -> None:
        runner = web.AppRunner(app)
        await runner.setup()
        self._runners.append(runner)
        site = web.TCPSite(runner, self.config.server.host, port)
        # Bind failure propagates: this is the one fatal error
        await site.start()
        logger.info(f"{label} listening on {self.config.server.host}:{port}")

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

    def _signal_handler(self) -> None:
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    async def start(self) -> None:
        """Bind listeners and start every background loop."""
        logger.info("Starting Vessel Telemetry")

        await self._start_listener(self.api_app, self.config.server.api_port, "REST API")
        await self._start_listener(self.stream_app, self.config.server.stream_port, "WebSocket stream")

        for connection in self.connections.values():
            await connection.start()

        self.dispatcher.start()

        for simulator in self.simulators:
            self._tasks.append(asyncio.create_task(simulator.run(), name=f"simulator-{simulator.name}"))

        logger.info("Vessel Telemetry started successfully")

    async def stop(self) -> None:
        """Stop loops, close broker sessions and listeners."""
        logger.info("Stopping Vessel Telemetry")

        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        await self.dispatcher.stop()

        for connection in self.connections.values():
            await connection.stop()

        for runner in reversed(self._runners):
            with suppress(Exception):
                await runner.cleanup()
        self._runners.clear()

        logger.info("Vessel Telemetry stopped")

    async def run(self) -> None:
        """Run until a shutdown signal arrives."""
        try:
            await self.start()
            self._setup_signal_handlers()
            await self._shutdown_event.wait()
        finally:
            await self.stop()


def log_config_from(settings: LoggingConfig) -> LogConfig:
    """Translate the config file's logging block into handler settings."""
    return LogConfig(
        console_level=settings.level,
        console_colors=settings.colors,
        file_enabled=settings.file is not None,
        file_path=settings.file or "vessel-telemetry.log",
        file_level=settings.file_level,
        file_max_bytes=settings.file_max_size * 1024 * 1024,
        file_backup_count=settings.file_keep,
        format=settings.format,
        module_levels=dict(settings.modules) or None,
    )


async def run_app(config_path: str | None, cli_log_config: LogConfig | None = None) -> None:
    """
    Load configuration and run the application.

    Args:
        config_path: Path to configuration file, or None for defaults
        cli_log_config: Logging config from CLI args (overrides file config)
    """
    loader = ConfigLoader()
    if config_path is not None:
        config = loader.load_file(config_path)
    else:
        config = Config()

    if cli_log_config is None:
        setup_logging(log_config_from(config.logging))
    else:
        # CLI wins for the console; file and per-component settings still come from the file
        file_settings = log_config_from(config.logging)
        if not cli_log_config.file_enabled and file_settings.file_enabled:
            cli_log_config.file_enabled = True
            cli_log_config.file_path = file_settings.file_path
            cli_log_config.file_level = file_settings.file_level
            cli_log_config.file_max_bytes = file_settings.file_max_bytes
            cli_log_config.file_backup_count = file_settings.file_backup_count
        cli_log_config.module_levels = file_settings.module_levels
        setup_logging(cli_log_config)

    if config_path is not None:
        logger.info(f"Loaded configuration from {Path(config_path)}")
        for warning in loader.validate(config):
            logger.warning(f"Config warning: {warning}")
    else:
        logger.info("No configuration file, using defaults")

    app = Application(config)
    await app.run()
