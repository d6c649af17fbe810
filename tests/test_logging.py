"""
Tests for logging setup and sensor-tagged loggers.
"""

import logging

from vessel_telemetry.app import log_config_from
from vessel_telemetry.config.schema import LoggingConfig
from vessel_telemetry.logging import (
    LogConfig,
    TelemetryFormatter,
    get_log_level,
    get_logger,
    get_sensor_logger,
    setup_logging,
)


def _record(name: str, msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord(name, logging.WARNING, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_loggers_are_namespaced():
    assert get_logger("mqtt.client").name == "vessel_telemetry.mqtt.client"
    assert get_logger("vessel_telemetry.api").name == "vessel_telemetry.api"


def test_get_log_level():
    assert get_log_level("DEBUG") == logging.DEBUG
    assert get_log_level("warn") == logging.WARNING
    assert get_log_level("nonsense") == logging.INFO


def test_formatter_tags_sensor_kind():
    formatter = TelemetryFormatter("%(levelname)s|%(name)s|%(message)s")
    record = _record("vessel_telemetry.mqtt.client", "Connected", sensor_kind="gps")

    assert formatter.format(record) == "WARNING |vessel_telemetry.mqtt.client|[gps] Connected"
    # The record is restored for other handlers
    assert record.msg == "Connected"
    assert record.levelname == "WARNING"


def test_colored_formatter_restores_record():
    formatter = TelemetryFormatter("%(levelname)s %(name)s %(message)s", use_colors=True)
    record = _record("vessel_telemetry.stream.registry", "Queue full", sensor_kind="gyro")

    output = formatter.format(record)

    assert "\033[" in output
    assert "[gyro]" in output
    assert record.name == "vessel_telemetry.stream.registry"


def test_sensor_logger_adds_kind(caplog):
    log = get_sensor_logger("service", "gyro")

    with caplog.at_level(logging.INFO, logger="vessel_telemetry"):
        log.info("Config deleted")

    assert caplog.records[-1].sensor_kind == "gyro"
    assert caplog.records[-1].name == "vessel_telemetry.service"


def test_setup_logging_file_and_module_levels(tmp_path):
    log_file = tmp_path / "logs" / "telemetry.log"
    setup_logging(LogConfig(
        console_level="error",
        file_enabled=True,
        file_path=str(log_file),
        module_levels={"mqtt": "warning"},
    ))
    try:
        get_sensor_logger("simulation", "gps").debug("tick")
        get_logger("mqtt").info("suppressed")
        for handler in logging.getLogger("vessel_telemetry").handlers:
            handler.flush()

        content = log_file.read_text()
        assert "[gps] tick" in content
        assert "suppressed" not in content
    finally:
        get_logger("mqtt").setLevel(logging.NOTSET)
        root = logging.getLogger("vessel_telemetry")
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()


def test_log_config_from_file_settings():
    settings = LoggingConfig(level="debug", file="/tmp/x.log", file_max_size=2, modules={"api": "error"})

    config = log_config_from(settings)

    assert config.console_level == "debug"
    assert config.file_enabled is True
    assert config.file_max_bytes == 2 * 1024 * 1024
    assert config.module_levels == {"api": "error"}
