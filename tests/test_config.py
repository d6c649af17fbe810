"""
Tests for configuration loading and validation.
"""

from pathlib import Path

import pytest

from vessel_telemetry.config import ConfigError, ConfigLoader, Lexer, TokenType
from vessel_telemetry.config.lexer import Duration, LexerError, tokenize
from vessel_telemetry.config.parser import ParseError, parse_config
from vessel_telemetry.config.schema import Config
from vessel_telemetry.models.sensor import SensorKind


EXAMPLE_CONFIG = Path(__file__).parent.parent / "config.example.conf"


def test_load_example_config() -> None:
    """Test that example config loads without errors."""
    loader = ConfigLoader()
    config = loader.load_file(EXAMPLE_CONFIG)

    assert isinstance(config, Config)
    assert config.server.api_port == 8080
    assert config.server.stream_port == 8081
    assert config.server.host == "0.0.0.0"

    gps = config.sensors[SensorKind.GPS]
    assert gps.host == "localhost"
    assert gps.port == 1883
    assert gps.interval == 1000
    assert gps.topics == ["vessel/gps", "nmea/position"]

    gyro = config.sensors[SensorKind.GYRO]
    assert gyro.interval == 200
    assert gyro.username is None


def test_validate_example_config() -> None:
    """Example config produces no warnings."""
    loader = ConfigLoader()
    config = loader.load_file(EXAMPLE_CONFIG)

    assert loader.validate(config) == []


def test_defaults_without_blocks() -> None:
    config = ConfigLoader().load_string("")

    assert config.server.host == "127.0.0.1"
    assert config.server.api_port == 8080
    assert config.server.verify_broker is False
    assert config.server.keepalive == 30
    for kind in SensorKind:
        assert not config.sensors[kind].is_complete()


def test_lexer_tokens() -> None:
    tokens = tokenize('gps { host 10.0.0.5; interval 250ms; verify_broker on; } # tail')
    types = [t.type for t in tokens]

    assert types == [
        TokenType.IDENTIFIER,
        TokenType.LBRACE,
        TokenType.IDENTIFIER,
        TokenType.STRING,  # dotted address
        TokenType.SEMICOLON,
        TokenType.IDENTIFIER,
        TokenType.DURATION,
        TokenType.SEMICOLON,
        TokenType.IDENTIFIER,
        TokenType.BOOLEAN,
        TokenType.SEMICOLON,
        TokenType.RBRACE,
        TokenType.EOF,
    ]
    assert tokens[3].value == "10.0.0.5"
    assert isinstance(tokens[6].value, Duration)
    assert tokens[6].value == pytest.approx(0.25)


def test_lexer_comments_and_escapes() -> None:
    source = '/* block\ncomment */ topic "a\\"b" \'c\';'
    tokens = list(Lexer(source))

    assert tokens[0].value == "topic"
    assert tokens[0].line == 2
    assert tokens[1].value == 'a"b'
    assert tokens[2].value == "c"


@pytest.mark.parametrize("source", ['host "open', "/* never closed", "interval 5parsecs;", "port @;"])
def test_lexer_errors(source: str) -> None:
    with pytest.raises(LexerError):
        list(Lexer(source))


def test_parser_repeated_directives() -> None:
    doc = parse_config('gyro { topic "a"; topic "b" "c"; port 1; port 2; }')
    block = doc.get_block("gyro")

    assert block is not None
    assert block.get_all_values("topic") == ["a", "b", "c"]
    assert block.get_value("port") == 2  # last wins
    assert block.has("topic")
    assert not block.has("host")


@pytest.mark.parametrize("source", ["gps { port 1;", "gps port 1 }", "gps a b { }"])
def test_parser_errors(source: str) -> None:
    with pytest.raises(ParseError):
        parse_config(source)


def test_include(tmp_path: Path) -> None:
    (tmp_path / "conf.d").mkdir()
    (tmp_path / "conf.d" / "gps.conf").write_text("gps { host gps.local; port 1884; }")
    main = tmp_path / "main.conf"
    main.write_text('server { api_port 9000; }\ninclude "conf.d/*.conf";\n')

    config = ConfigLoader().load_file(main)

    assert config.server.api_port == 9000
    assert config.sensors[SensorKind.GPS].host == "gps.local"
    assert config.sensors[SensorKind.GPS].port == 1884


def test_circular_include(tmp_path: Path) -> None:
    main = tmp_path / "main.conf"
    main.write_text('include "main.conf";')

    with pytest.raises(ConfigError):
        ConfigLoader().load_file(main)


def test_interval_units() -> None:
    loader = ConfigLoader()

    assert loader.load_string("gps { interval 2s; }").sensors[SensorKind.GPS].interval == 2000
    assert loader.load_string("gps { interval 1500; }").sensors[SensorKind.GPS].interval == 1500
    assert loader.load_string("gps { interval 1m; }").sensors[SensorKind.GPS].interval == 60000


@pytest.mark.parametrize(
    "source",
    [
        "gps { port 70000; }",
        "gps { interval 0; }",
        "server { api_port 0; }",
        'server { stream_port "x"; }',
    ],
)
def test_invalid_values(source: str) -> None:
    with pytest.raises(ConfigError):
        ConfigLoader().load_string(source)


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        ConfigLoader().load_file(tmp_path / "absent.conf")


def test_validate_warnings() -> None:
    loader = ConfigLoader()
    config = loader.load_string(
        """
        server { api_port 8080; stream_port 8080; colour red; }
        gps { host a.local; password secret; }
        gyro { host b.local; port 1883; }
        radar { }
        """
    )

    warnings = loader.validate(config)
    text = "\n".join(warnings)

    assert "share port 8080" in text
    assert "Unknown directive 'colour'" in text
    assert "Unknown block 'radar'" in text
    assert "gps: broker host set without a port" in text
    assert "gps: password set without a username" in text
    assert "gyro: no topics configured" in text


def test_logging_module_levels() -> None:
    config = ConfigLoader().load_string("logging { level warning; module mqtt debug; module stream error; }")

    assert config.logging.level == "warning"
    assert config.logging.modules == {"mqtt": "debug", "stream": "error"}


def test_logging_module_requires_two_values() -> None:
    with pytest.raises(ConfigError):
        ConfigLoader().load_string("logging { module mqtt; }")
