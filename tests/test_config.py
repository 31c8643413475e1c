import pytest

from topicbus.config import (
    Config,
    ConfigError,
    GRPCServerConfig,
    LoggerConfig,
    load_config,
    parse_duration,
)

VALID = """
grpc_server:
  port: "50051"
  shutdown_timeout: 5s
logger:
  level: info
"""


def _write(tmp_path, text, name="config.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_parse_duration_seconds():
    assert parse_duration("5s") == 5.0


def test_parse_duration_zero():
    assert parse_duration("0") == 0.0


def test_parse_duration_units_agree():
    assert parse_duration("1000ms") == parse_duration("1s")
    assert parse_duration("60s") == parse_duration("1m")
    assert parse_duration("60m") == parse_duration("1h")
    assert parse_duration("1000us") == parse_duration("1ms")
    assert parse_duration("1000\u00b5s") == parse_duration("1ms")
    assert parse_duration("1000ns") == parse_duration("1us")


def test_parse_duration_compound_and_fraction():
    assert parse_duration("1h30m") == parse_duration("90m")
    assert parse_duration("1.5m") == parse_duration("90s")
    assert parse_duration(".5s") == parse_duration("500ms")


def test_parse_duration_sign():
    assert parse_duration("-5s") == -parse_duration("5s")
    assert parse_duration("+5s") == parse_duration("5s")


@pytest.mark.parametrize("text", ["", "5", "abc", "5x", "-", "s", ".s", "1.5"])
def test_parse_duration_rejects(text):
    with pytest.raises(ConfigError):
        parse_duration(text)


def test_parse_duration_overflow():
    with pytest.raises(ConfigError):
        parse_duration("10000000h")


def test_load_valid_config(tmp_path):
    cfg = load_config(_write(tmp_path, VALID))
    assert cfg == Config(
        grpc_server=GRPCServerConfig(port="50051", shutdown_timeout=5.0),
        logger=LoggerConfig(level="info"),
    )


def test_integer_port_and_nanosecond_timeout(tmp_path):
    text = """
grpc_server:
  port: 50051
  shutdown_timeout: 5000000000
logger:
  level: debug
"""
    cfg = load_config(_write(tmp_path, text))
    assert cfg.grpc_server.port == "50051"
    assert cfg.grpc_server.shutdown_timeout == parse_duration("5s")
    assert cfg.logger.level == "debug"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="cannot read config file"):
        load_config(str(tmp_path / "absent.yaml"))


def test_malformed_yaml(tmp_path):
    with pytest.raises(ConfigError, match="cannot parse config file"):
        load_config(_write(tmp_path, "grpc_server: [unclosed\n"))


def test_bad_duration_is_parse_error(tmp_path):
    text = VALID.replace("5s", "soon")
    with pytest.raises(ConfigError, match="cannot parse config file"):
        load_config(_write(tmp_path, text))


def test_missing_port(tmp_path):
    text = """
grpc_server:
  shutdown_timeout: 5s
logger:
  level: info
"""
    with pytest.raises(ConfigError, match="port is not defined"):
        load_config(_write(tmp_path, text))


def test_missing_level(tmp_path):
    text = """
grpc_server:
  port: "50051"
  shutdown_timeout: 5s
"""
    with pytest.raises(ConfigError, match="logger level is not defined"):
        load_config(_write(tmp_path, text))


@pytest.mark.parametrize("timeout", ["0s", "-1s", None])
def test_non_positive_timeout(tmp_path, timeout):
    line = f"  shutdown_timeout: {timeout}\n" if timeout else ""
    text = 'grpc_server:\n  port: "50051"\n' + line + "logger:\n  level: info\n"
    with pytest.raises(ConfigError, match="shutdown_timeout must be defined and positive"):
        load_config(_write(tmp_path, text))


def test_empty_file_fails_validation(tmp_path):
    with pytest.raises(ConfigError, match="port is not defined"):
        load_config(_write(tmp_path, ""))


def test_env_variable_path(tmp_path, monkeypatch):
    path = _write(tmp_path, VALID.replace("info", "warn"), name="env.yaml")
    monkeypatch.setenv("CONFIG_PATH", path)
    assert load_config("").logger.level == "warn"


def test_default_path(tmp_path, monkeypatch):
    monkeypatch.delenv("CONFIG_PATH", raising=False)
    (tmp_path / "configs").mkdir()
    _write(tmp_path / "configs", VALID.replace("info", "error"))
    monkeypatch.chdir(tmp_path)
    assert load_config().logger.level == "error"