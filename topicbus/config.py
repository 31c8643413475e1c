"""Loading and validation of the server configuration file."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Mapping, Optional

import yaml

DEFAULT_CONFIG_PATH = "./configs/config.yaml"
CONFIG_PATH_ENV = "CONFIG_PATH"

_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_MAX_NANOSECONDS = 2**63 - 1
_NS_PER_SECOND = 1_000_000_000


class ConfigError(ValueError):
    """Raised when the configuration cannot be read, parsed or validated."""


@dataclass
class GRPCServerConfig:
    port: str = ""
    shutdown_timeout: float = 0.0  # seconds


@dataclass
class LoggerConfig:
    level: str = ""


@dataclass
class Config:
    grpc_server: GRPCServerConfig = field(default_factory=GRPCServerConfig)
    logger: LoggerConfig = field(default_factory=LoggerConfig)


def _split_number(text: str) -> tuple[str, str, str]:
    """Split leading "digits[.digits]" off text; return (int, frac, rest)."""
    pos = 0
    while pos < len(text) and text[pos].isdigit():
        pos += 1
    whole = text[:pos]
    frac = ""
    if pos < len(text) and text[pos] == ".":
        start = pos + 1
        pos = start
        while pos < len(text) and text[pos].isdigit():
            pos += 1
        frac = text[start:pos]
        if not whole and not frac:
            raise ConfigError(f"invalid duration {text!r}")
    elif not whole:
        raise ConfigError(f"invalid duration {text!r}")
    return whole, frac, text[pos:]


def parse_duration(text: str) -> float:
    """Parse a duration such as "300ms", "1.5h" or "2h45m" into seconds.

    Accepts an optional sign and a sequence of decimal numbers, each followed
    by one of the units ns, us (or µs), ms, s, m, h.
    """
    original = text
    if not text:
        raise ConfigError(f"invalid duration {original!r}")
    negative = False
    if text[0] in "+-":
        negative = text[0] == "-"
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ConfigError(f"invalid duration {original!r}")

    total = Fraction(0)
    while text:
        if not (text[0].isdigit() or text[0] == "."):
            raise ConfigError(f"invalid duration {original!r}")
        whole, frac, text = _split_number(text)
        pos = 0
        while pos < len(text) and not (text[pos].isdigit() or text[pos] == "."):
            pos += 1
        unit, text = text[:pos], text[pos:]
        if not unit:
            raise ConfigError(f"missing unit in duration {original!r}")
        scale = _NANOSECONDS.get(unit)
        if scale is None:
            raise ConfigError(f"unknown unit {unit!r} in duration {original!r}")
        amount = Fraction(int(whole or "0"))
        if frac:
            amount += Fraction(int(frac), 10 ** len(frac))
        total += amount * scale
        if total > _MAX_NANOSECONDS:
            raise ConfigError(f"invalid duration {original!r}")

    nanoseconds = int(total)  # sub-nanosecond fractions are truncated
    if negative:
        nanoseconds = -nanoseconds
    return nanoseconds / _NS_PER_SECOND


def _duration_value(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ConfigError(f"cannot parse config file: invalid duration {value!r}")
    if isinstance(value, int):
        return value / _NS_PER_SECOND
    if isinstance(value, str):
        try:
            return parse_duration(value)
        except ConfigError as exc:
            raise ConfigError(f"cannot parse config file: {exc}") from exc
    raise ConfigError(f"cannot parse config file: invalid duration {value!r}")


def _string_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (Mapping, list)):
        raise ConfigError(f"cannot parse config file: expected a scalar, got {value!r}")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"cannot parse config file: section {name!r} must be a mapping")
    return section


def _build(data: Any) -> Config:
    if data is None:
        return Config()
    if not isinstance(data, Mapping):
        raise ConfigError("cannot parse config file: top level must be a mapping")
    server = _section(data, "grpc_server")
    log = _section(data, "logger")
    return Config(
        grpc_server=GRPCServerConfig(
            port=_string_value(server.get("port")),
            shutdown_timeout=_duration_value(server.get("shutdown_timeout")),
        ),
        logger=LoggerConfig(level=_string_value(log.get("level"))),
    )


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate the configuration.

    An empty path falls back to the CONFIG_PATH environment variable and then
    to ./configs/config.yaml.
    """
    if not config_path:
        config_path = os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH

    try:
        with open(config_path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError as exc:
        raise ConfigError(f"cannot read config file: {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse config file: {exc}") from exc

    cfg = _build(data)

    if not cfg.grpc_server.port:
        raise ConfigError("grpc server port is not defined in config")
    if not cfg.logger.level:
        raise ConfigError("logger level is not defined in config")
    if cfg.grpc_server.shutdown_timeout <= 0:
        raise ConfigError(
            "grpc server shutdown_timeout must be defined and positive in config"
        )
    return cfg