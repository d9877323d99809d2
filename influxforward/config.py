"""
config.py — Forwarder configuration.
Loaded once from a JSON file at startup and never mutated afterwards.

Usage:
    from influxforward.config import load_config
    config = load_config("config.json")
    config.influxdb_database   # "belugacdn"

Example file:
    {
      "ListenPort": "6379",
      "ExpectedPassword": "secret",
      "InfluxdbHost": "localhost",
      "InfluxdbPort": "8086",
      "InfluxdbDatabase": "belugacdn",
      "InfluxdbMeasurement": "logs"
    }
"""

import json
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError

DEFAULT_REDIS_KEY = "belugacdn"
DEFAULT_READ_TIMEOUT = 300.0
DEFAULT_UPSTREAM_TIMEOUT = 10.0
DEFAULT_MAX_CONNECTIONS = 256
DEFAULT_MAX_UPSTREAM_WRITES = 32
DEFAULT_MAX_PAYLOAD_BYTES = 1024 * 1024
DEFAULT_STATS_INTERVAL = 60.0


@dataclass(frozen=True)
class ForwarderConfig:
    """Immutable process-wide settings shared by every connection."""

    listen_port: int
    expected_password: str
    influxdb_host: str
    influxdb_port: int
    influxdb_database: str
    influxdb_measurement: str
    listen_host: str | None = None
    redis_key: str = DEFAULT_REDIS_KEY
    read_timeout: float | None = DEFAULT_READ_TIMEOUT
    upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    max_upstream_writes: int = DEFAULT_MAX_UPSTREAM_WRITES
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    stats_interval: float | None = DEFAULT_STATS_INTERVAL

    @property
    def influxdb_url(self) -> str:
        return f"http://{self.influxdb_host}:{self.influxdb_port}"

    @classmethod
    def from_dict(cls, raw: dict) -> "ForwarderConfig":
        """Validate a decoded config document. Raises ConfigError."""
        if not isinstance(raw, dict):
            raise ConfigError("config must be a JSON object")
        return cls(
            listen_port=_port(raw, "ListenPort", minimum=0),
            expected_password=_text(raw, "ExpectedPassword"),
            influxdb_host=_text(raw, "InfluxdbHost"),
            influxdb_port=_port(raw, "InfluxdbPort", minimum=1),
            influxdb_database=_text(raw, "InfluxdbDatabase"),
            influxdb_measurement=_text(raw, "InfluxdbMeasurement"),
            listen_host=_optional_text(raw, "ListenHost"),
            redis_key=_text(raw, "RedisKey", default=DEFAULT_REDIS_KEY),
            read_timeout=_seconds(raw, "ReadTimeout", DEFAULT_READ_TIMEOUT, nullable=True),
            upstream_timeout=_seconds(raw, "UpstreamTimeout", DEFAULT_UPSTREAM_TIMEOUT),
            max_connections=_count(raw, "MaxConnections", DEFAULT_MAX_CONNECTIONS),
            max_upstream_writes=_count(raw, "MaxUpstreamWrites", DEFAULT_MAX_UPSTREAM_WRITES),
            max_payload_bytes=_count(raw, "MaxPayloadBytes", DEFAULT_MAX_PAYLOAD_BYTES),
            stats_interval=_seconds(raw, "StatsInterval", DEFAULT_STATS_INTERVAL, nullable=True),
        )


def load_config(filepath) -> ForwarderConfig:
    """Read and validate the JSON config file."""
    filepath = Path(filepath)
    try:
        with open(filepath, "r") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {filepath}") from None
    except OSError as e:
        raise ConfigError(f"cannot read {filepath}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"{filepath.name} is not valid JSON: {e}") from e
    return ForwarderConfig.from_dict(raw)


# ── Field validators ──────────────────────────────────────────────────

_MISSING = object()


def _text(raw: dict, key: str, default=_MISSING) -> str:
    value = raw.get(key, default)
    if value is _MISSING:
        raise ConfigError(f"missing required key {key}")
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string")
    return value


def _optional_text(raw: dict, key: str) -> str | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _port(raw: dict, key: str, minimum: int) -> int:
    if key not in raw:
        raise ConfigError(f"missing required key {key}")
    value = raw[key]
    # Ports are usually quoted in config.json, e.g. "6379"
    if isinstance(value, str) and value.isascii() and value.isdigit():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be a port number, got {raw[key]!r}")
    if not minimum <= value <= 65535:
        raise ConfigError(f"{key} out of range: {value}")
    return value


def _count(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{key} must be a positive integer, got {value!r}")
    return value


def _seconds(raw: dict, key: str, default: float, nullable: bool = False) -> float | None:
    value = raw.get(key, default)
    if value is None and nullable:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{key} must be a positive number of seconds, got {value!r}")
    return float(value)
