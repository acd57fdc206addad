from __future__ import annotations
import math
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from fcp.session import DEFAULT_PORT
from fcp.log import get_logger

logger = get_logger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file or environment holds invalid values."""
    pass


@dataclass(frozen=True)
class ClientConfig:
    host: str = "localhost"
    port: int = DEFAULT_PORT
    client_name: str = "fcp-cli"
    timeout: Optional[float] = None
    log_level: str = "WARNING"


_ENV_OVERRIDES = {
    "FCP_HOST": "host",
    "FCP_PORT": "port",
    "FCP_CLIENT_NAME": "client_name",
    "FCP_TIMEOUT": "timeout",
}


def default_config_path() -> Path:
    """Return $FCP_CONFIG if set, else ~/.fcp/config.yaml"""
    env_path = os.getenv("FCP_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".fcp" / "config.yaml"


def load_config(path: Optional[Path] = None) -> ClientConfig:
    """
    Load client settings from YAML, then apply environment overrides.

    The file may hold the settings at top level or below an ``fcp:`` key:

        fcp:
          host: node.example
          port: 9481
          client_name: my-client
          timeout: 30

    A missing file yields the defaults.
    """
    path = path or default_config_path()
    values: Dict[str, Any] = {}

    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Error reading {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at top level")
        section = data.get("fcp", data)
        if not isinstance(section, dict):
            raise ConfigError(f"{path}: 'fcp' must be a mapping")
        values.update(section)
        logger.debug("Loaded configuration from %s", path)
    else:
        logger.debug("No configuration file at %s; using defaults", path)

    for env_name, key in _ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value is not None and env_value != "":
            values[key] = env_value

    return _build(values)


def _build(values: Dict[str, Any]) -> ClientConfig:
    known = {f.name for f in fields(ClientConfig)}
    for key in sorted(set(values) - known, key=str):
        logger.warning("Ignoring unknown configuration key %r", key)

    config = ClientConfig()
    updates: Dict[str, Any] = {}

    if "host" in values:
        updates["host"] = _as_str(values["host"], "host")
    if "client_name" in values:
        updates["client_name"] = _as_str(values["client_name"], "client_name")
    if "log_level" in values:
        updates["log_level"] = _as_str(values["log_level"], "log_level").upper()
    if "port" in values:
        updates["port"] = _as_port(values["port"])
    if "timeout" in values:
        updates["timeout"] = _as_timeout(values["timeout"])

    return replace(config, **updates)


def _as_str(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value.strip()


def _as_port(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError("'port' must be an integer")
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'port' must be an integer, got {value!r}")
    if not 0 < port <= 65535:
        raise ConfigError(f"'port' out of range: {port}")
    return port


def _as_timeout(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError("'timeout' must be a number of seconds")
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'timeout' must be a number of seconds, got {value!r}")
    if not math.isfinite(timeout):
        raise ConfigError(f"'timeout' must be a finite number of seconds, got {value!r}")
    if timeout <= 0:
        raise ConfigError(f"'timeout' must be positive, got {timeout}")
    return timeout
