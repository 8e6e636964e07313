"""
Configuration for Beacon.

Settings are resolved in order: built-in defaults, the YAML config file,
then BEACON_* environment variables (a .env file in the working directory
is loaded first).
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from beacon import __version__
from beacon.errors import ConfigError
from beacon.models import SendOptions

logger = logging.getLogger(__name__)

BEACON_HOME = Path.home() / ".beacon"
DEFAULT_CONFIG_FILE = BEACON_HOME / "config.yaml"
ENV_PREFIX = "BEACON_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class BeaconConfig:
    """Resolved Beacon settings."""

    endpoint: str = "https://beacon.example.com/actions/report"
    endpoint_suffix: str = ""
    timeout: float = 30.0
    connect_timeout: float = 2.0
    allow_redirects: bool = True
    license_key_path: Path = field(default_factory=lambda: BEACON_HOME / "license.key")
    cache_path: Path = field(default_factory=lambda: BEACON_HOME / "cache.db")
    site_url: str = "http://localhost/"
    version: str = __version__
    build: str = "0"
    edition: str = "personal"
    track: str = "stable"
    user_email: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BeaconConfig":
        """
        Create from a mapping, coercing values to each field's type.

        Raises:
            ConfigError: If a value cannot be coerced
        """
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            values[key] = _coerce(key, value, known[key].default)

        config = cls(**values)
        if config.timeout < 0 or config.connect_timeout < 0:
            raise ConfigError("timeout and connect_timeout must be non-negative")
        if not config.endpoint:
            raise ConfigError("endpoint must be set")
        return config

    def send_options(self, destination_file: Optional[Path] = None) -> SendOptions:
        return SendOptions(
            timeout=self.timeout,
            connect_timeout=self.connect_timeout,
            allow_redirects=self.allow_redirects,
            destination_file=destination_file,
        )


def _coerce(key: str, value: Any, default: Any) -> Any:
    if key in ("license_key_path", "cache_path"):
        return Path(str(value)).expanduser()
    if value is None:
        return None

    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigError(f"{key}: expected a boolean, got {value!r}")

    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"{key}: expected a number, got {value!r}") from None

    return str(value)


def _read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of settings")
    return data


def load_config(path: Optional[Path] = None,
                env: Optional[Mapping[str, str]] = None) -> BeaconConfig:
    """
    Load configuration.

    Args:
        path: Config file (defaults to $BEACON_CONFIG or ~/.beacon/config.yaml)
        env: Environment mapping (defaults to os.environ after loading .env)

    Returns:
        BeaconConfig
    """
    if env is None:
        load_dotenv()
        env = os.environ

    config_path = Path(path or env.get(f"{ENV_PREFIX}CONFIG") or DEFAULT_CONFIG_FILE).expanduser()

    data: Dict[str, Any] = {}
    if config_path.exists():
        data.update(_read_config_file(config_path))
        logger.debug(f"Loaded config from {config_path}")
    elif path is not None:
        raise ConfigError(f"Config file not found: {config_path}")

    for f in fields(BeaconConfig):
        env_value = env.get(f"{ENV_PREFIX}{f.name.upper()}")
        if env_value is not None:
            data[f.name] = env_value

    return BeaconConfig.from_dict(data)
