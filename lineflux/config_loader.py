"""
Lineflux Configuration Loader

Loads client configuration from multiple sources with precedence:
1. Environment variables (highest priority)
2. lineflux.toml file
3. Built-in defaults (lowest priority)

Example lineflux.toml:

    [client]
    host = "https://eu-central-1.example.cloud"
    database = "telemetry"

    [write]
    precision = "ms"

    [write.default_tags]
    region = "eu"

    [writer]
    batch_size = 5000
    flush_interval_seconds = 10

    [batching]
    size = 1000
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from .batching import DEFAULT_BATCH_SIZE, DEFAULT_CAPACITY
from .config import (
    DEFAULT_EXPIRATION_SECONDS,
    DEFAULT_FLUSH_INTERVAL_SECONDS,
    DEFAULT_HOST,
    DEFAULT_MAX_BATCH_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_WRITE_BATCH_SIZE,
    BatchingConfig,
    ClientConfig,
    WriteOptions,
    WriteParams,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "lineflux.toml"


def _parse_tags(value: str) -> Dict[str, str]:
    """Parse "k1=v1,k2=v2" into a dict"""
    tags = {}
    for item in value.split(","):
        if not item.strip():
            continue
        key, _, tag_value = item.partition("=")
        tags[key.strip()] = tag_value.strip()
    return tags


# Environment variable -> (config path..., converter)
ENV_MAPPINGS = {
    # Client
    "LINEFLUX_HOST": ("client", "host"),
    "LINEFLUX_TOKEN": ("client", "token"),
    "LINEFLUX_ORG": ("client", "organization"),
    "LINEFLUX_DATABASE": ("client", "database"),
    "LINEFLUX_TIMEOUT": ("client", "timeout_seconds", float),

    # Write options
    "LINEFLUX_PRECISION": ("write", "precision"),
    "LINEFLUX_DEFAULT_TAGS": ("write", "default_tags", _parse_tags),

    # Async writer
    "LINEFLUX_WRITE_BATCH_SIZE": ("writer", "batch_size", int),
    "LINEFLUX_WRITE_MAX_BATCH_BYTES": ("writer", "max_batch_bytes", int),
    "LINEFLUX_WRITE_FLUSH_INTERVAL": ("writer", "flush_interval_seconds", float),
    "LINEFLUX_WRITE_EXPIRATION": ("writer", "expiration_seconds", float),

    # Batching
    "LINEFLUX_BATCH_SIZE": ("batching", "size", int),
    "LINEFLUX_BATCH_CAPACITY": ("batching", "capacity", int),

    # Logging
    "LOG_LEVEL": ("logging", "level"),
    "LOG_FORMAT": ("logging", "format"),
    "LOG_INCLUDE_TRACE": ("logging", "include_trace", lambda x: x.lower() == "true"),
}


class ConfigLoader:
    """Layered configuration; build() turns it into a ClientConfig"""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration

        Args:
            config_file: Path to a TOML file (default: $LINEFLUX_CONFIG_FILE or ./lineflux.toml)
        """
        self.config_file = config_file or os.getenv("LINEFLUX_CONFIG_FILE", DEFAULT_CONFIG_FILE)
        self.config: Dict[str, Any] = {}

        self._load_defaults()
        self._load_config_file()
        self._load_env_overrides()

    def _load_defaults(self):
        """Load built-in default configuration"""
        self.config = {
            "client": {
                "host": DEFAULT_HOST,
                "token": "",
                "organization": "",
                "database": "",
                "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
            },
            "write": {
                "precision": "ns",
                "default_tags": {},
            },
            "writer": {
                "batch_size": DEFAULT_WRITE_BATCH_SIZE,
                "max_batch_bytes": DEFAULT_MAX_BATCH_BYTES,
                "flush_interval_seconds": DEFAULT_FLUSH_INTERVAL_SECONDS,
                "expiration_seconds": DEFAULT_EXPIRATION_SECONDS,
            },
            "batching": {
                "size": DEFAULT_BATCH_SIZE,
                "capacity": DEFAULT_CAPACITY,
            },
            "logging": {
                "level": "INFO",
                "format": "structured",
                "include_trace": False,
            },
        }

    def _load_config_file(self):
        """Load configuration from the TOML file"""
        config_path = Path(self.config_file)

        if not config_path.exists():
            logger.info(f"Config file not found: {self.config_file}, using defaults")
            return

        try:
            file_config = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            logger.error(f"Failed to load config file {self.config_file}: {e}")
            return

        logger.info(f"Loaded configuration from: {self.config_file}")
        self._deep_merge(self.config, file_config)

    def _load_env_overrides(self):
        """Load environment variable overrides"""
        for env_var, mapping in ENV_MAPPINGS.items():
            value = os.getenv(env_var)
            if value is None:
                continue

            *path, converter = mapping if len(mapping) > 2 else (*mapping, None)

            if converter is not None:
                try:
                    value = converter(value)
                except ValueError as e:
                    logger.warning(f"Failed to convert {env_var}={value}: {e}")
                    continue

            self._set_nested(self.config, path, value)
            logger.debug(f"Environment override: {env_var}")

    def _deep_merge(self, base: Dict, override: Dict):
        """Deep merge override dict into base dict"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _set_nested(self, config: Dict, path: list, value: Any):
        """Set nested dictionary value"""
        for key in path[:-1]:
            if key not in config:
                config[key] = {}
            config = config[key]
        config[path[-1]] = value

    def get(self, *path, default=None) -> Any:
        """
        Get configuration value by path

        Args:
            *path: Path to config value (e.g., "writer", "batch_size")
            default: Default value if not found
        """
        value = self.config
        for key in path:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_logging_config(self) -> Dict[str, Any]:
        """Keyword arguments for logging_config.setup_logging()"""
        logging_config = self.config.get("logging", {})
        return {
            "level": logging_config.get("level", "INFO"),
            "structured": logging_config.get("format", "structured") == "structured",
            "include_trace": bool(logging_config.get("include_trace", False)),
        }

    def build(self) -> ClientConfig:
        """
        Validate the merged configuration.

        Raises:
            pydantic.ValidationError: a value is out of range or malformed
        """
        write = self.config.get("write", {})
        writer = self.config.get("writer", {})
        return ClientConfig(
            **self.config.get("client", {}),
            write_options=WriteOptions(**write),
            write_params=WriteParams(**{**write, **writer}),
            batching=BatchingConfig(**self.config.get("batching", {})),
        )

    def dump(self) -> Dict[str, Any]:
        """Get complete configuration (for debugging); the token is masked"""
        config = {key: dict(value) if isinstance(value, dict) else value for key, value in self.config.items()}
        if config.get("client", {}).get("token"):
            config["client"]["token"] = "***"
        return config
