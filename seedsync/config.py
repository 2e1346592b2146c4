"""
Configuration for seedsync

Settings come from three layers, later layers winning:
1. Defaults on SeederConfig
2. An optional YAML file (``SEED_CONFIG_FILE`` or an explicit path)
3. Environment variables
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from seedsync.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "scylla", "postgres")
DELETE_POLICIES = ("retain", "purge")

ENV_VARS = {
    "backend": "SEED_STORE_BACKEND",
    "scylla_hosts": "SCYLLA_HOSTS",
    "scylla_port": "SCYLLA_PORT",
    "scylla_keyspace": "SCYLLA_KEYSPACE",
    "scylla_username": "SCYLLA_USERNAME",
    "scylla_password": "SCYLLA_PASSWORD",
    "postgres_host": "POSTGRES_HOST",
    "postgres_port": "POSTGRES_PORT",
    "postgres_db": "POSTGRES_DB",
    "postgres_schema": "POSTGRES_SCHEMA",
    "postgres_user": "POSTGRES_USER",
    "postgres_password": "POSTGRES_PASSWORD",
    "marker_attribute": "SEED_MARKER_ATTRIBUTE",
    "batch_size": "SEED_BATCH_SIZE",
    "delete_policy": "SEED_DELETE_POLICY",
    "response_timeout": "SEED_RESPONSE_TIMEOUT",
    "timeout_margin": "SEED_TIMEOUT_MARGIN",
    "pushgateway_url": "PUSHGATEWAY_URL",
    "json_logging": "JSON_LOGGING",
    "log_level": "LOG_LEVEL",
    "vault_addr": "VAULT_ADDR",
}


@dataclass
class SeederConfig:
    """Runtime settings for the seed reconciler."""

    backend: str = "scylla"
    scylla_hosts: List[str] = field(default_factory=lambda: ["localhost"])
    scylla_port: int = 9042
    scylla_keyspace: str = "app_data"
    scylla_username: Optional[str] = None
    scylla_password: Optional[str] = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "warehouse"
    postgres_schema: str = "seed_data"
    postgres_user: str = "postgres"
    postgres_password: Optional[str] = None
    marker_attribute: str = "CF_MANAGED"
    batch_size: int = 25
    delete_policy: str = "retain"
    response_timeout: float = 10.0
    timeout_margin: float = 5.0
    pushgateway_url: Optional[str] = None
    json_logging: bool = False
    log_level: str = "INFO"
    vault_addr: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check values are usable.

        Raises:
            ConfigurationError: On the first invalid value
        """
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Invalid backend: {self.backend}. Must be one of {list(BACKENDS)}")
        if self.delete_policy not in DELETE_POLICIES:
            raise ConfigurationError(
                f"Invalid delete policy: {self.delete_policy}. Must be one of {list(DELETE_POLICIES)}"
            )
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")
        if self.response_timeout <= 0:
            raise ConfigurationError("response_timeout must be positive")
        if self.timeout_margin < 0:
            raise ConfigurationError("timeout_margin must not be negative")
        if not self.marker_attribute:
            raise ConfigurationError("marker_attribute must not be empty")
        if not self.scylla_hosts:
            raise ConfigurationError("At least one ScyllaDB host is required")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "SeederConfig":
        """Build a config from a flat mapping, coercing string values."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs = {}
        for name, value in values.items():
            kwargs[name] = _coerce(name, value)
        return cls(**kwargs)

    @classmethod
    def load(
        cls,
        path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "SeederConfig":
        """
        Load configuration from YAML file and environment.

        Args:
            path: YAML file path (defaults to SEED_CONFIG_FILE if set)
            environ: Environment mapping (defaults to os.environ)

        Returns:
            SeederConfig instance

        Raises:
            ConfigurationError: If the file is unreadable or values are invalid
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        path = path or environ.get("SEED_CONFIG_FILE")
        if path:
            values.update(load_yaml_file(path))

        for name, env_var in ENV_VARS.items():
            if environ.get(env_var) not in (None, ""):
                values[name] = environ[env_var]

        config = cls.from_mapping(values)
        logger.debug(f"Loaded configuration: backend={config.backend}, delete_policy={config.delete_policy}")
        return config


def load_yaml_file(path: str) -> Dict[str, Any]:
    """Read a YAML mapping from disk."""
    config_path = Path(path)
    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")

    logger.info(f"Loaded configuration file: {config_path}")
    return data


_LIST_FIELDS = {"scylla_hosts"}
_INT_FIELDS = {"scylla_port", "postgres_port", "batch_size"}
_FLOAT_FIELDS = {"response_timeout", "timeout_margin"}
_BOOL_FIELDS = {"json_logging"}


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None

    try:
        if name in _LIST_FIELDS:
            if isinstance(value, str):
                return [v.strip() for v in value.split(",") if v.strip()]
            return [str(v) for v in value]
        if name in _BOOL_FIELDS:
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() in ("1", "true", "yes", "on")
        if name in _INT_FIELDS:
            return int(value)
        if name in _FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from e

    return str(value)
