"""
Store credentials from HashiCorp Vault

Database passwords for the networked store backends are read from a KV v2
secret per backend instead of from function configuration::

    secret/data/seedsync/scylla    -> {"username": ..., "password": ...}
    secret/data/seedsync/postgres  -> {"username": ..., "password": ...}
"""

import os
import logging
from typing import Dict, Optional

import hvac
from hvac.exceptions import InvalidPath, VaultError

from seedsync.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("scylla", "postgres")
DEFAULT_SECRET_PREFIX = "seedsync"


class VaultClient:
    """
    Reads store credentials from a KV v2 secrets engine.

    Args:
        vault_url: Vault server URL
        vault_token: Token (defaults to the VAULT_TOKEN env var)
        mount_point: KV engine mount point
        secret_prefix: Path prefix under which per-backend secrets live
        verify_ssl: Whether to verify TLS certificates

    Raises:
        ConfigurationError: If the URL or token is missing, or Vault rejects the token
    """

    def __init__(
        self,
        vault_url: str,
        vault_token: Optional[str] = None,
        mount_point: str = "secret",
        secret_prefix: str = DEFAULT_SECRET_PREFIX,
        verify_ssl: bool = True
    ):
        self.vault_url = vault_url
        self.vault_token = vault_token or os.getenv("VAULT_TOKEN")
        self.mount_point = mount_point
        self.secret_prefix = secret_prefix.strip("/")

        if not self.vault_url:
            raise ConfigurationError("Vault URL must be provided")
        if not self.vault_token:
            raise ConfigurationError("Vault token must be provided via VAULT_TOKEN")

        self.client = hvac.Client(url=self.vault_url, token=self.vault_token, verify=verify_ssl)

        try:
            authenticated = self.client.is_authenticated()
        except VaultError as e:
            raise ConfigurationError(f"Vault at {self.vault_url} is unreachable: {e}") from e

        if not authenticated:
            raise ConfigurationError(f"Failed to authenticate with Vault at {self.vault_url}")

        logger.info(f"Connected to Vault at {self.vault_url}")

    def secret_path(self, backend: str) -> str:
        return f"{self.secret_prefix}/{backend}" if self.secret_prefix else backend

    def get_store_credentials(self, backend: str) -> Dict[str, Optional[str]]:
        """
        Fetch username and password for a store backend.

        Args:
            backend: "scylla" or "postgres"

        Returns:
            Dict with ``username`` and ``password`` keys

        Raises:
            ValueError: If backend has no credentials (e.g. "memory")
            ConfigurationError: If the secret is missing or has no username
        """
        if backend not in STORE_BACKENDS:
            raise ValueError(f"Invalid backend: {backend}. Must be one of {list(STORE_BACKENDS)}")

        path = self.secret_path(backend)
        logger.debug(f"Reading {backend} credentials from {self.mount_point}/data/{path}")

        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=self.mount_point
            )
        except InvalidPath as e:
            raise ConfigurationError(f"No {backend} credentials at {self.mount_point}/{path}") from e
        except VaultError as e:
            raise ConfigurationError(f"Reading {backend} credentials failed: {e}") from e

        data = (response or {}).get("data", {}).get("data") or {}
        if not data.get("username"):
            raise ConfigurationError(f"Secret {self.mount_point}/{path} has no username")

        return {"username": data["username"], "password": data.get("password")}

    def close(self) -> None:
        adapter = getattr(self.client, "adapter", None)
        if adapter is not None:
            adapter.close()
        self.client = None

    def __enter__(self) -> "VaultClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
