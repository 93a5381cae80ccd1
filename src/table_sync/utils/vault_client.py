"""
Database credentials from HashiCorp Vault.

Settings for a dialect live in the KV v2 engine at
<mount>/database/<dialect>, e.g. secret/database/postgresql, holding
host, database, username, password and optionally port.
"""

import logging
import os
import re
from typing import Any

import requests

logger = logging.getLogger(__name__)

SAFE_SECRET_PATH = re.compile(r"[A-Za-z0-9/_-]+")

CREDENTIAL_FIELDS = ("host", "database", "username", "password")

DEFAULT_PORTS = {
    "postgresql": 5432,
    "sqlserver": 1433,
}


def kv2_data_path(secret_path: str) -> str:
    """secret/database/postgresql -> secret/data/database/postgresql"""
    if "/data/" in secret_path:
        return secret_path
    mount, _, rest = secret_path.partition("/")
    return f"{mount}/data/{rest}" if rest else f"{mount}/data"


class VaultClient:
    """
    Read-only KV v2 client over Vault's HTTP API.

    Address and token default to VAULT_ADDR and VAULT_TOKEN; a missing
    one raises ValueError.
    """

    def __init__(
        self,
        vault_addr: str | None = None,
        vault_token: str | None = None,
        namespace: str | None = None,
        mount_point: str = "secret",
        timeout: float = 10.0,
    ):
        vault_addr = vault_addr or os.getenv("VAULT_ADDR")
        vault_token = vault_token or os.getenv("VAULT_TOKEN")
        if not vault_addr:
            raise ValueError("Vault address not provided (pass vault_addr or set VAULT_ADDR)")
        if not vault_token:
            raise ValueError("Vault token not provided (pass vault_token or set VAULT_TOKEN)")

        self.vault_addr = vault_addr.rstrip("/")
        self.vault_token = vault_token
        self.mount_point = mount_point
        self.timeout = timeout

        self.headers = {"X-Vault-Token": vault_token}
        if namespace:
            self.headers["X-Vault-Namespace"] = namespace

    def get_secret(self, secret_path: str) -> dict[str, Any]:
        """
        Return the data of the latest version of a KV v2 secret.

        Raises:
            ValueError: Malformed path, or no secret / empty secret there
            requests.RequestException: Any other HTTP or transport failure
        """
        if ".." in secret_path or not SAFE_SECRET_PATH.fullmatch(secret_path):
            raise ValueError(f"Invalid secret_path: {secret_path!r}")

        data_path = kv2_data_path(secret_path)
        url = f"{self.vault_addr}/v1/{data_path}"
        logger.debug(f"GET {url}")

        response = requests.get(url, headers=self.headers, timeout=self.timeout)
        if response.status_code == 404:
            raise ValueError(f"Secret not found at path: {data_path}")
        response.raise_for_status()

        data = (response.json().get("data") or {}).get("data") or {}
        if not data:
            raise ValueError(f"No data found in secret at path: {data_path}")
        return data

    def get_database_credentials(self, dialect: str) -> dict[str, Any]:
        """Connection settings for `dialect`, with the dialect's default port filled in."""
        if dialect not in DEFAULT_PORTS:
            raise ValueError(
                f"Unsupported dialect for Vault credentials: {dialect!r} "
                f"(expected one of {', '.join(DEFAULT_PORTS)})"
            )

        credentials = {
            "port": DEFAULT_PORTS[dialect],
            **self.get_secret(f"{self.mount_point}/database/{dialect}"),
        }

        missing = [name for name in CREDENTIAL_FIELDS if name not in credentials]
        if missing:
            raise ValueError(f"Missing required fields in secret: {', '.join(missing)}")

        logger.info(f"Fetched {dialect} credentials from Vault")
        return credentials
