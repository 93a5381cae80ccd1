"""
Connection settings and connection setup for the CLI.

Settings come from command-line flags, falling back to environment
variables, or from HashiCorp Vault with --use-vault.
"""

import argparse
import logging
import os
import sqlite3
from typing import Any

import psycopg2

from table_sync.errors import ConfigurationError, ConnectivityError
from table_sync.utils.vault_client import VaultClient

logger = logging.getLogger(__name__)

ENV_VARS = {
    "postgresql": {
        "host": ("POSTGRES_HOST", "localhost"),
        "port": ("POSTGRES_PORT", "5432"),
        "database": ("POSTGRES_DB", None),
        "username": ("POSTGRES_USER", "postgres"),
        "password": ("POSTGRES_PASSWORD", None),
    },
    "sqlserver": {
        "host": ("SQLSERVER_HOST", "localhost"),
        "port": ("SQLSERVER_PORT", "1433"),
        "database": ("SQLSERVER_DATABASE", None),
        "username": ("SQLSERVER_USER", "sa"),
        "password": ("SQLSERVER_PASSWORD", None),
    },
    "sqlite": {
        "database": ("SQLITE_DATABASE", None),
    },
}

DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


def get_connection_config(args: argparse.Namespace) -> dict[str, Any]:
    """
    Build connection settings for args.dialect.

    Flags win over environment variables; --use-vault replaces both for
    server databases.

    Raises:
        ConfigurationError: If required settings are missing
    """
    dialect = args.dialect

    if args.use_vault:
        if dialect == "sqlite":
            raise ConfigurationError("--use-vault is not supported for sqlite")
        try:
            config = VaultClient().get_database_credentials(dialect)
        except Exception as e:
            raise ConfigurationError(f"Failed to fetch credentials from Vault: {e}") from e
        logger.info("Fetched connection settings from Vault")
    else:
        config = {}
        for name, (env_var, default) in ENV_VARS[dialect].items():
            config[name] = getattr(args, name, None) or os.getenv(env_var, default)

    missing = [name for name, value in config.items() if value in (None, "")]
    if missing:
        raise ConfigurationError(
            f"Missing {dialect} connection settings: {', '.join(missing)}"
        )

    config["dialect"] = dialect
    if dialect == "sqlserver":
        config["odbc_driver"] = args.odbc_driver or os.getenv(
            "SQLSERVER_ODBC_DRIVER", DEFAULT_ODBC_DRIVER
        )
    return config


def connect(config: dict[str, Any]) -> Any:
    """
    Open a DB-API connection for the given settings.

    Raises:
        ConnectivityError: If the database cannot be reached
    """
    dialect = config["dialect"]

    try:
        if dialect == "sqlite":
            conn = sqlite3.connect(config["database"])
        elif dialect == "postgresql":
            conn = psycopg2.connect(
                host=config["host"],
                port=int(config["port"]),
                dbname=config["database"],
                user=config["username"],
                password=config["password"],
            )
        else:
            # pyodbc needs the unixODBC runtime; only load it when asked for
            import pyodbc

            conn = pyodbc.connect(
                f"DRIVER={{{config['odbc_driver']}}};"
                f"SERVER={config['host']},{config['port']};"
                f"DATABASE={config['database']};"
                f"UID={config['username']};"
                f"PWD={config['password']};"
                f"TrustServerCertificate=yes;"
            )
    except Exception as e:
        raise ConnectivityError(f"Cannot connect to {dialect} database: {e}") from e

    logger.info(f"Connected to {dialect} database {config['database']}")
    return conn
