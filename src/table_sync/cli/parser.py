"""
Command-line argument parser configuration.

Defines the `sync` and `plan` commands; both take the same connection,
table and input options.
"""

import argparse
import os

from table_sync.cli.loader import FORMATS


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    # Target table
    parser.add_argument('--table', required=True, help='Table to reconcile (optionally schema.table)')
    parser.add_argument('--key-column', required=True, help='Column uniquely identifying each row')
    parser.add_argument(
        '--columns',
        help='Comma-separated columns to compare (default: every column found in the input)'
    )

    # Desired state
    parser.add_argument('--input', required=True, help='JSON or CSV file with the desired rows')
    parser.add_argument(
        '--format',
        choices=FORMATS,
        help='Input format (default: inferred from the file suffix)'
    )

    # Connection
    parser.add_argument(
        '--dialect',
        choices=['postgresql', 'sqlserver', 'sqlite'],
        default=os.getenv('TABLE_SYNC_DIALECT', 'postgresql'),
        help='Database type (default: $TABLE_SYNC_DIALECT or postgresql)'
    )
    parser.add_argument('--host', help='Database host')
    parser.add_argument('--port', help='Database port')
    parser.add_argument('--database', help='Database name (file path for sqlite)')
    parser.add_argument('--user', dest='username', help='Database username')
    parser.add_argument('--password', help='Database password')
    parser.add_argument('--odbc-driver', help='ODBC driver name for sqlserver')
    parser.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch connection settings from HashiCorp Vault'
    )

    parser.add_argument('--output', help='Write the result to this file instead of stdout')


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog='table-sync',
        description="Make a database table match a keyed dataset with minimal INSERT/UPDATE/DELETE",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Preview the statements needed to make "customers" match a JSON file
  table-sync plan --table customers --key-column id --input customers.json

  # Apply them in one transaction
  table-sync sync --table customers --key-column id --input customers.json

  # CSV input against SQLite, committing row by row
  table-sync sync --dialect sqlite --database app.db --table t1 \\
      --key-column id --input t1.csv --no-transaction

  # Only compare two columns; credentials from Vault
  table-sync sync --use-vault --table customers --key-column id \\
      --columns name,tier --input customers.json
        """
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=os.getenv('LOG_LEVEL', 'INFO').upper(),
        help='Logging level (default: $LOG_LEVEL or INFO)'
    )
    parser.add_argument(
        '--log-json',
        action='store_true',
        default=os.getenv('LOG_JSON', '').lower() in ('1', 'true', 'yes'),
        help='Emit logs as JSON (default: $LOG_JSON)'
    )
    parser.add_argument(
        '--log-file',
        default=os.getenv('LOG_FILE'),
        help='Also write logs to this rotating file (default: $LOG_FILE)'
    )
    parser.add_argument('--otlp-endpoint', help='Export traces to this OTLP collector (host:port)')
    parser.add_argument(
        '--metrics-file',
        help='Write Prometheus metrics to this file (node_exporter textfile format)'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # ========== Sync command ==========
    sync_parser = subparsers.add_parser('sync', help='Apply the changes to the table')
    _add_common_arguments(sync_parser)
    sync_parser.add_argument(
        '--no-transaction',
        dest='use_transaction',
        action='store_false',
        help='Commit each statement on its own instead of one transaction'
    )

    # ========== Plan command ==========
    plan_parser = subparsers.add_parser('plan', help='Print the SQL a sync would run, without writing')
    _add_common_arguments(plan_parser)

    return parser
