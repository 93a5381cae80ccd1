"""
Command-line interface for table-sync.

Available commands:
- sync: make a table match a JSON or CSV file
- plan: print the SQL a sync would run
"""

import logging
import os
import sys

from table_sync.errors import TableSyncError
from table_sync.utils.logging import setup_logging
from table_sync.utils.metrics import write_metrics_file
from table_sync.utils.tracing import initialize_tracing, shutdown_tracing

from .commands import cmd_plan, cmd_sync
from .credentials import connect, get_connection_config
from .loader import load_desired_state
from .parser import create_parser

logger = logging.getLogger(__name__)

COMMANDS = {
    'sync': cmd_sync,
    'plan': cmd_plan,
}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the table-sync CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    setup_logging(level=args.log_level, log_file=args.log_file, json_format=args.log_json)

    if (
        args.otlp_endpoint
        or os.getenv('OTLP_ENDPOINT')
        or os.getenv('TRACE_CONSOLE', '').lower() == 'true'
    ):
        initialize_tracing(otlp_endpoint=args.otlp_endpoint)

    try:
        COMMANDS[args.command](args)
    except TableSyncError as e:
        logger.error(f"{args.command} failed: {e}")
        sys.exit(1)
    finally:
        if args.metrics_file:
            write_metrics_file(args.metrics_file)
        shutdown_tracing()


__all__ = [
    'main',
    'cmd_sync',
    'cmd_plan',
    'create_parser',
    'connect',
    'get_connection_config',
    'load_desired_state',
]


if __name__ == '__main__':
    main()
