"""
CLI command implementations.

- sync: reconcile the table against the input file and print the summary
- plan: compute the diff and print it as a SQL script, without writing
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from table_sync.errors import ApplyError
from table_sync.reconcile import ReconcileOptions, TableReconciler, render_script

from .credentials import connect, get_connection_config
from .loader import load_desired_state

logger = logging.getLogger(__name__)


def parse_columns(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [column.strip() for column in value.split(',') if column.strip()]


def build_reconciler(args: argparse.Namespace, connection: Any) -> TableReconciler:
    options = ReconcileOptions(
        columns=parse_columns(args.columns),
        use_transaction=getattr(args, 'use_transaction', True),
        dialect=args.dialect,
    )
    return TableReconciler(connection, args.table, args.key_column, options)


def write_output(text: str, output: str | None) -> None:
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text, encoding='utf-8')
        logger.info(f"Output written to {output}")
    else:
        sys.stdout.write(text)


def cmd_sync(args: argparse.Namespace) -> None:
    """
    Reconcile a table against an input file

    Args:
        args: Parsed command-line arguments
    """
    desired_state = load_desired_state(args.input, args.key_column, args.format)
    connection = connect(get_connection_config(args))

    try:
        summary = build_reconciler(args, connection).reconcile(desired_state)
    except ApplyError as e:
        report = {
            "status": "FAILED",
            "error": str(e),
            "operation": e.operation,
            "key": e.key,
            "rolled_back": e.rolled_back,
            "applied": e.applied.to_dict(),
        }
        write_output(json.dumps(report, indent=2, default=str) + "\n", args.output)
        raise
    finally:
        connection.close()

    write_output(json.dumps(summary.to_dict(), indent=2) + "\n", args.output)


def cmd_plan(args: argparse.Namespace) -> None:
    """
    Print the SQL script a sync would run

    Args:
        args: Parsed command-line arguments
    """
    desired_state = load_desired_state(args.input, args.key_column, args.format)
    connection = connect(get_connection_config(args))

    try:
        plan = build_reconciler(args, connection).plan(desired_state)
    finally:
        connection.close()

    logger.info(
        f"Plan for {plan.table}: {len(plan.diff.deletes)} deletes, "
        f"{len(plan.diff.updates)} updates, {len(plan.diff.inserts)} inserts"
    )
    write_output(render_script(plan.diff, plan.table, plan.key_column, plan.dialect), args.output)
