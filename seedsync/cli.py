#!/usr/bin/env python3
"""
Seed Reconciliation Tool

Runs the seed reconciler outside the function runtime, against the store
backend from configuration:
- Replaying a lifecycle event file through the dispatcher
- Reconciling a declaration file directly
- Listing the records the reconciler currently owns

Usage:
    seedsync dispatch --event event.json
    seedsync reconcile --table MyTable1 --hash-key Id --items seed.yaml
    seedsync status --table MyTable1 --hash-key Id
    seedsync --backend memory dispatch --event event.json
"""

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

import yaml

from seedsync.config import BACKENDS, SeederConfig
from seedsync.exceptions import MalformedDeclarationError
from seedsync.handler import build_store_factory, handle_event
from seedsync.lifecycle.response import CallbackReporter, OnceReporter
from seedsync.reconciliation.declaration import Declaration, parse_declaration
from seedsync.reconciliation.ownership import OwnershipMarker
from seedsync.reconciliation.reconciler import SeedReconciler
from seedsync.utils.correlation import CorrelationContext, correlation_id_from_event
from seedsync.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def load_document(path: str) -> Any:
    """Read a JSON or YAML document (YAML is a superset of JSON)."""
    with open(path, "r") as f:
        return yaml.safe_load(f)


def load_declaration(path: str, hash_key: str) -> Declaration:
    """
    Load a declaration file.

    Accepts a list of records, or a mapping with an ``Items`` entry holding
    either a list or the JSON text used in lifecycle events.
    """
    try:
        document = load_document(path)
    except yaml.YAMLError as e:
        raise MalformedDeclarationError(f"Cannot parse {path}: {e}") from e

    if isinstance(document, dict) and "Items" in document:
        document = document["Items"]

    if isinstance(document, (str, bytes)):
        return parse_declaration(document, hash_key)
    return Declaration.from_records(document, hash_key)


def cmd_dispatch(args, config: SeederConfig) -> int:
    event = load_document(args.event)
    payloads: List[dict] = []
    reporter = OnceReporter(CallbackReporter(payloads.append))

    with CorrelationContext(correlation_id_from_event(event)):
        try:
            handle_event(event, None, config, reporter, store_factory=build_store_factory(config))
        finally:
            for payload in payloads:
                print(json.dumps(payload, indent=2))
    return 0


def cmd_reconcile(args, config: SeederConfig) -> int:
    declaration = load_declaration(args.items, args.hash_key)
    reconciler = SeedReconciler(
        marker=OwnershipMarker(config.marker_attribute),
        batch_size=config.batch_size
    )

    with build_store_factory(config)(args.table, args.hash_key) as store:
        result = reconciler.reconcile(store, args.hash_key, declaration)

    print(json.dumps(result.to_dict(), indent=2))
    return 0


def cmd_status(args, config: SeederConfig) -> int:
    marker = OwnershipMarker(config.marker_attribute)

    with build_store_factory(config)(args.table, args.hash_key) as store:
        owned = store.scan(marker.is_owned)

    owned.sort(key=lambda record: str(record.get(args.hash_key)))
    print(json.dumps({
        "table": args.table,
        "owned_count": len(owned),
        "records": [marker.strip(record) for record in owned],
    }, indent=2, default=str))
    return 0


COMMANDS = {
    "dispatch": cmd_dispatch,
    "reconcile": cmd_reconcile,
    "status": cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seedsync",
        description="Seed record reconciliation tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--backend", choices=BACKENDS, help="Override store backend")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    dispatch_parser = subparsers.add_parser("dispatch", help="Replay a lifecycle event file")
    dispatch_parser.add_argument("--event", required=True, help="Event file (JSON or YAML)")

    reconcile_parser = subparsers.add_parser("reconcile", help="Reconcile a declaration file")
    reconcile_parser.add_argument("--table", required=True, help="Table name")
    reconcile_parser.add_argument("--hash-key", default="Id", help="Hash key attribute")
    reconcile_parser.add_argument("--items", required=True, help="Declaration file (JSON or YAML)")

    status_parser = subparsers.add_parser("status", help="List owned records")
    status_parser.add_argument("--table", required=True, help="Table name")
    status_parser.add_argument("--hash-key", default="Id", help="Hash key attribute")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = SeederConfig.load(args.config)
        if args.backend:
            config.backend = args.backend
        config.validate()

        configure_logging(
            level=logging.DEBUG if args.verbose else config.log_level,
            json_output=config.json_logging
        )

        return COMMANDS[args.command](args, config)

    except Exception as e:
        logger.error(f"Error: {e}", exc_info=args.verbose)
        return 1


if __name__ == "__main__":
    sys.exit(main())
