#!/usr/bin/env python3
"""
Hybrid Join Audit

Reconciles Active Directory computers, Entra ID devices and Intune managed devices
to find machines whose hybrid join is broken: present in one system but missing
from another. Read-only; nothing is changed in any of the three systems.

Usage:
    hybrid-join-audit                              # summary
    hybrid-join-audit broken                       # Entra devices with no working Intune twin
    hybrid-join-audit query --collection directory --where "ad and not aad"
    hybrid-join-audit category directory-not-managed --csv not_managed.csv
    hybrid-join-audit lookup PC-0142
    hybrid-join-audit --ou "OU=Labs,DC=example,DC=edu" export --output-dir exports
"""

import argparse
import functools
import logging
import os
import sys
from typing import List, Optional

from ldap3.core.exceptions import LDAPException

from directory.facade.directory_facade import DirectoryFacade
from graph.api.graph_api import GraphAPIError
from graph.facade.graph_facade import GraphFacade
from reconciliation.config import ReconciliationConfig
from reconciliation.exceptions import ReconciliationError
from reconciliation.models.device_record import DeviceSource
from reconciliation.predicates import STANDARD_QUERIES, Predicate, parse_predicate
from reconciliation.query import BROKEN
from services.config import HybridJoinConfig
from services.export_service import export_records, export_snapshot
from services.hybrid_join_service import HybridJoinService
from services.report_service import render_devices, render_lookup, render_summary

logger = logging.getLogger(__name__)

COLLECTION_CHOICES = {
    "directory": DeviceSource.DIRECTORY,
    "identity": DeviceSource.IDENTITY_SERVICE,
    "managed": DeviceSource.DEVICE_MANAGEMENT,
    "broken": BROKEN,
}


def handle_keyboard_interrupt(exit_message="Audit interrupted by user"):
    """Decorator to handle KeyboardInterrupt and exit gracefully."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                logging.info(f"\n{exit_message}")
                return 130
        return wrapper
    return decorator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find devices inconsistently registered across Active Directory, "
        "Entra ID and Intune."
    )
    parser.add_argument(
        "--ou",
        help="Distinguished name of the OU to audit (defaults to AD_SEARCH_BASE)",
    )
    parser.add_argument(
        "--os",
        dest="operating_system",
        default=None,
        help="Entra ID operating system to audit (defaults to HYBRID_JOIN_OS_FILTER or Windows). "
        "Use 'all' to audit every OS",
    )
    parser.add_argument(
        "--case-sensitive",
        action="store_true",
        default=None,
        help="Compare device names case-sensitively",
    )
    parser.add_argument(
        "--strip-domain-suffix",
        action="store_true",
        default=None,
        help="Ignore DNS suffixes when comparing device names",
    )
    parser.add_argument(
        "--log",
        nargs="?",
        const="logs/hybrid_join_audit.log",
        help="Also log to a file (defaults to logs/hybrid_join_audit.log)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("summary", help="Print counts per source and category (default)")

    broken_parser = subparsers.add_parser(
        "broken", help="List Entra ID devices with no Intune enrollment and no working twin"
    )
    broken_parser.add_argument("--csv", help="Also write the listing to this CSV file")

    query_parser = subparsers.add_parser("query", help="Filter a collection with an expression")
    query_parser.add_argument(
        "--collection",
        choices=sorted(COLLECTION_CHOICES),
        default="directory",
        help="Collection to filter (default: directory)",
    )
    query_parser.add_argument(
        "--where",
        required=True,
        help="Filter expression, e.g. \"ad and not aad and not intune\" or \"trustType = ServerAd\"",
    )
    query_parser.add_argument("--csv", help="Also write the matches to this CSV file")

    category_parser = subparsers.add_parser("category", help="Run a standard query")
    category_parser.add_argument("name", choices=list(STANDARD_QUERIES))
    category_parser.add_argument("--csv", help="Also write the matches to this CSV file")

    lookup_parser = subparsers.add_parser("lookup", help="Look one device up in all three sources")
    lookup_parser.add_argument("name", help="Device name")

    export_parser = subparsers.add_parser("export", help="Export every collection to CSV")
    export_parser.add_argument(
        "--output-dir", default="exports", help="Directory for the CSV files (default: exports)"
    )

    return parser


def setup_logging(log_path: Optional[str] = None, verbose: bool = False) -> None:
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    if log_path:
        logging.info(f"Logging to file: {log_path}")


def resolve_operating_system(value: Optional[str]) -> Optional[str]:
    value = value if value is not None else HybridJoinConfig.get_operating_system_filter()
    if not value or value.lower() == "all":
        return None
    return value


def build_config(args: argparse.Namespace) -> ReconciliationConfig:
    """Reconciliation settings from environment configuration and command-line overrides."""
    return HybridJoinConfig.get_reconciliation_config(
        case_sensitive=args.case_sensitive,
        strip_domain_suffix=args.strip_domain_suffix,
        operating_system=resolve_operating_system(args.operating_system),
    )


def create_service(args: argparse.Namespace, config: ReconciliationConfig) -> HybridJoinService:
    """Build the service and check the directory connection before anything is fetched."""
    logger.info("Initializing Active Directory source...")
    directory = DirectoryFacade.from_config(HybridJoinConfig.get_ldap_config())
    directory.verify_connection()

    logger.info("Initializing Microsoft Graph source...")
    graph = GraphFacade(**HybridJoinConfig.get_graph_config())

    return HybridJoinService(
        directory,
        graph,
        config,
        operating_system=resolve_operating_system(args.operating_system),
    )


def _print_records(records, csv_path: Optional[str]) -> None:
    print(render_devices(records))
    if csv_path:
        export_records(records, csv_path)


def run_command(
    service: HybridJoinService,
    args: argparse.Namespace,
    predicate: Optional[Predicate] = None,
) -> int:
    """
    Refresh the snapshot, then run the requested command against it.

    The query command filters with ``predicate``, which main() parses with the
    service's name matcher before connecting.
    """
    command = args.command or "summary"
    if command == "query" and predicate is None:
        raise ValueError("query requires a parsed --where predicate")

    snapshot = service.refresh(scope_filter=args.ou)

    if command == "summary":
        print(render_summary(snapshot))
    elif command == "broken":
        _print_records(service.query.broken_devices, args.csv)
    elif command == "query":
        records = service.query.filter(COLLECTION_CHOICES[args.collection], predicate)
        _print_records(records, args.csv)
    elif command == "category":
        _print_records(service.query.run_standard_query(args.name), args.csv)
    elif command == "lookup":
        print(render_lookup(service.lookup(args.name)))
    elif command == "export":
        paths = export_snapshot(snapshot, args.output_dir)
        for name, path in paths.items():
            print(f"💾 {name}: {path}")
    return 0


@handle_keyboard_interrupt()
def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the hybrid join audit."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log, args.verbose)

    try:
        config = build_config(args)
        predicate = None
        if args.command == "query":
            # Reject a bad expression before connecting to anything.
            predicate = parse_predicate(args.where, config.name_matcher)
        service = create_service(args, config)
        return run_command(service, args, predicate)
    except (ReconciliationError, GraphAPIError, LDAPException, ValueError) as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
