"""Command-line entry point for cohort sync runs and mapping administration.

This module serves as a CLI wrapper around cohortsync.core.
"""
from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cohortsync.config.settings import load_settings
from cohortsync.core.mapping_store import JsonMappingStore, MappingStoreError
from cohortsync.core.task import CohortSyncTask
from scripts import audit


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Directory group to cohort sync")
    parser.add_argument("--mapping-file", default=None,
                        help="Mapping table path (default: COHORTSYNC_MAPPING_FILE)")
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")
    parser.add_argument("--verbose", action="store_true")

    sub = parser.add_subparsers(dest="cmd")
    sub.add_parser("run", help="Run one reconciliation pass")
    sub.add_parser("list-mappings", help="Print stored mappings")

    add = sub.add_parser("add-mapping", help="Link a directory group to a cohort")
    add.add_argument("--group-id", required=True)
    add.add_argument("--cohort-id", required=True)

    delete = sub.add_parser("delete-mapping", help="Remove a mapping (idempotent)")
    delete.add_argument("--group-id", required=True)
    delete.add_argument("--cohort-id", required=True)

    sub.add_parser("verify-audit", help="Verify audit log signatures")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return 0 if total == valid else 1

    try:
        cfg = load_settings()
    except (RuntimeError, ValueError) as e:
        print(f"[cohortsync] Error: {e}", file=sys.stderr)
        return 1
    if args.mapping_file:
        cfg.mapping_file = args.mapping_file
    store = JsonMappingStore(cfg.mapping_file)

    if args.cmd == "run":
        result = CohortSyncTask(cfg, mapping_store=store, operator=args.operator).execute()
        print(f"[cohortsync] status={result.status.value} created={result.mappings_created} "
              f"deleted={result.mappings_deleted} synced={result.pairs_synced} errors={result.errors}")
        return 0

    try:
        if args.cmd == "list-mappings":
            for mapping in store.list_mappings():
                print(f"{mapping.external_group_id}\t{mapping.local_group_id}")
        elif args.cmd == "add-mapping":
            added = store.add(args.group_id, args.cohort_id)
            audit.safe_log_sync_event(
                "mapping_created",
                group_id=args.group_id,
                cohort_id=args.cohort_id,
                operator=args.operator,
                details={"reason": "manual"},
                success=added,
            )
            if not added:
                print("[add-mapping] Error: mapping rejected", file=sys.stderr)
                return 1
        elif args.cmd == "delete-mapping":
            store.delete_by_pair(args.group_id, args.cohort_id)
            audit.safe_log_sync_event(
                "mapping_deleted",
                group_id=args.group_id,
                cohort_id=args.cohort_id,
                operator=args.operator,
                details={"reasons": ["manual"]},
            )
    except MappingStoreError as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
