#!/usr/bin/env python3
"""
Main CLI Entry Point
Runs the Wiktionary etymology migration and its operator commands
"""

import argparse
import sys
from pathlib import Path

# Add the package to path
sys.path.insert(0, str(Path(__file__).parent))


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Lexicon Etymology Migration CLI')
    parser.add_argument('--migrate', action='store_true',
                        help='Fetch definitions and etymologies for every unmigrated word')
    parser.add_argument('--limit', type=positive_int, default=None,
                        help='Only process the first N unmigrated words (staged/test runs)')
    parser.add_argument('--status', action='store_true',
                        help='Show migration coverage and missing-marker counts')
    parser.add_argument('--requeue', nargs='+', metavar='WORD',
                        help='Clear missing-markers for these words so the next run retries them')
    parser.add_argument('--log-level', default=None,
                        help='Override LOG_LEVEL (DEBUG, INFO, WARNING, ...)')
    return parser


def print_status(status) -> None:
    coverage = status['coverage']
    print("=" * 60)
    print("ETYMOLOGY MIGRATION STATUS")
    print("=" * 60)
    print(f"Migrated records:               {coverage.total:>8,}")
    print(f"  with etymology:               {coverage.with_etymology:>8,} ({coverage.etymology_pct:.1f}%)")
    print(f"  with examples:                {coverage.with_examples:>8,} ({coverage.examples_pct:.1f}%)")
    print(f"Marked missing (no entry):      {len(status['absent']):>8,}")
    print(f"Marked missing (gave up):       {len(status['failed']):>8,}")
    print(f"Still pending:                  {status['pending']:>8,}")

    if status['failed']:
        print()
        print("Gave up on (requeue with --requeue WORD ...):")
        for marker in status['failed']:
            print(f"  - {marker.headword}: {marker.reason}")


def main(argv=None):
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.migrate or args.status or args.requeue):
        parser.print_help()
        return 0

    from lexicon.config import setup_logging
    setup_logging(args.log_level)

    try:
        if args.requeue:
            from lexicon.migration_store import PostgresMigrationStore

            cleared = PostgresMigrationStore().clear_missing_markers(args.requeue)
            print(f"[OK] Cleared {cleared} missing-marker(s); they will be retried on the next run")

        if args.migrate:
            from lexicon.migration_service import run_migration

            print("[INFO] Migrating definitions and etymologies from Wiktionary ...")
            summary = run_migration(limit=args.limit)
            run = summary.run
            print(
                f"[OK] Processed {run.processed} | Saved {run.resolved} | "
                f"Missing {run.missing} | Failed {run.failed} | "
                f"Duration {summary.format_duration()}"
            )
            if summary.coverage is not None:
                print(
                    f"[OK] Etymology coverage {summary.coverage.etymology_pct:.1f}% | "
                    f"Examples coverage {summary.coverage.examples_pct:.1f}%"
                )
            if run.failed_headwords:
                print(f"[WARN] Failed headwords: {', '.join(run.failed_headwords)}")

        if args.status:
            from lexicon.migration_service import migration_status
            from lexicon.migration_store import PostgresMigrationStore

            store = PostgresMigrationStore()
            print(f"[INFO] Database: {store.db_manager.get_connection_info()['connection_string']}")
            print_status(migration_status(store))

        return 0

    except Exception as e:
        print(f"[ERROR] {e}")
        return 1

    finally:
        from lexicon.database_manager import close_database_manager
        close_database_manager()


if __name__ == "__main__":
    sys.exit(main())
