#!/usr/bin/env python3
"""Quick script to check etymology migration status in the database."""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from lexicon.migration_service import migration_status
from lexicon.migration_store import PostgresMigrationStore


def check_migration_status():
    """Print coverage, pending work and missing-markers."""
    status = migration_status(PostgresMigrationStore())
    coverage = status['coverage']

    print("=" * 80)
    print("ETYMOLOGY MIGRATION STATUS")
    print("=" * 80)
    print(f"Migrated records:               {coverage.total:>10,}")
    print(f"  With etymology:               {coverage.with_etymology:>10,} ({coverage.etymology_pct:.1f}% coverage)")
    print(f"  With examples:                {coverage.with_examples:>10,} ({coverage.examples_pct:.1f}% coverage)")
    print(f"Pending (no record, no marker): {status['pending']:>10,}")
    print()
    print("=" * 80)

    absent = status['absent']
    failed = status['failed']
    print(f"Marked missing - no Wiktionary entry:   {len(absent):>6,}")
    print(f"Marked missing - gave up after errors:  {len(failed):>6,}")

    if failed:
        print()
        print(f"Entries given up on ({len(failed)}):")
        for marker in failed:
            print(f"  - {marker.headword} (ID: {marker.entry_id}) at {marker.marked_at}: {marker.reason}")
        print()
        print("   Run: python main_cli.py --requeue WORD [WORD ...] then --migrate")
    elif status['pending'] == 0:
        print("\n✅ Every word has a terminal outcome")

    print()


if __name__ == '__main__':
    try:
        check_migration_status()
    except Exception as e:
        print(f"Error: {e}")
        import traceback
        traceback.print_exc()
