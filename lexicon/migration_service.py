#!/usr/bin/env python3
"""Etymology migration orchestrator.

One :class:`EtymologyMigration` instance drives exactly one run through
``IDLE -> COMPUTING_WORK_SET -> PROCESSING -> REPORTING -> DONE``. The work set
is recomputed from the store on every run (entries with neither a migrated
record nor a missing-marker), which is what makes an interrupted run safe to
restart: there is no checkpoint to go stale.

Entries are processed strictly one at a time. Every entry ends in exactly one
of three ways - record saved, marked missing, or failed (which also writes a
marker carrying the error text so the entry is not retried forever).
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from sources.definition_fetcher import ABSENCE_KINDS, DefinitionError, FetchedDefinition

from .migration_store import MigrationStore, PersistenceError
from .models import MigrationRun, MigrationSummary, VocabularyEntry

logger = logging.getLogger(__name__)


class MigrationState(enum.Enum):
    IDLE = "idle"
    COMPUTING_WORK_SET = "computing_work_set"
    PROCESSING = "processing"
    REPORTING = "reporting"
    DONE = "done"


class HeadwordFetcher(Protocol):
    def fetch(self, headword: str) -> FetchedDefinition:
        ...


class EtymologyMigration:
    """Run the migration once over every unmigrated vocabulary entry."""

    def __init__(
        self,
        store: MigrationStore,
        fetcher: HeadwordFetcher,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.fetcher = fetcher
        self._now = now
        self.state = MigrationState.IDLE
        self.run_stats = MigrationRun()

    def run(self, limit: Optional[int] = None) -> MigrationSummary:
        """Migrate the work set, optionally capped to ``limit`` entries.

        Raises:
            ValueError: ``limit`` is not a positive integer.
            RuntimeError: this instance has already been used.
            PersistenceError: the work set could not be read. A coverage
                failure is logged and leaves ``summary.coverage`` as None.
        """
        if self.state is not MigrationState.IDLE:
            raise RuntimeError(f"Migration already used (state: {self.state.value})")
        if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 1):
            raise ValueError(f"limit must be a positive integer, got {limit!r}")

        self.run_stats.started_at = self._now()

        self.state = MigrationState.COMPUTING_WORK_SET
        work_set = self._compute_work_set(limit)
        self.run_stats.total = len(work_set)

        self.state = MigrationState.PROCESSING
        if not work_set:
            logger.info("No unmigrated entries - everything is up to date")
        for index, entry in enumerate(work_set, 1):
            self._log_progress(index, entry)
            self._process_entry(entry)
            self.run_stats.processed += 1

        self.state = MigrationState.REPORTING
        self.run_stats.ended_at = self._now()
        try:
            coverage = self.store.compute_coverage_stats()
        except PersistenceError as exc:
            logger.error("Could not compute coverage stats: %s", exc)
            coverage = None
        summary = MigrationSummary(run=self.run_stats, coverage=coverage)
        self._log_summary(summary)

        self.state = MigrationState.DONE
        return summary

    def _compute_work_set(self, limit: Optional[int]) -> List[VocabularyEntry]:
        entries = self.store.list_unmigrated_entries()
        logger.info("Found %s entries without a migrated record", len(entries))
        if limit is not None and len(entries) > limit:
            logger.info("Limiting this run to %s entries", limit)
            entries = entries[:limit]
        return entries

    def _log_progress(self, index: int, entry: VocabularyEntry) -> None:
        total = self.run_stats.total
        percent = index / total * 100 if total else 100.0
        logger.info("[%s/%s] (%.1f%%) Processing: %s", index, total, percent, entry.headword)

    def _process_entry(self, entry: VocabularyEntry) -> None:
        try:
            fetched = self.fetcher.fetch(entry.headword)
        except DefinitionError as exc:
            if exc.is_absence:
                self._mark_missing(entry, str(exc))
                self.run_stats.missing += 1
                logger.info("  -> Not found, marked missing: %s", exc)
            else:
                self._fail(entry, str(exc))
            return
        except Exception as exc:
            logger.exception("  -> Unexpected error for '%s'", entry.headword)
            self._fail(entry, f"unexpected error: {exc}")
            return

        try:
            self.store.upsert_lexical_record(entry.id, fetched.to_record(entry.id))
        except PersistenceError as exc:
            self._fail(entry, f"persistence failure: {exc}")
            return

        self.run_stats.resolved += 1
        logger.info(
            "  -> Saved (%s, %s example(s), etymology %s)",
            fetched.part_of_speech,
            len(fetched.examples),
            "found" if fetched.etymology else "absent",
        )

    def _fail(self, entry: VocabularyEntry, reason: str) -> None:
        self.run_stats.failed_headwords.append(entry.headword)
        logger.warning("  -> Failed: %s", reason)
        self._mark_missing(entry, reason)

    def _mark_missing(self, entry: VocabularyEntry, reason: str) -> None:
        try:
            self.store.mark_missing(entry.id, reason)
        except PersistenceError as exc:
            # Entry stays in the next run's work set.
            logger.error("  -> Could not mark '%s' missing: %s", entry.headword, exc)

    def _log_summary(self, summary: MigrationSummary) -> None:
        run = summary.run
        coverage = summary.coverage
        logger.info("=" * 60)
        logger.info("Migration complete")
        logger.info("Processed: %s/%s", run.processed, run.total)
        logger.info("Saved: %s | Missing: %s | Failed: %s", run.resolved, run.missing, run.failed)
        logger.info("Duration: %s", summary.format_duration())
        if coverage is not None:
            logger.info(
                "Etymology coverage: %s/%s (%.1f%%)",
                coverage.with_etymology, coverage.total, coverage.etymology_pct,
            )
            logger.info(
                "Examples coverage: %s/%s (%.1f%%)",
                coverage.with_examples, coverage.total, coverage.examples_pct,
            )
        if run.failed_headwords:
            logger.warning("Failed headwords: %s", ", ".join(run.failed_headwords))
        logger.info("=" * 60)


def is_absence_reason(reason: Optional[str]) -> bool:
    """True for markers written because the source has no entry, not because we gave up."""
    return bool(reason) and any(reason.startswith(f"{kind.value}:") for kind in ABSENCE_KINDS)


def migration_status(store: MigrationStore) -> Dict[str, Any]:
    """Snapshot of migration progress for operators."""
    coverage = store.compute_coverage_stats()
    markers = store.list_missing_markers()
    pending = store.list_unmigrated_entries()

    return {
        'coverage': coverage,
        'pending': len(pending),
        'absent': [m for m in markers if is_absence_reason(m.reason)],
        'failed': [m for m in markers if not is_absence_reason(m.reason)],
    }


def run_migration(limit: Optional[int] = None) -> MigrationSummary:
    """Build the production collaborators and run one migration."""
    from sources.definition_fetcher import build_definition_fetcher

    from .migration_store import PostgresMigrationStore

    migration = EtymologyMigration(PostgresMigrationStore(), build_definition_fetcher())
    return migration.run(limit=limit)


__all__ = [
    "EtymologyMigration",
    "MigrationState",
    "is_absence_reason",
    "migration_status",
    "run_migration",
]
