#!/usr/bin/env python3
"""Persistence for the etymology migration.

The migration service only talks to :class:`MigrationStore`; the PostgreSQL
implementation works against the application's existing tables:

* ``curated_words`` (id, word, difficulty) - the vocabulary, read-only here
* ``word_definitions`` - one row per word, unique on ``word_id``
* ``missing_definitions`` - one row per word, unique on ``word_id``

Migrated definitions are the ``word_definitions`` rows carrying a
``source_url``; rows without one are left over from the app's on-demand cache
and still count as unmigrated.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol

import psycopg

from .database_manager import DatabaseManager, get_database_manager
from .models import CoverageStats, LexicalRecord, MissingMarker, VocabularyEntry

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A store operation failed; the current entry is abandoned, the run continues."""


class MigrationStore(Protocol):
    """Persistence collaborator consumed by the migration service."""

    def upsert_lexical_record(self, entry_id: str, record: LexicalRecord) -> None:
        ...

    def mark_missing(self, entry_id: str, reason: str) -> None:
        ...

    def list_unmigrated_entries(self) -> List[VocabularyEntry]:
        ...

    def compute_coverage_stats(self) -> CoverageStats:
        ...

    def list_missing_markers(self) -> List[MissingMarker]:
        ...

    def clear_missing_markers(self, headwords: Iterable[str]) -> int:
        ...


UPSERT_DEFINITION_SQL = """
    INSERT INTO word_definitions (
        word_id, pronunciation, part_of_speech, definition, etymology,
        examples, fetched_at, source_url, retrieved_at, license
    )
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (word_id) DO UPDATE SET
        pronunciation = EXCLUDED.pronunciation,
        part_of_speech = EXCLUDED.part_of_speech,
        definition = EXCLUDED.definition,
        etymology = EXCLUDED.etymology,
        examples = EXCLUDED.examples,
        fetched_at = EXCLUDED.fetched_at,
        source_url = EXCLUDED.source_url,
        retrieved_at = EXCLUDED.retrieved_at,
        license = EXCLUDED.license
"""

CLEAR_MARKER_SQL = "DELETE FROM missing_definitions WHERE word_id = %s"

MARK_MISSING_SQL = """
    INSERT INTO missing_definitions (word_id, reason, marked_at)
    VALUES (%s, %s, %s)
    ON CONFLICT (word_id) DO NOTHING
"""

# Set difference against *both* terminal outcomes.
UNMIGRATED_SQL = """
    SELECT c.id, c.word, c.difficulty
    FROM curated_words c
    WHERE NOT EXISTS (
        SELECT 1 FROM word_definitions d
        WHERE d.word_id = c.id AND d.source_url IS NOT NULL
    )
    AND NOT EXISTS (
        SELECT 1 FROM missing_definitions m
        WHERE m.word_id = c.id
    )
    ORDER BY c.word ASC
"""

COVERAGE_SQL = """
    SELECT
        COUNT(*) AS total,
        COUNT(CASE WHEN etymology IS NOT NULL THEN 1 END) AS with_etymology,
        COUNT(CASE WHEN COALESCE(cardinality(examples), 0) > 0 THEN 1 END) AS with_examples
    FROM word_definitions
    WHERE source_url IS NOT NULL
"""

LIST_MARKERS_SQL = """
    SELECT m.word_id, c.word, m.reason, m.marked_at
    FROM missing_definitions m
    JOIN curated_words c ON c.id = m.word_id
    ORDER BY c.word ASC
"""

CLEAR_MARKERS_BY_WORD_SQL = """
    DELETE FROM missing_definitions m
    USING curated_words c
    WHERE c.id = m.word_id AND LOWER(c.word) = ANY(%s)
"""


class PostgresMigrationStore:
    """:class:`MigrationStore` backed by PostgreSQL via :class:`DatabaseManager`."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_database_manager()

    @contextmanager
    def _cursor(self, dictionary: bool = False):
        try:
            with self.db_manager.get_cursor(dictionary=dictionary) as cursor:
                yield cursor
        except psycopg.Error as exc:
            raise PersistenceError(str(exc)) from exc

    def upsert_lexical_record(self, entry_id: str, record: LexicalRecord) -> None:
        """Insert or overwrite the migrated record for ``entry_id``.

        Any missing-marker for the entry is removed in the same transaction so
        an entry is never both resolved and marked missing.
        """
        params = (
            entry_id,
            record.pronunciation,
            record.part_of_speech,
            record.definition,
            record.etymology,
            list(record.examples),
            record.retrieved_at,
            record.source_url,
            record.retrieved_at,
            record.license,
        )
        with self._cursor() as cursor:
            cursor.execute(UPSERT_DEFINITION_SQL, params)
            cursor.execute(CLEAR_MARKER_SQL, (entry_id,))

    def mark_missing(self, entry_id: str, reason: str) -> None:
        """Record a terminal failure; marking an entry twice is a no-op."""
        with self._cursor() as cursor:
            cursor.execute(MARK_MISSING_SQL, (entry_id, reason, datetime.now(timezone.utc)))
            if cursor.rowcount == 0:
                logger.debug("Entry %s was already marked missing", entry_id)

    def list_unmigrated_entries(self) -> List[VocabularyEntry]:
        with self._cursor() as cursor:
            cursor.execute(UNMIGRATED_SQL)
            rows = cursor.fetchall()

        return [
            VocabularyEntry(id=str(word_id), headword=word, difficulty_tier=difficulty)
            for word_id, word, difficulty in rows
        ]

    def compute_coverage_stats(self) -> CoverageStats:
        with self._cursor(dictionary=True) as cursor:
            cursor.execute(COVERAGE_SQL)
            row = cursor.fetchone() or {}

        return CoverageStats(
            total=int(row.get('total') or 0),
            with_etymology=int(row.get('with_etymology') or 0),
            with_examples=int(row.get('with_examples') or 0),
        )

    def list_missing_markers(self) -> List[MissingMarker]:
        with self._cursor() as cursor:
            cursor.execute(LIST_MARKERS_SQL)
            rows = cursor.fetchall()

        return [
            MissingMarker(entry_id=str(word_id), headword=word, reason=reason, marked_at=marked_at)
            for word_id, word, reason, marked_at in rows
        ]

    def clear_missing_markers(self, headwords: Iterable[str]) -> int:
        """Delete markers for the given headwords so the next run retries them."""
        words = sorted({word.strip().lower() for word in headwords if word and word.strip()})
        if not words:
            return 0

        with self._cursor() as cursor:
            cursor.execute(CLEAR_MARKERS_BY_WORD_SQL, (words,))
            cleared = cursor.rowcount

        logger.info("Cleared %s missing-marker(s) for re-migration", cleared)
        return cleared


__all__ = [
    "MigrationStore",
    "PostgresMigrationStore",
    "PersistenceError",
]
