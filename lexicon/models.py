#!/usr/bin/env python3
"""
Data containers shared by the etymology migration.

VocabularyEntry rows are read-only input; LexicalRecord and MissingMarker are
the two terminal outcomes the migration can persist for an entry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class VocabularyEntry:
    """A curated headword waiting to be migrated."""

    id: str
    headword: str
    difficulty_tier: int


@dataclass(slots=True)
class LexicalRecord:
    """Migrated lexical metadata for one vocabulary entry (upserted by entry_id)."""

    entry_id: str
    part_of_speech: str
    definition: str
    source_url: str
    license: str
    retrieved_at: datetime
    pronunciation: Optional[str] = None
    etymology: Optional[str] = None
    examples: List[str] = field(default_factory=list)


@dataclass(slots=True)
class MissingMarker:
    """Terminal failure to obtain usable data for an entry."""

    entry_id: str
    reason: str
    marked_at: datetime
    headword: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CoverageStats:
    """Aggregate coverage over migrated records only."""

    total: int
    with_etymology: int
    with_examples: int

    @property
    def etymology_pct(self) -> float:
        return (self.with_etymology / self.total * 100) if self.total else 0.0

    @property
    def examples_pct(self) -> float:
        return (self.with_examples / self.total * 100) if self.total else 0.0


@dataclass(slots=True)
class MigrationRun:
    """In-memory counters for a single migration run; never persisted."""

    total: int = 0
    processed: int = 0
    resolved: int = 0
    missing: int = 0
    failed_headwords: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def failed(self) -> int:
        return len(self.failed_headwords)

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.ended_at:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()


@dataclass(slots=True)
class MigrationSummary:
    """What a finished run reports back to its caller."""

    run: MigrationRun
    coverage: Optional[CoverageStats]

    def format_duration(self) -> str:
        seconds = int(round(self.run.duration_seconds))
        return f"{seconds // 60}m {seconds % 60}s"


__all__ = [
    "VocabularyEntry",
    "LexicalRecord",
    "MissingMarker",
    "CoverageStats",
    "MigrationRun",
    "MigrationSummary",
]
