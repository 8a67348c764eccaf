"""
Lexicon data layer and etymology migration.

This package contains:
- Configuration and database management
- Data models for vocabulary entries and migrated lexical records
- The migration store (persistence) and the migration service
"""

from .config import MigrationConfig, setup_logging
from .models import (
    CoverageStats,
    LexicalRecord,
    MigrationRun,
    MigrationSummary,
    MissingMarker,
    VocabularyEntry,
)
from .migration_store import MigrationStore, PersistenceError, PostgresMigrationStore

__all__ = [
    'MigrationConfig',
    'setup_logging',
    'CoverageStats',
    'LexicalRecord',
    'MigrationRun',
    'MigrationSummary',
    'MissingMarker',
    'VocabularyEntry',
    'MigrationStore',
    'PersistenceError',
    'PostgresMigrationStore',
]
