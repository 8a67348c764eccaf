#!/usr/bin/env python3
"""Centralized PostgreSQL connection manager with pooling."""

from typing import Optional, Dict, Any
import logging
from contextlib import contextmanager
from threading import Lock

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from .secure_config import DatabaseConfig, get_database_config

logger = logging.getLogger(__name__)


class DatabaseManager:
    """
    Database connection manager backed by a psycopg connection pool.
    Every caller that talks to PostgreSQL goes through get_connection() or
    get_cursor() so commits and rollbacks happen in one place.
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config_obj = config or get_database_config()
        self.pool: Optional[ConnectionPool] = None
        self._initialized = False

    def setup_connection_pool(self):
        """Setup PostgreSQL connection pool"""
        if self.pool is not None:
            return

        conninfo = self.config_obj.get_connection_string(hide_password=False)
        self.pool = ConnectionPool(
            conninfo=conninfo,
            min_size=1,
            max_size=self.config_obj.pool_size or 5,
            timeout=self.config_obj.timeout,
            name="lexicon_pool",
            open=True,
        )
        self._initialized = True
        logger.info("Database connection pool initialized successfully")

    @contextmanager
    def get_connection(self, autocommit: bool = False):
        """
        Get a database connection from the pool

        Args:
            autocommit: Whether to enable autocommit mode

        Yields:
            Database connection; committed on success, rolled back on error
        """
        self.setup_connection_pool()

        with self.pool.connection() as connection:
            connection.autocommit = autocommit
            try:
                yield connection
                if not autocommit:
                    connection.commit()
            except Exception:
                if not autocommit:
                    connection.rollback()
                raise

    @contextmanager
    def get_cursor(self, dictionary: bool = False, autocommit: bool = False):
        """
        Get a database cursor (convenience method)

        Args:
            dictionary: Whether to return rows as dictionaries
            autocommit: Whether to enable autocommit mode

        Example:
            with db_manager.get_cursor(dictionary=True) as cursor:
                cursor.execute("SELECT * FROM curated_words WHERE id = %s", (word_id,))
                row = cursor.fetchone()
        """
        cursor_kwargs = {}
        if dictionary:
            cursor_kwargs['row_factory'] = dict_row

        with self.get_connection(autocommit=autocommit) as conn:
            with conn.cursor(**cursor_kwargs) as cursor:
                yield cursor

    def get_connection_info(self) -> Dict[str, Any]:
        """Describe the configured connection (without the password)"""
        return {
            'connection_string': self.config_obj.get_connection_string(hide_password=True),
            'pool_size': self.config_obj.pool_size,
            'initialized': self._initialized,
        }

    def close_pool(self):
        """Close the connection pool"""
        if self.pool is not None:
            self.pool.close()
            self.pool = None
            self._initialized = False
            logger.info("Database connection pool closed")


_db_manager: Optional[DatabaseManager] = None
_lock = Lock()


def get_database_manager() -> DatabaseManager:
    """
    Get the shared database manager instance, creating it on first use

    Returns:
        DatabaseManager instance
    """
    global _db_manager
    if _db_manager is None:
        with _lock:
            if _db_manager is None:
                _db_manager = DatabaseManager()
    return _db_manager


def close_database_manager() -> None:
    """Close the shared pool if one was ever created"""
    global _db_manager
    with _lock:
        if _db_manager is not None:
            _db_manager.close_pool()
            _db_manager = None
