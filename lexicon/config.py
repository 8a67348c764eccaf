#!/usr/bin/env python3
"""
Centralized Configuration Management for the Etymology Migration
Manages upstream dictionary settings, migration defaults, and logging
"""

import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class MigrationConfig:
    """Centralized configuration for the migration pipeline"""

    # Upstream dictionary (Wiktionary) settings
    WIKTIONARY = {
        'user_agent': 'Lexicon/1.0 (Etymology learning app; contact: lexicon@replit.app)',
        'summary_url': 'https://en.wiktionary.org/api/rest_v1/page/definition/{headword}',
        'markup_url': 'https://en.wiktionary.org/w/api.php',
        'page_url': 'https://en.wiktionary.org/wiki/{headword}',
        'license': 'CC BY-SA 3.0',
        'rate_limit_ms': 1000,
        'max_retries': 5,
        'initial_retry_delay_ms': 1000,
        'max_retry_delay_ms': 32000,
        'jitter_ratio': 0.3,
        'timeout': 30,
    }

    # Extraction / migration behaviour
    MIGRATION = {
        'language': 'English',
        'language_code': 'en',
        'max_examples': 3,
        'min_etymology_length': 10,
    }

    # Logging Configuration
    LOGGING = {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    }

    # Env var -> WIKTIONARY key for numeric overrides
    _NUMERIC_OVERRIDES = {
        'WIKTIONARY_RATE_LIMIT_MS': 'rate_limit_ms',
        'WIKTIONARY_MAX_RETRIES': 'max_retries',
        'WIKTIONARY_INITIAL_RETRY_DELAY_MS': 'initial_retry_delay_ms',
        'WIKTIONARY_MAX_RETRY_DELAY_MS': 'max_retry_delay_ms',
        'WIKTIONARY_TIMEOUT': 'timeout',
    }

    @classmethod
    def get_wiktionary_settings(cls) -> Dict[str, Any]:
        """Get upstream settings with environment overrides applied"""
        settings = dict(cls.WIKTIONARY)

        user_agent = os.getenv('WIKTIONARY_USER_AGENT')
        if user_agent and user_agent.strip():
            settings['user_agent'] = user_agent.strip()

        for env_name, key in cls._NUMERIC_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                value = int(raw)
            except ValueError:
                logger.warning("Ignoring %s=%r: not an integer", env_name, raw)
                continue
            if value < 0:
                logger.warning("Ignoring %s=%r: must not be negative", env_name, raw)
                continue
            settings[key] = value

        return settings

    @classmethod
    def get_migration_settings(cls) -> Dict[str, Any]:
        return dict(cls.MIGRATION)

    @classmethod
    def get_log_level(cls) -> str:
        return os.getenv('LOG_LEVEL', cls.LOGGING['level']).upper()


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging from :attr:`MigrationConfig.LOGGING`."""
    logging.basicConfig(
        level=(level or MigrationConfig.get_log_level()).upper(),
        format=MigrationConfig.LOGGING['format'],
    )


if __name__ == "__main__":
    print("Etymology Migration Configuration")
    print("=" * 50)
    for key, value in MigrationConfig.get_wiktionary_settings().items():
        print(f"{key:>24}: {value}")
    for key, value in MigrationConfig.get_migration_settings().items():
        print(f"{key:>24}: {value}")
