"""
Upstream dictionary access.

This package contains everything that talks to Wiktionary:
- Per-host rate limiting
- HTTP fetching with exponential backoff
- Wikitext etymology extraction
- Two-stage definition fetching
"""

from .rate_limiter import RateLimiter
from .retrying_fetcher import FetchError, FetchErrorKind, RetryingFetcher
from .wikitext_parser import EtymologyExtraction, MarkupExtractor
from .definition_fetcher import (
    DefinitionError,
    DefinitionErrorKind,
    DefinitionFetcher,
    FetchedDefinition,
    build_definition_fetcher,
)

__all__ = [
    'RateLimiter',
    'FetchError',
    'FetchErrorKind',
    'RetryingFetcher',
    'EtymologyExtraction',
    'MarkupExtractor',
    'DefinitionError',
    'DefinitionErrorKind',
    'DefinitionFetcher',
    'FetchedDefinition',
    'build_definition_fetcher',
]
