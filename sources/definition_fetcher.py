#!/usr/bin/env python3
"""Assemble one lexical record per headword from Wiktionary.

Two calls are made for every headword, both through the same rate-limited
:class:`~sources.retrying_fetcher.RetryingFetcher`:

1. the REST *definition* endpoint, which supplies part of speech, the primary
   definition and usage examples;
2. the Action API ``revisions`` query, whose raw wikitext is handed to the
   :class:`~sources.wikitext_parser.MarkupExtractor` for the etymology and the
   IPA pronunciation.

Only the first call decides whether the headword is usable at all. The
second call can at worst leave the etymology empty.
"""

from __future__ import annotations

import enum
import json
import logging
import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import requests
from bs4 import BeautifulSoup

from lexicon.config import MigrationConfig
from lexicon.models import LexicalRecord

from .rate_limiter import RateLimiter
from .retrying_fetcher import FetchError, FetchErrorKind, RetryingFetcher
from .wikitext_parser import MarkupExtractor

logger = logging.getLogger(__name__)


class DefinitionErrorKind(enum.Enum):
    NOT_FOUND = "not_found"
    NO_DEFINITION = "no_definition"
    SOURCE_UNAVAILABLE = "source_unavailable"


ABSENCE_KINDS = frozenset({DefinitionErrorKind.NOT_FOUND, DefinitionErrorKind.NO_DEFINITION})


class DefinitionError(Exception):
    """No record could be assembled for a headword."""

    def __init__(self, kind: DefinitionErrorKind, headword: str, detail: Optional[str] = None):
        self.kind = kind
        self.headword = headword
        self.detail = detail
        message = f"{kind.value}: {headword}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)

    @property
    def is_absence(self) -> bool:
        """True when the source has nothing for the headword, as opposed to being unreachable."""
        return self.kind in ABSENCE_KINDS


@dataclass(slots=True)
class FetchedDefinition:
    """Everything gathered for one headword, before it is tied to an entry id."""

    headword: str
    part_of_speech: str
    definition: str
    source_url: str
    license: str
    retrieved_at: datetime
    pronunciation: Optional[str] = None
    etymology: Optional[str] = None
    examples: List[str] = field(default_factory=list)

    def to_record(self, entry_id: str) -> LexicalRecord:
        return LexicalRecord(
            entry_id=entry_id,
            part_of_speech=self.part_of_speech,
            definition=self.definition,
            source_url=self.source_url,
            license=self.license,
            retrieved_at=self.retrieved_at,
            pronunciation=self.pronunciation,
            etymology=self.etymology,
            examples=list(self.examples),
        )


def html_to_text(fragment: Optional[str]) -> str:
    """Plain text of an HTML fragment from the REST endpoint."""
    if not fragment:
        return ''
    text = BeautifulSoup(fragment, 'html.parser').get_text()
    return re.sub(r'\s+', ' ', text).strip()


def parse_summary(payload: Dict[str, Any], language_code: str = 'en', max_examples: int = 3) -> Optional[Dict[str, Any]]:
    """Pick POS, primary definition and examples out of a REST response.

    Returns ``None`` when the payload has no usable target-language senses.
    """
    senses = payload.get(language_code) or []
    if not isinstance(senses, list) or not senses:
        return None

    first = senses[0] if isinstance(senses[0], dict) else {}
    part_of_speech = (first.get('partOfSpeech') or '').strip()

    definition = ''
    for item in first.get('definitions') or []:
        definition = html_to_text(item.get('definition'))
        if definition:
            break

    if not definition:
        # First sense had nothing but empty definitions; take the first usable one anywhere
        for sense in senses[1:]:
            for item in sense.get('definitions') or []:
                definition = html_to_text(item.get('definition'))
                if definition:
                    part_of_speech = part_of_speech or (sense.get('partOfSpeech') or '').strip()
                    break
            if definition:
                break

    if not definition:
        return None

    examples: List[str] = []
    for sense in senses:
        for item in sense.get('definitions') or []:
            for example in item.get('examples') or []:
                text = html_to_text(example)
                if text:
                    examples.append(text)
                if len(examples) >= max_examples:
                    break
            if len(examples) >= max_examples:
                break
        if len(examples) >= max_examples:
            break

    return {
        'part_of_speech': part_of_speech or 'unknown',
        'definition': definition,
        'examples': examples,
    }


def parse_revision_markup(payload: Dict[str, Any]) -> Optional[str]:
    """Wikitext of the first page in an Action API ``revisions`` response.

    ``None`` means the title does not exist (the page carries ``missing``).
    """
    pages = (payload.get('query') or {}).get('pages') or {}
    page_list = list(pages.values()) if isinstance(pages, dict) else list(pages)
    if not page_list:
        return None

    page = page_list[0]
    if 'missing' in page or 'invalid' in page:
        return None

    revisions = page.get('revisions') or []
    if not revisions:
        return None

    revision = revisions[0]
    main = (revision.get('slots') or {}).get('main') or revision
    return main.get('*') or main.get('content')


class DefinitionFetcher:
    """Fetch and normalize one headword into a :class:`FetchedDefinition`."""

    def __init__(
        self,
        fetcher: RetryingFetcher,
        extractor: Optional[MarkupExtractor] = None,
        settings: Optional[Dict[str, Any]] = None,
        max_examples: int = 3,
        language_code: str = 'en',
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.fetcher = fetcher
        self.extractor = extractor or MarkupExtractor()
        self.settings = settings or MigrationConfig.get_wiktionary_settings()
        self.max_examples = max_examples
        self.language_code = language_code
        self._now = now

    def summary_url(self, headword: str) -> str:
        return self.settings['summary_url'].format(headword=quote(headword, safe=''))

    def page_url(self, headword: str) -> str:
        return self.settings['page_url'].format(headword=quote(headword, safe=''))

    def fetch(self, headword: str) -> FetchedDefinition:
        """Return the assembled definition or raise :class:`DefinitionError`."""
        summary = self._fetch_summary(headword)

        etymology = None
        pronunciation = None
        try:
            markup = self.fetch_markup(headword)
        except DefinitionError as exc:
            if exc.is_absence:
                logger.info("  -> No markup page for '%s'", headword)
            else:
                logger.warning("  -> Markup unavailable for '%s', saving without etymology: %s", headword, exc)
        else:
            extraction = self.extractor.extract_etymology(markup)
            if extraction.found:
                etymology = extraction.text
            pronunciation = self.extractor.extract_pronunciation(markup)

        return FetchedDefinition(
            headword=headword,
            part_of_speech=summary['part_of_speech'],
            definition=summary['definition'],
            examples=summary['examples'],
            etymology=etymology,
            pronunciation=pronunciation,
            source_url=self.page_url(headword),
            license=self.settings['license'],
            retrieved_at=self._now(),
        )

    def fetch_markup(self, headword: str) -> str:
        """Raw wikitext for ``headword``; a missing page is ``NOT_FOUND``."""
        params = {
            'action': 'query',
            'prop': 'revisions',
            'rvprop': 'content',
            'rvslots': 'main',
            'format': 'json',
            'titles': headword,
        }
        body = self._get(headword, self.settings['markup_url'], params)
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise DefinitionError(DefinitionErrorKind.SOURCE_UNAVAILABLE, headword, "malformed markup response") from exc

        markup = parse_revision_markup(payload) if isinstance(payload, dict) else None
        if markup is None:
            raise DefinitionError(DefinitionErrorKind.NOT_FOUND, headword, "page missing")
        return markup

    def _fetch_summary(self, headword: str) -> Dict[str, Any]:
        body = self._get(headword, self.summary_url(headword))
        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise DefinitionError(DefinitionErrorKind.SOURCE_UNAVAILABLE, headword, "malformed summary response") from exc

        summary = parse_summary(payload, self.language_code, self.max_examples) if isinstance(payload, dict) else None
        if summary is None:
            raise DefinitionError(DefinitionErrorKind.NO_DEFINITION, headword, "no English definitions")
        return summary

    def _get(self, headword: str, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        try:
            return self.fetcher.fetch(url, params=params)
        except FetchError as exc:
            if exc.kind is FetchErrorKind.NOT_FOUND:
                raise DefinitionError(DefinitionErrorKind.NOT_FOUND, headword, "HTTP 404") from exc
            raise DefinitionError(DefinitionErrorKind.SOURCE_UNAVAILABLE, headword, str(exc)) from exc


def build_definition_fetcher(
    settings: Optional[Dict[str, Any]] = None,
    session: Optional[requests.Session] = None,
    rng: Optional[random.Random] = None,
) -> DefinitionFetcher:
    """Wire a DefinitionFetcher with one shared limiter for the Wiktionary host."""
    settings = settings or MigrationConfig.get_wiktionary_settings()
    migration = MigrationConfig.get_migration_settings()

    limiter = RateLimiter(settings['rate_limit_ms'], name="en.wiktionary.org")
    fetcher = RetryingFetcher(
        limiter,
        settings['user_agent'],
        session=session,
        max_retries=settings['max_retries'],
        initial_delay=settings['initial_retry_delay_ms'] / 1000.0,
        max_delay=settings['max_retry_delay_ms'] / 1000.0,
        jitter_ratio=settings['jitter_ratio'],
        timeout=settings['timeout'],
        rng=rng,
    )
    extractor = MarkupExtractor(
        language=migration['language'],
        language_code=migration['language_code'],
        min_length=migration['min_etymology_length'],
    )
    return DefinitionFetcher(
        fetcher,
        extractor,
        settings=settings,
        max_examples=migration['max_examples'],
        language_code=migration['language_code'],
    )


__all__ = [
    "DefinitionFetcher",
    "DefinitionError",
    "DefinitionErrorKind",
    "FetchedDefinition",
    "build_definition_fetcher",
    "html_to_text",
    "parse_summary",
    "parse_revision_markup",
]
