"""Shared fakes: HTTP session, simulated clock and an in-memory migration store."""

import json
import random
from datetime import datetime, timedelta, timezone

import pytest

from lexicon.config import MigrationConfig
from lexicon.migration_store import PersistenceError
from lexicon.models import CoverageStats, MissingMarker, VocabularyEntry
from sources.definition_fetcher import DefinitionFetcher
from sources.rate_limiter import RateLimiter
from sources.retrying_fetcher import RetryingFetcher
from sources.wikitext_parser import MarkupExtractor


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text


def json_response(payload, status_code=200):
    return FakeResponse(status_code, json.dumps(payload))


def markup_response(title, wikitext):
    """Action API revisions payload for one existing page."""
    return json_response({
        "batchcomplete": "",
        "query": {
            "pages": {
                "4242": {
                    "pageid": 4242,
                    "ns": 0,
                    "title": title,
                    "revisions": [
                        {"slots": {"main": {"contentmodel": "wikitext", "*": wikitext}}}
                    ],
                }
            }
        },
    })


def missing_page_response(title):
    return json_response({
        "batchcomplete": "",
        "query": {"pages": {"-1": {"ns": 0, "title": title, "missing": ""}}},
    })


class FakeSession:
    """Stands in for ``requests.Session``.

    Responses are consumed in order, either from one shared queue or from a
    per-route queue picked by a URL fragment. Exceptions in a queue are raised.
    """

    def __init__(self, responses=None, routes=None):
        self.headers = {}
        self.calls = []
        self._responses = list(responses or [])
        self._routes = {fragment: list(queue) for fragment, queue in (routes or {}).items()}

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        queue = self._responses
        for fragment, routed in self._routes.items():
            if fragment in url:
                queue = routed
                break
        if not queue:
            raise AssertionError(f"unexpected request to {url}")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def calls_to(self, fragment):
        return [call for call in self.calls if fragment in call[0]]


class FakeClock:
    """Simulated monotonic clock; ``sleep`` advances it instantly."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds):
        self.now += seconds


class InMemoryMigrationStore:
    """MigrationStore over plain dicts, with switchable failures."""

    def __init__(self, entries=()):
        self.entries = {entry.id: entry for entry in entries}
        self.records = {}
        self.markers = {}
        self.fail_upsert_for = set()
        self.fail_mark_for = set()
        self.fail_coverage = False
        self.mark_calls = []

    def upsert_lexical_record(self, entry_id, record):
        if entry_id in self.fail_upsert_for:
            raise PersistenceError(f"connection lost while saving {entry_id}")
        self.records[entry_id] = record
        self.markers.pop(entry_id, None)

    def mark_missing(self, entry_id, reason):
        self.mark_calls.append((entry_id, reason))
        if entry_id in self.fail_mark_for:
            raise PersistenceError(f"connection lost while marking {entry_id}")
        if entry_id not in self.markers:
            self.markers[entry_id] = MissingMarker(
                entry_id=entry_id,
                reason=reason,
                marked_at=datetime.now(timezone.utc),
                headword=self.entries[entry_id].headword if entry_id in self.entries else None,
            )

    def list_unmigrated_entries(self):
        pending = [
            entry for entry in self.entries.values()
            if entry.id not in self.records and entry.id not in self.markers
        ]
        return sorted(pending, key=lambda entry: entry.headword)

    def compute_coverage_stats(self):
        if self.fail_coverage:
            raise PersistenceError("connection lost")
        records = [r for r in self.records.values() if r.source_url is not None]
        return CoverageStats(
            total=len(records),
            with_etymology=sum(1 for r in records if r.etymology is not None),
            with_examples=sum(1 for r in records if r.examples),
        )

    def list_missing_markers(self):
        return sorted(self.markers.values(), key=lambda marker: marker.headword or "")

    def clear_missing_markers(self, headwords):
        wanted = {word.strip().lower() for word in headwords if word and word.strip()}
        cleared = [
            entry_id for entry_id in list(self.markers)
            if entry_id in self.entries and self.entries[entry_id].headword.lower() in wanted
        ]
        for entry_id in cleared:
            del self.markers[entry_id]
        return len(cleared)


def make_entries(*headwords):
    return [VocabularyEntry(id=str(i), headword=word, difficulty_tier=2) for i, word in enumerate(headwords, 1)]


def build_fetcher(session, clock, max_retries=5):
    limiter = RateLimiter(1000, clock=clock, sleep=clock.sleep, name="test")
    return RetryingFetcher(
        limiter,
        "LexiconTests/1.0 (tests@example.org)",
        session=session,
        max_retries=max_retries,
        initial_delay=1.0,
        max_delay=32.0,
        sleep=clock.sleep,
        rng=random.Random(7),
    )


def build_definition_fetcher(session, clock):
    return DefinitionFetcher(
        build_fetcher(session, clock),
        MarkupExtractor(),
        settings=dict(MigrationConfig.WIKTIONARY),
        now=lambda: datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )


class StepClock:
    """Wall clock for run timing: each call moves forward by ``step``."""

    def __init__(self, step_seconds):
        self.current = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.step = timedelta(seconds=step_seconds)

    def __call__(self):
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def clock():
    return FakeClock()


EPHEMERAL_SUMMARY = {
    "en": [
        {
            "partOfSpeech": "adjective",
            "language": "English",
            "definitions": [
                {
                    "definition": "Lasting for a <a href=\"/wiki/short\">short</a> period of <b>time</b>.",
                    "examples": ["<i>Ephemeral</i> pleasures fade quickly."],
                }
            ],
        }
    ]
}

EPHEMERAL_MARKUP = (
    "==English==\n"
    "===Etymology===\n"
    "From {{der|en|grc|ἐφήμερος||lasting only a day}}, from {{af|grc|ἐπί|ἡμέρα}}.\n"
    "\n"
    "===Pronunciation===\n"
    "* {{IPA|en|/ɪˈfɛm(ə)ɹəl/}}\n"
    "\n"
    "===Adjective===\n"
    "{{en-adj}}\n"
    "\n"
    "# Lasting for a short period of time.\n"
    "\n"
    "==French==\n"
    "===Etymology===\n"
    "From {{bor|fr|grc|ἐφήμερος}}.\n"
)
