#!/usr/bin/env python3
"""
Step-by-step debugging of etymology extraction for one or more headwords

Usage:
    python scripts/debug_etymology.py ephemeral origin
"""

import logging
import sys
from pathlib import Path

# Add the project root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from sources.definition_fetcher import DefinitionError, build_definition_fetcher
from sources.wikitext_parser import (
    isolate_etymology_subsection,
    isolate_language_section,
    lead_prose,
    normalize_markup,
    strip_comments,
)

# Configure logging
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


def debug_headword(fetcher, headword):
    """Print every parser stage for one headword"""
    print(f"=== DEBUGGING ETYMOLOGY: {headword} ===")

    try:
        markup = fetcher.fetch_markup(headword)
    except DefinitionError as e:
        print(f"[ERROR] Could not fetch markup: {e}")
        return

    print(f"[OK] Got wikitext, length: {len(markup)}")
    markup = strip_comments(markup)
    extractor = fetcher.extractor

    print("\n=== STEP 1: Language section ===")
    section = isolate_language_section(markup, extractor.language)
    if section is None:
        print(f"[ERROR] No =={extractor.language}== section")
        return
    print(f"[OK] Section length: {len(section)}")
    print(section[:500])

    print("\n=== STEP 2: Etymology subsection ===")
    body = isolate_etymology_subsection(section)
    if body is None:
        print("[STOP] No Etymology heading in section")
        return
    print(body[:500])

    print("\n=== STEP 3: Normalized ===")
    text = normalize_markup(lead_prose(body))
    print(f"'{text}' ({len(text)} chars)")

    result = extractor.extract_etymology(markup)
    print(f"\nResult: found={result.found}")
    print(f"Pronunciation: {extractor.extract_pronunciation(markup)}")
    print()


def main():
    headwords = sys.argv[1:]
    if not headwords:
        print(__doc__)
        return 1

    fetcher = build_definition_fetcher()
    for headword in headwords:
        debug_headword(fetcher, headword)
    return 0


if __name__ == "__main__":
    sys.exit(main())
