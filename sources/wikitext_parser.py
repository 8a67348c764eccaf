#!/usr/bin/env python3
"""
Wikitext etymology extraction.

Turns the raw markup of a dictionary page into plain etymology prose in three
independent stages:

1. section isolation - the ``==English==`` block of the page
2. subsection isolation - the first ``===Etymology===`` / ``===Etymology N===``
3. normalization - template expansion, template stripping, link resolution,
   comment stripping, whitespace and punctuation cleanup

Nothing here performs I/O and nothing raises on malformed markup; a page that
cannot be parsed simply yields ``EtymologyExtraction(found=False)``.
"""

import html
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

LANGUAGE_NAMES: Dict[str, str] = {
    'la': 'Latin',
    'grc': 'Ancient Greek',
    'fr': 'French',
    'de': 'German',
    'es': 'Spanish',
    'it': 'Italian',
    'ine-pro': 'Proto-Indo-European',
    'en': 'English',
    'enm': 'Middle English',
    'ang': 'Old English',
    'fro': 'Old French',
    'frm': 'Middle French',
    'xno': 'Anglo-Norman',
    'la-lat': 'Late Latin',
    'LL.': 'Late Latin',
    'la-med': 'Medieval Latin',
    'ML.': 'Medieval Latin',
    'la-vul': 'Vulgar Latin',
    'VL.': 'Vulgar Latin',
    'la-new': 'New Latin',
    'NL.': 'New Latin',
    'gem-pro': 'Proto-Germanic',
    'non': 'Old Norse',
    'nl': 'Dutch',
    'pt': 'Portuguese',
    'el': 'Greek',
    'ar': 'Arabic',
    'he': 'Hebrew',
    'sa': 'Sanskrit',
}

# Level-2 headings that belong inside a language section on malformed pages.
IN_LANGUAGE_HEADINGS = frozenset({
    'Etymology', 'Pronunciation', 'Alternative forms', 'Noun', 'Proper noun',
    'Verb', 'Adjective', 'Adverb', 'Pronoun', 'Preposition', 'Conjunction',
    'Interjection', 'Determiner', 'Article', 'Numeral', 'Particle', 'Prefix',
    'Suffix', 'Affix', 'Phrase', 'Prepositional phrase', 'Proverb', 'Idiom',
    'Contraction', 'Abbreviation', 'Initialism', 'Acronym', 'Symbol', 'Letter',
    'Usage notes', 'Synonyms', 'Antonyms', 'Hypernyms', 'Hyponyms',
    'Coordinate terms', 'Derived terms', 'Related terms', 'Descendants',
    'Translations', 'Quotations', 'See also', 'References', 'Further reading',
    'Anagrams', 'Conjugation', 'Declension', 'Inflection',
})

DERIVATION_TEMPLATES = frozenset({
    'bor', 'der', 'inh', 'lbor', 'obor', 'slbor', 'ubor', 'uder',
    'bor+', 'der+', 'inh+', 'bor-lite', 'der-lite', 'inh-lite',
    'borrowed', 'derived', 'inherited',
})
MENTION_TEMPLATES = frozenset({'m', 'mention', 'l', 'link', 'll', 'm-self', 'l-self'})
COGNATE_TEMPLATES = frozenset({'cog', 'cognate', 'noncog', 'nc', 'cog-lite'})
QUALIFIER_TEMPLATES = frozenset({'q', 'qual', 'qualifier', 'i', 'qf'})

HEADING_RE = re.compile(r'^(={2,6})[ \t]*([^=\n].*?)[ \t]*\1[ \t\r]*$', re.MULTILINE)
ETYMOLOGY_HEADING_RE = re.compile(r'^Etymology(?:\s+\d+)?$', re.IGNORECASE)
INNER_TEMPLATE_RE = re.compile(r'\{\{([^{}]*)\}\}')
PIPED_LINK_RE = re.compile(r'\[\[([^\[\]|]*)\|([^\[\]]*)\]\]')
PLAIN_LINK_RE = re.compile(r'\[\[([^\[\]|]+)\]\]')
COMMENT_RE = re.compile(r'<!--.*?(?:-->|\Z)', re.DOTALL)
REF_RE = re.compile(r'<ref\b[^>/]*/>|<ref\b[^>]*>.*?</ref\s*>', re.DOTALL | re.IGNORECASE)
HTML_TAG_RE = re.compile(r'</?[a-zA-Z][^>]*>')
QUOTE_MARKUP_RE = re.compile(r"'{2,}")
LIST_MARKER_RE = re.compile(r'^[#*:;]+\s*', re.MULTILINE)
DOUBLED_FROM_RE = re.compile(r'\b(from)\s+from\b', re.IGNORECASE)
EMPTY_PARENS_RE = re.compile(r'\(\s*[,;:]*\s*\)')
SPACE_BEFORE_PUNCT_RE = re.compile(r'\s+([,.;:!?)])')
REPEATED_COMMA_RE = re.compile(r',(\s*,)+')
COMMA_BEFORE_STOP_RE = re.compile(r'[,;:]\s*([.!?])')
LEADING_JUNK_RE = re.compile(r'^[\s,;:.)\]\u2013\u2014]+')
TRAILING_JUNK_RE = re.compile(r'[\s,;:(\[\u2013\u2014]+$')
TRAILING_DIGITS_RE = re.compile(r'\s+\d+$')


@dataclass(frozen=True)
class Heading:
    level: int
    name: str
    start: int  # offset of the heading line
    end: int    # offset just past the heading line


@dataclass(frozen=True)
class EtymologyExtraction:
    found: bool
    text: Optional[str] = None


NOT_FOUND = EtymologyExtraction(found=False)


# ---------------------------------------------------------------------------
# Stage 1 and 2: headings and sections


def iter_headings(text: str) -> List[Heading]:
    headings = []
    for match in HEADING_RE.finditer(text):
        end = match.end()
        if end < len(text) and text[end] == '\n':
            end += 1
        headings.append(Heading(len(match.group(1)), match.group(2).strip(), match.start(), end))
    return headings


def _closes_language_section(name: str, language: str) -> bool:
    """A level-2 heading ends the section when it names a *different* language."""
    if not name or not name[0].isupper() or name == language:
        return False
    return TRAILING_DIGITS_RE.sub('', name) not in IN_LANGUAGE_HEADINGS


def isolate_language_section(markup: str, language: str = 'English') -> Optional[str]:
    """Return the body of the ``==<language>==`` section, or ``None``."""
    start = None
    for heading in iter_headings(markup):
        if start is None:
            if heading.level == 2 and heading.name == language:
                start = heading.end
            continue
        if heading.level == 2 and _closes_language_section(heading.name, language):
            return markup[start:heading.start]
    return markup[start:] if start is not None else None


def isolate_etymology_subsection(section: str) -> Optional[str]:
    """Return the body under the first Etymology heading, or ``None``.

    The body runs to the next heading of equal or higher level (fewer or
    equal ``=``), or to the end of the section.
    """
    headings = iter_headings(section)
    for index, heading in enumerate(headings):
        if not ETYMOLOGY_HEADING_RE.match(heading.name):
            continue
        end = len(section)
        for following in headings[index + 1:]:
            if following.level <= heading.level:
                end = following.start
                break
        return section[heading.end:end]
    return None


def lead_prose(body: str) -> str:
    """Text before the first nested heading (Pronunciation, POS, ...)."""
    headings = iter_headings(body)
    return body[:headings[0].start] if headings else body


# ---------------------------------------------------------------------------
# Stage 3: normalization


def split_template(inner: str) -> List[str]:
    """Split a template body on ``|`` while keeping ``[[a|b]]`` links whole."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    i = 0
    while i < len(inner):
        pair = inner[i:i + 2]
        if pair == '[[':
            depth += 1
            current.append(pair)
            i += 2
            continue
        if pair == ']]' and depth:
            depth -= 1
            current.append(pair)
            i += 2
            continue
        char = inner[i]
        if char == '|' and depth == 0:
            parts.append(''.join(current))
            current = []
        else:
            current.append(char)
        i += 1
    parts.append(''.join(current))
    return [part.strip() for part in parts]


def _positional(params: List[str]) -> List[str]:
    return [p for p in params if not re.match(r'^[\w-]+\s*=', p)]


def _named(params: List[str], *keys: str) -> Optional[str]:
    for param in params:
        key, sep, value = param.partition('=')
        if sep and key.strip() in keys and value.strip():
            return value.strip()
    return None


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def _rewrite_templates(text: str, handler: Callable[[str, List[str]], Optional[str]]) -> str:
    """Apply ``handler`` to innermost templates; ``None`` leaves a template as is."""

    def replace(match):
        parts = split_template(match.group(1))
        name = parts[0].strip().lower()
        result = handler(name, parts[1:])
        return match.group(0) if result is None else result

    return INNER_TEMPLATE_RE.sub(replace, text)


def _derivation(name: str, params: List[str]) -> Optional[str]:
    if name not in DERIVATION_TEMPLATES:
        return None
    args = _positional(params)
    if len(args) < 2:
        return None
    source = language_name(args[1])
    word = ''
    if len(args) > 3 and args[3]:
        word = args[3]
    elif len(args) > 2 and args[2] not in ('', '-'):
        word = args[2]
    return f"from {source} {word}".rstrip()


def expand_derivation_templates(text: str) -> str:
    """``{{bor|en|la|origo}}`` -> ``from Latin origo``."""
    text = _rewrite_templates(text, _derivation)
    return DOUBLED_FROM_RE.sub(r'\1', text)


def _morphology(name: str, params: List[str]) -> Optional[str]:
    args = _positional(params)
    parts = [p for p in args[1:] if p]
    if name in ('com', 'compound', 'affix', 'af', 'confix', 'con'):
        return ' + '.join(parts) if parts else None
    if name in ('suffix', 'suf') and len(parts) >= 2:
        suffix = parts[1] if parts[1].startswith('-') else f"-{parts[1]}"
        return f"{parts[0]} + {suffix}"
    if name in ('prefix', 'pre') and len(parts) >= 2:
        prefix = parts[0] if parts[0].endswith('-') else f"{parts[0]}-"
        return f"{prefix} + {parts[1]}"
    if name == 'root' and len(args) >= 3:
        roots = [p for p in args[2:] if p]
        return f"from root {', '.join(roots)}" if roots else None
    return None


def expand_morphology_templates(text: str) -> str:
    """Compound, suffix, prefix, affix and root markers."""
    return _rewrite_templates(text, _morphology)


def _mention(name: str, params: List[str]) -> Optional[str]:
    args = _positional(params)
    if name in MENTION_TEMPLATES and len(args) >= 2:
        word = args[2] if len(args) > 2 and args[2] else args[1]
        gloss = args[3] if len(args) > 3 and args[3] else _named(params, 't', 'gloss')
        return f'{word} ("{gloss}")' if gloss else word
    if name in COGNATE_TEMPLATES and len(args) >= 2:
        word = args[2] if len(args) > 2 and args[2] else args[1]
        return f"{language_name(args[0])} {word}"
    if name == 'etyl' and args:
        return language_name(args[0])
    return None


def expand_mention_templates(text: str) -> str:
    """Mentions render as their word; cognates as ``<Language> <word>``."""
    return _rewrite_templates(text, _mention)


def _qualifier(name: str, params: List[str]) -> Optional[str]:
    if name not in QUALIFIER_TEMPLATES:
        return None
    args = [p for p in _positional(params) if p]
    return f"({', '.join(args)})" if args else ''


def expand_qualifier_templates(text: str) -> str:
    """``{{q|dated}}`` -> ``(dated)``, keeping whatever was expanded inside it."""
    previous = None
    while previous != text:
        previous = text
        text = _rewrite_templates(text, _qualifier)
    return text


def strip_templates(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = INNER_TEMPLATE_RE.sub('', text)
    return text.replace('{{', '').replace('}}', '')


def resolve_links(text: str) -> str:
    """Prefer a link's display text, else its target (without #anchor)."""

    def piped(match):
        target, display = match.group(1).strip(), match.group(2).strip()
        return display or target.split('#')[0]

    def plain(match):
        target = match.group(1).strip()
        return target.split('#')[0] or target.lstrip('#')

    text = PIPED_LINK_RE.sub(piped, text)
    return PLAIN_LINK_RE.sub(plain, text)


def strip_comments(text: str) -> str:
    return COMMENT_RE.sub('', text)


def strip_formatting(text: str) -> str:
    text = REF_RE.sub('', text)
    text = HTML_TAG_RE.sub('', text)
    # Entities after tag removal so &lt; cannot open a tag.
    text = html.unescape(text).replace('\xa0', ' ').replace('\u202f', ' ')
    text = QUOTE_MARKUP_RE.sub('', text)
    return LIST_MARKER_RE.sub('', text)


def collapse_whitespace(text: str) -> str:
    return re.sub(r'\s+', ' ', text).strip()


def strip_stray_punctuation(text: str) -> str:
    text = EMPTY_PARENS_RE.sub('', text)
    text = SPACE_BEFORE_PUNCT_RE.sub(r'\1', text)
    text = REPEATED_COMMA_RE.sub(',', text)
    text = COMMA_BEFORE_STOP_RE.sub(r'\1', text)
    text = LEADING_JUNK_RE.sub('', text)
    text = TRAILING_JUNK_RE.sub('', text)
    return collapse_whitespace(text)


def normalize_markup(raw: str) -> str:
    """Reduce a raw etymology body to plain prose."""
    text = expand_derivation_templates(raw)
    text = expand_morphology_templates(text)
    text = expand_mention_templates(text)
    text = expand_qualifier_templates(text)
    text = strip_templates(text)
    text = resolve_links(text)
    text = strip_comments(text)
    text = strip_formatting(text)
    text = collapse_whitespace(text)
    return strip_stray_punctuation(text)


# ---------------------------------------------------------------------------
# Facade


class MarkupExtractor:
    """Extract etymology and pronunciation from one page's raw wikitext."""

    def __init__(self, language: str = 'English', language_code: str = 'en', min_length: int = 10):
        self.language = language
        self.language_code = language_code
        self.min_length = min_length
        self.ipa_pattern = re.compile(r'\{\{\s*IPA\s*\|([^{}]*)\}\}')

    def extract_etymology(self, markup: Optional[str]) -> EtymologyExtraction:
        if not markup:
            return NOT_FOUND
        # Commented-out headings must not bound sections.
        markup = strip_comments(markup.replace("\r\n", "\n"))

        section = isolate_language_section(markup, self.language)
        if section is None:
            return NOT_FOUND

        body = isolate_etymology_subsection(section)
        if body is None:
            return NOT_FOUND

        text = normalize_markup(lead_prose(body))
        # Anything this short is residue from removed markup.
        if len(text) <= self.min_length:
            return NOT_FOUND
        return EtymologyExtraction(found=True, text=text)

    def extract_pronunciation(self, markup: Optional[str]) -> Optional[str]:
        """First IPA transcription in the language section, if any."""
        if not markup:
            return None
        markup = strip_comments(markup)
        section = isolate_language_section(markup, self.language)
        if section is None:
            return None

        for match in self.ipa_pattern.finditer(section):
            params = split_template(match.group(1))
            args = _positional(params)
            lang = _named(params, 'lang')
            if lang is None:
                if not args or args[0] != self.language_code:
                    continue
                args = args[1:]
            elif lang != self.language_code:
                continue
            for transcription in args:
                if transcription:
                    return transcription
        return None


__all__ = [
    'MarkupExtractor',
    'EtymologyExtraction',
    'Heading',
    'LANGUAGE_NAMES',
    'iter_headings',
    'isolate_language_section',
    'isolate_etymology_subsection',
    'lead_prose',
    'normalize_markup',
    'expand_derivation_templates',
    'expand_morphology_templates',
    'expand_mention_templates',
    'expand_qualifier_templates',
    'strip_templates',
    'resolve_links',
    'strip_comments',
    'strip_stray_punctuation',
]
