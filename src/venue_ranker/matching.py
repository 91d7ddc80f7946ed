"""Venue string heuristics.

This module provides the standalone helpers used by the rank resolvers:
- Venue denylist (workshops, posters, demos, companion volumes, ...)
- Acronym extraction from free-text venue strings
- Acronym generation from full conference titles
- Venue-kind classification (conference vs. journal vs. preprint)
"""

from __future__ import annotations

import re

from venue_ranker.utils import safe_lower

__all__ = [
    "IGNORE_KEYWORDS",
    "TITLE_IGNORE_KEYWORDS",
    "is_denylisted_venue",
    "has_denylisted_title",
    "extract_acronyms",
    "generate_acronym_from_title",
    "classify_venue",
    "is_preprint_venue",
]


# ------------- Denylists -------------

# Venue-level phrases that never carry a CORE rank.
IGNORE_KEYWORDS: tuple[str, ...] = (
    "workshop",
    "transactions",
    "journal",
    "poster",
    "demo",
    "abstract",
    "extended abstract",
    "doctoral consortium",
    "doctoral symposium",
    "computer communication review",
    "companion",
    "adjunct",
    "technical report",
    "tech report",
    "industry track",
    "tutorial notes",
    "working notes",
)

# Publication-title phrases marking non-archival contributions.
TITLE_IGNORE_KEYWORDS: tuple[str, ...] = (
    "poster",
    "demo",
    "extended abstract",
    "doctoral consortium",
    "doctoral symposium",
)


def is_denylisted_venue(*texts: str | None, keywords: tuple[str, ...] = IGNORE_KEYWORDS) -> bool:
    """True if any of the given venue strings contains a denylisted phrase."""
    for text in texts:
        lowered = safe_lower(text)
        if lowered and any(kw in lowered for kw in keywords):
            return True
    return False


def has_denylisted_title(title: str | None, keywords: tuple[str, ...] = TITLE_IGNORE_KEYWORDS) -> bool:
    """True if a publication title marks a poster, demo or similar contribution."""
    lowered = safe_lower(title)
    return any(kw in lowered for kw in keywords)


# ------------- Acronym Extraction -------------

_PAREN_RE = re.compile(r"\(([^)]+)\)")
_PAREN_ACRONYM_RE = re.compile(r"^([A-Z][a-zA-Z0-9'’]*[a-zA-Z0-9]|[A-Z]{2,}[0-9'’]*)$")
_PAREN_LOOSE_RE = re.compile(r"([A-Z]{2,}[0-9']*\b|[A-Z]+[0-9]+[A-Z0-9]*\b)")
_EDITION_SUFFIX_RE = re.compile(r"['’]\d{2,4}$")
_POSSESSIVE_RE = re.compile(r"['’]s$")
_VENUE_PHRASE_RE = re.compile(
    r"\b(Proceedings\s+of\s+(the)?|Proc\.\s+of\s+(the)?|International\s+Conference\s+on|"
    r"Intl\.\s+Conf\.\s+on|Conference\s+on|Symposium\s+on|Workshop\s+on|Journal\s+of)\b",
    re.IGNORECASE,
)
_WORD_SPLIT_RE = re.compile(r"[\s\-‑/.,:;&]+")
_ALL_CAPS_RE = re.compile(r"^[A-Z0-9]+$")
_CAMEL_RE = re.compile(r"^[A-Z][a-z]+[A-Z]+[A-Za-z0-9]*$")

_PAREN_FILLERS = frozenset({"was", "formerly", "inc", "ltd", "vol", "no"})

COMMON_NON_ACRONYM_WORDS = frozenset(
    set(IGNORE_KEYWORDS)
    | {
        "proc", "data", "services", "models", "security", "time", "proceedings",
        "journal", "conference", "conf", "symposium", "symp", "workshop", "ws",
        "international", "intl", "natl", "national", "annual", "vol", "volume",
        "no", "number", "pp", "page", "pages", "part", "edition", "of", "the",
        "on", "in", "and", "for", "to", "at", "st", "nd", "rd", "th", "springer",
        "elsevier", "wiley", "press", "extended", "abstracts", "poster", "session",
        "sessions", "doctoral", "companion", "joint", "first", "second", "third",
        "fourth", "fifth", "sixth", "seventh", "eighth", "ninth", "tenth",
        "advances", "systems", "networks", "computing", "applications",
        "technology", "technologies", "research", "science", "sciences",
        "engineering", "management", "information", "communication",
        "communications", "jan", "feb", "mar", "apr", "may", "jun", "jul", "aug",
        "sep", "oct", "nov", "dec", "letters", "bulletin", "archive", "archives",
        "series", "chapter", "section", "tutorial", "tutorials", "report",
        "technical", "tech",
    }
    | {str(year) for year in range(1970, 2045)}
)


def _clean_paren_acronym(candidate: str, fillers: frozenset[str]) -> str | None:
    cleaned = _POSSESSIVE_RE.sub("", _EDITION_SUFFIX_RE.sub("", candidate))
    lowered = cleaned.lower()
    if not 2 <= len(cleaned) <= 12 or cleaned.isdigit():
        return None
    if lowered in IGNORE_KEYWORDS or lowered in fillers:
        return None
    return lowered


def extract_acronyms(venue: str | None) -> list[str]:
    """Derive candidate acronyms from an unstructured venue string.

    Looks at parenthetical content first ("... (CCS '19)"), then at all-caps
    or camel-case words outside parentheses ("NeurIPS"), and finally falls
    back to the whole string when it is a single short token.

    Args:
        venue: Raw venue string as harvested from a profile page

    Returns:
        Lower-cased candidate acronyms in first-seen order, without duplicates
    """
    if not venue:
        return []
    found: dict[str, None] = {}

    for match in _PAREN_RE.finditer(venue):
        for part in re.split(r"[,;]", match.group(1).strip()):
            part = part.strip()
            if _PAREN_ACRONYM_RE.match(part):
                acronym = _clean_paren_acronym(part, _PAREN_FILLERS)
                if acronym:
                    found.setdefault(acronym)
                continue
            for loose in _PAREN_LOOSE_RE.findall(part):
                acronym = _clean_paren_acronym(loose, frozenset({"was", "formerly"}))
                if acronym:
                    found.setdefault(acronym)

    outside = re.sub(r"\s*\([^)]*\)\s*", " ", venue).strip()
    outside = _VENUE_PHRASE_RE.sub(" ", outside).strip()
    for word in _WORD_SPLIT_RE.split(outside):
        word = word.strip()
        if not 2 <= len(word) <= 12 or word.isdigit():
            continue
        if word.lower() in COMMON_NON_ACRONYM_WORDS:
            continue
        if _ALL_CAPS_RE.match(word) or _CAMEL_RE.match(word):
            found.setdefault(word.lower())

    if (
        not found
        and 2 <= len(venue) <= 10
        and venue.isascii()
        and venue.isalnum()
        and not venue.isdigit()
        and venue.lower() not in COMMON_NON_ACRONYM_WORDS
    ):
        found.setdefault(venue.lower())
    return list(found)


def generate_acronym_from_title(title: str | None, max_letters: int = 8) -> str:
    """Build an acronym from the capitalized words of a full venue title.

    'International Conference on Machine Learning' -> 'ICML'. Returns an
    empty string when fewer than two capitalized words are present.
    """
    if not title:
        return ""
    letters = [w[0] for w in _WORD_SPLIT_RE.split(title) if w and w[0].isupper()]
    acronym = "".join(letters[:max_letters])
    return acronym if len(acronym) >= 2 else ""


# ------------- Venue Classification -------------

_PREPRINT_RE = re.compile(r"\b(corr|arxiv)\b", re.IGNORECASE)
_JOURNAL_RE = re.compile(r"\b(journal|transactions|letters|review|magazine)\b", re.IGNORECASE)
_CONFERENCE_RE = re.compile(
    r"\b(conference|proceedings|proc|symposium|workshop|colloquium|congress)\b",
    re.IGNORECASE,
)


def is_preprint_venue(venue: str | None) -> bool:
    """True for preprint servers (CoRR, arXiv), which no ranking system covers."""
    return bool(venue and _PREPRINT_RE.search(venue))


def classify_venue(venue: str | None) -> str:
    """Guess the kind of a venue from its wording.

    Returns one of "conference", "journal", "preprint" or "unknown".
    Conference wording wins over journal wording ("Proceedings of the ACM
    on ..." journals are handled by the caller via their DBLP record type).
    """
    if not venue:
        return "unknown"
    if is_preprint_venue(venue):
        return "preprint"
    if _CONFERENCE_RE.search(venue):
        return "conference"
    if _JOURNAL_RE.search(venue):
        return "journal"
    return "unknown"
