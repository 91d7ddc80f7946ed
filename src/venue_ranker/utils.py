"""Shared utilities for venue ranking.

This module provides common functionality used by:
- core.py / sjr.py (venue and journal matching)
- dblp.py (author identity resolution)
- ranker.py (profile ranking pipeline)

Includes text normalization, the string-similarity primitive, author name
cleanup, page-count parsing, and HTTP infrastructure with caching and rate limiting.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import threading
import time
import unicodedata
from collections import deque
from typing import Any

import httpx
from rapidfuzz.distance import JaroWinkler

# ------------- Constants & Regex -------------

# Whole-word abbreviation table applied before punctuation stripping.
COMMON_ABBREVIATIONS: list[tuple[str, str]] = [
    (r"\bint'l\b", "international"),
    (r"\bintl\b", "international"),
    (r"\bconf\.", "conference"),
    (r"\bconf\b", "conference"),
    (r"\bproc\.", "proceedings"),
    (r"\bproc\b", "proceedings"),
    (r"\bsymp\.", "symposium"),
    (r"\bsymp\b", "symposium"),
    (r"\bj\.", "journal"),
    (r"\bjour\b", "journal"),
    (r"\btrans\.", "transactions"),
    (r"\btrans\b", "transactions"),
    (r"\bannu\.", "annual"),
    (r"\bcomput\.", "computing"),
    (r"\bcommun\.", "communications"),
    (r"\bsyst\.", "systems"),
    (r"\bsci\.", "science"),
    (r"\btech\.", "technical"),
    (r"\btechnol\b", "technology"),
    (r"\bengin\.", "engineering"),
    (r"\bres\.", "research"),
    (r"\badv\.", "advances"),
    (r"\bappl\.", "applications"),
    (r"\blectures notes\b", "lecture notes"),
    (r"\blect notes\b", "lecture notes"),
    (r"\blncs\b", "lecture notes in computer science"),
]
_ABBREVIATION_RES = [(re.compile(p), expansion) for p, expansion in COMMON_ABBREVIATIONS]

_PUNCTUATION_RE = re.compile(r"[.,/#!$%^;*:{}=_`~?\"“”()\[\]]")
_SPACED_DASH_RE = re.compile(r"\s-\s")
_TRAILING_YEAR_RES = (re.compile(r",\s*\d{4}$"), re.compile(r"\s*\(\d{4}\)$"))
_LEADING_EDITION_RE = re.compile(r"^(\d{4}\s+|\d{1,2}(st|nd|rd|th)\s+)")

# Sponsoring-organization prefixes stripped from the front of reference titles.
ORG_PREFIXES_TO_IGNORE = (
    "acm/ieee",
    "ieee/acm",
    "acm-ieee",
    "ieee-acm",
    "acm sigplan",
    "acm sigops",
    "acm sigbed",
    "acm sigcomm",
    "acm sigmod",
    "acm sigarch",
    "acm sigsac",
    "acm",
    "ieee",
    "ifip",
    "usenix",
    "eurographics",
    "springer",
    "elsevier",
    "wiley",
    "sigplan",
    "sigops",
    "sigbed",
    "sigcomm",
    "sigmod",
    "sigarch",
    "sigsac",
    "international",
    "national",
    "annual",
)

STOP_WORDS = frozenset(
    {
        "the",
        "and",
        "for",
        "of",
        "on",
        "in",
        "with",
        "from",
        "into",
        "via",
        "its",
        "des",
        "der",
        "und",
        "les",
        "del",
    }
)

# ------------- Text Normalization -------------

_LATEX_MATH_RE = re.compile(r"\$[^$]*\$")
_LATEX_COMMAND_RE = re.compile(r"\\[A-Za-z]+(?:\s*\[[^\]]*\])?(?:\s*\{[^}]*\})?")
_WHITESPACE_RE = re.compile(r"\s+")


def safe_lower(x: str | None) -> str:
    """Lowercase and strip; None becomes an empty string."""
    return (x or "").lower().strip()


def latex_to_plain(text: str | None) -> str:
    """Drop LaTeX markup (commands, inline math, braces) from a BibTeX field."""
    if not text:
        return ""
    plain = _LATEX_COMMAND_RE.sub(" ", _LATEX_MATH_RE.sub(" ", text))
    plain = plain.replace("{", "").replace("}", "")
    return _WHITESPACE_RE.sub(" ", plain).strip()


def strip_diacritics(text: str) -> str:
    """Fold accented characters to their base letter ('Müller' -> 'Muller')."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_title_for_match(title: str) -> str:
    """Lowercase ASCII form of a paper title: no LaTeX, accents or punctuation."""
    folded = strip_diacritics(latex_to_plain(title)).lower()
    return _WHITESPACE_RE.sub(" ", re.sub(r"[^a-z0-9]", " ", folded)).strip()


def clean_text_for_comparison(text: str | None, is_venue: bool = False) -> str:
    """Canonicalize a venue, journal or title string for comparison.

    Lowercases, expands common abbreviations ("proc." -> "proceedings"),
    folds "&" to "and", turns punctuation into spaces and collapses
    whitespace. With ``is_venue`` the edition noise found on harvested venue
    strings is removed as well: a leading year or ordinal ("2019 ", "13th ")
    and a trailing ", 2019" or "(2019)".

    Args:
        text: Raw text
        is_venue: Apply venue-specific edition/year cleanup

    Returns:
        Normalized string (may be empty)
    """
    if not text:
        return ""
    cleaned = text.lower().strip()
    if is_venue:
        for pattern in _TRAILING_YEAR_RES:
            cleaned = pattern.sub("", cleaned)
    for pattern, expansion in _ABBREVIATION_RES:
        cleaned = pattern.sub(expansion, cleaned)
    cleaned = cleaned.replace("&", " and ")
    cleaned = _PUNCTUATION_RE.sub(" ", cleaned)
    cleaned = _SPACED_DASH_RE.sub(" ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if is_venue:
        cleaned = _LEADING_EDITION_RE.sub("", cleaned)
    return cleaned


def strip_org_prefixes(text: str) -> str:
    """Remove sponsoring-organization prefixes from a normalized title.

    Runs to a fixed point so compound prefixes such as
    "acm sigplan international ..." are fully removed.
    """
    current = text
    stripped = True
    while stripped and current:
        stripped = False
        for prefix in ORG_PREFIXES_TO_IGNORE:
            if current == prefix or current.startswith(prefix + " "):
                current = current[len(prefix) :].strip()
                stripped = True
    return current


def significant_tokens(text: str, min_length: int = 3) -> set[str]:
    """Tokens of a normalized string usable for candidate pre-filtering."""
    return {tok for tok in text.split() if len(tok) >= min_length and tok not in STOP_WORDS}


# ------------- Similarity -------------


def jaro_winkler(a: str | None, b: str | None) -> float:
    """Jaro-Winkler similarity in [0, 1]; 0.0 when either side is empty.

    This is the single similarity primitive used by every matcher.
    """
    if not a or not b:
        return 0.0
    return JaroWinkler.normalized_similarity(a, b, prefix_weight=0.1)


# ------------- Author Handling -------------

_NAME_PREFIX_RES = (
    re.compile(r"^professor\s+", re.IGNORECASE),
    re.compile(r"^prof(\.\s*|\s+)", re.IGNORECASE),
    re.compile(r"^dr(\.\s*|\s+)", re.IGNORECASE),
)
_NAME_SUFFIX_RES = (
    re.compile(r"[,\s]+ph\.d\.?$", re.IGNORECASE),
    re.compile(r"[,\s]+phd$", re.IGNORECASE),
    re.compile(r"[,\s]+dr\.?$", re.IGNORECASE),
    re.compile(r"[,\s]+prof\.?$", re.IGNORECASE),
    re.compile(r"[,\s]+professor$", re.IGNORECASE),
)


def sanitize_author_name(name: str | None) -> str:
    """Strip honorifics and parenthetical notes from a profile display name.

    'Dr. Jane Doe, PhD (she/her)' -> 'Jane Doe'
    """
    cleaned = re.sub(r"\s*\([^)]*\)\s*", " ", name or "").strip()
    for pattern in _NAME_PREFIX_RES:
        cleaned = pattern.sub("", cleaned)
    for pattern in _NAME_SUFFIX_RES:
        cleaned = pattern.sub("", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip()


# ------------- Page Counts -------------

_SINGLE_PAGE_RE = re.compile(r"^(article\s+\d+|\d+$|[ivxlcdm]+$)", re.IGNORECASE)
_PAGE_RANGE_RE = re.compile(r"^(?:[a-z\d]+:)?(\d+)\s*-\s*(?:[a-z\d]+:)?(\d+)$", re.IGNORECASE)


def page_count_from_pages(pages: str | None) -> int | None:
    """Number of pages described by a DBLP/BibTeX page string.

    '101-112' -> 12, '7:1-7:24' -> 24. Single pages, article numbers and
    roman numerals carry no length information and return None.
    """
    if not pages:
        return None
    s = pages.strip().replace("--", "-").replace("–", "-")
    if _SINGLE_PAGE_RE.match(s) and "-" not in s and ":" not in s:
        return None
    m = _PAGE_RANGE_RE.match(s)
    if m:
        start, end = int(m.group(1)), int(m.group(2))
        if end >= start:
            return end - start + 1
    return None


def parse_year(value: Any) -> int | None:
    """Parse a 4-digit year from an int or string; None when absent or malformed."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 1000 <= value <= 9999 else None
    m = re.match(r"^\s*(\d{4})", str(value))
    return int(m.group(1)) if m else None


# ------------- Rate Limiting & Caching -------------

_WINDOW_SECONDS = 60.0


class RateLimiter:
    """Sliding one-minute window limiter shared by all threads of a run."""

    def __init__(self, req_per_min: int) -> None:
        self.req_per_min = max(req_per_min, 1)
        self.timestamps: deque[float] = deque()
        self._guard = threading.Lock()

    def _expire(self, now: float) -> None:
        while self.timestamps and now - self.timestamps[0] >= _WINDOW_SECONDS:
            self.timestamps.popleft()

    def wait(self) -> None:
        """Sleep until another request fits into the current window."""
        with self._guard:
            self._expire(time.time())
            if len(self.timestamps) >= self.req_per_min:
                delay = _WINDOW_SECONDS - (time.time() - self.timestamps[0]) + 0.01
                if delay > 0:
                    time.sleep(delay)
                self._expire(time.time())
            self.timestamps.append(time.time())


class RateLimiterRegistry:
    """One RateLimiter per named service.

    DBLP's search/XML API and its SPARQL endpoint are throttled independently.
    """

    DEFAULT_LIMITS = {
        "dblp": 30,
        "dblp_sparql": 20,  # stricter than the XML API
    }
    FALLBACK_LIMIT = 30

    def __init__(self, limits: dict[str, int] | None = None) -> None:
        """Create the registry.

        Args:
            limits: Requests per minute by service name; entries override
                DEFAULT_LIMITS.
        """
        self.limits = dict(self.DEFAULT_LIMITS)
        self.limits.update(limits or {})
        self._by_service: dict[str, RateLimiter] = {}
        self._guard = threading.Lock()

    def get(self, service: str) -> RateLimiter:
        """Limiter for service, created on first use."""
        with self._guard:
            limiter = self._by_service.get(service)
            if limiter is None:
                limiter = RateLimiter(self.limits.get(service, self.FALLBACK_LIMIT))
                self._by_service[service] = limiter
            return limiter

    def wait(self, service: str) -> None:
        self.get(service).wait()


class DiskCache:
    """JSON file mapping request keys to decoded response bodies; disabled when path is None."""

    def __init__(self, path: str | None) -> None:
        self.path = path
        self.data: dict[str, Any] = self._read(path) if path else {}
        self._guard = threading.Lock()

    @staticmethod
    def _read(path: str) -> dict[str, Any]:
        try:
            with open(path, encoding="utf-8") as fh:
                loaded = json.load(fh)
        except (OSError, json.JSONDecodeError):
            # Missing or corrupt files start an empty cache
            return {}
        return loaded if isinstance(loaded, dict) else {}

    def get(self, key: str) -> Any | None:
        """Cached body for key, or None."""
        if self.path is None:
            return None
        with self._guard:
            return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        """Store value and rewrite the cache file atomically."""
        if self.path is None:
            return
        with self._guard:
            self.data[key] = value
            directory = os.path.dirname(os.path.abspath(self.path))
            fd, tmp_path = tempfile.mkstemp(prefix=".venue_cache_", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.data, fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)


# ------------- HTTP Client -------------


class NetworkError(RuntimeError):
    """Raised when a request keeps failing after all retries."""


class HttpClient:
    """Rate-limited httpx client with retries and an optional JSON response cache.

    429 responses are not retried: they are handed back to the caller, which
    decides whether the whole run must stop.
    """

    RETRYABLE_STATUS = frozenset({500, 502, 503, 504})
    MAX_BACKOFF = 16.0

    def __init__(
        self,
        timeout: float,
        user_agent: str,
        rate_limiter: RateLimiter | RateLimiterRegistry,
        cache: DiskCache | None = None,
        max_attempts: int = 4,
    ) -> None:
        """Create the client.

        Args:
            timeout: Seconds before a request is abandoned
            user_agent: Sent with every request
            rate_limiter: A single limiter, or a registry keyed by service name
            cache: Where decoded JSON bodies are kept between runs
            max_attempts: Attempts per request before NetworkError
        """
        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent},
            follow_redirects=True,
        )
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.max_attempts = max(1, max_attempts)

    def limiter_for(self, service: str | None) -> RateLimiter:
        if isinstance(self.rate_limiter, RateLimiterRegistry):
            return self.rate_limiter.get(service or "dblp")
        return self.rate_limiter

    @staticmethod
    def _cache_key(method: str, url: str, params: dict[str, Any] | None, accept: str | None) -> str:
        return json.dumps([method, url, params or {}, accept or ""], sort_keys=True)

    def _remember(self, key: str, resp: httpx.Response) -> None:
        if resp.status_code != 200 or "json" not in resp.headers.get("Content-Type", ""):
            return
        try:
            body = resp.json()
        except ValueError:
            return
        self.cache.set(key, body)  # type: ignore[union-attr]

    def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        accept: str | None = None,
        service: str | None = None,
    ) -> httpx.Response:
        """Send one rate-limited request, serving cached JSON and retrying transient failures.

        Raises:
            NetworkError: If every attempt failed at the transport level or with a 5xx status
        """
        key = None
        if self.cache is not None:
            key = self._cache_key(method, url, params, accept)
            hit = self.cache.get(key)
            if hit is not None:
                return httpx.Response(200, json=hit, headers={"X-From-Cache": "1"})

        limiter = self.limiter_for(service)
        headers = {"Accept": accept} if accept else None
        delay = 1.0
        for attempt in range(1, self.max_attempts + 1):
            limiter.wait()
            try:
                resp = self.client.request(method, url, params=params, headers=headers)
            except httpx.TransportError:
                resp = None
            if resp is not None and resp.status_code not in self.RETRYABLE_STATUS:
                if key is not None:
                    self._remember(key, resp)
                return resp
            if attempt < self.max_attempts:
                time.sleep(delay)
                delay = min(delay * 2, self.MAX_BACKOFF)
        raise NetworkError(f"{method} {url} failed after {self.max_attempts} attempts")

    def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        accept: str | None = None,
        service: str | None = None,
    ) -> httpx.Response:
        """GET through _request."""
        return self._request("GET", url, params=params, accept=accept, service=service)

    def close(self) -> None:
        self.client.close()
