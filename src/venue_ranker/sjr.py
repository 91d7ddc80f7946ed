"""SJR journal quartile resolution.

SCImago exports one CSV per year. SjrDataset merges them into one entry per
normalized journal title; SjrQuartileResolver matches a journal name against
the merged entries and picks the quartile for the publication year.
"""

from __future__ import annotations

import csv
import logging
import os
import re
import threading
from dataclasses import dataclass, field
from typing import Iterable

from venue_ranker.config import MatchingConfig
from venue_ranker.utils import clean_text_for_comparison, jaro_winkler, significant_tokens

VALID_QUARTILES = ("Q1", "Q2", "Q3", "Q4")

STATUS_SUCCESS = "success"
STATUS_NOT_FOUND = "not_found"
STATUS_ERROR = "error"

_QUARTILE_RE = re.compile(r"\bQ([1-4])\b")
_FILENAME_RE = re.compile(r"^scimago_(\d{4})\.csv$", re.IGNORECASE)


def normalize_quartile(value: str | None) -> str:
    """'q2' -> 'Q2'; anything without a Q1-Q4 token (e.g. '-') -> ''."""
    m = _QUARTILE_RE.search(str(value or "").strip().upper())
    return f"Q{m.group(1)}" if m else ""


def better_quartile(a: str, b: str) -> str:
    """Return the better (numerically lower) of two quartiles, ignoring blanks."""
    if not a:
        return b
    if not b:
        return a
    return a if int(a[1]) <= int(b[1]) else b


def normalize_journal_title(title: str | None) -> str:
    return clean_text_for_comparison(title)


def sniff_delimiter(sample: str) -> str:
    """SCImago exports are usually ';'-delimited; pick the most frequent candidate."""
    best, best_count = ";", -1
    for delim in (";", ",", "\t"):
        count = sample.count(delim)
        if count > best_count:
            best, best_count = delim, count
    return best


# ------------- Dataset -------------


@dataclass
class SjrJournalEntry:
    """A journal merged across all yearly SCImago tables."""

    normalized_title: str
    resolved_title: str
    quartiles_by_year: dict[int, str] = field(default_factory=dict)
    token_set: frozenset[str] = field(default_factory=frozenset)

    def merge(self, raw_title: str, year: int, quartile: str) -> None:
        """Fold one source row into the entry; the better quartile wins per year."""
        self.quartiles_by_year[year] = better_quartile(self.quartiles_by_year.get(year, ""), quartile)
        if len(raw_title) > len(self.resolved_title):
            self.resolved_title = raw_title


def select_quartile(
    quartiles_by_year: dict[int, str], year: int | None, start_year: int
) -> tuple[int, str] | None:
    """Pick the (year, quartile) applicable to a publication year.

    Known year: the table for max(start_year, year), else the nearest earlier
    table, else the earliest table available. Unknown year: the most recent table.
    """
    if not quartiles_by_year:
        return None
    years = sorted(quartiles_by_year)
    if year is None:
        chosen = years[-1]
    else:
        target = max(start_year, year)
        earlier = [y for y in years if y <= target]
        chosen = earlier[-1] if earlier else years[0]
    return chosen, quartiles_by_year[chosen]


class SjrDataset:
    """Multi-year SJR table keyed by normalized journal title."""

    def __init__(self) -> None:
        self.entries: dict[str, SjrJournalEntry] = {}
        self._token_index: dict[str, set[str]] = {}
        self._position: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def get(self, normalized_title: str) -> SjrJournalEntry | None:
        return self.entries.get(normalized_title)

    def add(self, title: str, year: int, quartile: str) -> SjrJournalEntry | None:
        """Add one source row; rows without a title or a valid quartile are skipped."""
        raw = (title or "").strip()
        q = normalize_quartile(quartile)
        key = normalize_journal_title(raw)
        if not key or not q:
            return None
        entry = self.entries.get(key)
        if entry is None:
            entry = SjrJournalEntry(
                normalized_title=key, resolved_title=raw, token_set=frozenset(significant_tokens(key))
            )
            self._position[key] = len(self.entries)
            self.entries[key] = entry
            for token in entry.token_set:
                self._token_index.setdefault(token, set()).add(key)
        entry.merge(raw, year, q)
        return entry

    def candidates(self, tokens: Iterable[str]) -> list[SjrJournalEntry]:
        """Entries sharing at least one significant token, in insertion order."""
        keys: set[str] = set()
        for token in tokens:
            keys |= self._token_index.get(token, set())
        return [self.entries[key] for key in sorted(keys, key=self._position.__getitem__)]

    @classmethod
    def from_rows(cls, rows: Iterable[tuple[str, int, str]]) -> SjrDataset:
        """Build a dataset from (title, year, quartile) rows."""
        dataset = cls()
        for title, year, quartile in rows:
            dataset.add(title, year, quartile)
        return dataset

    def load_csv(self, path: str, year: int) -> int:
        """Merge one SCImago export into the dataset. Returns the rows used.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the expected columns are missing
        """
        with open(path, newline="", encoding="utf-8", errors="ignore") as f:
            first_line = f.readline()
            f.seek(0)
            reader = csv.DictReader(f, delimiter=sniff_delimiter(first_line))
            fields = reader.fieldnames or []
            if "Title" not in fields or "SJR Best Quartile" not in fields:
                raise ValueError(f"Missing expected columns in {path}. Have: {fields}")
            used = 0
            for row in reader:
                if self.add(row.get("Title") or "", year, row.get("SJR Best Quartile") or ""):
                    used += 1
        return used

    @classmethod
    def load_directory(cls, data_dir: str, logger: logging.Logger | None = None) -> SjrDataset:
        """Load every scimago_<year>.csv in a directory.

        Unreadable files are logged and skipped; a missing directory yields an
        empty dataset.
        """
        log = logger or logging.getLogger(__name__)
        dataset = cls()
        try:
            names = sorted(os.listdir(data_dir))
        except OSError as e:
            log.warning("Could not read SJR data directory %s: %s", data_dir, e)
            return dataset
        for name in names:
            m = _FILENAME_RE.match(name)
            if not m:
                continue
            path = os.path.join(data_dir, name)
            try:
                used = dataset.load_csv(path, int(m.group(1)))
            except (OSError, ValueError, csv.Error) as e:
                log.warning("Could not load SJR data %s: %s", path, e)
                continue
            log.debug("Loaded %d SJR rows from %s", used, path)
        return dataset


# ------------- Lookup -------------


class SjrLookupCache:
    """Per-run memo of journal lookups keyed by normalized title.

    Stores the matched entry, or None for a journal known to be absent.
    """

    def __init__(self) -> None:
        self._data: dict[str, SjrJournalEntry | None] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: str) -> SjrJournalEntry | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, entry: SjrJournalEntry | None) -> None:
        with self._lock:
            self._data.setdefault(key, entry)


@dataclass(frozen=True)
class SjrResult:
    status: str
    quartile: str | None = None
    year: int | None = None
    journal: str | None = None


class SjrQuartileResolver:
    """Resolve a journal name and publication year to an SJR quartile."""

    def __init__(
        self,
        dataset: SjrDataset,
        config: MatchingConfig | None = None,
        cache: SjrLookupCache | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.dataset = dataset
        self.config = config or MatchingConfig()
        self.cache = cache if cache is not None else SjrLookupCache()
        self.logger = logger or logging.getLogger(__name__)

    def resolve(self, journal_name: str | None, year: int | None = None) -> SjrResult:
        """Look up a journal's quartile for a publication year.

        Args:
            journal_name: Journal name as found on the publication record
            year: Optional publication year

        Returns:
            SjrResult with status success (quartile and table year set),
            not_found, or error when no SJR data is loaded
        """
        if self.dataset.is_empty:
            return SjrResult(STATUS_ERROR)
        key = normalize_journal_title(journal_name)
        if not key:
            return SjrResult(STATUS_NOT_FOUND)

        if key in self.cache:
            entry = self.cache.get(key)
            self.logger.debug("SJR cache hit for %r", key)
        else:
            entry = self._match(key)
            self.cache.put(key, entry)

        if entry is None:
            return SjrResult(STATUS_NOT_FOUND)
        selected = select_quartile(entry.quartiles_by_year, year, self.config.sjr_start_year)
        if selected is None:
            return SjrResult(STATUS_NOT_FOUND)
        table_year, quartile = selected
        return SjrResult(STATUS_SUCCESS, quartile=quartile, year=table_year, journal=entry.resolved_title)

    def _match(self, key: str) -> SjrJournalEntry | None:
        direct = self.dataset.get(key)
        if direct is not None:
            return direct
        best: SjrJournalEntry | None = None
        best_score = 0.0
        for entry in self.dataset.candidates(significant_tokens(key)):
            score = jaro_winkler(key, entry.normalized_title)
            if score >= self.config.sjr_immediate_accept:
                self.logger.debug("SJR match %r -> %r (%.3f)", key, entry.resolved_title, score)
                return entry
            if score >= self.config.sjr_candidate_floor and score > best_score:
                best, best_score = entry, score
        if best is not None and best_score >= self.config.fuzzy_threshold:
            self.logger.debug("SJR match %r -> %r (%.3f)", key, best.resolved_title, best_score)
            return best
        self.logger.debug("No SJR match for %r", key)
        return None
