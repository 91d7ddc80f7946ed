"""CORE conference rank resolution.

Reference tables are published per edition with differing column names. Each
edition is described by a CorePartition that maps its columns onto the
uniform ReferenceVenueEntry; CoreDataStore loads partitions lazily and
CoreRankResolver runs the acronym -> substring -> fuzzy cascade.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from venue_ranker.config import MatchingConfig
from venue_ranker.matching import extract_acronyms, generate_acronym_from_title, is_denylisted_venue
from venue_ranker.utils import clean_text_for_comparison, jaro_winkler, strip_org_prefixes

VALID_RANKS = ("A*", "A", "B", "C")
NOT_AVAILABLE = "N/A"

_GENERIC_TITLE_KEYS = ("title", "Title")
_GENERIC_ACRONYM_KEYS = ("acronym", "Acronym")
_RANK_KEYS = ("Unranked", "rank", "CORE_Rating", "Rating")


def normalize_rank(value: Any) -> str:
    """Upper-case and validate a rank cell; anything unexpected is N/A."""
    if not isinstance(value, str):
        return NOT_AVAILABLE
    rank = value.strip().upper()
    return rank if rank in VALID_RANKS else NOT_AVAILABLE


# ------------- Reference Data -------------


@dataclass(frozen=True)
class ReferenceVenueEntry:
    """One row of a CORE table in uniform form."""

    title: str
    acronym: str
    rank: str = NOT_AVAILABLE
    match_title: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        cleaned = strip_org_prefixes(clean_text_for_comparison(self.title))
        object.__setattr__(self, "match_title", cleaned)

    @property
    def has_valid_rank(self) -> bool:
        return self.rank in VALID_RANKS


@dataclass(frozen=True)
class CorePartition:
    """Column layout of one published CORE edition.

    The published dumps use their first data row as header, so the title
    and acronym columns are named after that row.
    """

    name: str
    min_year: int | None
    title_key: str
    acronym_key: str
    rank_keys: tuple[str, ...] = _RANK_KEYS

    @property
    def filename(self) -> str:
        return f"{self.name}.json"

    def parse_row(self, row: dict[str, Any]) -> ReferenceVenueEntry | None:
        """Map a raw JSON row onto a ReferenceVenueEntry; None for empty rows."""
        title = _first_string(row, (self.title_key, *_GENERIC_TITLE_KEYS))
        acronym = _first_string(row, (self.acronym_key, *_GENERIC_ACRONYM_KEYS))
        rank_cell = _first_string(row, self.rank_keys)
        if not acronym and title:
            acronym = generate_acronym_from_title(title)
        if not title and not acronym:
            return None
        return ReferenceVenueEntry(title=title, acronym=acronym, rank=normalize_rank(rank_cell))


def _first_string(row: dict[str, Any], keys: Iterable[str]) -> str:
    for key in keys:
        value = row.get(key)
        if isinstance(value, str):
            return value.strip()
    return ""


_RECENT_KEYS = ("International Conference on Advanced Communications and Computation", "INFOCOMP")
_LEGACY_KEYS = ("Information Retrieval Facility Conference", "IRFC")

# Newest first; a year maps onto the first partition whose min_year it reaches.
CORE_PARTITIONS: tuple[CorePartition, ...] = (
    CorePartition("CORE_2023", 2023, *_RECENT_KEYS),
    CorePartition("CORE_2021", 2021, *_RECENT_KEYS),
    CorePartition("CORE_2020", 2020, *_RECENT_KEYS),
    CorePartition("CORE_2018", 2018, *_LEGACY_KEYS),
    CorePartition("CORE_2017", 2017, *_LEGACY_KEYS),
    CorePartition("CORE_2014", None, *_LEGACY_KEYS),
)


def partition_for_year(
    year: int | None, partitions: Sequence[CorePartition] = CORE_PARTITIONS
) -> CorePartition:
    """Select the CORE edition applicable to a publication year.

    Unknown years use the latest edition; years before the oldest bounded
    edition use the catch-all oldest one.
    """
    if year is None:
        return partitions[0]
    for partition in partitions:
        if partition.min_year is None or year >= partition.min_year:
            return partition
    return partitions[-1]


class CoreDataStore:
    """Lazily loads CORE partitions from a directory and keeps them for its lifetime."""

    def __init__(
        self,
        data_dir: str,
        partitions: Sequence[CorePartition] = CORE_PARTITIONS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.data_dir = data_dir
        self.partitions = tuple(partitions)
        self.logger = logger or logging.getLogger(__name__)
        self._cache: dict[str, list[ReferenceVenueEntry]] = {}
        self._lock = threading.Lock()

    def entries_for_year(self, year: int | None) -> list[ReferenceVenueEntry]:
        return self.entries_for_partition(partition_for_year(year, self.partitions))

    def entries_for_partition(self, partition: CorePartition) -> list[ReferenceVenueEntry]:
        with self._lock:
            cached = self._cache.get(partition.name)
        if cached is not None:
            return cached
        entries = self._load(partition)
        with self._lock:
            return self._cache.setdefault(partition.name, entries)

    def _load(self, partition: CorePartition) -> list[ReferenceVenueEntry]:
        path = os.path.join(self.data_dir, partition.filename)
        try:
            with open(path, encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning("Could not load CORE data %s: %s", path, e)
            return []
        if not isinstance(rows, list):
            self.logger.warning("CORE data %s is not a list of rows", path)
            return []
        entries = [e for e in (partition.parse_row(r) for r in rows if isinstance(r, dict)) if e]
        self.logger.debug("Loaded %d CORE entries from %s", len(entries), path)
        return entries


# ------------- Rank Resolution -------------


class CoreRankResolver:
    """Resolve a venue key to a CORE rank.

    Stateless apart from its thresholds; safe to share across records.
    """

    def __init__(self, config: MatchingConfig | None = None, logger: logging.Logger | None = None) -> None:
        self.config = config or MatchingConfig()
        self.logger = logger or logging.getLogger(__name__)

    def find_rank(
        self,
        venue_key: str | None,
        entries: Sequence[ReferenceVenueEntry],
        full_venue_title: str | None = None,
    ) -> str:
        """Resolve a venue key against one CORE partition.

        Cascade: exact acronym, then longest reference title contained in the
        query, then best fuzzy title match. Denylisted venues (workshops,
        posters, ...) are N/A before any matching takes place.

        Args:
            venue_key: Acronym or short venue label
            entries: Reference entries of the year-appropriate partition
            full_venue_title: Optional full conference title for disambiguation

        Returns:
            One of A*, A, B, C or N/A
        """
        if not venue_key or not venue_key.strip():
            return NOT_AVAILABLE
        if is_denylisted_venue(venue_key, full_venue_title):
            self.logger.debug("Venue %r is denylisted", venue_key)
            return NOT_AVAILABLE
        key = venue_key.strip().lower()

        acronym_hits = [e for e in entries if e.acronym and e.acronym.lower() == key]
        if len(acronym_hits) == 1:
            return acronym_hits[0].rank if acronym_hits[0].has_valid_rank else NOT_AVAILABLE
        if len(acronym_hits) > 1:
            return self._disambiguate(venue_key, acronym_hits, full_venue_title)

        queries = [clean_text_for_comparison(key, is_venue=True)]
        if full_venue_title:
            queries.append(clean_text_for_comparison(full_venue_title, is_venue=True))
        queries = [q for q in queries if q]
        if not queries:
            return NOT_AVAILABLE

        rank = self._substring_rank(queries, entries)
        if rank:
            return rank
        return self._fuzzy_rank(queries, entries) or NOT_AVAILABLE

    def _disambiguate(
        self,
        venue_key: str,
        candidates: list[ReferenceVenueEntry],
        full_venue_title: str | None,
    ) -> str:
        if not full_venue_title:
            self.logger.warning(
                "Acronym %r matches %d CORE rows and no full title is known", venue_key, len(candidates)
            )
            return NOT_AVAILABLE
        cleaned_full = clean_text_for_comparison(full_venue_title)
        best: ReferenceVenueEntry | None = None
        best_score = 0.0
        for entry in candidates:
            if not entry.title:
                continue
            score = jaro_winkler(cleaned_full, clean_text_for_comparison(entry.title))
            self.logger.debug("  %r vs %r: %.3f", full_venue_title, entry.title, score)
            if score > best_score:
                best, best_score = entry, score
            if score == 1.0:
                break
        if best and best_score >= self.config.disambiguation_threshold and best.has_valid_rank:
            self.logger.debug("Acronym %r disambiguated to %r (%s)", venue_key, best.title, best.rank)
            return best.rank
        self.logger.warning(
            "Acronym %r is ambiguous (best title score %.3f); returning N/A", venue_key, best_score
        )
        return NOT_AVAILABLE

    def _substring_rank(self, queries: list[str], entries: Sequence[ReferenceVenueEntry]) -> str | None:
        best: ReferenceVenueEntry | None = None
        for entry in entries:
            ref = entry.match_title
            if len(ref) <= self.config.min_substring_length:
                continue
            if best is not None and len(ref) <= len(best.match_title):
                continue
            if any(ref in q for q in queries):
                best = entry
        if best is None:
            return None
        self.logger.debug("Substring match %r (%s)", best.title, best.rank)
        return best.rank if best.has_valid_rank else None

    def _fuzzy_rank(self, queries: list[str], entries: Sequence[ReferenceVenueEntry]) -> str | None:
        min_len = self.config.min_fuzzy_length
        queries = [q for q in queries if len(q) >= min_len]
        best: ReferenceVenueEntry | None = None
        best_score = 0.0
        for entry in entries:
            ref = entry.match_title
            if len(ref) < min_len:
                continue
            score = max(jaro_winkler(q, ref) for q in queries) if queries else 0.0
            if score >= self.config.fuzzy_threshold and score > best_score:
                best, best_score = entry, score
                if score == 1.0:
                    break
        if best is None:
            return None
        self.logger.debug("Fuzzy match %r (%.3f, %s)", best.title, best_score, best.rank)
        return best.rank if best.has_valid_rank else None

    def rank_raw_venue(self, raw_venue: str | None, entries: Sequence[ReferenceVenueEntry]) -> str:
        """Rank a free-text venue string by way of its extracted acronyms.

        Each extracted acronym is tried in turn; the first that resolves to a
        valid rank wins. Falls back to running the cascade on the raw string.
        """
        if not raw_venue or is_denylisted_venue(raw_venue):
            return NOT_AVAILABLE
        for acronym in extract_acronyms(raw_venue):
            rank = self.find_rank(acronym, entries)
            if rank in VALID_RANKS:
                self.logger.debug("Venue %r ranked %s via acronym %r", raw_venue, rank, acronym)
                return rank
        return self.find_rank(raw_venue, entries)
