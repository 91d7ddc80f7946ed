"""Venue Ranker - Rank scholarly publications by venue quality.

This package provides tools for:
- Resolving conference venues to CORE ranks (A*, A, B, C)
- Resolving journals to SJR quartiles (Q1-Q4)
- Finding an author's DBLP record from a display name and sample titles
- Ranking a whole publication list with per-run de-duplication

Example usage:
    from venue_ranker import CoreDataStore, CoreRankResolver

    store = CoreDataStore("data/core")
    resolver = CoreRankResolver()
    rank = resolver.find_rank("ICSE", store.entries_for_year(2022))
"""

from venue_ranker._version import __version__

# Configuration
from venue_ranker.config import HttpConfig, IdentityConfig, MatchingConfig, RankerConfig, load_config

# CORE conference ranks
from venue_ranker.core import (
    CORE_PARTITIONS,
    VALID_RANKS,
    CoreDataStore,
    CorePartition,
    CoreRankResolver,
    ReferenceVenueEntry,
    partition_for_year,
)

# DBLP identity resolution
from venue_ranker.dblp import (
    AuthorCandidate,
    CandidateState,
    DblpClient,
    DblpPublication,
    DblpRateLimitError,
    FetchResult,
    FetchStatus,
    IdentityResolver,
)

# Venue heuristics
from venue_ranker.matching import classify_venue, extract_acronyms, generate_acronym_from_title

# Profile ranking
from venue_ranker.ranker import (
    BibLoader,
    MatchResult,
    ProfileRanker,
    PublicationRecord,
    enrich_records,
    load_records,
)

# SJR journal quartiles
from venue_ranker.sjr import SjrDataset, SjrJournalEntry, SjrLookupCache, SjrQuartileResolver, SjrResult

# Shared utilities
from venue_ranker.utils import (
    DiskCache,
    HttpClient,
    NetworkError,
    RateLimiter,
    RateLimiterRegistry,
    clean_text_for_comparison,
    jaro_winkler,
    sanitize_author_name,
    strip_org_prefixes,
)

__all__ = [
    "__version__",
    # Configuration
    "HttpConfig",
    "IdentityConfig",
    "MatchingConfig",
    "RankerConfig",
    "load_config",
    # CORE
    "CORE_PARTITIONS",
    "VALID_RANKS",
    "CoreDataStore",
    "CorePartition",
    "CoreRankResolver",
    "ReferenceVenueEntry",
    "partition_for_year",
    # DBLP
    "AuthorCandidate",
    "CandidateState",
    "DblpClient",
    "DblpPublication",
    "DblpRateLimitError",
    "FetchResult",
    "FetchStatus",
    "IdentityResolver",
    # Heuristics
    "classify_venue",
    "extract_acronyms",
    "generate_acronym_from_title",
    # Ranking
    "BibLoader",
    "MatchResult",
    "ProfileRanker",
    "PublicationRecord",
    "enrich_records",
    "load_records",
    # SJR
    "SjrDataset",
    "SjrJournalEntry",
    "SjrLookupCache",
    "SjrQuartileResolver",
    "SjrResult",
    # Utilities
    "DiskCache",
    "HttpClient",
    "NetworkError",
    "RateLimiter",
    "RateLimiterRegistry",
    "clean_text_for_comparison",
    "jaro_winkler",
    "sanitize_author_name",
    "strip_org_prefixes",
]
