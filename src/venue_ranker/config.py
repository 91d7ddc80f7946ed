"""Configuration dataclasses for the venue ranker."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class MatchingConfig:
    """Thresholds for venue and journal matching.

    Attributes:
        fuzzy_threshold: Minimum similarity for fuzzy acceptance (CORE and SJR)
        disambiguation_threshold: Minimum title similarity when an acronym
            matches several CORE rows
        min_substring_length: Reference titles must be longer than this to be
            used for substring containment
        min_fuzzy_length: Minimum length of both strings for the fuzzy stage
        sjr_immediate_accept: Fuzzy score that ends the SJR search at once
        sjr_candidate_floor: Fuzzy score needed to be kept as an SJR candidate
        sjr_start_year: First year covered by the SJR tables
        min_page_count: Papers with fewer known pages are not ranked
    """

    fuzzy_threshold: float = 0.90
    disambiguation_threshold: float = 0.85
    min_substring_length: int = 5
    min_fuzzy_length: int = 6
    sjr_immediate_accept: float = 0.98
    sjr_candidate_floor: float = 0.88
    sjr_start_year: int = 1999
    min_page_count: int = 6


@dataclass
class IdentityConfig:
    """Thresholds for DBLP author identity resolution.

    Attributes:
        min_name_similarity: Candidates below this are rejected without a fetch
        title_match_threshold: A sample title counts as found above this
        min_overlap_count: Matched sample titles required for acceptance
        min_composite_score: Minimum 2*name + overlap score for acceptance
        name_weight: Weight of the name similarity in the composite score
        overlap_weight: Weight of each matched title in the composite score
        sample_size: Number of profile titles used as evidence
        search_hits: Number of author-search hits requested
        hub_min_repeat: A base PID repeated more often than this is a hub
        max_hub_variants: Numbered variants synthesized for a hub
        enrichment_threshold: Title similarity for mapping records to DBLP papers
        enrichment_year_tolerance: Allowed year difference for that mapping
    """

    min_name_similarity: float = 0.65
    title_match_threshold: float = 0.85
    min_overlap_count: int = 2
    min_composite_score: float = 2.5
    name_weight: float = 2.0
    overlap_weight: float = 1.0
    sample_size: int = 7
    search_hits: int = 10
    hub_min_repeat: int = 3
    max_hub_variants: int = 10
    enrichment_threshold: float = 0.90
    enrichment_year_tolerance: int = 1


@dataclass
class HttpConfig:
    """Network settings.

    Attributes:
        timeout: Request timeout in seconds
        rate_limit: Requests per minute for the DBLP search/XML API
        sparql_rate_limit: Requests per minute for the DBLP SPARQL endpoint
        cache_path: Optional JSON response cache file
        user_agent: User-Agent header value
    """

    timeout: float = 20.0
    rate_limit: int = 30
    sparql_rate_limit: int = 20
    cache_path: str | None = None
    user_agent: str = "venue-ranker/0.3 (mailto:unknown@example.com)"


@dataclass
class RankerConfig:
    """Top-level configuration.

    Attributes:
        matching: Venue/journal matching thresholds
        identity: DBLP identity thresholds
        http: Network settings
        core_data_dir: Directory holding CORE_<partition>.json files
        sjr_data_dir: Directory holding scimago_<year>.csv files
        use_dblp: Whether to enrich records from DBLP
    """

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    core_data_dir: str = "data/core"
    sjr_data_dir: str = "data/sjr"
    use_dblp: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RankerConfig:
        """Create config from a dictionary (e.g., loaded from YAML)."""
        data = dict(data)
        matching = MatchingConfig(**(data.pop("matching", None) or {}))
        identity = IdentityConfig(**(data.pop("identity", None) or {}))
        http = HttpConfig(**(data.pop("http", None) or {}))
        return cls(matching=matching, identity=identity, http=http, **data)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary for serialization."""
        return {
            "matching": asdict(self.matching),
            "identity": asdict(self.identity),
            "http": asdict(self.http),
            "core_data_dir": self.core_data_dir,
            "sjr_data_dir": self.sjr_data_dir,
            "use_dblp": self.use_dblp,
        }


def load_config(path: str | Path | None) -> RankerConfig:
    """Load a RankerConfig from a YAML file; defaults when path is None.

    Raises:
        ValueError: If the file does not contain a YAML mapping
    """
    if path is None:
        return RankerConfig()
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return RankerConfig.from_dict(data)
