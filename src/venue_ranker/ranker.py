"""Rank a publication list by venue quality.

Pipeline per run:
  1) Load publication records (BibTeX via bibtexparser, or JSON).
  2) Optionally resolve the author on DBLP and enrich records with DBLP venue
     data (venue, acronym, full conference title, pages, key, record type).
  3) Route each record to CORE (conferences) or SJR (journals) and resolve a
     rank, in source order, skipping duplicates and short papers.
  4) Write a JSONL report and log a per-rank summary.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Sequence

import bibtexparser
from bibtexparser.bparser import BibTexParser

from venue_ranker.config import IdentityConfig, MatchingConfig, RankerConfig, load_config
from venue_ranker.core import VALID_RANKS, CoreDataStore, CoreRankResolver
from venue_ranker.dblp import DblpClient, DblpPublication, DblpRateLimitError, FetchStatus, IdentityResolver
from venue_ranker.matching import classify_venue, has_denylisted_title, is_denylisted_venue, is_preprint_venue
from venue_ranker.sjr import STATUS_ERROR, STATUS_SUCCESS, SjrDataset, SjrQuartileResolver
from venue_ranker.utils import (
    DiskCache,
    HttpClient,
    RateLimiterRegistry,
    clean_text_for_comparison,
    jaro_winkler,
    latex_to_plain,
    normalize_title_for_match,
    page_count_from_pages,
    parse_year,
    safe_lower,
    sanitize_author_name,
)

SYSTEM_CORE = "CORE"
SYSTEM_SJR = "SJR"
SYSTEM_UNKNOWN = "UNKNOWN"
NOT_AVAILABLE = "N/A"

RANK_ORDER = ("A*", "A", "B", "C", "Q1", "Q2", "Q3", "Q4", NOT_AVAILABLE)

EXIT_OK = 0
EXIT_INVALID_ARGS = 2
EXIT_RATE_LIMITED = 4


# ------------- Records -------------


@dataclass
class PublicationRecord:
    """One publication as harvested from a profile; every field but the title is optional."""

    title: str
    raw_venue: str | None = None
    acronym: str | None = None
    full_venue_title: str | None = None
    year: int | None = None
    page_count: int | None = None
    external_key: str | None = None
    kind: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PublicationRecord:
        """Build a record from loosely typed data; malformed fields become None."""
        page_count = data.get("page_count")
        if isinstance(page_count, str):
            page_count = int(page_count) if page_count.strip().isdecimal() else page_count_from_pages(page_count)
        elif not isinstance(page_count, int) or isinstance(page_count, bool):
            page_count = None

        def text(key: str) -> str | None:
            value = data.get(key)
            return (value.strip() or None) if isinstance(value, str) else None

        return cls(
            title=text("title") or "",
            raw_venue=text("raw_venue"),
            acronym=text("acronym"),
            full_venue_title=text("full_venue_title"),
            year=parse_year(data.get("year")),
            page_count=page_count,
            external_key=text("external_key"),
            kind=text("kind"),
        )


@dataclass(frozen=True)
class MatchResult:
    rank: str
    system: str
    reason: str = ""

    @property
    def is_ranked(self) -> bool:
        return self.rank != NOT_AVAILABLE


# ------------- IO Helpers -------------


class BibLoader:
    """Loads BibTeX files into PublicationRecords."""

    ENTRY_KINDS = {"inproceedings": "conference", "conference": "conference", "article": "journal"}

    @staticmethod
    def _parser() -> BibTexParser:
        # A BibTexParser keeps the entries of every string it has parsed
        parser = BibTexParser(common_strings=True)
        parser.customization = None
        return parser

    def load_file(self, path: str) -> list[PublicationRecord]:
        with open(path, encoding="utf-8") as f:
            db = bibtexparser.load(f, parser=self._parser())
        return [self.entry_to_record(e) for e in db.entries]

    def loads(self, text: str) -> list[PublicationRecord]:
        db = bibtexparser.loads(text, parser=self._parser())
        return [self.entry_to_record(e) for e in db.entries]

    @classmethod
    def entry_to_record(cls, entry: dict[str, Any]) -> PublicationRecord:
        venue = latex_to_plain(entry.get("booktitle") or entry.get("journal") or "") or None
        return PublicationRecord(
            title=latex_to_plain(entry.get("title") or ""),
            raw_venue=venue,
            acronym=(entry.get("acronym") or "").strip() or None,
            year=parse_year(entry.get("year")),
            page_count=page_count_from_pages(entry.get("pages")),
            external_key=entry.get("ID"),
            kind=cls.ENTRY_KINDS.get(safe_lower(entry.get("ENTRYTYPE"))),
        )


def load_json_records(path: str) -> list[PublicationRecord]:
    """Load records from a JSON list of objects using PublicationRecord field names.

    Raises:
        ValueError: If the file does not hold a JSON list
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of publication objects")
    return [PublicationRecord.from_dict(item) for item in data if isinstance(item, dict)]


def load_records(path: str, loader: BibLoader | None = None) -> list[PublicationRecord]:
    if os.path.splitext(path)[1].lower() == ".json":
        return load_json_records(path)
    return (loader or BibLoader()).load_file(path)


def write_report_line(fh, record: PublicationRecord, result: MatchResult) -> None:
    line = {
        "title": record.title,
        "venue": record.raw_venue,
        "year": record.year,
        "rank": result.rank,
        "system": result.system,
        "reason": result.reason,
    }
    fh.write(json.dumps(line, ensure_ascii=False) + "\n")


# ------------- DBLP Enrichment -------------


def find_dblp_match(
    record: PublicationRecord, publications: Sequence[DblpPublication], config: IdentityConfig
) -> DblpPublication | None:
    """First DBLP publication whose title and year agree with the record."""
    title = clean_text_for_comparison(record.title)
    if not title:
        return None
    for pub in publications:
        if jaro_winkler(title, clean_text_for_comparison(pub.title)) <= config.enrichment_threshold:
            continue
        if record.year is not None and pub.year is not None:
            if abs(record.year - pub.year) > config.enrichment_year_tolerance:
                continue
        return pub
    return None


def enrich_records(
    records: Sequence[PublicationRecord],
    publications: Sequence[DblpPublication],
    config: IdentityConfig | None = None,
    logger: logging.Logger | None = None,
) -> list[PublicationRecord]:
    """Return records with venue data taken from their matching DBLP publications."""
    cfg = config or IdentityConfig()
    enriched = []
    mapped = 0
    for record in records:
        pub = find_dblp_match(record, publications, cfg)
        if pub is None:
            enriched.append(record)
            continue
        mapped += 1
        enriched.append(
            replace(
                record,
                raw_venue=pub.venue or record.raw_venue,
                acronym=pub.acronym or record.acronym,
                full_venue_title=pub.venue_full or record.full_venue_title,
                year=pub.year or record.year,
                page_count=pub.page_count if pub.page_count is not None else record.page_count,
                external_key=pub.key,
                kind=pub.kind if pub.kind != "other" else record.kind,
            )
        )
    if logger:
        logger.info("Mapped %d of %d publications to DBLP records", mapped, len(records))
    return enriched


# ------------- Ranking -------------


@dataclass
class RankingSession:
    """Per-run de-duplication state, mutated in source order."""

    used_keys: set[str] = field(default_factory=set)
    ranked_titles: set[str] = field(default_factory=set)


# DBLP files ACM conference proceedings journals (PACM) as articles; their
# issue label (CSCW, OOPSLA, ...) is the conference acronym.
PACM_VENUE_PREFIXES = ("proc. acm", "proceedings of the acm")


def route_record(record: PublicationRecord) -> str | None:
    """Decide which ranking system applies: SYSTEM_CORE, SYSTEM_SJR or None."""
    venue = record.raw_venue or record.full_venue_title
    if not venue and not record.acronym:
        return None
    if is_preprint_venue(venue):
        return None
    if record.acronym and safe_lower(record.raw_venue).startswith(PACM_VENUE_PREFIXES):
        return SYSTEM_CORE
    kind = record.kind
    if kind not in ("conference", "journal"):
        kind = classify_venue(venue)
        if kind not in ("conference", "journal") and record.acronym:
            kind = "conference"
    if kind == "conference":
        return SYSTEM_CORE
    if kind == "journal":
        return SYSTEM_SJR
    return None


class ProfileRanker:
    """Ranks the publications of one profile."""

    def __init__(
        self,
        core_store: CoreDataStore,
        sjr_resolver: SjrQuartileResolver,
        core_resolver: CoreRankResolver | None = None,
        config: MatchingConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.core_store = core_store
        self.sjr_resolver = sjr_resolver
        self.config = config or MatchingConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.core_resolver = core_resolver or CoreRankResolver(self.config, self.logger)

    def rank_record(self, record: PublicationRecord, session: RankingSession) -> MatchResult:
        """Rank one record and update the session when a rank is found."""
        system = route_record(record)
        norm_title = normalize_title_for_match(record.title)

        if norm_title and norm_title in session.ranked_titles:
            return MatchResult(NOT_AVAILABLE, system or SYSTEM_UNKNOWN, "duplicate title")
        if has_denylisted_title(record.title):
            return MatchResult(NOT_AVAILABLE, system or SYSTEM_UNKNOWN, "non-archival title")
        if record.external_key and record.external_key in session.used_keys:
            return MatchResult(NOT_AVAILABLE, system or SYSTEM_UNKNOWN, "duplicate record")
        if record.page_count is not None and record.page_count < self.config.min_page_count:
            return MatchResult(NOT_AVAILABLE, system or SYSTEM_UNKNOWN, f"{record.page_count} pages")

        if system == SYSTEM_CORE:
            result = self._rank_conference(record)
        elif system == SYSTEM_SJR:
            result = self._rank_journal(record)
        else:
            return MatchResult(NOT_AVAILABLE, SYSTEM_UNKNOWN, "no ranking system")

        if result.is_ranked:
            if record.external_key:
                session.used_keys.add(record.external_key)
            if norm_title:
                session.ranked_titles.add(norm_title)
        return result

    def _rank_conference(self, record: PublicationRecord) -> MatchResult:
        if is_denylisted_venue(record.raw_venue, record.full_venue_title):
            return MatchResult(NOT_AVAILABLE, SYSTEM_CORE, "denylisted venue")
        entries = self.core_store.entries_for_year(record.year)
        if not entries:
            return MatchResult(NOT_AVAILABLE, SYSTEM_CORE, "no CORE data")
        key = record.acronym or record.raw_venue
        rank = self.core_resolver.find_rank(key, entries, record.full_venue_title)
        if rank not in VALID_RANKS and record.raw_venue:
            rank = self.core_resolver.rank_raw_venue(record.raw_venue, entries)
        if rank in VALID_RANKS:
            return MatchResult(rank, SYSTEM_CORE, f"matched {key!r}")
        return MatchResult(NOT_AVAILABLE, SYSTEM_CORE, "no CORE match")

    def _rank_journal(self, record: PublicationRecord) -> MatchResult:
        name = record.full_venue_title or record.raw_venue
        outcome = self.sjr_resolver.resolve(name, record.year)
        if outcome.status == STATUS_SUCCESS:
            return MatchResult(outcome.quartile or NOT_AVAILABLE, SYSTEM_SJR, f"SJR {outcome.year}")
        if outcome.status == STATUS_ERROR:
            return MatchResult(NOT_AVAILABLE, SYSTEM_SJR, "no SJR data")
        return MatchResult(NOT_AVAILABLE, SYSTEM_SJR, "no SJR match")

    def rank_all(self, records: Iterable[PublicationRecord]) -> list[tuple[PublicationRecord, MatchResult]]:
        """Rank records sequentially in source order with a fresh session."""
        session = RankingSession()
        return [(record, self.rank_record(record, session)) for record in records]


def resolve_dblp_publications(
    client: DblpClient,
    identity: IdentityResolver,
    records: Sequence[PublicationRecord],
    author: str | None = None,
    pid: str | None = None,
    logger: logging.Logger | None = None,
) -> list[DblpPublication]:
    """Find the author's DBLP record and fetch its publications.

    Uses ``pid`` directly when given, otherwise resolves ``author`` with the
    record titles as evidence. Returns an empty list when no identity is found.

    Raises:
        DblpRateLimitError: If DBLP rate limits any call
    """
    log = logger or logging.getLogger(__name__)
    if not pid:
        name = sanitize_author_name(author)
        if not name:
            return []
        accepted = identity.resolve(name, [r.title for r in records if r.title])
        if accepted is None:
            return []
        pid = accepted.identifier
    result = client.fetch_publications(pid)
    if result.status is FetchStatus.RATE_LIMITED:
        raise DblpRateLimitError(f"DBLP rate limit while fetching publications of {pid}")
    if not result.ok:
        log.warning("Could not fetch DBLP publications for %s (%s)", pid, result.status.value)
        return []
    log.info("Fetched %d DBLP publications for %s", len(result.items), pid)
    return result.items


def summarize(results: Sequence[tuple[PublicationRecord, MatchResult]], logger: logging.Logger) -> dict[str, int]:
    counts = Counter(result.rank for _, result in results)
    summary = {rank: counts.get(rank, 0) for rank in RANK_ORDER}
    summary["total"] = len(results)
    logger.info(
        "Summary: total=%d, %s",
        len(results),
        ", ".join(f"{rank}={summary[rank]}" for rank in RANK_ORDER),
    )
    return summary


# ------------- CLI -------------


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="venue-rank",
        description="Rank publications by CORE conference rank and SJR journal quartile.",
    )
    p.add_argument("inputs", nargs="+", help="Input .bib or .json files")
    p.add_argument("--author", help="Author display name to resolve on DBLP")
    p.add_argument("--dblp-pid", help="Known DBLP person id (skips identity resolution)")
    p.add_argument("--no-dblp", action="store_true", help="Do not query DBLP")
    p.add_argument("--core-dir", help="Directory with CORE_<year>.json files")
    p.add_argument("--sjr-dir", help="Directory with scimago_<year>.csv files")
    p.add_argument("--config", help="YAML configuration file")
    p.add_argument("--report", help="Write JSONL report here (default: stdout)")
    p.add_argument("--cache", help="On-disk cache file for DBLP responses")
    p.add_argument("--rate-limit", type=int, help="DBLP requests per minute")
    p.add_argument("--timeout", type=float, help="HTTP timeout in seconds")
    p.add_argument("--verbose", action="store_true", help="Verbose logging")
    return p


def init_logging(verbose: bool) -> logging.Logger:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    return logging.getLogger("venue_rank")


def apply_cli_overrides(config: RankerConfig, args: argparse.Namespace) -> RankerConfig:
    """CLI flags take precedence over configuration file values."""
    if args.core_dir:
        config.core_data_dir = args.core_dir
    if args.sjr_dir:
        config.sjr_data_dir = args.sjr_dir
    if args.cache:
        config.http.cache_path = args.cache
    if args.rate_limit:
        config.http.rate_limit = args.rate_limit
    if args.timeout:
        config.http.timeout = args.timeout
    if args.no_dblp:
        config.use_dblp = False
    return config


def setup_http_client(config: RankerConfig) -> HttpClient:
    """Create the HTTP client with per-service rate limiting and caching."""
    registry = RateLimiterRegistry({"dblp": config.http.rate_limit, "dblp_sparql": config.http.sparql_rate_limit})
    return HttpClient(
        timeout=config.http.timeout,
        user_agent=config.http.user_agent,
        rate_limiter=registry,
        cache=DiskCache(config.http.cache_path),
    )


def build_ranker(config: RankerConfig, logger: logging.Logger) -> ProfileRanker:
    core_store = CoreDataStore(config.core_data_dir, logger=logger)
    sjr_dataset = SjrDataset.load_directory(config.sjr_data_dir, logger=logger)
    sjr_resolver = SjrQuartileResolver(sjr_dataset, config.matching, logger=logger)
    return ProfileRanker(core_store, sjr_resolver, config=config.matching, logger=logger)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logger = init_logging(args.verbose)

    try:
        config = apply_cli_overrides(load_config(args.config), args)
    except Exception as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_INVALID_ARGS

    loader = BibLoader()
    records: list[PublicationRecord] = []
    try:
        for path in args.inputs:
            records.extend(load_records(path, loader))
    except Exception as e:
        logger.error("Failed to read inputs: %s", e)
        return EXIT_INVALID_ARGS

    ranker = build_ranker(config, logger)

    if config.use_dblp and (args.author or args.dblp_pid):
        http = setup_http_client(config)
        try:
            client = DblpClient(http, logger=logger)
            identity = IdentityResolver(client, config.identity, logger=logger)
            publications = resolve_dblp_publications(
                client, identity, records, author=args.author, pid=args.dblp_pid, logger=logger
            )
        except DblpRateLimitError as e:
            logger.warning("%s; try again later", e)
            return EXIT_RATE_LIMITED
        finally:
            http.close()
        records = enrich_records(records, publications, config.identity, logger)

    results = ranker.rank_all(records)

    fh = open(args.report, "w", encoding="utf-8") if args.report else sys.stdout
    try:
        for record, result in results:
            write_report_line(fh, record, result)
    finally:
        if fh is not sys.stdout:
            fh.close()

    summarize(results, logger)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
