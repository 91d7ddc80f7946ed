"""DBLP client and author identity resolution.

The client wraps three DBLP services (author search, SPARQL endpoint, XML
person/stream records). Its methods never raise for HTTP outcomes: every call
returns a FetchResult whose status tells "not found" apart from "rate limited"
and "failed". IdentityResolver turns those variants into decisions, raising
DblpRateLimitError only when DBLP asks us to back off.
"""

from __future__ import annotations

import logging
import re
import threading
import xml.etree.ElementTree as ElementTree
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from venue_ranker.config import IdentityConfig
from venue_ranker.utils import (
    HttpClient,
    NetworkError,
    jaro_winkler,
    normalize_title_for_match,
    page_count_from_pages,
    parse_year,
)

DBLP_AUTHOR_SEARCH_URL = "https://dblp.org/search/author/api"
DBLP_SPARQL_URL = "https://sparql.dblp.org/sparql"
DBLP_PID_URL = "https://dblp.org/pid/"
DBLP_STREAM_URL = "https://dblp.org/streams/conf/{stream_id}.xml"

SPARQL_ACCEPT = "application/sparql-results+json"

_SPARQL_QUERY = """PREFIX dblp: <https://dblp.org/rdf/schema#>
SELECT ?title ?year
WHERE {{
    ?paper dblp:authoredBy <{author_uri}> .
    ?paper dblp:title ?title .
    OPTIONAL {{ ?paper dblp:yearOfPublication ?year . }}
}}
ORDER BY DESC(?year)"""

_HOMONYM_SUFFIX_RE = re.compile(r"\s\d{4}$")
_PID_PATTERNS = (
    re.compile(r"pid/([^/]+/[^.]+)", re.IGNORECASE),
    re.compile(r"pers/hd/[a-z0-9]/([^.]+)", re.IGNORECASE),
    re.compile(r"pid/([\w/-]+)\.html", re.IGNORECASE),
)
_HUB_VARIANT_RE = re.compile(r"^(.+)-(\d+)$")
_STREAM_RE = re.compile(r"^db/conf/[^/]+/([a-zA-Z][\w-]*?)(\d{4}.*)?\.html")
_ISSUE_ACRONYM_RE = re.compile(r"^[A-Za-z]{2,}$")

VENUE_TAGS = ("booktitle", "journal", "series", "school")
RECORD_KINDS = {"inproceedings": "conference", "article": "journal"}


class DblpRateLimitError(RuntimeError):
    """DBLP answered 429; the run should stop and be retried later."""


class FetchStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass
class FetchResult:
    """Outcome of one DBLP call: a status plus the items parsed on success."""

    status: FetchStatus
    items: list[Any] = field(default_factory=list)
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.OK


@dataclass(frozen=True)
class AuthorHit:
    name: str
    pid: str


@dataclass(frozen=True)
class DblpPaper:
    """A (title, year) pair used as identity evidence."""

    title: str
    year: int | None = None


@dataclass
class DblpPublication:
    """One record of a DBLP person page."""

    key: str
    title: str
    year: int | None = None
    pages: str | None = None
    venue: str | None = None
    kind: str = "other"
    acronym: str | None = None
    venue_full: str | None = None
    issue: str | None = None

    @property
    def page_count(self) -> int | None:
        return page_count_from_pages(self.pages)


# ------------- Helpers -------------


def extract_pid_from_url(url: str | None) -> str | None:
    """Extract a DBLP person identifier from a profile URL.

    'https://dblp.org/pid/12/3456' -> '12/3456'
    """
    if not url:
        return None
    for i, pattern in enumerate(_PID_PATTERNS):
        m = pattern.search(url)
        if m:
            return m.group(1).replace("=", "") if i == 1 else m.group(1)
    return None


def strip_homonym_suffix(name: str) -> str:
    """'Wei Wang 0012' -> 'Wei Wang'."""
    return _HOMONYM_SUFFIX_RE.sub("", (name or "").strip())


def _status_for(code: int) -> FetchStatus:
    if code == 200:
        return FetchStatus.OK
    if code == 429:
        return FetchStatus.RATE_LIMITED
    if code in (404, 410):
        return FetchStatus.NOT_FOUND
    return FetchStatus.FAILED


def _xml_text(el: ElementTree.Element | None) -> str:
    return "".join(el.itertext()).strip() if el is not None else ""


# ------------- Client -------------


class DblpClient:
    """Thin DBLP API client returning FetchResult variants."""

    def __init__(self, http: HttpClient, logger: logging.Logger | None = None) -> None:
        self.http = http
        self.logger = logger or logging.getLogger(__name__)
        self._stream_meta: dict[str, tuple[str | None, str | None] | None] = {}
        self._stream_lock = threading.Lock()

    def _get(
        self, url: str, params: dict[str, Any] | None = None, accept: str | None = None, service: str = "dblp"
    ) -> tuple[FetchStatus, Any]:
        try:
            resp = self.http._request("GET", url, params=params, accept=accept, service=service)
        except NetworkError as e:
            self.logger.debug("DBLP request failed %s: %s", url, e)
            return FetchStatus.FAILED, None
        status = _status_for(resp.status_code)
        if status is not FetchStatus.OK:
            self.logger.debug("DBLP %s returned HTTP %d", url, resp.status_code)
        return status, resp

    def search_authors(self, name: str, hits: int = 10) -> FetchResult:
        """Query the author search endpoint; items are AuthorHit objects."""
        params = {"q": name, "format": "json", "h": hits}
        status, resp = self._get(DBLP_AUTHOR_SEARCH_URL, params=params, accept="application/json")
        if status is not FetchStatus.OK:
            return FetchResult(status, detail=f"author search for {name!r}")
        try:
            data = resp.json()
        except ValueError:
            return FetchResult(FetchStatus.FAILED, detail="invalid JSON from author search")
        raw_hits = ((data.get("result") or {}).get("hits") or {}).get("hit") or []
        if isinstance(raw_hits, dict):
            raw_hits = [raw_hits]
        found = []
        for hit in raw_hits:
            info = hit.get("info") or {}
            pid = extract_pid_from_url(info.get("url"))
            author = info.get("author")
            if pid and isinstance(author, str):
                found.append(AuthorHit(name=author, pid=pid))
        return FetchResult(FetchStatus.OK, found)

    def fetch_titles_sparql(self, pid: str) -> FetchResult:
        """Titles and years authored by a PID, via the SPARQL endpoint."""
        query = _SPARQL_QUERY.format(author_uri=f"{DBLP_PID_URL}{pid}")
        params = {"query": query, "output": "json"}
        status, resp = self._get(DBLP_SPARQL_URL, params=params, accept=SPARQL_ACCEPT, service="dblp_sparql")
        if status is not FetchStatus.OK:
            return FetchResult(status, detail=f"SPARQL for {pid}")
        try:
            bindings = resp.json()["results"]["bindings"]
        except (ValueError, KeyError, TypeError):
            return FetchResult(FetchStatus.FAILED, detail="malformed SPARQL response")
        papers = []
        for b in bindings:
            title = (b.get("title") or {}).get("value")
            if title:
                papers.append(DblpPaper(title=title, year=parse_year((b.get("year") or {}).get("value"))))
        return FetchResult(FetchStatus.OK, papers)

    def fetch_publications(self, pid: str, with_streams: bool = True) -> FetchResult:
        """Full publication list of a PID from its XML person record.

        Args:
            pid: DBLP person identifier
            with_streams: Look up conference stream metadata (acronym, full title)

        Returns:
            FetchResult whose items are DblpPublication objects
        """
        status, resp = self._get(f"{DBLP_PID_URL}{pid}.xml", accept="application/xml")
        if status is not FetchStatus.OK:
            return FetchResult(status, detail=f"person record {pid}")
        try:
            root = ElementTree.fromstring(resp.text)
        except ElementTree.ParseError as e:
            self.logger.warning("DBLP XML parse error for %s: %s", pid, e)
            return FetchResult(FetchStatus.FAILED, detail="XML parse error")
        publications = []
        for r in root.findall("r"):
            for record in r:
                parsed = self._parse_record(record)
                if parsed is None:
                    continue
                pub, stream_id = parsed
                if stream_id and with_streams:
                    stream_status, meta = self.stream_metadata(stream_id)
                    if stream_status is FetchStatus.RATE_LIMITED:
                        return FetchResult(stream_status, detail=f"stream {stream_id}")
                    if meta:
                        pub.acronym, pub.venue_full = meta
                issue = pub.issue or ""
                if not pub.acronym and pub.venue and pub.venue.startswith("Proc. ACM"):
                    if _ISSUE_ACRONYM_RE.match(issue):
                        pub.acronym = issue
                publications.append(pub)
        return FetchResult(FetchStatus.OK, publications)

    @staticmethod
    def _parse_record(record: ElementTree.Element) -> tuple[DblpPublication, str | None] | None:
        key = record.get("key") or ""
        title = re.sub(r"\.$", "", _xml_text(record.find("title")))
        if not key or not title:
            return None
        venue = next((v for v in (_xml_text(record.find(tag)) for tag in VENUE_TAGS) if v), None)
        pub = DblpPublication(
            key=key,
            title=title,
            year=parse_year(_xml_text(record.find("year"))),
            pages=_xml_text(record.find("pages")) or None,
            venue=venue,
            kind=RECORD_KINDS.get(record.tag, "other"),
            issue=_xml_text(record.find("number")) or None,
        )
        url = _xml_text(record.find("url"))
        m = _STREAM_RE.match(url) if url else None
        return pub, (m.group(1) if m else None)

    def stream_metadata(self, stream_id: str) -> tuple[FetchStatus, tuple[str | None, str | None] | None]:
        """(acronym, full title) of a conference stream, memoized per stream id.

        Rate-limited lookups are not memoized.
        """
        with self._stream_lock:
            if stream_id in self._stream_meta:
                return FetchStatus.OK, self._stream_meta[stream_id]
        status, resp = self._get(DBLP_STREAM_URL.format(stream_id=stream_id), accept="application/xml")
        if status is FetchStatus.RATE_LIMITED:
            return status, None
        meta = None
        if status is FetchStatus.OK:
            try:
                conf = ElementTree.fromstring(resp.text).find("conf")
            except ElementTree.ParseError:
                conf = None
            if conf is not None:
                meta = (_xml_text(conf.find("acronym")) or None, _xml_text(conf.find("title")) or None)
        with self._stream_lock:
            return FetchStatus.OK, self._stream_meta.setdefault(stream_id, meta)

    def fetch_titles(self, pid: str) -> FetchResult:
        """Identity evidence for a PID: SPARQL first, XML person record as fallback.

        A rate-limited SPARQL call is returned as is; any other SPARQL failure
        or an empty answer falls back to the XML record.
        """
        result = self.fetch_titles_sparql(pid)
        if result.status is FetchStatus.RATE_LIMITED or (result.ok and result.items):
            return result
        self.logger.debug("SPARQL gave no titles for %s; trying XML record", pid)
        xml = self.fetch_publications(pid, with_streams=False)
        if not xml.ok:
            return xml
        return FetchResult(FetchStatus.OK, [DblpPaper(p.title, p.year) for p in xml.items])


# ------------- Identity Resolution -------------


class CandidateState(Enum):
    PENDING = "pending"
    SCORED = "scored"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class AuthorCandidate:
    identifier: str
    display_name: str
    name_similarity: float = 0.0
    publication_overlap_count: int = 0
    composite_score: float = 0.0
    state: CandidateState = CandidateState.PENDING
    reason: str = ""

    def reject(self, reason: str) -> None:
        self.state = CandidateState.REJECTED
        self.reason = reason


def composite_score(name_similarity: float, overlap_count: int, config: IdentityConfig | None = None) -> float:
    """Weighted identity evidence: 2 x name similarity + 1 per matched title by default."""
    cfg = config or IdentityConfig()
    return cfg.name_weight * name_similarity + cfg.overlap_weight * overlap_count


def detect_hub(hits: Sequence[AuthorHit], min_repeat: int) -> str | None:
    """Return the base PID shared by more than ``min_repeat`` numbered variants."""
    bases = Counter(m.group(1) for m in (_HUB_VARIANT_RE.match(h.pid) for h in hits) if m)
    if not bases:
        return None
    base, count = bases.most_common(1)[0]
    return base if count > min_repeat else None


class IdentityResolver:
    """Find an author's DBLP PID from a display name and sample titles.

    Candidates move PENDING -> SCORED -> ACCEPTED/REJECTED. A candidate whose
    publications cannot be fetched is rejected; a 429 anywhere aborts the
    resolution with DblpRateLimitError.
    """

    def __init__(
        self,
        client: DblpClient,
        config: IdentityConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.config = config or IdentityConfig()
        self.logger = logger or logging.getLogger(__name__)

    def generate_candidates(self, name: str) -> list[AuthorCandidate]:
        """Search DBLP for the name, expanding homonym hubs into numbered variants.

        Raises:
            DblpRateLimitError: If the search is rate limited
        """
        result = self.client.search_authors(name, hits=self.config.search_hits)
        if result.status is FetchStatus.RATE_LIMITED:
            raise DblpRateLimitError(f"DBLP rate limit during author search for {name!r}")
        if not result.ok:
            self.logger.warning("DBLP author search for %r failed (%s)", name, result.status.value)
            return []
        hits: list[AuthorHit] = result.items
        hub = detect_hub(hits, self.config.hub_min_repeat)
        if hub is None:
            return [AuthorCandidate(h.pid, h.name) for h in hits]

        hub_hits = [h for h in hits if _HUB_VARIANT_RE.match(h.pid) and h.pid.rsplit("-", 1)[0] == hub]
        hub_name = strip_homonym_suffix(hub_hits[0].name)
        self.logger.debug("Hub %s detected for %r; synthesizing %d variants", hub, name, self.config.max_hub_variants)
        candidates = [
            AuthorCandidate(f"{hub}-{i}", hub_name) for i in range(1, self.config.max_hub_variants + 1)
        ]
        seen = {c.identifier for c in candidates}
        for h in hits:
            if h not in hub_hits and h.pid not in seen:
                candidates.append(AuthorCandidate(h.pid, h.name))
                seen.add(h.pid)
        return candidates

    def score_candidate(self, candidate: AuthorCandidate, name: str, sample_titles: Sequence[str]) -> AuthorCandidate:
        """Score one candidate in place against the sample titles.

        Raises:
            DblpRateLimitError: If fetching the candidate's titles is rate limited
        """
        candidate.name_similarity = jaro_winkler(name.lower(), strip_homonym_suffix(candidate.display_name).lower())
        if candidate.name_similarity < self.config.min_name_similarity:
            candidate.reject(f"name similarity {candidate.name_similarity:.2f}")
            return candidate

        result = self.client.fetch_titles(candidate.identifier)
        if result.status is FetchStatus.RATE_LIMITED:
            raise DblpRateLimitError(f"DBLP rate limit while checking {candidate.identifier}")
        if not result.ok or not result.items:
            candidate.reject(f"no publications ({result.status.value})")
            return candidate

        dblp_titles = [normalize_title_for_match(p.title) for p in result.items]
        overlap = 0
        for title in sample_titles:
            norm = normalize_title_for_match(title)
            if any(jaro_winkler(norm, t) > self.config.title_match_threshold for t in dblp_titles):
                overlap += 1
        candidate.publication_overlap_count = overlap
        candidate.composite_score = composite_score(candidate.name_similarity, overlap, self.config)
        candidate.state = CandidateState.SCORED
        self.logger.debug(
            "Candidate %s (%s): name=%.2f overlap=%d score=%.2f",
            candidate.identifier,
            candidate.display_name,
            candidate.name_similarity,
            overlap,
            candidate.composite_score,
        )
        return candidate

    def select(self, candidates: Sequence[AuthorCandidate]) -> AuthorCandidate | None:
        """Accept the best scored candidate if its evidence is strong enough."""
        best: AuthorCandidate | None = None
        for c in candidates:
            if c.state is not CandidateState.SCORED:
                continue
            if c.publication_overlap_count < self.config.min_overlap_count:
                c.reject(f"overlap {c.publication_overlap_count}")
                continue
            if best is None or c.composite_score > best.composite_score:
                best = c
        for c in candidates:
            if c.state is CandidateState.SCORED and c is not best:
                c.reject("outscored")
        if best is None:
            return None
        if best.composite_score < self.config.min_composite_score:
            best.reject(f"score {best.composite_score:.2f}")
            return None
        best.state = CandidateState.ACCEPTED
        return best

    def resolve(self, name: str, sample_titles: Sequence[str]) -> AuthorCandidate | None:
        """Resolve a sanitized author name to a DBLP candidate, or None.

        Args:
            name: Sanitized author display name
            sample_titles: A few of the author's publication titles

        Returns:
            The accepted AuthorCandidate, or None on weak evidence

        Raises:
            DblpRateLimitError: If DBLP rate limits any call
        """
        samples = [t for t in sample_titles if t][: self.config.sample_size]
        if not name or len(samples) < self.config.min_overlap_count:
            self.logger.info("Not enough evidence to resolve %r on DBLP", name)
            return None
        candidates = self.generate_candidates(name)
        for candidate in candidates:
            self.score_candidate(candidate, name, samples)
        accepted = self.select(candidates)
        if accepted:
            self.logger.info(
                "DBLP match for %r -> %s (score %.2f)", name, accepted.identifier, accepted.composite_score
            )
        else:
            self.logger.info("No DBLP match for %r", name)
        return accepted
