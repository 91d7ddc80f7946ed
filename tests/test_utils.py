"""Tests for venue_ranker.utils shared helpers."""

from __future__ import annotations

import json

import httpx
import pytest

from venue_ranker import utils
from venue_ranker.utils import (
    DiskCache,
    HttpClient,
    NetworkError,
    RateLimiter,
    RateLimiterRegistry,
    clean_text_for_comparison,
    jaro_winkler,
    latex_to_plain,
    normalize_title_for_match,
    page_count_from_pages,
    parse_year,
    safe_lower,
    sanitize_author_name,
    significant_tokens,
    strip_diacritics,
    strip_org_prefixes,
)


class TestSafeLower:
    """Tests for safe_lower function."""

    def test_normal_string(self):
        assert safe_lower("  Hello World  ") == "hello world"

    def test_none(self):
        assert safe_lower(None) == ""


class TestLatexToPlain:
    """Tests for latex_to_plain function."""

    def test_braces_and_commands(self):
        assert latex_to_plain(r"{BERT}: \textit{Deep} Models") == "BERT: Models"

    def test_math_removed(self):
        assert latex_to_plain("Learning $O(n)$ Sorts") == "Learning Sorts"

    def test_empty(self):
        assert latex_to_plain(None) == ""


class TestNormalizeTitleForMatch:
    """Tests for normalize_title_for_match function."""

    def test_diacritics_and_punctuation(self):
        assert normalize_title_for_match("Café: A Study!") == "cafe a study"

    def test_strip_diacritics(self):
        assert strip_diacritics("Müller") == "Muller"


class TestCleanTextForComparison:
    """Tests for clean_text_for_comparison function."""

    def test_abbreviations_expanded(self):
        result = clean_text_for_comparison("Proc. of the Int'l Conf. on Data & Knowledge")
        assert result == "proceedings of the international conference on data and knowledge"

    def test_abbreviations_are_whole_word(self):
        assert clean_text_for_comparison("Symposium on Transformers") == "symposium on transformers"

    def test_venue_year_noise_removed(self):
        result = clean_text_for_comparison("2019 IEEE Symposium on Security and Privacy (2019)", is_venue=True)
        assert result == "ieee symposium on security and privacy"

    def test_venue_trailing_comma_year(self):
        assert clean_text_for_comparison("ICSE, 2022", is_venue=True) == "icse"

    def test_venue_leading_ordinal(self):
        assert clean_text_for_comparison("13th Workshop on Things", is_venue=True) == "workshop on things"

    def test_non_venue_keeps_year(self):
        assert clean_text_for_comparison("2019 Report") == "2019 report"

    def test_spaced_dash_collapsed(self):
        assert clean_text_for_comparison("Foo - Bar") == "foo bar"

    def test_empty(self):
        assert clean_text_for_comparison("") == ""
        assert clean_text_for_comparison(None) == ""

    def test_idempotent(self):
        once = clean_text_for_comparison("Proc. IEEE Int'l Conf. on Robotics & Automation")
        assert clean_text_for_comparison(once) == once


class TestStripOrgPrefixes:
    """Tests for strip_org_prefixes function."""

    def test_compound_prefix(self):
        assert strip_org_prefixes("acm sigplan international conference on x") == "conference on x"

    def test_slash_prefix(self):
        assert strip_org_prefixes("ieee/acm conference on y") == "conference on y"

    def test_prefix_must_be_whole_word(self):
        assert strip_org_prefixes("acmes conference") == "acmes conference"

    def test_prefix_only(self):
        assert strip_org_prefixes("ieee") == ""

    def test_no_prefix(self):
        assert strip_org_prefixes("conference on z") == "conference on z"


class TestSignificantTokens:
    """Tests for significant_tokens function."""

    def test_drops_stop_words_and_short_tokens(self):
        assert significant_tokens("journal of ai and the web") == {"journal", "web"}


class TestJaroWinkler:
    """Tests for jaro_winkler function."""

    def test_identical(self):
        assert jaro_winkler("icse", "icse") == 1.0

    def test_empty(self):
        assert jaro_winkler("", "icse") == 0.0
        assert jaro_winkler("icse", None) == 0.0

    def test_classic_pair(self):
        assert jaro_winkler("martha", "marhta") == pytest.approx(0.961, abs=1e-3)

    def test_symmetric(self):
        assert jaro_winkler("dwayne", "duane") == pytest.approx(jaro_winkler("duane", "dwayne"))

    def test_range(self):
        score = jaro_winkler("conference on data", "symposium on systems")
        assert 0.0 <= score <= 1.0


class TestSanitizeAuthorName:
    """Tests for sanitize_author_name function."""

    def test_honorifics_and_parenthetical(self):
        assert sanitize_author_name("Dr. Jane Doe, PhD (she/her)") == "Jane Doe"

    def test_prof_prefix(self):
        assert sanitize_author_name("Prof. John Smith") == "John Smith"

    def test_professor_prefix(self):
        assert sanitize_author_name("Professor Ada Lovelace") == "Ada Lovelace"

    def test_dotted_phd_suffix(self):
        assert sanitize_author_name("Alan Turing Ph.D.") == "Alan Turing"

    def test_name_starting_with_dr_kept(self):
        assert sanitize_author_name("Drew Smith") == "Drew Smith"

    def test_none(self):
        assert sanitize_author_name(None) == ""


class TestPageCountFromPages:
    """Tests for page_count_from_pages function."""

    def test_simple_range(self):
        assert page_count_from_pages("101-112") == 12

    def test_double_dash(self):
        assert page_count_from_pages("101--112") == 12

    def test_en_dash(self):
        assert page_count_from_pages("1–4") == 4

    def test_article_prefixed_range(self):
        assert page_count_from_pages("7:1-7:24") == 24

    def test_single_page(self):
        assert page_count_from_pages("5") is None

    def test_article_number(self):
        assert page_count_from_pages("article 12") is None

    def test_roman_numerals(self):
        assert page_count_from_pages("xii") is None

    def test_reversed_range(self):
        assert page_count_from_pages("112-101") is None

    def test_empty(self):
        assert page_count_from_pages("") is None
        assert page_count_from_pages(None) is None


class TestParseYear:
    """Tests for parse_year function."""

    def test_int(self):
        assert parse_year(2020) == 2020

    def test_string(self):
        assert parse_year("2019") == 2019

    def test_date_string(self):
        assert parse_year("2019/05/01") == 2019

    def test_invalid(self):
        assert parse_year("n.d.") is None
        assert parse_year(None) is None
        assert parse_year(True) is None


# ------------- Infrastructure -------------


class TestRateLimiterRegistry:
    """Tests for RateLimiterRegistry class."""

    def test_default_limits(self):
        registry = RateLimiterRegistry()
        assert registry.get("dblp").req_per_min == 30
        assert registry.get("dblp_sparql").req_per_min == 20

    def test_unknown_service_defaults(self):
        assert RateLimiterRegistry().get("other").req_per_min == 30

    def test_custom_limits(self):
        registry = RateLimiterRegistry({"dblp": 5})
        assert registry.get("dblp").req_per_min == 5

    def test_same_limiter_returned(self):
        registry = RateLimiterRegistry()
        assert registry.get("dblp") is registry.get("dblp")

    def test_wait_under_limit_does_not_sleep(self, monkeypatch):
        def fail_sleep(_):
            raise AssertionError("should not sleep")

        monkeypatch.setattr(utils.time, "sleep", fail_sleep)
        limiter = RateLimiter(10)
        for _ in range(5):
            limiter.wait()
        assert len(limiter.timestamps) == 5


class TestDiskCache:
    """Tests for DiskCache class."""

    def test_persists_to_disk(self, tmp_path):
        path = tmp_path / "cache.json"
        cache = DiskCache(str(path))
        cache.set("k", {"v": 1})
        assert json.loads(path.read_text(encoding="utf-8")) == {"k": {"v": 1}}
        assert DiskCache(str(path)).get("k") == {"v": 1}

    def test_disabled_without_path(self):
        cache = DiskCache(None)
        cache.set("k", 1)
        assert cache.get("k") is None

    def test_corrupt_file_ignored(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("{not json", encoding="utf-8")
        assert DiskCache(str(path)).data == {}


def make_http(handler, cache=None, max_attempts=3) -> HttpClient:
    http = HttpClient(timeout=5, user_agent="venue-ranker-tests", rate_limiter=RateLimiter(1000), cache=cache)
    http.max_attempts = max_attempts
    http.client = httpx.Client(transport=httpx.MockTransport(handler))
    return http


class TestHttpClient:
    """Tests for HttpClient retry and caching behavior."""

    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        monkeypatch.setattr(utils.time, "sleep", lambda _: None)

    def test_success(self):
        http = make_http(lambda request: httpx.Response(200, json={"ok": True}))
        assert http.get("https://example.org/api").json() == {"ok": True}

    def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503) if len(calls) < 2 else httpx.Response(200, json={})

        http = make_http(handler)
        assert http.get("https://example.org/api").status_code == 200
        assert len(calls) == 2

    def test_rate_limit_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429)

        http = make_http(handler)
        assert http.get("https://example.org/api").status_code == 429
        assert len(calls) == 1

    def test_gives_up_after_max_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502)

        http = make_http(handler, max_attempts=3)
        with pytest.raises(NetworkError):
            http.get("https://example.org/api")
        assert len(calls) == 3

    def test_transport_error_raises_network_error(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        with pytest.raises(NetworkError):
            make_http(handler, max_attempts=2).get("https://example.org/api")

    def test_accept_header_sent(self):
        seen = {}

        def handler(request):
            seen["accept"] = request.headers.get("Accept")
            return httpx.Response(200, json={})

        make_http(handler).get("https://example.org/api", accept="application/sparql-results+json")
        assert seen["accept"] == "application/sparql-results+json"

    def test_json_responses_cached(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"hits": 1})

        http = make_http(handler, cache=DiskCache(str(tmp_path / "cache.json")))
        http.get("https://example.org/api", params={"q": "x"})
        second = http.get("https://example.org/api", params={"q": "x"})
        assert len(calls) == 1
        assert second.headers.get("X-From-Cache") == "1"
        assert second.json() == {"hits": 1}
