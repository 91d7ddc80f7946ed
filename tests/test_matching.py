"""Tests for venue_ranker.matching venue heuristics."""

from __future__ import annotations

import pytest

from venue_ranker.matching import (
    classify_venue,
    extract_acronyms,
    generate_acronym_from_title,
    has_denylisted_title,
    is_denylisted_venue,
    is_preprint_venue,
)


class TestIsDenylistedVenue:
    """Tests for is_denylisted_venue function."""

    @pytest.mark.parametrize(
        "venue",
        [
            "ICSE Companion",
            "Workshop on Machine Learning for Systems",
            "CHI Extended Abstracts",
            "ACM SIGCOMM Computer Communication Review",
            "Doctoral Symposium at FSE",
        ],
    )
    def test_denylisted(self, venue):
        assert is_denylisted_venue(venue)

    def test_regular_venue(self):
        assert not is_denylisted_venue("International Conference on Software Engineering")

    def test_any_of_several_texts(self):
        assert is_denylisted_venue(None, "ICSE", "ICSE Industry Track")

    def test_empty(self):
        assert not is_denylisted_venue(None, "")


class TestHasDenylistedTitle:
    """Tests for has_denylisted_title function."""

    def test_demo_title(self):
        assert has_denylisted_title("Demo: A Tool for Mining Repositories")

    def test_poster_title(self):
        assert has_denylisted_title("Poster: Faster Builds")

    def test_regular_title(self):
        assert not has_denylisted_title("Mining Software Repositories at Scale")

    def test_none(self):
        assert not has_denylisted_title(None)


class TestExtractAcronyms:
    """Tests for extract_acronyms function."""

    def test_parenthetical_with_edition(self):
        venue = "Proceedings of the 2019 ACM SIGSAC Conference on Computer and Communications Security (CCS '19)"
        result = extract_acronyms(venue)
        assert result[0] == "ccs"
        assert "acm" in result
        assert "sigsac" in result

    def test_parenthetical_attached_edition(self):
        assert extract_acronyms("International Conference on Software Engineering (ICSE'19)") == ["icse"]

    def test_camel_case(self):
        assert extract_acronyms("NeurIPS") == ["neurips"]

    def test_all_caps_with_year(self):
        assert extract_acronyms("ICML 2020") == ["icml"]

    def test_single_word_fallback(self):
        assert extract_acronyms("Nature") == ["nature"]

    def test_common_word_not_fallback(self):
        assert extract_acronyms("Workshop") == []

    def test_long_title_without_acronym(self):
        assert extract_acronyms("Journal of Machine Learning Research") == []

    def test_lowercase_and_unique(self):
        result = extract_acronyms("KDD (KDD)")
        assert result == ["kdd"]

    def test_empty(self):
        assert extract_acronyms("") == []
        assert extract_acronyms(None) == []


class TestGenerateAcronymFromTitle:
    """Tests for generate_acronym_from_title function."""

    def test_skips_lowercase_words(self):
        assert generate_acronym_from_title("International Conference on Machine Learning") == "ICML"

    def test_symposium(self):
        assert generate_acronym_from_title("Symposium on Operating Systems Principles") == "SOSP"

    def test_max_letters(self):
        title = "Alpha Beta Gamma Delta Epsilon Zeta Eta Theta Iota"
        assert generate_acronym_from_title(title) == "ABGDEZET"

    def test_too_few_letters(self):
        assert generate_acronym_from_title("machine learning") == ""
        assert generate_acronym_from_title("Nature") == ""


class TestClassifyVenue:
    """Tests for classify_venue function."""

    @pytest.mark.parametrize(
        "venue,expected",
        [
            ("IEEE Transactions on Software Engineering", "journal"),
            ("Journal of Systems and Software", "journal"),
            ("Proceedings of ICSE", "conference"),
            ("Symposium on Operating Systems Principles", "conference"),
            ("CoRR", "preprint"),
            ("arXiv preprint arXiv:2001.01234", "preprint"),
            ("Nature", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_classification(self, venue, expected):
        assert classify_venue(venue) == expected

    def test_is_preprint_venue(self):
        assert is_preprint_venue("CoRR abs/2001.01234")
        assert not is_preprint_venue("Corrosion Science")
