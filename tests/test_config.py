"""Tests for venue_ranker.config."""

from __future__ import annotations

import pytest

from venue_ranker.config import HttpConfig, IdentityConfig, MatchingConfig, RankerConfig, load_config


class TestRankerConfig:
    """Tests for RankerConfig construction."""

    def test_defaults(self):
        config = RankerConfig()
        assert config.matching.fuzzy_threshold == 0.90
        assert config.matching.min_page_count == 6
        assert config.identity.min_composite_score == 2.5
        assert config.identity.sample_size == 7
        assert config.http.rate_limit == 30
        assert config.use_dblp is True

    def test_from_dict_nested(self):
        config = RankerConfig.from_dict(
            {"matching": {"fuzzy_threshold": 0.95}, "http": {"timeout": 5}, "core_data_dir": "/data/core"}
        )
        assert config.matching == MatchingConfig(fuzzy_threshold=0.95)
        assert config.identity == IdentityConfig()
        assert config.http.timeout == 5
        assert config.core_data_dir == "/data/core"

    def test_to_dict_round_trip(self):
        config = RankerConfig(http=HttpConfig(cache_path="cache.json"), use_dblp=False)
        assert RankerConfig.from_dict(config.to_dict()) == config

    def test_unknown_key(self):
        with pytest.raises(TypeError):
            RankerConfig.from_dict({"identity": {"no_such_field": 1}})


class TestLoadConfig:
    """Tests for load_config function."""

    def test_none_gives_defaults(self):
        assert load_config(None) == RankerConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("identity:\n  min_overlap_count: 3\nsjr_data_dir: sjr\n", encoding="utf-8")
        config = load_config(path)
        assert config.identity.min_overlap_count == 3
        assert config.sjr_data_dir == "sjr"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == RankerConfig()

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path)
