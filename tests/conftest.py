"""Shared fixtures for venue_ranker tests."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import httpx
import pytest

from venue_ranker import (
    CoreDataStore,
    CoreRankResolver,
    HttpClient,
    PublicationRecord,
    ReferenceVenueEntry,
    SjrDataset,
    SjrQuartileResolver,
)


@pytest.fixture
def logger():
    """Create a test logger."""
    return logging.getLogger("test")


# ------------- CORE Fixtures -------------


@pytest.fixture
def core_entries() -> list[ReferenceVenueEntry]:
    """A small CORE partition with one ambiguous acronym."""
    return [
        ReferenceVenueEntry("International Conference on Software Engineering", "ICSE", "A*"),
        ReferenceVenueEntry("Symposium on Operating Systems Principles", "SOSP", "A*"),
        ReferenceVenueEntry("International Conference on Foo Bar", "FOOBAR", "B"),
        ReferenceVenueEntry("Conference on Data", "CD", "C"),
        ReferenceVenueEntry("Conference on Data Engineering", "ICDE", "A"),
        ReferenceVenueEntry("Title A", "TA", "B"),
        ReferenceVenueEntry("Title B", "TA", "A*"),
        ReferenceVenueEntry("Australasian Database Conference", "ADC", "N/A"),
    ]


@pytest.fixture
def core_resolver() -> CoreRankResolver:
    return CoreRankResolver()


@pytest.fixture
def core_data_dir(tmp_path):
    """Directory with a CORE_2023.json and a CORE_2021.json in the published dump layout."""
    recent_title = "International Conference on Advanced Communications and Computation"
    rows_2023 = [
        {recent_title: "International Conference on Software Engineering", "INFOCOMP": "ICSE", "rank": "A*"},
        {recent_title: "Symposium on Operating Systems Principles", "INFOCOMP": "SOSP", "rank": "A*"},
    ]
    rows_2021 = [
        {recent_title: "International Conference on Software Engineering", "INFOCOMP": "ICSE", "rank": "A"},
    ]
    (tmp_path / "CORE_2023.json").write_text(json.dumps(rows_2023), encoding="utf-8")
    (tmp_path / "CORE_2021.json").write_text(json.dumps(rows_2021), encoding="utf-8")
    return tmp_path


@pytest.fixture
def core_store(core_data_dir, logger) -> CoreDataStore:
    return CoreDataStore(str(core_data_dir), logger=logger)


# ------------- SJR Fixtures -------------


@pytest.fixture
def sjr_dataset() -> SjrDataset:
    return SjrDataset.from_rows(
        [
            ("IEEE Transactions on Software Engineering", 2018, "Q2"),
            ("IEEE Transactions on Software Engineering", 2020, "Q1"),
            ("Journal of Systems and Software", 2019, "Q1"),
            ("Journal of Systems and Software", 2021, "Q2"),
        ]
    )


@pytest.fixture
def sjr_resolver(sjr_dataset) -> SjrQuartileResolver:
    return SjrQuartileResolver(sjr_dataset)


# ------------- Record Fixtures -------------


@pytest.fixture
def make_record():
    """Factory fixture for creating publication records."""

    def _make_record(**kwargs) -> PublicationRecord:
        data: dict[str, Any] = {"title": "Example Title", "year": 2022, "page_count": 12}
        data.update(kwargs)
        return PublicationRecord(**data)

    return _make_record


# ------------- HTTP Fakes -------------


class FakeHttpClient(HttpClient):
    """Fake HTTP client for testing without network calls.

    ``handler(url, params)`` returns the httpx.Response to hand back.
    """

    def __init__(self, handler: Callable[[str, dict | None], httpx.Response] | None = None):
        # Don't call parent __init__ to avoid setting up real HTTP
        self.handler = handler
        self.calls: list[tuple[str, dict | None, str | None]] = []

    def _request(self, method, url, params=None, accept=None, service=None):
        self.calls.append((url, params, service))
        if self.handler is None:
            raise NotImplementedError("FakeHttpClient does not make real requests")
        return self.handler(url, params)

    def close(self) -> None:
        pass

    def urls(self) -> list[str]:
        return [url for url, _, _ in self.calls]


@pytest.fixture
def fake_http():
    """Factory fixture for fake HTTP clients."""

    def _create(handler=None) -> FakeHttpClient:
        return FakeHttpClient(handler)

    return _create


def json_response(data: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=data)


def xml_response(text: str, status: int = 200) -> httpx.Response:
    return httpx.Response(status, text=text, headers={"Content-Type": "application/xml"})


def person_xml(*records: str) -> str:
    """Wrap DBLP record elements into a person page."""
    body = "".join(f"<r>{r}</r>" for r in records)
    return f'<?xml version="1.0"?><dblpperson name="Jane Doe" pid="11/1">{body}</dblpperson>'
