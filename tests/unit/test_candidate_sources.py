from __future__ import annotations

import pytest
import requests

from autoapply.errors import ScanError
from autoapply.sources import HttpCandidateSource, StoredCandidateSource, build_candidate_source
from autoapply.config import Settings
from autoapply.db.session import SessionLocal

from fakes import seed_job


class FakeResponse:
    def __init__(self, payload, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeHttp:
    def __init__(self, response: FakeResponse | Exception):
        self.response = response
        self.urls: list[str] = []

    def get(self, url: str, **kwargs):
        self.urls.append(url)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_http_source_parses_camel_case_and_drops_malformed_items() -> None:
    http = FakeHttp(
        FakeResponse(
            {
                "candidates": [
                    {"title": "Engineer", "company": "Acme", "url": "https://a/1", "matchScore": 88},
                    {"title": "Broken", "company": "Acme", "url": "https://a/2", "matchScore": 140},
                    {"company": "NoTitle", "url": "https://a/3", "matchScore": 90},
                    {"title": "Analyst", "company": "Beta", "url": "https://b/1", "match_score": 72, "scope": "user"},
                ]
            }
        )
    )
    source = HttpCandidateSource("https://matcher.internal/", timeout_sec=5, session=http)

    candidates = source.scan_candidates(7)

    assert http.urls == ["https://matcher.internal/users/7/candidates"]
    assert [(c.title, c.match_score, c.scope) for c in candidates] == [
        ("Engineer", 88, "global"),
        ("Analyst", 72, "user"),
    ]


def test_http_source_wraps_transport_errors() -> None:
    source = HttpCandidateSource("https://matcher.internal", session=FakeHttp(requests.ConnectionError("refused")))
    with pytest.raises(ScanError, match="refused"):
        source.scan_candidates(1)

    source = HttpCandidateSource("https://matcher.internal", session=FakeHttp(FakeResponse({}, status_code=503)))
    with pytest.raises(ScanError):
        source.scan_candidates(1)


def test_stored_source_orders_by_match_score() -> None:
    seed_job("https://careers.example.com/low", score=65)
    seed_job("https://careers.example.com/high", score=95)

    candidates = StoredCandidateSource(SessionLocal).scan_candidates(1)

    assert [c.url for c in candidates] == [
        "https://careers.example.com/high",
        "https://careers.example.com/low",
    ]
    assert all(c.id is not None for c in candidates)


def test_build_candidate_source_follows_settings() -> None:
    assert isinstance(build_candidate_source(Settings(), SessionLocal), StoredCandidateSource)
    http_settings = Settings(candidate_source="http", candidate_source_url="https://matcher.internal")
    assert isinstance(build_candidate_source(http_settings, SessionLocal), HttpCandidateSource)
