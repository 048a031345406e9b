from __future__ import annotations

import logging
from typing import Any

import requests
from pydantic import ValidationError

from autoapply.errors import ScanError
from autoapply.sources.base import CandidateSource
from autoapply.types import JobCandidate

logger = logging.getLogger(__name__)


class HttpCandidateSource(CandidateSource):
    name = "http"

    def __init__(self, base_url: str, *, timeout_sec: int = 30, session: requests.Session | None = None):
        if not base_url:
            raise ValueError("candidate_source_url must be set for the http candidate source")
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.http = session or requests.Session()

    def scan_candidates(self, user_id: int) -> list[JobCandidate]:
        url = f"{self.base_url}/users/{user_id}/candidates"
        try:
            response = self.http.get(url, timeout=self.timeout_sec, headers={"Accept": "application/json"})
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ScanError(f"candidate source request failed: {exc}") from exc

        items = payload.get("candidates", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise ScanError("candidate source returned an unexpected payload")

        candidates: list[JobCandidate] = []
        for raw in items:
            try:
                candidates.append(self._parse(raw))
            except (ValidationError, TypeError, KeyError) as exc:
                logger.warning("Dropping malformed candidate from %s: %s", url, exc)
        return candidates

    @staticmethod
    def _parse(raw: dict[str, Any]) -> JobCandidate:
        # The matching service uses camelCase and its own ids; local ids are assigned on persist.
        data: dict[str, Any] = {
            "title": raw["title"],
            "company": raw["company"],
            "url": raw["url"],
            "location": raw.get("location", ""),
            "match_score": raw.get("matchScore", raw.get("match_score")),
            "scope": raw.get("scope", "global"),
        }
        discovered_at = raw.get("discoveredAt") or raw.get("discovered_at")
        if discovered_at:
            data["discovered_at"] = discovered_at
        return JobCandidate.model_validate(data)
