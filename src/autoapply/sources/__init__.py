from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from autoapply.config import Settings
from autoapply.sources.base import CandidateSource
from autoapply.sources.matching_service import HttpCandidateSource
from autoapply.sources.stored import StoredCandidateSource

__all__ = ["CandidateSource", "HttpCandidateSource", "StoredCandidateSource", "build_candidate_source"]


def build_candidate_source(settings: Settings, session_factory: sessionmaker[Session]) -> CandidateSource:
    if settings.candidate_source == "http":
        return HttpCandidateSource(settings.candidate_source_url, timeout_sec=settings.candidate_source_timeout_sec)
    return StoredCandidateSource(session_factory)
