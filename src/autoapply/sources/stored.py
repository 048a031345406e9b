from __future__ import annotations

import logging

from sqlalchemy.orm import Session, sessionmaker

from autoapply.db.repositories import Repository, ensure_utc
from autoapply.sources.base import CandidateSource
from autoapply.types import JobCandidate

logger = logging.getLogger(__name__)


class StoredCandidateSource(CandidateSource):
    """Reads jobs and per-user match scores written by the external scanner."""

    name = "database"

    def __init__(self, session_factory: sessionmaker[Session], *, limit: int = 50):
        self.session_factory = session_factory
        self.limit = limit

    def scan_candidates(self, user_id: int) -> list[JobCandidate]:
        with self.session_factory() as db:
            rows = Repository(db).list_scored_jobs(user_id, limit=self.limit)

        candidates = [
            JobCandidate(
                id=job.id,
                title=job.title,
                company=job.company,
                url=job.url,
                location=job.location,
                match_score=match.match_score,
                discovered_at=ensure_utc(job.discovered_at or job.created_at),
                scope="global" if job.owner_user_id is None else "user",
            )
            for job, match in rows
        ]
        logger.info("Loaded %s stored candidates for user %s", len(candidates), user_id)
        return candidates
