from __future__ import annotations

from abc import ABC, abstractmethod

from autoapply.types import JobCandidate


class CandidateSource(ABC):
    name: str = "base"

    @abstractmethod
    def scan_candidates(self, user_id: int) -> list[JobCandidate]:
        """Return scored candidates for ``user_id`` in the order they should be considered."""
