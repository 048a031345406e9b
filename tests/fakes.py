from __future__ import annotations

from collections.abc import Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from autoapply.browser.forms import extract_fields, extract_screening_questions
from autoapply.config import Settings
from autoapply.db.repositories import Repository
from autoapply.db.session import SessionLocal
from autoapply.sources.base import CandidateSource
from autoapply.types import FieldDescriptor, JobCandidate, ScreeningQuestion, SubmissionOutcome

GENERIC_FORM = """
<form>
  <label for="email">Email</label><input id="email" name="email" type="email">
  <button type="submit">Submit</button>
</form>
"""


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "openai_api_key": "",
        "local_llm_enabled": False,
        "pacing_min_sec": 5.0,
        "pacing_max_sec": 15.0,
    }
    values.update(overrides)
    return Settings(**values)


def seed_user(
    user_id: int = 1,
    *,
    profile: dict[str, Any] | None = None,
    preferences: bool = True,
    policy: dict[str, Any] | None = None,
) -> None:
    values = {
        "full_name": "Ada Marie Lovelace",
        "email": "ada@example.com",
        "phone": "+1 555 0100",
        "location": "London",
        "linkedin_url": "https://www.linkedin.com/in/ada",
        "resume_path": "/nonexistent/ada-resume.pdf",
        "current_job_title": "Software Engineer",
        "years_experience": 7,
        "availability": "Two weeks",
    }
    values.update(profile or {})
    with SessionLocal() as db:
        repo = Repository(db)
        repo.upsert_user_profile(user_id, values)
        if preferences:
            repo.upsert_job_preferences(
                user_id,
                {"desired_roles_json": ["Software Engineer"], "preferred_locations_json": ["Remote"]},
            )
        if policy is not None:
            repo.upsert_autoapply_config(user_id, policy)


def seed_job(url: str, *, company: str = "Acme", title: str = "Engineer", score: float = 90.0, user_id: int = 1) -> int:
    with SessionLocal() as db:
        job = Repository(db).record_candidate(
            user_id,
            JobCandidate(title=title, company=company, url=url, match_score=score),
            scanned_at=datetime.now().astimezone(),
        )
        return job.id


def seed_application(user_id: int, job_id: int, status: str = "submitted") -> None:
    with SessionLocal() as db:
        repo = Repository(db)
        repo.reserve_application(user_id, job_id, mode="auto", now=datetime.now().astimezone())
        repo.record_outcome(
            user_id,
            job_id,
            SubmissionOutcome(status=status, message="seeded" if status == "failed" else ""),
            mode="auto",
        )


def candidate(index: int, score: float, *, company: str | None = None) -> JobCandidate:
    return JobCandidate(
        title=f"Engineer {index}",
        company=company or f"Company {index}",
        url=f"https://careers.example.com/jobs/{index}",
        match_score=score,
    )


class FakeCandidateSource(CandidateSource):
    name = "fake"

    def __init__(self, candidates: Sequence[JobCandidate] = (), *, error: Exception | None = None):
        self.candidates = list(candidates)
        self.error = error
        self.calls: list[int] = []

    def scan_candidates(self, user_id: int) -> list[JobCandidate]:
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


class FakeResolver:
    def __init__(
        self,
        fields: dict[str, str] | None = None,
        answers: dict[str, str] | None = None,
        *,
        error: Exception | None = None,
    ):
        self.fields = fields or {}
        self.answers = answers or {}
        self.error = error
        self.field_calls: list[str] = []
        self.question_calls: list[str] = []

    async def resolve_field(self, field: FieldDescriptor, job: Any, user: Any) -> str | None:
        self.field_calls.append(field.display_name)
        if self.error is not None:
            raise self.error
        return self.fields.get(field.name) or self.fields.get(field.display_name)

    async def answer_question(self, question: ScreeningQuestion, job: Any, user: Any) -> str | None:
        self.question_calls.append(question.text)
        return self.answers.get(question.text)


@dataclass
class PageSpec:
    html: str = ""
    present: set[str] = field(default_factory=set)
    transitions: dict[str, "PageSpec"] = field(default_factory=dict)


class FakePage:
    """Implements the FormPage surface over static HTML and a set of present selectors."""

    def __init__(self, routes: dict[str, PageSpec]):
        self.routes = routes
        self.url = "about:blank"
        self.spec = PageSpec()
        self.clicked: list[str] = []
        self.filled: dict[str, str] = {}
        self.uploads: dict[str, str] = {}
        self.answered: dict[str, str] = {}

    async def goto(self, url: str) -> None:
        spec = self.routes.get(url)
        if spec is None:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.url = url
        self.spec = spec

    async def content(self) -> str:
        return self.spec.html

    async def exists(self, selector: str) -> bool:
        return selector in self.spec.present

    async def wait_for_any(self, selectors: Sequence[str], timeout_ms: int | None = None) -> bool:
        return any(selector in self.spec.present for selector in selectors)

    async def click_first(self, selectors: Sequence[str]) -> str | None:
        for selector in selectors:
            if selector in self.spec.present:
                self.clicked.append(selector)
                self.spec = self.spec.transitions.get(selector, self.spec)
                return selector
        return None

    async def fill_first(self, selectors: Sequence[str], value: str) -> str | None:
        for selector in selectors:
            if selector in self.spec.present:
                self.filled[selector] = value
                return selector
        return None

    async def fill(self, selector: str, value: str) -> bool:
        self.filled[selector] = value
        return True

    async def fill_field(self, field: FieldDescriptor, value: str) -> bool:
        self.filled[field.selector] = value
        return True

    async def upload_first(self, selectors: Sequence[str], path: str) -> str | None:
        for selector in selectors:
            if selector in self.spec.present:
                self.uploads[selector] = path
                return selector
        return None

    async def answer_question(self, question: ScreeningQuestion, answer: str) -> bool:
        self.answered[question.text] = answer
        return True

    async def visible_fields(self) -> list[FieldDescriptor]:
        return [
            item.model_copy(update={"value": self.filled.get(item.selector, item.value)})
            for item in extract_fields(self.spec.html)
        ]

    async def screening_questions(self) -> list[ScreeningQuestion]:
        return extract_screening_questions(self.spec.html)


class FakeEngine:
    def __init__(self, routes: dict[str, PageSpec] | None = None, *, launch_error: Exception | None = None):
        self.routes = routes or {}
        self.launch_error = launch_error
        self.pages: list[FakePage] = []
        self.open_count = 0
        self.closed = False

    @asynccontextmanager
    async def open_page(self):
        if self.launch_error is not None:
            raise self.launch_error
        page = FakePage(self.routes)
        self.pages.append(page)
        self.open_count += 1
        try:
            yield page
        finally:
            self.open_count -= 1

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
