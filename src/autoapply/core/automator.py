from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from autoapply.browser.answering import FieldResolver, ScreeningAnswerCache
from autoapply.browser.ats import detect_ats
from autoapply.browser.engine import BrowserEngine
from autoapply.browser.strategies import ApplyContext, strategy_for
from autoapply.config import Settings, get_settings
from autoapply.db.repositories import Repository
from autoapply.errors import EngineFatalError, SubmissionError
from autoapply.types import (
    AtsType,
    AutomationMode,
    JobContext,
    SubmissionOutcome,
    UserContext,
    utcnow,
)

logger = logging.getLogger(__name__)


class ApplicationAutomator:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        resolver: FieldResolver,
        settings: Settings | None = None,
        engine: BrowserEngine | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.resolver = resolver
        self.answers = ScreeningAnswerCache(session_factory, resolver)
        self.engine = engine or BrowserEngine(self.settings)

    async def apply_to_job(
        self, user_id: int, job_id: int, *, automation_mode: AutomationMode
    ) -> SubmissionOutcome:
        job, user = self._load_context(user_id, job_id)
        with self.session_factory() as session:
            Repository(session).reserve_application(user_id, job_id, mode=automation_mode, now=utcnow())

        logger.info("Starting automatic application user_id=%s job_id=%s url=%s", user_id, job_id, job.url)
        try:
            outcome = await self._attempt(job, user, automation_mode)
        except EngineFatalError as exc:
            self._save_outcome(
                user_id,
                job_id,
                SubmissionOutcome(status="failed", message=str(exc)),
                automation_mode,
            )
            raise

        self._save_outcome(user_id, job_id, outcome, automation_mode)
        if outcome.status == "failed":
            logger.warning("Application failed user_id=%s job_id=%s error=%s", user_id, job_id, outcome.message)
        else:
            logger.info(
                "Application finished user_id=%s job_id=%s status=%s ats=%s",
                user_id,
                job_id,
                outcome.status,
                outcome.ats_type,
            )
        return outcome

    async def close(self) -> None:
        await self.engine.close()

    async def _attempt(self, job: JobContext, user: UserContext, mode: AutomationMode) -> SubmissionOutcome:
        ats_type: AtsType = "generic"
        async with self.engine.open_page() as page:
            try:
                await page.goto(job.url)
                ats_type = detect_ats(page.url, await page.content())
                logger.info("Detected ATS type=%s job_id=%s", ats_type, job.job_id)
                ctx = ApplyContext(job=job, user=user, mode=mode, resolver=self.resolver, answers=self.answers)
                return await strategy_for(ats_type).run(page, ctx)
            except EngineFatalError:
                raise
            except Exception as exc:
                return SubmissionOutcome(
                    status="failed",
                    ats_type=ats_type,
                    message=f"{ats_type} application failed: {exc}",
                )

    def _load_context(self, user_id: int, job_id: int) -> tuple[JobContext, UserContext]:
        with self.session_factory() as session:
            repo = Repository(session)
            job = repo.get_job(job_id)
            if job is None:
                raise SubmissionError(f"Job {job_id} not found")
            profile = repo.get_user_profile(user_id)
            if profile is None:
                raise SubmissionError(f"Profile for user {user_id} not found")

            return (
                JobContext(
                    job_id=job.id,
                    title=job.title,
                    company=job.company,
                    url=job.url,
                    location=job.location,
                ),
                UserContext(
                    user_id=profile.user_id,
                    full_name=profile.full_name,
                    email=profile.email,
                    phone=profile.phone,
                    location=profile.location,
                    linkedin_url=profile.linkedin_url,
                    website_url=profile.website_url,
                    resume_path=profile.resume_path,
                    current_job_title=profile.current_job_title,
                    years_experience=profile.years_experience,
                    availability=profile.availability,
                ),
            )

    def _save_outcome(
        self, user_id: int, job_id: int, outcome: SubmissionOutcome, mode: AutomationMode
    ) -> None:
        with self.session_factory() as session:
            repo = Repository(session)
            repo.record_outcome(user_id, job_id, outcome, mode=mode)
            if outcome.status != "failed" or outcome.ats_type != "generic":
                repo.set_job_ats_type(job_id, outcome.ats_type)
