from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

from autoapply.browser.answering import FieldResolver, ScreeningAnswerCache
from autoapply.errors import SubmissionError
from autoapply.types import AtsType, AutomationMode, JobContext, SubmissionOutcome, UserContext

logger = logging.getLogger(__name__)

GENERIC_APPLY_SELECTORS = (
    'button:has-text("Apply")',
    ".apply-button",
    "#apply-button",
    ".btn-apply",
    'a[href*="apply"]',
)

SUBMIT_SELECTORS = (
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Submit")',
    ".submit-button",
    "#submit-application",
)

RESUME_UPLOAD_SELECTORS = (
    'input[type="file"][name*="resume" i]',
    'input[type="file"][name*="cv" i]',
    ".file-upload input[type=\"file\"]",
    'input[type="file"]',
)

READY_MESSAGE = "Application filled out and ready for manual review/submission"


@dataclass(slots=True)
class ApplyContext:
    job: JobContext
    user: UserContext
    mode: AutomationMode
    resolver: FieldResolver
    answers: ScreeningAnswerCache


def identity_mappings(user: UserContext) -> list[tuple[tuple[str, ...], str]]:
    return [
        (
            ('input[name*="firstName"]', 'input[name*="first_name"]', "#firstName", "#first-name"),
            user.first_name,
        ),
        (
            ('input[name*="lastName"]', 'input[name*="last_name"]', "#lastName", "#last-name"),
            user.last_name,
        ),
        (('input[type="email"]', 'input[name*="email"]', "#email"), user.email),
        (('input[type="tel"]', 'input[name*="phone"]', "#phone"), user.phone),
        (('input[name*="location"]', 'input[name*="city"]', "#location"), user.location),
        (('input[name*="linkedin" i]', "#linkedin"), user.linkedin_url),
        (('input[name*="website"]', 'input[name*="portfolio"]', "#website"), user.website_url),
    ]


class SubmissionStrategy:
    """Generic application flow; ATS-specific subclasses override selectors and entry."""

    name: ClassVar[AtsType] = "generic"
    entry_selectors: ClassVar[tuple[str, ...]] = GENERIC_APPLY_SELECTORS
    entry_required: ClassVar[bool] = False
    form_selectors: ClassVar[tuple[str, ...]] = ()
    submit_selectors: ClassVar[tuple[str, ...]] = SUBMIT_SELECTORS

    async def run(self, page: Any, ctx: ApplyContext) -> SubmissionOutcome:
        logger.info("Handling %s application job_id=%s", self.name, ctx.job.job_id)
        await self.open_application(page, ctx)
        return await self.complete(page, ctx)

    async def complete(self, page: Any, ctx: ApplyContext) -> SubmissionOutcome:
        await self.fill_identity(page, ctx)
        await self.upload_resume(page, ctx)
        await self.fill_additional_fields(page, ctx)
        await self.answer_screening_questions(page, ctx)

        if ctx.mode != "auto":
            return SubmissionOutcome(status="ready_to_submit", ats_type=self.name, message=READY_MESSAGE)

        await self.submit(page)
        return SubmissionOutcome(status="submitted", ats_type=self.name, message="Application submitted")

    async def open_application(self, page: Any, ctx: ApplyContext) -> None:
        clicked = await page.click_first(self.entry_selectors)
        if clicked is None and self.entry_required:
            raise SubmissionError(f"{self.name} apply button not found")

        if self.form_selectors and not await page.wait_for_any(self.form_selectors):
            raise SubmissionError(f"{self.name} application form did not load")

    async def fill_identity(self, page: Any, ctx: ApplyContext) -> int:
        filled = 0
        for selectors, value in identity_mappings(ctx.user):
            if not value:
                continue
            if await page.fill_first(selectors, value):
                filled += 1
        return filled

    async def upload_resume(self, page: Any, ctx: ApplyContext) -> bool:
        if not ctx.user.resume_path:
            return False

        path = Path(ctx.user.resume_path).expanduser()
        if not path.is_file():
            logger.warning("Resume file not found path=%s user_id=%s", path, ctx.user.user_id)
            return False

        selector = await page.upload_first(RESUME_UPLOAD_SELECTORS, str(path))
        if selector is None:
            logger.info("No resume upload field found job_id=%s", ctx.job.job_id)
            return False
        return True

    async def fill_additional_fields(self, page: Any, ctx: ApplyContext) -> int:
        filled = 0
        for field in await page.visible_fields():
            if field.value:
                continue
            value = await ctx.resolver.resolve_field(field, ctx.job, ctx.user)
            if not value:
                continue
            if await page.fill_field(field, value):
                filled += 1
            else:
                logger.debug("Could not fill field %s", field.display_name)
        return filled

    async def answer_screening_questions(self, page: Any, ctx: ApplyContext) -> int:
        answered = 0
        for question in await page.screening_questions():
            answer = await ctx.answers.answer_question(question, ctx.job, ctx.user)
            if not answer:
                continue
            if await page.answer_question(question, answer):
                answered += 1
                logger.info("Applied screening answer job_id=%s question=%r", ctx.job.job_id, question.text)
        return answered

    async def submit(self, page: Any) -> None:
        if await page.click_first(self.submit_selectors) is None:
            raise SubmissionError("Submit button not found")
        logger.info("Application submitted")


class GenericStrategy(SubmissionStrategy):
    pass


class WorkdayStrategy(SubmissionStrategy):
    name = "workday"
    entry_selectors = ('[data-automation-id="apply"]', '[data-automation-id="adventureButton"]', 'button:has-text("Apply")')
    entry_required = True
    form_selectors = ("form", '[data-automation-id="formField"]')
    submit_selectors = ('[data-automation-id="bottom-navigation-next-button"]', *SUBMIT_SELECTORS)

    async def open_application(self, page: Any, ctx: ApplyContext) -> None:
        if not await page.wait_for_any(self.entry_selectors):
            raise SubmissionError("workday apply button not found")
        await super().open_application(page, ctx)


class GreenhouseStrategy(SubmissionStrategy):
    name = "greenhouse"
    entry_selectors = ("#apply-button", ".application-form button", 'a:has-text("Apply")')
    submit_selectors = ("#submit_app", *SUBMIT_SELECTORS)


class LeverStrategy(SubmissionStrategy):
    name = "lever"
    entry_selectors = ("a.postings-btn", 'a[href$="/apply"]', 'a:has-text("Apply for this job")')
    submit_selectors = ("#btn-submit", 'button[data-qa="btn-submit"]', *SUBMIT_SELECTORS)


class SuccessFactorsStrategy(SubmissionStrategy):
    name = "successfactors"
    entry_selectors = ('button:has-text("Apply now")', "#applyButton", 'a:has-text("Apply now")', *GENERIC_APPLY_SELECTORS)


class ICIMSStrategy(SubmissionStrategy):
    name = "icims"
    entry_selectors = ("a.iCIMS_PrimaryButton", 'a[href*="mode=apply"]', *GENERIC_APPLY_SELECTORS)


class LinkedInStrategy(SubmissionStrategy):
    name = "linkedin"
    easy_apply_selectors = (".jobs-apply-button", ".jobs-s-apply button", 'button:has-text("Easy Apply")')
    external_apply_selectors = ('.jobs-apply-button--top-card button', 'button:has-text("Apply")')
    next_step_selectors = ('button[aria-label="Continue to next step"]', 'button[aria-label="Review your application"]')
    submit_selectors = ('button[aria-label="Submit application"]', 'button:has-text("Submit application")')
    max_steps = 8

    async def run(self, page: Any, ctx: ApplyContext) -> SubmissionOutcome:
        logger.info("Handling linkedin application job_id=%s", ctx.job.job_id)
        if await page.click_first(self.easy_apply_selectors):
            return await self.easy_apply(page, ctx)

        if await page.click_first(self.external_apply_selectors):
            logger.info("LinkedIn external apply; continuing on company site job_id=%s", ctx.job.job_id)
            return await GenericStrategy().complete(page, ctx)

        raise SubmissionError("No apply button found on LinkedIn job page")

    async def easy_apply(self, page: Any, ctx: ApplyContext) -> SubmissionOutcome:
        # Easy Apply is a modal wizard; each step shows a subset of the fields.
        for _ in range(self.max_steps):
            await self.fill_identity(page, ctx)
            await self.upload_resume(page, ctx)
            await self.fill_additional_fields(page, ctx)
            await self.answer_screening_questions(page, ctx)

            if await page.exists(self.submit_selectors[0]):
                break
            if await page.click_first(self.next_step_selectors) is None:
                raise SubmissionError("LinkedIn Easy Apply step could not be advanced")
        else:
            raise SubmissionError("LinkedIn Easy Apply did not reach the review step")

        if ctx.mode != "auto":
            return SubmissionOutcome(status="ready_to_submit", ats_type=self.name, message=READY_MESSAGE)

        await self.submit(page)
        return SubmissionOutcome(status="submitted", ats_type=self.name, message="Application submitted")


STRATEGIES: dict[str, type[SubmissionStrategy]] = {
    "workday": WorkdayStrategy,
    "greenhouse": GreenhouseStrategy,
    "lever": LeverStrategy,
    "successfactors": SuccessFactorsStrategy,
    "icims": ICIMSStrategy,
    "linkedin": LinkedInStrategy,
    "generic": GenericStrategy,
}


def strategy_for(ats_type: str) -> SubmissionStrategy:
    return STRATEGIES.get(ats_type, GenericStrategy)()
