from __future__ import annotations

import json
import logging

from autoapply.config import Settings, get_settings
from autoapply.errors import SubmissionError
from autoapply.llm.prompts import FIELD_VALUE_PROMPT, SCREENING_ANSWER_PROMPT
from autoapply.llm.providers import ProviderPool
from autoapply.types import FieldDescriptor, JobContext, ScreeningQuestion, UserContext

logger = logging.getLogger(__name__)

SKIP_SENTINEL = "SKIP"


class LLMRouter:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.pool = ProviderPool(self.settings)

    def suggest_field_value(self, *, field: FieldDescriptor, job: JobContext, user: UserContext) -> str:
        prompt = FIELD_VALUE_PROMPT.format(
            field_json=field.model_dump_json(indent=2),
            job_title=job.title,
            company=job.company,
            full_name=user.full_name,
            current_job_title=user.current_job_title or "unknown",
            years_experience=user.years_experience,
            location=user.location or "unknown",
        )
        return clean_answer(self._call_text(task="field", prompt=prompt))

    def draft_screening_answer(
        self, *, question: ScreeningQuestion, job: JobContext, user: UserContext
    ) -> str:
        prompt = SCREENING_ANSWER_PROMPT.format(
            question=question.text,
            options_json=json.dumps(question.options, ensure_ascii=True),
            job_title=job.title,
            company=job.company,
            user_json=user.model_dump_json(indent=2, exclude={"resume_path"}),
        )
        answer = clean_answer(self._call_text(task="screening", prompt=prompt))
        if answer and question.options and answer not in question.options:
            # Options must be selected verbatim; tolerate case drift only.
            lowered = {option.lower(): option for option in question.options}
            answer = lowered.get(answer.lower(), "")
        return answer

    def _call_text(self, *, task: str, prompt: str) -> str:
        preferred = {
            "field": self.settings.llm_router_field_provider,
            "screening": self.settings.llm_router_screening_provider,
        }.get(task, self.settings.llm_router_default)

        providers = self.pool.route(preferred)
        if not providers:
            return ""

        failures: list[str] = []
        for provider in providers:
            try:
                return provider.complete_text(prompt).content
            except Exception as exc:
                logger.warning("LLM text call failed provider=%s error=%s", provider.config.name, exc)
                failures.append(f"{provider.config.name}: {exc}")
        raise SubmissionError(f"{task} resolution failed: {'; '.join(failures)}")


def clean_answer(text: str) -> str:
    answer = text.strip().strip('"').strip()
    if not answer or answer.upper() == SKIP_SENTINEL:
        return ""
    return answer
