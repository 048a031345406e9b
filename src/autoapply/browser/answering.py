from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from sqlalchemy.orm import Session

from autoapply.db.repositories import Repository
from autoapply.llm.router import LLMRouter
from autoapply.types import FieldDescriptor, JobContext, ScreeningQuestion, UserContext

logger = logging.getLogger(__name__)


class FieldResolver(Protocol):
    async def resolve_field(
        self, field: FieldDescriptor, job: JobContext, user: UserContext
    ) -> str | None: ...

    async def answer_question(
        self, question: ScreeningQuestion, job: JobContext, user: UserContext
    ) -> str | None: ...


class LLMFieldResolver:
    def __init__(self, llm: LLMRouter):
        self.llm = llm

    async def resolve_field(self, field: FieldDescriptor, job: JobContext, user: UserContext) -> str | None:
        value = await asyncio.to_thread(self.llm.suggest_field_value, field=field, job=job, user=user)
        return value or None

    async def answer_question(
        self, question: ScreeningQuestion, job: JobContext, user: UserContext
    ) -> str | None:
        answer = await asyncio.to_thread(self.llm.draft_screening_answer, question=question, job=job, user=user)
        return answer or None


class ScreeningAnswerCache:
    """Stored answers first, then the resolver; resolver answers are saved for reuse."""

    def __init__(self, session_factory: Callable[[], Session], resolver: FieldResolver):
        self.session_factory = session_factory
        self.resolver = resolver

    async def answer_question(
        self, question: ScreeningQuestion, job: JobContext, user: UserContext
    ) -> str | None:
        with self.session_factory() as session:
            stored = Repository(session).get_screening_answer(user.user_id, question.text)
            if stored is not None and stored.answer_text:
                return stored.answer_text

        answer = await self.resolver.answer_question(question, job, user)
        if not answer:
            logger.info("No answer for screening question user_id=%s question=%r", user.user_id, question.text)
            return None

        with self.session_factory() as session:
            Repository(session).save_screening_answer(
                user_id=user.user_id,
                question=question.text,
                answer=answer,
                source="resolver",
            )
        return answer
