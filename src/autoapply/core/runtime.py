from __future__ import annotations

from autoapply.browser.answering import LLMFieldResolver
from autoapply.config import Settings, get_settings
from autoapply.core.automator import ApplicationAutomator
from autoapply.core.orchestrator import AutoApplyOrchestrator
from autoapply.db.session import SessionLocal
from autoapply.llm.router import LLMRouter
from autoapply.sources import build_candidate_source


def build_orchestrator(settings: Settings | None = None) -> AutoApplyOrchestrator:
    settings = settings or get_settings()
    automator = ApplicationAutomator(
        SessionLocal,
        resolver=LLMFieldResolver(LLMRouter(settings)),
        settings=settings,
    )
    return AutoApplyOrchestrator(
        SessionLocal,
        source=build_candidate_source(settings, SessionLocal),
        automator=automator,
        settings=settings,
    )
