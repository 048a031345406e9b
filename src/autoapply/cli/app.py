from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import typer
from pydantic import ValidationError

from autoapply.config import get_settings
from autoapply.core.orchestrator import AutoApplyOrchestrator
from autoapply.core.runtime import build_orchestrator
from autoapply.core.scheduler import AutoApplyScheduler
from autoapply.db.init import init_database
from autoapply.db.repositories import Repository
from autoapply.db.session import SessionLocal
from autoapply.errors import AutoApplyError, PreconditionError
from autoapply.logging_config import configure_logging
from autoapply.types import ProfileImport

T = TypeVar("T")

app = typer.Typer(help="AutoApply CLI")
profile_app = typer.Typer(help="Manage applicant profiles")
answers_app = typer.Typer(help="Stored screening answers")
session_app = typer.Typer(help="Autoapply sessions")

app.add_typer(profile_app, name="profile")
app.add_typer(answers_app, name="answers")
app.add_typer(session_app, name="session")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def fail(exc: Exception) -> NoReturn:
    payload: dict[str, Any] = {"ok": False, "error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, PreconditionError):
        payload["missing_fields"] = exc.missing_fields
    typer.echo(json.dumps(payload, indent=2), err=True)
    raise typer.Exit(code=1)


def with_orchestrator(action: Callable[[AutoApplyOrchestrator], Awaitable[T]]) -> T:
    async def runner() -> T:
        orchestrator = build_orchestrator()
        await orchestrator.restore_sessions()
        try:
            return await action(orchestrator)
        finally:
            await orchestrator.shutdown()

    try:
        return asyncio.run(runner())
    except AutoApplyError as exc:
        fail(exc)


@app.command("init")
def init_cmd() -> None:
    """Initialize database and data directories."""
    configure_logging()
    result = init_database()
    echo_json({"ok": True, **result})


@profile_app.command("import")
def profile_import(file: Path = typer.Option(..., "--file", exists=True, readable=True)) -> None:
    """Load a profile, preferences, quota policy and answers from a JSON file."""
    configure_logging()
    ensure_initialized()
    raw = json.loads(file.read_text(encoding="utf-8"))
    items = raw if isinstance(raw, list) else [raw]

    try:
        payloads = [ProfileImport.model_validate(item) for item in items]
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    imported = []
    with SessionLocal() as db:
        repo = Repository(db)
        for payload in payloads:
            repo.upsert_user_profile(payload.user_id, payload.profile.model_dump())
            if payload.preferences is not None:
                repo.upsert_job_preferences(
                    payload.user_id,
                    {
                        "desired_roles_json": payload.preferences.desired_roles,
                        "preferred_locations_json": payload.preferences.preferred_locations,
                        "location_preference": payload.preferences.location_preference,
                        "salary_min": payload.preferences.salary_min,
                    },
                )
            if payload.policy is not None:
                repo.upsert_autoapply_config(payload.user_id, payload.policy.model_dump())
            for answer in payload.answers:
                repo.save_screening_answer(
                    user_id=payload.user_id,
                    question=answer.question,
                    answer=answer.answer,
                )
            completeness = repo.check_profile_completeness(payload.user_id)
            imported.append(
                {
                    "user_id": payload.user_id,
                    "complete": completeness.is_complete,
                    "missing_fields": completeness.missing_fields,
                }
            )

    echo_json({"imported": imported})


@answers_app.command("add")
def answers_add(
    user_id: int = typer.Option(..., "--user-id"),
    question: str = typer.Option(..., "--question"),
    answer: str = typer.Option(..., "--answer"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        row = Repository(db).save_screening_answer(user_id=user_id, question=question, answer=answer)
        echo_json({"id": row.id, "question_hash": row.question_hash})


@answers_app.command("list")
def answers_list(user_id: int = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        rows = Repository(db).list_screening_answers(user_id)
        echo_json(
            [
                {
                    "id": row.id,
                    "question": row.question_text,
                    "answer": row.answer_text,
                    "source": row.source,
                }
                for row in rows
            ]
        )


@session_app.command("start")
def session_start(user_id: int = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    result = with_orchestrator(lambda orchestrator: orchestrator.start(user_id))
    echo_json(result.model_dump(mode="json"))


@session_app.command("stop")
def session_stop(user_id: int = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    result = with_orchestrator(lambda orchestrator: orchestrator.stop(user_id))
    echo_json(result.model_dump(mode="json"))


@session_app.command("status")
def session_status(user_id: int = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    result = with_orchestrator(lambda orchestrator: orchestrator.status(user_id))
    echo_json(result.model_dump(mode="json"))


@app.command("scan")
def scan_cmd(user_id: int = typer.Option(..., "--user-id")) -> None:
    """Fetch and filter candidates without applying."""
    configure_logging()
    ensure_initialized()
    result = with_orchestrator(lambda orchestrator: orchestrator.scan(user_id))
    echo_json(result.model_dump(mode="json"))


@app.command("process")
def process_cmd(
    user_id: int = typer.Option(..., "--user-id"),
    job_id: list[int] = typer.Option(None, "--job-id", help="Repeat to target specific jobs"),
) -> None:
    """Apply to qualified jobs, or to the given job ids in order."""
    configure_logging()
    ensure_initialized()
    job_ids = list(job_id) if job_id else None
    result = with_orchestrator(lambda orchestrator: orchestrator.process(user_id, job_ids))
    echo_json(result.model_dump(mode="json"))


@app.command("run")
def run_cmd() -> None:
    """Run the periodic scheduler for all active sessions until interrupted."""
    configure_logging()
    ensure_initialized()
    settings = get_settings()

    async def runner() -> None:
        orchestrator = build_orchestrator(settings)
        restored = await orchestrator.restore_sessions()
        typer.echo(json.dumps({"ok": True, "active_sessions": restored}))
        await AutoApplyScheduler(orchestrator, settings=settings).run_forever()

    try:
        asyncio.run(runner())
    except AutoApplyError as exc:
        fail(exc)


if __name__ == "__main__":
    app()
