from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from autoapply.core.automator import ApplicationAutomator
from autoapply.core.orchestrator import AutoApplyOrchestrator
from autoapply.db.repositories import Repository
from autoapply.db.session import SessionLocal
from autoapply.errors import PreconditionError, ScanError
from autoapply.types import utcnow

from fakes import (
    GENERIC_FORM,
    FakeCandidateSource,
    FakeEngine,
    FakeResolver,
    PageSpec,
    RecordingSleep,
    candidate,
    make_settings,
    seed_application,
    seed_job,
    seed_user,
)


class MutableClock:
    def __init__(self) -> None:
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def _orchestrator(source, *, routes=None, clock=None, **settings_overrides) -> AutoApplyOrchestrator:
    settings = make_settings(**settings_overrides)
    automator = ApplicationAutomator(
        SessionLocal,
        resolver=FakeResolver(),
        settings=settings,
        engine=FakeEngine(routes or {}),
    )
    return AutoApplyOrchestrator(
        SessionLocal,
        source=source,
        automator=automator,
        settings=settings,
        sleep=RecordingSleep(),
        clock=clock or utcnow,
    )


def test_start_rejects_incomplete_profile_without_side_effects() -> None:
    seed_user(profile={"phone": "", "availability": ""}, preferences=False)
    source = FakeCandidateSource([candidate(1, 90)])
    orchestrator = _orchestrator(source)

    with pytest.raises(PreconditionError) as exc_info:
        asyncio.run(orchestrator.start(1))

    assert exc_info.value.missing_fields == ["phone", "availability", "job preferences"]
    assert source.calls == []
    assert 1 not in orchestrator.registry
    with SessionLocal() as db:
        assert Repository(db).list_user_sessions(1) == []


def test_start_scans_and_restart_replaces_previous_session() -> None:
    seed_user(policy={"min_match_score": 70})
    source = FakeCandidateSource([candidate(1, 95), candidate(2, 80), candidate(3, 40)])
    orchestrator = _orchestrator(source)

    first = asyncio.run(orchestrator.start(1))
    assert first.initial_jobs == 2
    assert first.message == "Autoapply started successfully. Found 2 matching jobs."
    assert first.policy.min_match_score == 70

    second = asyncio.run(orchestrator.start(1))
    assert second.session_id != first.session_id
    assert orchestrator.registry.get(1).session_id == second.session_id
    assert len(orchestrator.registry) == 1

    with SessionLocal() as db:
        rows = {row.id: row for row in Repository(db).list_user_sessions(1)}
    assert rows[first.session_id].status == "ended"
    assert rows[first.session_id].ended_at is not None
    assert rows[second.session_id].status == "active"
    assert rows[second.session_id].jobs_scanned == 3


def test_stop_is_idempotent_and_halts_scheduled_scans() -> None:
    seed_user()
    source = FakeCandidateSource([candidate(1, 90)])
    clock = MutableClock()
    orchestrator = _orchestrator(source, clock=clock)

    asyncio.run(orchestrator.start(1))
    stopped = asyncio.run(orchestrator.stop(1))
    again = asyncio.run(orchestrator.stop(1))

    assert stopped.stopped is True
    assert stopped.message == "Autoapply stopped successfully"
    assert again.stopped is False
    assert again.message == "already stopped"

    clock.advance(hours=5)
    assert asyncio.run(orchestrator.tick()) == []
    assert source.calls == [1]

    status = asyncio.run(orchestrator.status(1))
    assert status.active is False
    assert status.session is None


def test_scan_is_limited_to_remaining_daily_quota() -> None:
    seed_user(policy={"max_daily_applications": 5, "min_match_score": 70})
    for index in range(3):
        job_id = seed_job(f"https://careers.example.com/done/{index}", company=f"Done {index}")
        seed_application(1, job_id)

    source = FakeCandidateSource(
        [candidate(10, 95), candidate(11, 90), candidate(12, 85), candidate(13, 50)]
    )
    orchestrator = _orchestrator(source)

    result = asyncio.run(orchestrator.scan(1))

    assert result.total_found == 4
    assert result.qualified_count == 2
    assert result.daily_applications_used == 3
    assert result.remaining_applications == 2
    assert [job.url for job in result.jobs] == [
        "https://careers.example.com/jobs/10",
        "https://careers.example.com/jobs/11",
    ]
    assert all(job.id is not None for job in result.jobs)


def test_scan_with_exhausted_quota_returns_no_jobs() -> None:
    seed_user(policy={"max_daily_applications": 1})
    seed_application(1, seed_job("https://careers.example.com/done/1"))
    orchestrator = _orchestrator(FakeCandidateSource([candidate(1, 99)]))

    result = asyncio.run(orchestrator.scan(1))

    assert result.jobs == []
    assert result.total_found == 1
    assert result.remaining_applications == 0


def test_scan_failure_surfaces_scan_error() -> None:
    seed_user()
    orchestrator = _orchestrator(FakeCandidateSource(error=RuntimeError("matcher offline")))

    with pytest.raises(ScanError, match="matcher offline"):
        asyncio.run(orchestrator.scan(1))


def test_status_reports_usage_and_pending_jobs() -> None:
    seed_user(policy={"max_daily_applications": 4})
    seed_application(1, seed_job("https://careers.example.com/done/1"))
    seed_job("https://careers.example.com/open/1")
    orchestrator = _orchestrator(FakeCandidateSource())

    asyncio.run(orchestrator.start(1))
    status = asyncio.run(orchestrator.status(1))

    assert status.active is True
    assert status.todays_applications == 1
    assert status.total_applications == 1
    assert status.pending_jobs == 1
    assert status.daily_limit == 4
    assert status.remaining_today == 3


def test_restore_sessions_expires_stale_leases() -> None:
    seed_user(1)
    seed_user(2)
    now = utcnow()
    with SessionLocal() as db:
        repo = Repository(db)
        stale = repo.create_session(1, started_at=now - timedelta(hours=6))
        fresh = repo.create_session(2, started_at=now - timedelta(minutes=10))

    orchestrator = _orchestrator(FakeCandidateSource(), session_lease_ttl_min=90)
    restored = asyncio.run(orchestrator.restore_sessions())

    assert restored == [2]
    assert orchestrator.registry.get(2).session_id == fresh.id
    assert 1 not in orchestrator.registry
    with SessionLocal() as db:
        assert Repository(db).get_session(stale.id).status == "expired"


def test_tick_scans_only_when_interval_elapsed() -> None:
    seed_user(policy={"scan_interval_hours": 2, "automation_mode": "review"})
    source = FakeCandidateSource([candidate(1, 90)])
    clock = MutableClock()
    orchestrator = _orchestrator(source, clock=clock)

    asyncio.run(orchestrator.start(1))
    assert source.calls == [1]

    clock.advance(minutes=30)
    assert asyncio.run(orchestrator.tick()) == []
    assert source.calls == [1]

    clock.advance(hours=2)
    assert asyncio.run(orchestrator.tick()) == [1]
    assert source.calls == [1, 1]

    with SessionLocal() as db:
        session_row = Repository(db).get_session(orchestrator.registry.get(1).session_id)
        assert Repository(db).list_applications(1) == []
    assert session_row.heartbeat_at is not None


def test_tick_in_auto_mode_processes_qualified_jobs() -> None:
    seed_user(policy={"scan_interval_hours": 1, "automation_mode": "auto"})
    url = "https://careers.example.com/jobs/1"
    routes = {
        url: PageSpec(
            html=GENERIC_FORM,
            present={'button:has-text("Apply")', 'input[type="email"]', 'button[type="submit"]'},
        )
    }
    source = FakeCandidateSource([candidate(1, 90)])
    clock = MutableClock()
    orchestrator = _orchestrator(source, routes=routes, clock=clock)

    asyncio.run(orchestrator.start(1))
    with SessionLocal() as db:
        assert Repository(db).list_applications(1) == []

    clock.advance(hours=2)
    assert asyncio.run(orchestrator.tick()) == [1]

    with SessionLocal() as db:
        applications = Repository(db).list_applications(1)
    assert [app.status for app in applications] == ["submitted"]
    assert orchestrator.registry.get(1).applications_submitted_today == 1
    assert orchestrator.registry.get(1).qualified_job_ids == []


def test_tick_isolates_failures_and_reports_no_completed_scan() -> None:
    seed_user(1)
    seed_user(2)
    orchestrator = _orchestrator(FakeCandidateSource(error=RuntimeError("matcher offline")))
    with SessionLocal() as db:
        repo = Repository(db)
        repo.create_session(1, started_at=utcnow())
        repo.create_session(2, started_at=utcnow())
    asyncio.run(orchestrator.restore_sessions())

    assert asyncio.run(orchestrator.tick()) == []
    assert 1 in orchestrator.registry
    assert 2 in orchestrator.registry


def test_submitted_today_counter_resets_when_the_day_rolls_over() -> None:
    seed_user(policy={"max_daily_applications": 1, "automation_mode": "review"})
    first_url = "https://careers.example.com/jobs/1"
    second_url = "https://careers.example.com/jobs/2"
    first = seed_job(first_url, company="Acme")
    second = seed_job(second_url, company="Globex")
    page = PageSpec(html=GENERIC_FORM, present={'button:has-text("Apply")'})
    clock = MutableClock()
    orchestrator = _orchestrator(
        FakeCandidateSource(), routes={first_url: page, second_url: page}, clock=clock
    )

    asyncio.run(orchestrator.start(1))
    assert asyncio.run(orchestrator.process(1, [first])).succeeded == 1
    assert asyncio.run(orchestrator.status(1)).session.applications_submitted_today == 1

    clock.advance(hours=25)
    assert asyncio.run(orchestrator.status(1)).session.applications_submitted_today == 0

    assert asyncio.run(orchestrator.process(1, [second])).succeeded == 1
    status = asyncio.run(orchestrator.status(1))
    assert status.session.applications_submitted_today == 1
    assert status.session.applications_submitted_today <= status.daily_limit
