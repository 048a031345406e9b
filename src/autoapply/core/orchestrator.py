from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from autoapply.config import Settings, get_settings
from autoapply.core.automator import ApplicationAutomator
from autoapply.core.quota import QuotaWindow, load_policy, read_usage
from autoapply.db.repositories import Repository, ensure_utc
from autoapply.errors import EngineFatalError, PreconditionError, ScanError
from autoapply.sources.base import CandidateSource
from autoapply.types import (
    JobContext,
    JobResult,
    ProcessResult,
    ScanResult,
    SessionInfo,
    SessionStatus,
    StartResult,
    StopResult,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ActiveSession:
    user_id: int
    session_id: int
    started_at: datetime
    last_scan_at: datetime | None = None
    applications_submitted_today: int = 0
    counted_day: datetime | None = None
    qualified_job_ids: list[int] = field(default_factory=list)

    def submitted_on(self, day_start: datetime) -> int:
        """Submissions counted for the quota day starting at ``day_start``."""
        if self.counted_day != day_start:
            return 0
        return self.applications_submitted_today


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: dict[int, ActiveSession] = {}

    def get(self, user_id: int) -> ActiveSession | None:
        return self._sessions.get(user_id)

    def put(self, entry: ActiveSession) -> None:
        self._sessions[entry.user_id] = entry

    def pop(self, user_id: int) -> ActiveSession | None:
        return self._sessions.pop(user_id, None)

    def active(self) -> list[ActiveSession]:
        return list(self._sessions.values())

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)


class AutoApplyOrchestrator:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        source: CandidateSource,
        automator: ApplicationAutomator,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.source = source
        self.automator = automator
        self.registry = SessionRegistry()
        self.sleep = sleep
        self.clock = clock
        self.rng = rng or random.Random()
        self._locks: dict[int, asyncio.Lock] = {}

    async def start(self, user_id: int) -> StartResult:
        logger.info("Starting autoapply for user_id=%s", user_id)
        now = self.clock()
        with self.session_factory() as session:
            repo = Repository(session)
            missing = list(repo.check_profile_completeness(user_id).missing_fields)
            if repo.get_preferences(user_id) is None:
                missing.append("job preferences")
            if missing:
                raise PreconditionError(missing)

            policy = load_policy(repo, self.settings, user_id)
            self.registry.pop(user_id)
            for row in repo.list_user_sessions(user_id):
                if row.status == "active":
                    repo.end_session(row.id, ended_at=now)
            row = repo.create_session(user_id, started_at=now)

        self.registry.put(ActiveSession(user_id=user_id, session_id=row.id, started_at=now))
        initial = await self.scan(user_id)
        logger.info("Autoapply started user_id=%s session_id=%s initial_jobs=%s", user_id, row.id, len(initial.jobs))
        return StartResult(
            session_id=row.id,
            initial_jobs=len(initial.jobs),
            policy=policy,
            message=f"Autoapply started successfully. Found {len(initial.jobs)} matching jobs.",
        )

    async def stop(self, user_id: int) -> StopResult:
        entry = self.registry.pop(user_id)
        if entry is None:
            return StopResult(stopped=False, message="already stopped")

        with self.session_factory() as session:
            Repository(session).end_session(entry.session_id, ended_at=self.clock())
        logger.info("Autoapply stopped user_id=%s session_id=%s", user_id, entry.session_id)
        return StopResult(stopped=True, message="Autoapply stopped successfully")

    async def scan(self, user_id: int) -> ScanResult:
        async with self._lock_for(user_id):
            return await self._scan(user_id)

    async def process(self, user_id: int, job_ids: Sequence[int] | None = None) -> ProcessResult:
        async with self._lock_for(user_id):
            return await self._process(user_id, job_ids)

    async def status(self, user_id: int) -> SessionStatus:
        entry = self.registry.get(user_id)
        window = QuotaWindow.at(self.clock(), self.settings.timezone)
        with self.session_factory() as session:
            repo = Repository(session)
            policy = load_policy(repo, self.settings, user_id)
            usage = read_usage(repo, user_id, window)
            pending = repo.count_pending_jobs(user_id)
            total = repo.count_total_applications(user_id)

        info = None
        if entry is not None:
            info = SessionInfo(
                session_id=entry.session_id,
                started_at=entry.started_at,
                last_scan_at=entry.last_scan_at,
                applications_submitted_today=entry.submitted_on(window.day_start),
            )
        return SessionStatus(
            active=entry is not None,
            session=info,
            pending_jobs=pending,
            todays_applications=usage.today,
            total_applications=total,
            daily_limit=policy.max_daily_applications,
            remaining_today=max(0, policy.max_daily_applications - usage.today),
        )

    async def tick(self, now: datetime | None = None) -> list[int]:
        """Run one scheduler cycle; returns the users whose scan was due."""
        now = now or self.clock()
        entries = self.registry.active()
        if not entries:
            return []

        semaphore = asyncio.Semaphore(max(1, self.settings.scheduler_max_parallel_users))
        scanned: list[int] = []

        async def guarded(entry: ActiveSession) -> None:
            async with semaphore:
                if await self._run_cycle(entry.user_id, now):
                    scanned.append(entry.user_id)

        await asyncio.gather(*(guarded(entry) for entry in entries))
        return scanned

    async def restore_sessions(self) -> list[int]:
        now = self.clock()
        ttl = timedelta(minutes=self.settings.session_lease_ttl_min)
        restored: list[int] = []
        with self.session_factory() as session:
            repo = Repository(session)
            for row in repo.list_active_sessions():
                heartbeat = ensure_utc(row.heartbeat_at or row.started_at)
                if heartbeat is None or now - heartbeat > ttl:
                    repo.end_session(row.id, ended_at=now, status="expired")
                    logger.info("Expired stale session user_id=%s session_id=%s", row.user_id, row.id)
                    continue

                previous = self.registry.get(row.user_id)
                if previous is not None and previous.session_id != row.id:
                    repo.end_session(previous.session_id, ended_at=now)
                    if row.user_id in restored:
                        restored.remove(row.user_id)

                self.registry.put(
                    ActiveSession(
                        user_id=row.user_id,
                        session_id=row.id,
                        started_at=ensure_utc(row.started_at) or now,
                        last_scan_at=ensure_utc(row.last_scan_at),
                    )
                )
                restored.append(row.user_id)

        if restored:
            logger.info("Restored %s active sessions", len(restored))
        return restored

    async def shutdown(self) -> None:
        await self.automator.close()

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def _scan(self, user_id: int) -> ScanResult:
        logger.info("Performing job scan for user_id=%s", user_id)
        try:
            candidates = await asyncio.to_thread(self.source.scan_candidates, user_id)
        except ScanError:
            raise
        except Exception as exc:
            raise ScanError(f"Job scan failed for user {user_id}: {exc}") from exc

        now = self.clock()
        entry = self.registry.get(user_id)
        with self.session_factory() as session:
            repo = Repository(session)
            policy = load_policy(repo, self.settings, user_id)
            usage = read_usage(repo, user_id, QuotaWindow.at(now, self.settings.timezone))
            remaining = usage.remaining(policy)

            stored = []
            for candidate in candidates:
                job = repo.record_candidate(user_id, candidate, scanned_at=now)
                stored.append(candidate.model_copy(update={"id": job.id}))

            qualified = [c for c in stored if c.match_score >= policy.min_match_score][:remaining]
            if entry is not None:
                repo.touch_session(
                    entry.session_id,
                    heartbeat_at=now,
                    last_scan_at=now,
                    jobs_scanned=len(candidates),
                )

        if entry is not None:
            entry.last_scan_at = now
            entry.qualified_job_ids = [c.id for c in qualified if c.id is not None]

        logger.info(
            "Scan finished user_id=%s found=%s qualified=%s remaining=%s",
            user_id,
            len(candidates),
            len(qualified),
            remaining,
        )
        return ScanResult(
            jobs=qualified,
            total_found=len(candidates),
            qualified_count=len(qualified),
            daily_applications_used=usage.today,
            remaining_applications=remaining,
        )

    async def _process(self, user_id: int, job_ids: Sequence[int] | None) -> ProcessResult:
        logger.info("Processing applications for user_id=%s", user_id)
        entry = self.registry.get(user_id)
        max_retries = self.settings.max_application_retries

        with self.session_factory() as session:
            repo = Repository(session)
            policy = load_policy(repo, self.settings, user_id)
            if job_ids is not None:
                jobs = repo.get_jobs_by_ids(job_ids, user_id)
            elif entry is not None and entry.qualified_job_ids:
                jobs = repo.get_jobs_by_ids(entry.qualified_job_ids, user_id)
            else:
                jobs = repo.list_qualified_jobs(
                    user_id,
                    min_match_score=policy.min_match_score,
                    max_retries=max_retries,
                    limit=self.settings.qualified_jobs_fallback_limit,
                )
            targets = [
                JobContext(job_id=job.id, title=job.title, company=job.company, url=job.url, location=job.location)
                for job in jobs
            ]

        result = ProcessResult()
        attempted = 0
        for job in targets:
            window = QuotaWindow.at(self.clock(), self.settings.timezone)
            with self.session_factory() as session:
                repo = Repository(session)
                usage = read_usage(repo, user_id, window)
                if usage.exhausted(policy):
                    logger.info("Application limit reached for user_id=%s", user_id)
                    break

                skip_reason = ""
                if repo.has_blocking_application(user_id, job.job_id, max_retries=max_retries):
                    skip_reason = "already applied"
                elif job.company and (
                    repo.count_company_applications_since(user_id, job.company, window.week_start)
                    >= policy.max_applications_per_company
                ):
                    skip_reason = f"company limit reached for {job.company}"

            if skip_reason:
                result.skipped += 1
                result.results.append(
                    JobResult(
                        job_id=job.job_id,
                        job_title=job.title,
                        company=job.company,
                        status="skipped",
                        message=skip_reason,
                    )
                )
                continue

            if attempted:
                await self.sleep(self._pause())
            attempted += 1

            logger.info("Applying to: %s at %s", job.title, job.company)
            try:
                outcome = await self.automator.apply_to_job(
                    user_id, job.job_id, automation_mode=policy.automation_mode
                )
            except EngineFatalError:
                logger.error("Browser engine failure; aborting batch for user_id=%s", user_id)
                raise
            except Exception as exc:
                logger.error("Application failed for job_id=%s: %s", job.job_id, exc)
                job_result = JobResult(
                    job_id=job.job_id,
                    job_title=job.title,
                    company=job.company,
                    status="failed",
                    message=str(exc),
                )
            else:
                job_result = JobResult(
                    job_id=job.job_id,
                    job_title=job.title,
                    company=job.company,
                    status=outcome.status,
                    ats_type=outcome.ats_type,
                    message=outcome.message,
                )

            result.processed += 1
            result.results.append(job_result)
            if job_result.status == "failed":
                result.failed += 1
            else:
                result.succeeded += 1

        if entry is not None and self.registry.get(user_id) is entry:
            handled = {item.job_id for item in result.results}
            entry.qualified_job_ids = [job_id for job_id in entry.qualified_job_ids if job_id not in handled]
            day_start = QuotaWindow.at(self.clock(), self.settings.timezone).day_start
            entry.applications_submitted_today = entry.submitted_on(day_start) + result.succeeded
            entry.counted_day = day_start
            with self.session_factory() as session:
                Repository(session).touch_session(
                    entry.session_id,
                    heartbeat_at=self.clock(),
                    applications=result.succeeded,
                )

        logger.info(
            "Processed user_id=%s processed=%s succeeded=%s failed=%s skipped=%s",
            user_id,
            result.processed,
            result.succeeded,
            result.failed,
            result.skipped,
        )
        return result

    async def _run_cycle(self, user_id: int, now: datetime) -> bool:
        entry = self.registry.get(user_id)
        if entry is None:
            return False

        try:
            with self.session_factory() as session:
                repo = Repository(session)
                policy = load_policy(repo, self.settings, user_id)
                repo.touch_session(entry.session_id, heartbeat_at=now)

            if entry.last_scan_at is not None:
                elapsed_hours = (now - entry.last_scan_at).total_seconds() / 3600
                if elapsed_hours < policy.scan_interval_hours:
                    return False

            logger.info("Running scheduled scan for user_id=%s", user_id)
            scan = await self.scan(user_id)
            if policy.automation_mode == "auto" and scan.qualified_count > 0 and user_id in self.registry:
                await self.process(user_id)
        except Exception:
            logger.exception("Scheduled cycle failed for user_id=%s", user_id)
            return False
        return True

    def _pause(self) -> float:
        return self.rng.uniform(self.settings.pacing_min_sec, self.settings.pacing_max_sec)
