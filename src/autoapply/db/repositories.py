from __future__ import annotations

import hashlib
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from autoapply.db.models import (
    Application,
    ApplicationStatusHistory,
    AutoApplyConfig,
    AutoApplySession,
    Job,
    JobMatch,
    JobPreference,
    ScreeningAnswer,
    UserProfile,
)
from autoapply.types import CompletenessReport, JobCandidate, SubmissionOutcome

PROFILE_REQUIRED_FIELDS: dict[str, str] = {
    "full_name": "full name",
    "phone": "phone",
    "resume_path": "resume",
    "current_job_title": "current job title",
    "availability": "availability",
}


def canonicalize_question(question: str) -> str:
    return " ".join(question.strip().lower().split())


def hash_question(question: str) -> str:
    return hashlib.sha256(canonicalize_question(question).encode("utf-8")).hexdigest()


def ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _attempted_at():
    # Retries reuse the row; quota is charged at the latest attempt.
    return func.coalesce(Application.last_retry_at, Application.created_at)


def _visible_to(user_id: int):
    return or_(Job.owner_user_id == user_id, Job.owner_user_id.is_(None))


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def upsert_user_profile(self, user_id: int, values: dict[str, Any]) -> UserProfile:
        profile = self.session.get(UserProfile, user_id)
        if profile:
            for key, value in values.items():
                setattr(profile, key, value)
        else:
            profile = UserProfile(user_id=user_id, **values)
            self.session.add(profile)

        self.session.commit()
        self.session.refresh(profile)
        return profile

    def get_user_profile(self, user_id: int) -> UserProfile | None:
        return self.session.get(UserProfile, user_id)

    def upsert_job_preferences(self, user_id: int, values: dict[str, Any]) -> JobPreference:
        existing = self.get_preferences(user_id)
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            obj = existing
        else:
            obj = JobPreference(user_id=user_id, **values)
            self.session.add(obj)

        self.session.commit()
        self.session.refresh(obj)
        return obj

    def get_preferences(self, user_id: int) -> JobPreference | None:
        return self.session.scalar(select(JobPreference).where(JobPreference.user_id == user_id))

    def check_profile_completeness(self, user_id: int) -> CompletenessReport:
        profile = self.get_user_profile(user_id)
        if profile is None:
            return CompletenessReport(is_complete=False, missing_fields=["profile"])

        missing = [label for attr, label in PROFILE_REQUIRED_FIELDS.items() if not getattr(profile, attr)]
        return CompletenessReport(is_complete=not missing, missing_fields=missing)

    def upsert_autoapply_config(self, user_id: int, values: dict[str, Any]) -> AutoApplyConfig:
        config = self.session.get(AutoApplyConfig, user_id)
        if config:
            for key, value in values.items():
                setattr(config, key, value)
        else:
            config = AutoApplyConfig(user_id=user_id, **values)
            self.session.add(config)

        self.session.commit()
        self.session.refresh(config)
        return config

    def get_autoapply_config(self, user_id: int) -> AutoApplyConfig | None:
        return self.session.get(AutoApplyConfig, user_id)

    def upsert_job(
        self,
        *,
        url: str,
        title: str,
        company: str,
        location: str = "",
        owner_user_id: int | None = None,
        discovered_at: datetime | None = None,
    ) -> Job:
        job = self.session.scalar(select(Job).where(Job.url == url))
        if job:
            job.title = title or job.title
            job.company = company or job.company
            job.location = location or job.location
        else:
            job = Job(
                url=url,
                title=title,
                company=company,
                location=location,
                owner_user_id=owner_user_id,
                discovered_at=discovered_at or datetime.now(UTC),
            )
            self.session.add(job)

        self.session.commit()
        self.session.refresh(job)
        return job

    def get_job(self, job_id: int) -> Job | None:
        return self.session.get(Job, job_id)

    def get_jobs_by_ids(self, job_ids: Sequence[int], user_id: int) -> list[Job]:
        if not job_ids:
            return []
        statement = select(Job).where(and_(Job.id.in_(list(job_ids)), _visible_to(user_id)))
        by_id = {job.id: job for job in self.session.scalars(statement).all()}
        return [by_id[job_id] for job_id in job_ids if job_id in by_id]

    def set_job_ats_type(self, job_id: int, ats_type: str) -> None:
        job = self.session.get(Job, job_id)
        if not job:
            raise ValueError(f"job {job_id} not found")
        job.ats_type = ats_type
        self.session.commit()

    def record_candidate(self, user_id: int, candidate: JobCandidate, *, scanned_at: datetime) -> Job:
        job = self.upsert_job(
            url=candidate.url,
            title=candidate.title,
            company=candidate.company,
            location=candidate.location,
            owner_user_id=user_id if candidate.scope == "user" else None,
            discovered_at=candidate.discovered_at,
        )
        match = self.session.scalar(
            select(JobMatch).where(and_(JobMatch.user_id == user_id, JobMatch.job_id == job.id))
        )
        if match:
            match.match_score = candidate.match_score
            match.scanned_at = scanned_at
        else:
            self.session.add(
                JobMatch(
                    user_id=user_id,
                    job_id=job.id,
                    match_score=candidate.match_score,
                    scanned_at=scanned_at,
                )
            )

        self.session.commit()
        return job

    def list_scored_jobs(self, user_id: int, limit: int = 50) -> list[tuple[Job, JobMatch]]:
        statement = (
            select(Job, JobMatch)
            .join(JobMatch, and_(JobMatch.job_id == Job.id, JobMatch.user_id == user_id))
            .where(and_(_visible_to(user_id), Job.is_active.is_(True)))
            .order_by(JobMatch.match_score.desc(), JobMatch.scanned_at.desc())
            .limit(limit)
        )
        return [(job, match) for job, match in self.session.execute(statement).all()]

    def list_qualified_jobs(
        self,
        user_id: int,
        *,
        min_match_score: float,
        max_retries: int,
        limit: int = 10,
    ) -> list[Job]:
        statement = (
            select(Job)
            .join(JobMatch, and_(JobMatch.job_id == Job.id, JobMatch.user_id == user_id))
            .outerjoin(Application, and_(Application.job_id == Job.id, Application.user_id == user_id))
            .where(
                and_(
                    _visible_to(user_id),
                    Job.is_active.is_(True),
                    JobMatch.match_score >= min_match_score,
                    or_(
                        Application.id.is_(None),
                        and_(Application.status == "failed", Application.retry_count < max_retries),
                    ),
                )
            )
            .order_by(JobMatch.match_score.desc(), Job.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(statement).all())

    def count_pending_jobs(self, user_id: int) -> int:
        statement = (
            select(func.count(Job.id))
            .outerjoin(Application, and_(Application.job_id == Job.id, Application.user_id == user_id))
            .where(and_(_visible_to(user_id), Job.is_active.is_(True), Application.id.is_(None)))
        )
        return int(self.session.scalar(statement) or 0)

    def create_session(self, user_id: int, *, started_at: datetime) -> AutoApplySession:
        row = AutoApplySession(
            user_id=user_id,
            status="active",
            started_at=started_at,
            heartbeat_at=started_at,
        )
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def get_session(self, session_id: int) -> AutoApplySession | None:
        return self.session.get(AutoApplySession, session_id)

    def end_session(self, session_id: int, *, ended_at: datetime, status: str = "ended") -> AutoApplySession:
        row = self.session.get(AutoApplySession, session_id)
        if not row:
            raise ValueError(f"session {session_id} not found")
        row.status = status
        row.ended_at = ended_at
        self.session.commit()
        self.session.refresh(row)
        return row

    def touch_session(
        self,
        session_id: int,
        *,
        heartbeat_at: datetime,
        last_scan_at: datetime | None = None,
        jobs_scanned: int = 0,
        applications: int = 0,
    ) -> None:
        row = self.session.get(AutoApplySession, session_id)
        if not row:
            raise ValueError(f"session {session_id} not found")
        row.heartbeat_at = heartbeat_at
        if last_scan_at is not None:
            row.last_scan_at = last_scan_at
        row.jobs_scanned += jobs_scanned
        row.applications_count += applications
        self.session.commit()

    def list_active_sessions(self) -> list[AutoApplySession]:
        statement = (
            select(AutoApplySession)
            .where(AutoApplySession.status == "active")
            .order_by(AutoApplySession.started_at.asc())
        )
        return list(self.session.scalars(statement).all())

    def list_user_sessions(self, user_id: int) -> list[AutoApplySession]:
        statement = (
            select(AutoApplySession)
            .where(AutoApplySession.user_id == user_id)
            .order_by(AutoApplySession.id.asc())
        )
        return list(self.session.scalars(statement).all())

    def get_application(self, user_id: int, job_id: int) -> Application | None:
        statement = select(Application).where(
            and_(Application.user_id == user_id, Application.job_id == job_id)
        )
        return self.session.scalar(statement)

    def has_blocking_application(self, user_id: int, job_id: int, *, max_retries: int) -> bool:
        existing = self.get_application(user_id, job_id)
        if existing is None:
            return False
        return not (existing.status == "failed" and existing.retry_count < max_retries)

    def reserve_application(self, user_id: int, job_id: int, *, mode: str, now: datetime) -> Application:
        existing = self.get_application(user_id, job_id)
        if existing is None:
            application = Application(user_id=user_id, job_id=job_id, status="pending", application_mode=mode)
            self.session.add(application)
            self.session.flush()
            self._append_history(application, old_status="", new_status="pending", message="reserved")
        else:
            application = existing
            old_status = application.status
            if old_status == "failed":
                application.retry_count += 1
                application.last_retry_at = now
            application.status = "pending"
            application.application_mode = mode
            application.error_message = ""
            if old_status != "pending":
                self._append_history(application, old_status=old_status, new_status="pending", message="retry")

        self.session.commit()
        self.session.refresh(application)
        return application

    def record_outcome(self, user_id: int, job_id: int, outcome: SubmissionOutcome, *, mode: str) -> Application:
        application = self.get_application(user_id, job_id)
        old_status = application.status if application else ""
        if application is None:
            application = Application(user_id=user_id, job_id=job_id, application_mode=mode)
            self.session.add(application)

        application.status = outcome.status
        application.ats_type = outcome.ats_type
        application.error_message = outcome.message if outcome.status == "failed" else ""
        application.ats_data_json = outcome.model_dump(mode="json")
        if outcome.status == "submitted":
            application.applied_at = outcome.timestamp
        self.session.flush()

        if old_status != outcome.status:
            self._append_history(
                application,
                old_status=old_status,
                new_status=outcome.status,
                message=outcome.message,
            )

        self.session.commit()
        self.session.refresh(application)
        return application

    def append_status_history(
        self,
        application_id: int,
        *,
        new_status: str,
        message: str = "",
        changed_by: str = "user",
    ) -> ApplicationStatusHistory:
        application = self.session.get(Application, application_id)
        if not application:
            raise ValueError(f"application {application_id} not found")
        old_status = application.status
        application.status = new_status
        entry = self._append_history(
            application,
            old_status=old_status,
            new_status=new_status,
            message=message,
            changed_by=changed_by,
        )
        self.session.commit()
        self.session.refresh(entry)
        return entry

    def list_status_history(self, application_id: int) -> list[ApplicationStatusHistory]:
        statement = (
            select(ApplicationStatusHistory)
            .where(ApplicationStatusHistory.application_id == application_id)
            .order_by(ApplicationStatusHistory.id.asc())
        )
        return list(self.session.scalars(statement).all())

    def list_applications(self, user_id: int) -> list[Application]:
        statement = select(Application).where(Application.user_id == user_id).order_by(Application.id.asc())
        return list(self.session.scalars(statement).all())

    def count_applications_since(self, user_id: int, since: datetime) -> int:
        statement = select(func.count(Application.id)).where(
            and_(Application.user_id == user_id, _attempted_at() >= since)
        )
        return int(self.session.scalar(statement) or 0)

    def count_company_applications_since(self, user_id: int, company: str, since: datetime) -> int:
        statement = (
            select(func.count(Application.id))
            .join(Job, Job.id == Application.job_id)
            .where(
                and_(
                    Application.user_id == user_id,
                    _attempted_at() >= since,
                    func.lower(Job.company) == company.strip().lower(),
                )
            )
        )
        return int(self.session.scalar(statement) or 0)

    def count_total_applications(self, user_id: int) -> int:
        statement = select(func.count(Application.id)).where(Application.user_id == user_id)
        return int(self.session.scalar(statement) or 0)

    def get_screening_answer(self, user_id: int, question: str) -> ScreeningAnswer | None:
        statement = select(ScreeningAnswer).where(
            and_(
                ScreeningAnswer.user_id == user_id,
                ScreeningAnswer.question_hash == hash_question(question),
            )
        )
        return self.session.scalar(statement)

    def save_screening_answer(
        self,
        *,
        user_id: int,
        question: str,
        answer: str,
        source: str = "manual",
    ) -> ScreeningAnswer:
        existing = self.get_screening_answer(user_id, question)
        if existing:
            existing.answer_text = answer
            existing.source = source
            obj = existing
        else:
            obj = ScreeningAnswer(
                user_id=user_id,
                question_hash=hash_question(question),
                question_text=question.strip(),
                answer_text=answer,
                source=source,
            )
            self.session.add(obj)

        self.session.commit()
        self.session.refresh(obj)
        return obj

    def list_screening_answers(self, user_id: int) -> list[ScreeningAnswer]:
        statement = (
            select(ScreeningAnswer)
            .where(ScreeningAnswer.user_id == user_id)
            .order_by(ScreeningAnswer.updated_at.desc())
        )
        return list(self.session.scalars(statement).all())

    def _append_history(
        self,
        application: Application,
        *,
        old_status: str,
        new_status: str,
        message: str = "",
        changed_by: str = "system",
    ) -> ApplicationStatusHistory:
        entry = ApplicationStatusHistory(
            application_id=application.id,
            old_status=old_status,
            new_status=new_status,
            status_message=message,
            changed_by=changed_by,
        )
        self.session.add(entry)
        return entry
