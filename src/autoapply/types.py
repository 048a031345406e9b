from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

AutomationMode = Literal["review", "auto"]
ApplicationStatus = Literal["pending", "ready_to_submit", "submitted", "failed"]
AtsType = Literal["workday", "greenhouse", "lever", "successfactors", "icims", "linkedin", "generic"]
JobScope = Literal["global", "user"]


def utcnow() -> datetime:
    return datetime.now(UTC)


class QuotaPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_daily_applications: int = Field(default=20, ge=0)
    max_weekly_applications: int = Field(default=50, ge=0)
    max_applications_per_company: int = Field(default=3, ge=0)
    min_match_score: int = Field(default=70, ge=0, le=100)
    scan_interval_hours: float = Field(default=2.0, ge=0)
    automation_mode: AutomationMode = "review"


class JobCandidate(BaseModel):
    id: int | None = None
    title: str
    company: str
    url: str
    match_score: float
    location: str = ""
    discovered_at: datetime = Field(default_factory=utcnow)
    scope: JobScope = "global"

    @field_validator("match_score")
    @classmethod
    def validate_match_score(cls, value: float) -> float:
        if value < 0 or value > 100:
            raise ValueError("match_score must be between 0 and 100")
        return value


class CompletenessReport(BaseModel):
    is_complete: bool
    missing_fields: list[str] = Field(default_factory=list)


class SubmissionOutcome(BaseModel):
    status: ApplicationStatus
    ats_type: AtsType = "generic"
    timestamp: datetime = Field(default_factory=utcnow)
    message: str = ""


class FieldDescriptor(BaseModel):
    tag: str
    input_type: str = "text"
    name: str = ""
    element_id: str = ""
    placeholder: str = ""
    label: str = ""
    value: str = ""
    required: bool = False
    options: list[str] = Field(default_factory=list)

    @property
    def selector(self) -> str:
        if self.element_id:
            return f"#{self.element_id}"
        return f'{self.tag}[name="{self.name}"]'

    @property
    def display_name(self) -> str:
        return self.label or self.placeholder or self.name or self.element_id


class ScreeningQuestion(BaseModel):
    text: str
    input_type: str = "text"
    selector: str = ""
    options: list[str] = Field(default_factory=list)


class JobContext(BaseModel):
    job_id: int
    title: str
    company: str
    url: str
    location: str = ""


class UserContext(BaseModel):
    user_id: int
    full_name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin_url: str = ""
    website_url: str = ""
    resume_path: str = ""
    current_job_title: str = ""
    years_experience: float = 0.0
    availability: str = ""

    @property
    def first_name(self) -> str:
        parts = self.full_name.strip().split()
        return parts[0] if parts else ""

    @property
    def last_name(self) -> str:
        parts = self.full_name.strip().split()
        return " ".join(parts[1:])


class ScanResult(BaseModel):
    jobs: list[JobCandidate] = Field(default_factory=list)
    total_found: int = 0
    qualified_count: int = 0
    daily_applications_used: int = 0
    remaining_applications: int = 0


class JobResult(BaseModel):
    job_id: int
    job_title: str = ""
    company: str = ""
    status: ApplicationStatus | Literal["skipped"]
    ats_type: AtsType | None = None
    message: str = ""


class ProcessResult(BaseModel):
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[JobResult] = Field(default_factory=list)


class StartResult(BaseModel):
    session_id: int
    initial_jobs: int
    policy: QuotaPolicy
    message: str = ""


class StopResult(BaseModel):
    stopped: bool
    message: str


class SessionInfo(BaseModel):
    session_id: int
    started_at: datetime
    last_scan_at: datetime | None = None
    applications_submitted_today: int = 0


class SessionStatus(BaseModel):
    active: bool
    session: SessionInfo | None = None
    pending_jobs: int = 0
    todays_applications: int = 0
    total_applications: int = 0
    daily_limit: int = 0
    remaining_today: int = 0


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)


class ProfileData(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin_url: str = ""
    website_url: str = ""
    resume_path: str = ""
    current_job_title: str = ""
    years_experience: float = Field(default=0.0, ge=0)
    availability: str = ""


class PreferenceData(BaseModel):
    desired_roles: list[str] = Field(default_factory=list)
    preferred_locations: list[str] = Field(default_factory=list)
    location_preference: str = ""
    salary_min: int = Field(default=0, ge=0)


class AnswerData(BaseModel):
    question: str
    answer: str


class ProfileImport(BaseModel):
    user_id: int
    profile: ProfileData
    preferences: PreferenceData | None = None
    policy: QuotaPolicy | None = None
    answers: list[AnswerData] = Field(default_factory=list)
