from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "AutoApply"
    app_env: str = "development"
    timezone: str = "UTC"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/autoapply.db"
    data_dir: Path = Path("./data")
    resume_dir: Path = Path("./data/resumes")

    browser_headless: bool = True
    browser_nav_timeout_sec: int = 30
    browser_action_timeout_sec: int = 10
    browser_settle_ms: int = 2000
    browser_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    browser_viewport_width: int = 1920
    browser_viewport_height: int = 1080
    browser_launch_args: str = "--no-sandbox,--disable-setuid-sandbox,--disable-dev-shm-usage,--disable-gpu"

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model_resolver: str = "gpt-4o-mini"
    openai_timeout_sec: int = 60

    local_llm_enabled: bool = False
    local_llm_base_url: str = "http://localhost:11434/v1"
    local_llm_api_key: str = "local"
    local_llm_model: str = "qwen2.5:14b-instruct"
    local_llm_timeout_sec: int = 90

    llm_router_default: str = "openai"
    llm_router_field_provider: str = "openai"
    llm_router_screening_provider: str = "openai"

    candidate_source: str = "database"
    candidate_source_url: str = ""
    candidate_source_timeout_sec: int = 30

    scheduler_tick_minutes: float = 30.0
    scheduler_max_parallel_users: int = 2
    session_lease_ttl_min: int = 90

    pacing_min_sec: float = 5.0
    pacing_max_sec: float = 15.0

    default_max_daily_applications: int = 20
    default_max_weekly_applications: int = 50
    default_max_applications_per_company: int = 3
    default_min_match_score: int = 70
    default_scan_interval_hours: float = 2.0
    default_automation_mode: str = "review"

    max_application_retries: int = 2
    qualified_jobs_fallback_limit: int = 10

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("candidate_source")
    @classmethod
    def validate_candidate_source(cls, value: str) -> str:
        allowed = {"database", "http"}
        if value not in allowed:
            raise ValueError(f"candidate_source must be one of {sorted(allowed)}")
        return value

    @field_validator("default_automation_mode")
    @classmethod
    def validate_automation_mode(cls, value: str) -> str:
        if value not in {"review", "auto"}:
            raise ValueError("default_automation_mode must be 'review' or 'auto'")
        return value

    @model_validator(mode="after")
    def validate_pacing(self) -> "Settings":
        if self.pacing_min_sec < 0 or self.pacing_max_sec < self.pacing_min_sec:
            raise ValueError("pacing window must satisfy 0 <= pacing_min_sec <= pacing_max_sec")
        return self

    @property
    def browser_launch_arg_list(self) -> list[str]:
        return [arg.strip() for arg in self.browser_launch_args.split(",") if arg.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
