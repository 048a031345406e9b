from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from autoapply.config import Settings
from autoapply.db.repositories import Repository
from autoapply.types import QuotaPolicy


@dataclass(frozen=True, slots=True)
class QuotaWindow:
    day_start: datetime
    week_start: datetime

    @classmethod
    def at(cls, now: datetime, timezone: str = "UTC") -> "QuotaWindow":
        local_now = now.astimezone(ZoneInfo(timezone))
        local_midnight = datetime.combine(local_now.date(), time.min, tzinfo=local_now.tzinfo)
        day_start = local_midnight.astimezone(UTC)
        return cls(day_start=day_start, week_start=(now - timedelta(days=7)).astimezone(UTC))


@dataclass(frozen=True, slots=True)
class QuotaUsage:
    today: int
    this_week: int

    def remaining(self, policy: QuotaPolicy) -> int:
        return max(
            0,
            min(
                policy.max_daily_applications - self.today,
                policy.max_weekly_applications - self.this_week,
            ),
        )

    def exhausted(self, policy: QuotaPolicy) -> bool:
        return self.today >= policy.max_daily_applications or self.this_week >= policy.max_weekly_applications


def load_policy(repo: Repository, settings: Settings, user_id: int) -> QuotaPolicy:
    config = repo.get_autoapply_config(user_id)
    if config is None:
        return QuotaPolicy(
            max_daily_applications=settings.default_max_daily_applications,
            max_weekly_applications=settings.default_max_weekly_applications,
            max_applications_per_company=settings.default_max_applications_per_company,
            min_match_score=settings.default_min_match_score,
            scan_interval_hours=settings.default_scan_interval_hours,
            automation_mode=settings.default_automation_mode,
        )

    return QuotaPolicy(
        max_daily_applications=config.max_daily_applications,
        max_weekly_applications=config.max_weekly_applications,
        max_applications_per_company=config.max_applications_per_company,
        min_match_score=config.min_match_score,
        scan_interval_hours=config.scan_interval_hours,
        automation_mode=config.automation_mode,
    )


def read_usage(repo: Repository, user_id: int, window: QuotaWindow) -> QuotaUsage:
    return QuotaUsage(
        today=repo.count_applications_since(user_id, window.day_start),
        this_week=repo.count_applications_since(user_id, window.week_start),
    )
