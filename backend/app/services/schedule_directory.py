"""
Read-only view of employees with an active schedule.

The resolver and processor receive a ScheduleDirectory instead of querying the
database themselves, so they can be exercised with synthetic schedule sets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, time

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.models import EmployeeSchedule, User
from app.services.name_normalizer import normalize_name

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class ScheduledEmployee:
    user_id: int
    first_name: str
    last_name: str
    schedule_id: int | None
    site_id: int
    scheduled_time_in: time
    scheduled_time_out: time
    work_days: tuple[str, ...] = WEEKDAYS
    grace_period_minutes: int = field(default_factory=lambda: settings.GRACE_PERIOD_MINUTES)
    middle_name: str | None = None
    campaign_id: int | None = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def normalized_last_name(self) -> str:
        return normalize_name(self.last_name)

    @property
    def normalized_first_name(self) -> str:
        return normalize_name(self.first_name)

    def works_on(self, day: date) -> bool:
        return WEEKDAYS[day.weekday()] in self.work_days


class ScheduleDirectory:
    def __init__(self, employees: list[ScheduledEmployee]) -> None:
        self._by_user = {e.user_id: e for e in employees}

    def __len__(self) -> int:
        return len(self._by_user)

    def get(self, user_id: int) -> ScheduledEmployee | None:
        return self._by_user.get(user_id)

    def active(self, last_name_prefix: str | None = None) -> list[ScheduledEmployee]:
        """Employees with an active schedule, optionally narrowed by last-name prefix."""
        employees = list(self._by_user.values())
        if last_name_prefix:
            prefix = normalize_name(last_name_prefix)
            employees = [e for e in employees if e.normalized_last_name.startswith(prefix)]
        return sorted(employees, key=lambda e: e.user_id)

    @classmethod
    async def load(cls, db: AsyncSession, as_of: date | None = None) -> "ScheduleDirectory":
        """Snapshot active schedules of active users effective on ``as_of``."""
        as_of = as_of or date.today()
        stmt = (
            select(User, EmployeeSchedule)
            .join(EmployeeSchedule, EmployeeSchedule.user_id == User.id)
            .where(
                User.is_active.is_(True),
                EmployeeSchedule.is_active.is_(True),
                EmployeeSchedule.effective_date <= as_of,
                or_(EmployeeSchedule.end_date.is_(None), EmployeeSchedule.end_date >= as_of),
            )
            .order_by(User.id, EmployeeSchedule.effective_date)
        )
        result = await db.execute(stmt)

        # One schedule per user; the most recently effective one wins
        employees: dict[int, ScheduledEmployee] = {}
        for user, schedule in result.all():
            employees[user.id] = ScheduledEmployee(
                user_id=user.id,
                first_name=user.first_name,
                middle_name=user.middle_name,
                last_name=user.last_name,
                schedule_id=schedule.id,
                site_id=schedule.site_id,
                campaign_id=schedule.campaign_id,
                scheduled_time_in=schedule.scheduled_time_in,
                scheduled_time_out=schedule.scheduled_time_out,
                work_days=tuple(d.lower() for d in (schedule.work_days or [])),
                grace_period_minutes=schedule.grace_period_minutes,
            )

        logger.debug("Loaded %d active schedules as of %s", len(employees), as_of)
        return cls(list(employees.values()))
