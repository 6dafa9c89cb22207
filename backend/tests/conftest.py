"""
conftest.py: shared fixtures for the test suite.

Strategy:
- Every test gets its own in-memory SQLite database (aiosqlite + StaticPool),
  with tables created from the ORM metadata.
- The FastAPI ``get_db`` dependency is overridden to use that database, so API
  tests and direct-session assertions see the same rows.
- Pure services are tested with ScheduledEmployee / ScanRecord builders and
  never touch the database.
"""

from __future__ import annotations

import os

# Settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"

from datetime import date, datetime, time

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.models import Base, BiometricRecord, EmployeeSchedule, Site, User
from app.db.session import get_db
from app.main import app
from app.schemas.attendance import ScanRecord
from app.services.name_normalizer import normalize_name
from app.services.schedule_directory import WEEKDAYS, ScheduledEmployee

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# HTTP client fixture
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncClient:
    """HTTPX async client bound to the per-test database."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Row builders
# ---------------------------------------------------------------------------


async def add_site(db: AsyncSession, name: str = "Main Office") -> Site:
    site = Site(name=name)
    db.add(site)
    await db.commit()
    return site


async def add_employee(
    db: AsyncSession,
    first_name: str,
    last_name: str,
    site: Site,
    time_in: time,
    time_out: time,
    work_days: list[str] | None = None,
    middle_name: str | None = None,
) -> User:
    user = User(first_name=first_name, last_name=last_name, middle_name=middle_name, is_active=True)
    db.add(user)
    await db.flush()
    db.add(
        EmployeeSchedule(
            user_id=user.id,
            site_id=site.id,
            scheduled_time_in=time_in,
            scheduled_time_out=time_out,
            work_days=work_days if work_days is not None else list(WEEKDAYS[:5]),
            grace_period_minutes=15,
            is_active=True,
            effective_date=date(2025, 1, 1),
        )
    )
    await db.commit()
    return user


async def add_punch(db: AsyncSession, user: User, site: Site, when: str) -> BiometricRecord:
    scanned_at = datetime.fromisoformat(when)
    record = BiometricRecord(
        user_id=user.id,
        site_id=site.id,
        employee_name=user.name,
        scanned_at=scanned_at,
        record_date=scanned_at.date(),
    )
    db.add(record)
    await db.commit()
    return record


# ---------------------------------------------------------------------------
# Pure builders
# ---------------------------------------------------------------------------


def scan(name: str, when: str) -> ScanRecord:
    return ScanRecord(raw_name=name, normalized_name=normalize_name(name), datetime=datetime.fromisoformat(when))


def scheduled(
    user_id: int,
    first_name: str,
    last_name: str,
    time_in: time = time(8, 0),
    time_out: time = time(17, 0),
    site_id: int = 1,
    **kwargs,
) -> ScheduledEmployee:
    return ScheduledEmployee(
        user_id=user_id,
        first_name=first_name,
        last_name=last_name,
        schedule_id=None,
        site_id=site_id,
        scheduled_time_in=time_in,
        scheduled_time_out=time_out,
        **kwargs,
    )
