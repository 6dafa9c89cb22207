"""
Seed script: a demo site with a few scheduled employees.

Usage (inside container):
    python -m app.db.seed
"""

import asyncio
from datetime import date, time

from sqlalchemy import select

from app.db.models import EmployeeSchedule, Site, User
from app.db.session import async_session_factory

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday"]

DEMO_EMPLOYEES = [
    # first, last, time_in, time_out
    ("Angelo", "Nodado", time(7, 0), time(16, 0)),
    ("Benedict", "Nodado", time(22, 0), time(7, 0)),
    ("Maria Cristina", "Cabarliza", time(14, 0), time(23, 0)),
]


async def get_or_create_site(session, name: str) -> Site:
    result = await session.execute(select(Site).where(Site.name == name))
    site = result.scalar_one_or_none()
    if site:
        print(f"Site '{name}' already exists, skipping.")
        return site
    site = Site(name=name)
    session.add(site)
    await session.flush()
    print(f"Created site: id={site.id} name={name}")
    return site


async def create_employees(session, site: Site) -> None:
    for first, last, time_in, time_out in DEMO_EMPLOYEES:
        result = await session.execute(
            select(User).where(User.first_name == first, User.last_name == last)
        )
        if result.scalar_one_or_none():
            print(f"Employee {first} {last} already exists, skipping.")
            continue

        user = User(first_name=first, last_name=last, is_active=True)
        session.add(user)
        await session.flush()
        session.add(
            EmployeeSchedule(
                user_id=user.id,
                site_id=site.id,
                scheduled_time_in=time_in,
                scheduled_time_out=time_out,
                work_days=WEEKDAYS,
                is_active=True,
                effective_date=date(2025, 1, 1),
            )
        )
        print(f"Created employee: id={user.id} {first} {last} {time_in}-{time_out}")


async def main():
    async with async_session_factory() as session:
        async with session.begin():
            site = await get_or_create_site(session, "Main Office")
            await create_employees(session, site)
            print("Seed complete.")


if __name__ == "__main__":
    asyncio.run(main())
