"""Points ledger boundary: the engine records points, it never totals them."""

from __future__ import annotations

import logging
from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import AttendancePoint

logger = logging.getLogger(__name__)


class PointsLedger(Protocol):
    async def record_point(
        self, user_id: int, attendance_id: int, shift_date: date, point_type: str
    ) -> None: ...


class SqlPointsLedger:
    """Stores one AttendancePoint per attendance row; repeated calls update its type."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def record_point(
        self, user_id: int, attendance_id: int, shift_date: date, point_type: str
    ) -> None:
        result = await self.db.execute(
            select(AttendancePoint).where(AttendancePoint.attendance_id == attendance_id)
        )
        point = result.scalar_one_or_none()
        if point is None:
            self.db.add(
                AttendancePoint(
                    user_id=user_id,
                    attendance_id=attendance_id,
                    shift_date=shift_date,
                    point_type=point_type,
                )
            )
        else:
            point.point_type = point_type
        await self.db.flush()
        logger.info(
            "Point recorded: user=%d shift_date=%s type=%s", user_id, shift_date, point_type
        )
