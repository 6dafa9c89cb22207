import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Attendance
from app.db.session import get_db
from app.schemas.attendance import (
    AttendanceResponse,
    AttendanceStatus,
    ReprocessRequest,
    ReprocessResultResponse,
    VerifyResultResponse,
)
from app.services.attendance_processor import AttendanceProcessor
from app.services.points_ledger import SqlPointsLedger
from app.services.schedule_directory import ScheduleDirectory

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[AttendanceResponse], summary="List attendance rows")
async def list_attendance(
    shift_date: date | None = Query(default=None),
    user_id: int | None = Query(default=None),
    status: AttendanceStatus | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
) -> list[AttendanceResponse]:
    stmt = select(Attendance).order_by(Attendance.shift_date.desc(), Attendance.user_id)
    if shift_date is not None:
        stmt = stmt.where(Attendance.shift_date == shift_date)
    if user_id is not None:
        stmt = stmt.where(Attendance.user_id == user_id)
    if status is not None:
        stmt = stmt.where(Attendance.status == status)

    result = await db.execute(stmt.limit(limit))
    return [AttendanceResponse.model_validate(row) for row in result.scalars().all()]


@router.post(
    "/{attendance_id}/verify",
    response_model=VerifyResultResponse,
    summary="Admin-verify an attendance row and record its point",
)
async def verify_attendance(
    attendance_id: int,
    db: AsyncSession = Depends(get_db),
) -> VerifyResultResponse:
    processor = AttendanceProcessor(db, ScheduleDirectory([]), SqlPointsLedger(db))
    row, point_type = await processor.verify_attendance(attendance_id)
    logger.info("Attendance %d verified (point=%s)", attendance_id, point_type)
    return VerifyResultResponse(attendance=AttendanceResponse.model_validate(row), point_type=point_type)


@router.post(
    "/reprocess",
    response_model=ReprocessResultResponse,
    summary="Rebuild attendance from stored biometric records",
)
async def reprocess_attendance(
    payload: ReprocessRequest,
    db: AsyncSession = Depends(get_db),
) -> ReprocessResultResponse:
    directory = await ScheduleDirectory.load(db, as_of=payload.date_to)
    processor = AttendanceProcessor(db, directory)
    result = await processor.reprocess_from_biometric(payload.date_from, payload.date_to, payload.user_ids)
    return ReprocessResultResponse(**result)
