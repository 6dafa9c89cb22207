import logging
import math
from datetime import date

from fastapi import APIRouter, Depends, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import AttendanceUpload, Site
from app.db.session import get_db
from app.schemas.attendance import ImportResultResponse, UnmatchedName
from app.services.attendance_processor import AttendanceProcessor
from app.services.points_ledger import SqlPointsLedger
from app.services.schedule_directory import ScheduleDirectory

logger = logging.getLogger(__name__)

router = APIRouter()

_ALLOWED_EXTENSIONS = {".txt", ".dat", ".csv"}


def _file_extension(filename: str | None) -> str:
    if not filename:
        return ""
    idx = filename.rfind(".")
    return filename[idx:].lower() if idx != -1 else ""


@router.post(
    "/upload",
    response_model=ImportResultResponse,
    summary="Upload a biometric device export",
)
async def upload_file(
    file: UploadFile,
    shift_date: date = Form(...),
    biometric_site_id: int = Form(...),
    date_from: date | None = Form(default=None),
    date_to: date | None = Form(default=None),
    filter_by_date: bool = Form(default=False),
    db: AsyncSession = Depends(get_db),
) -> ImportResultResponse:
    ext = _file_extension(file.filename)
    logger.info("Upload '%s' (extension '%s', site %d, shift %s)", file.filename, ext, biometric_site_id, shift_date)

    if ext not in _ALLOWED_EXTENSIONS:
        logger.warning("Rejected '%s': unsupported extension '%s'", file.filename, ext)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file type '{ext}'. Allowed: {', '.join(sorted(_ALLOWED_EXTENSIONS))}",
        )
    if (date_from is None) != (date_to is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="date_from and date_to must be given together",
        )
    if date_from and date_to and date_from > date_to:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="date_from must not be after date_to",
        )
    if await db.get(Site, biometric_site_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Site {biometric_site_id} not found",
        )

    content = await file.read()

    upload = AttendanceUpload(
        filename=file.filename or "unknown",
        shift_date=shift_date,
        biometric_site_id=biometric_site_id,
        date_from=date_from,
        date_to=date_to,
        status="pending",
    )
    db.add(upload)
    # Committed first so a failed run can still be recorded on it
    await db.commit()

    directory = await ScheduleDirectory.load(db, as_of=shift_date)
    processor = AttendanceProcessor(db, directory, SqlPointsLedger(db))
    summary = await processor.process_upload(upload, content, filter_by_date=filter_by_date)

    return ImportResultResponse(
        upload_id=upload.id,
        filename=upload.filename,
        status=upload.status,
        total_records=summary.total_records,
        skipped_lines=summary.skipped_lines,
        unique_employees=summary.unique_employees,
        matched_employees=summary.matched_employees,
        processed=summary.processed,
        ncns_marked=summary.ncns_marked,
        biometric_records_saved=summary.biometric_records_saved,
        unmatched_names=[UnmatchedName(**entry) for entry in summary.unmatched_names],
        non_work_day_scans=summary.non_work_day_scans,
        dates_found=summary.dates_found,
        warnings=summary.warnings,
        errors=summary.errors,
    )


@router.get(
    "/history",
    summary="List upload history (paginated)",
)
async def list_history(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict:
    total = (await db.execute(select(func.count()).select_from(AttendanceUpload))).scalar_one()
    offset = (page - 1) * per_page
    result = await db.execute(
        select(AttendanceUpload)
        .order_by(AttendanceUpload.uploaded_at.desc(), AttendanceUpload.id.desc())
        .offset(offset)
        .limit(per_page)
    )

    items = [
        {
            "id": u.id,
            "filename": u.filename,
            "shift_date": u.shift_date.isoformat(),
            "biometric_site_id": u.biometric_site_id,
            "uploaded_at": u.uploaded_at.isoformat() if u.uploaded_at else None,
            "status": u.status,
            "stats": u.stats,
            "error_message": u.error_message,
        }
        for u in result.scalars().all()
    ]

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "pages": math.ceil(total / per_page) if total > 0 else 1,
        "items": items,
    }
