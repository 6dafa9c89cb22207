"""
Attendance processing.

Turns resolved scan groups into Attendance rows keyed by (user_id, shift_date):

  parse -> group by name -> resolve employee -> store biometric punches
        -> bucket by shift-date -> time-in/time-out -> status -> upsert
        -> NCNS for scheduled employees without a row

Missing or malformed scans are never an error here: a shift without a time-in
is simply unobserved, and the absent-employee pass decides on NCNS.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidDateRangeError, RecordNotFoundError
from app.db.models import (
    Attendance,
    AttendanceUpload,
    BiometricRecord,
    LeaveRequest,
)
from app.schemas.attendance import ScanRecord
from app.services import file_parser
from app.services.employee_resolver import EmployeeResolver
from app.services.name_normalizer import normalize_name
from app.services.points_ledger import PointsLedger
from app.services.schedule_directory import ScheduleDirectory, ScheduledEmployee
from app.services.shift_calendar import ShiftCalendar, group_records_by_shift_date

logger = logging.getLogger(__name__)

POINT_TYPE_BY_STATUS: dict[str, str] = {
    "ncns": "whole_day_absence",
    "tardy": "tardy",
    "half_day_absence": "half_day_absence",
    "undertime": "undertime",
}


def determine_time_in_status(tardy_minutes: int, grace_period: int = 15) -> str:
    """on_time at or before schedule, tardy within grace, half_day_absence beyond it."""
    if tardy_minutes <= 0:
        return "on_time"
    if tardy_minutes <= grace_period:
        return "tardy"
    return "half_day_absence"


def map_status_to_point_type(status: str) -> str | None:
    return POINT_TYPE_BY_STATUS.get(status)


def _whole_minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)


def _scan_site(scan: ScanRecord | None, default_site_id: int | None) -> int | None:
    if scan is None:
        return None
    return scan.site_id if scan.site_id is not None else default_site_id


def is_lone_time_out(
    bucket: list[ScanRecord],
    scan: ScanRecord,
    scheduled_start: datetime,
    scheduled_end: datetime,
) -> bool:
    """
    True when ``scan`` is the shift's only scan and reads as a time-out.

    A lone scan at or after the midpoint of the scheduled shift is a time-out,
    unless it is more than SINGLE_SCAN_LATE_TIME_IN_HOURS past the scheduled
    end, where it can only be a very late time-in.
    """
    if any(r.datetime != scan.datetime for r in bucket):
        return False
    if scan.datetime - scheduled_end > timedelta(hours=settings.SINGLE_SCAN_LATE_TIME_IN_HOURS):
        return False
    midpoint = scheduled_start + (scheduled_end - scheduled_start) / 2
    return scan.datetime >= midpoint


def detect_extreme_scan_patterns(
    bucket: list[ScanRecord],
    time_in: ScanRecord | None,
    time_out: ScanRecord | None,
    scheduled_start: datetime,
    scheduled_end: datetime,
) -> list[str]:
    """Warnings for scans too far from the schedule to trust without review."""
    warnings: list[str] = []

    stray = timedelta(hours=settings.STRAY_SCAN_HOURS)
    if 0 < len(bucket) <= 2 and all(
        abs(r.datetime - scheduled_start) > stray and abs(r.datetime - scheduled_end) > stray
        for r in bucket
    ):
        times = ", ".join(f"{r.datetime:%Y-%m-%d %H:%M}" for r in bucket)
        warnings.append(
            f"Only {len(bucket)} scan(s) ({times}) and none is near the scheduled "
            f"{scheduled_start:%H:%M}-{scheduled_end:%H:%M}; check the shift assignment"
        )

    if time_in is not None:
        early = _whole_minutes(scheduled_start - time_in.datetime)
        if early > settings.EXTREME_EARLY_TIME_IN_MINUTES:
            warnings.append(
                f"Time-in is {early / 60:.1f}h before scheduled start "
                f"({time_in.datetime:%Y-%m-%d %H:%M} vs {scheduled_start:%Y-%m-%d %H:%M})"
            )

    if time_out is not None:
        late = _whole_minutes(time_out.datetime - scheduled_end)
        early = _whole_minutes(scheduled_end - time_out.datetime)
        if late > settings.EXTREME_LATE_TIME_OUT_MINUTES:
            warnings.append(
                f"Time-out is {late / 60:.1f}h after scheduled end "
                f"({time_out.datetime:%Y-%m-%d %H:%M} vs {scheduled_end:%Y-%m-%d %H:%M})"
            )
        elif early > settings.EXTREME_EARLY_TIME_OUT_MINUTES:
            warnings.append(
                f"Time-out is {early / 60:.1f}h before scheduled end "
                f"({time_out.datetime:%Y-%m-%d %H:%M} vs {scheduled_end:%Y-%m-%d %H:%M})"
            )
    return warnings


@dataclass
class ShiftOutcome:
    user_id: int
    shift_date: date
    observed: bool
    status: str | None = None
    attendance_id: int | None = None
    skipped_reason: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class UploadSummary:
    total_records: int = 0
    skipped_lines: int = 0
    unique_employees: int = 0
    matched_employees: int = 0
    processed: int = 0
    ncns_marked: int = 0
    biometric_records_saved: int = 0
    unmatched_names: list[dict] = field(default_factory=list)
    non_work_day_scans: list[str] = field(default_factory=list)
    dates_found: list[date] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    date_range_summary: dict | None = None

    def as_stats(self) -> dict:
        """JSON-safe form stored on AttendanceUpload.stats."""
        return {
            "total_records": self.total_records,
            "skipped_lines": self.skipped_lines,
            "unique_employees": self.unique_employees,
            "matched_employees": self.matched_employees,
            "processed": self.processed,
            "ncns_marked": self.ncns_marked,
            "biometric_records_saved": self.biometric_records_saved,
            "unmatched_names": self.unmatched_names[:200],
            "non_work_day_scans": self.non_work_day_scans[:200],
            "dates_found": [d.isoformat() for d in self.dates_found],
            "warnings": self.warnings[:100],
            "errors": self.errors[:100],
            "date_range_summary": self.date_range_summary,
        }


class AttendanceProcessor:
    def __init__(
        self,
        db: AsyncSession,
        directory: ScheduleDirectory,
        ledger: PointsLedger | None = None,
    ) -> None:
        self.db = db
        self.directory = directory
        self.resolver = EmployeeResolver(directory)
        self.ledger = ledger

    # ------------------------------------------------------------------
    # Upload orchestration
    # ------------------------------------------------------------------

    async def process_upload(
        self, upload: AttendanceUpload, raw: bytes, filter_by_date: bool = False
    ) -> UploadSummary:
        """
        Process one device export for ``upload`` and commit the result.

        Structural failures mark the upload ``failed`` and are re-raised.
        """
        upload_id = upload.id
        upload.status = "processing"
        await self.db.flush()

        try:
            summary = await self._process_upload(upload, raw, filter_by_date)
        except Exception as exc:
            logger.exception("Upload %s failed", upload_id)
            await self.db.rollback()
            failed = await self.db.get(AttendanceUpload, upload_id)
            if failed is not None:
                failed.status = "failed"
                failed.error_message = str(exc)[:2000]
                await self.db.commit()
            raise

        upload.status = "completed"
        upload.stats = summary.as_stats()
        await self.db.commit()
        logger.info(
            "Upload %d completed: records=%d matched=%d processed=%d ncns=%d unmatched=%d",
            upload_id, summary.total_records, summary.matched_employees,
            summary.processed, summary.ncns_marked, len(summary.unmatched_names),
        )
        return summary

    def _shift_dates_in_scope(self, upload: AttendanceUpload) -> list[date]:
        if upload.date_from and upload.date_to:
            days = (upload.date_to - upload.date_from).days
            return [upload.date_from + timedelta(days=i) for i in range(days + 1)]
        return [upload.shift_date]

    async def _process_upload(
        self, upload: AttendanceUpload, raw: bytes, filter_by_date: bool
    ) -> UploadSummary:
        summary = UploadSummary()
        parsed = file_parser.parse_bytes(raw)
        records = parsed.records
        summary.skipped_lines = parsed.skipped_lines

        if upload.date_from and upload.date_to and upload.date_from > upload.date_to:
            raise InvalidDateRangeError("date_from must not be after date_to")

        if filter_by_date and upload.date_from and upload.date_to:
            split = file_parser.filter_by_date_range(records, upload.date_from, upload.date_to)
            records = split["within_range"]
            summary.date_range_summary = split["summary"]
            if split["outside_range"]:
                summary.warnings.append(
                    f"{len(split['outside_range'])} records outside "
                    f"{upload.date_from.isoformat()}..{upload.date_to.isoformat()} were ignored"
                )

        stats = file_parser.get_statistics(records)
        summary.total_records = stats["total_records"]
        summary.unique_employees = stats["unique_employees"]

        date_check = file_parser.validate_file_dates(records, upload.shift_date)
        summary.dates_found = date_check["dates_found"]
        if not (upload.date_from and upload.date_to):
            summary.warnings.extend(date_check["warnings"])

        matched: dict[int, list[ScanRecord]] = defaultdict(list)
        for name, group in file_parser.group_by_employee(records).items():
            employee = self.resolver.find_user_by_name(name, group)
            if employee is None:
                summary.unmatched_names.append(self._unmatched_entry(name, group))
                continue
            matched[employee.user_id].extend(group)

        summary.matched_employees = len(matched)
        summary.biometric_records_saved = await self.save_biometric_records(upload, matched)

        in_scope = set(self._shift_dates_in_scope(upload))
        for user_id, user_records in matched.items():
            employee = self.directory.get(user_id)
            for shift_date, bucket in group_records_by_shift_date(user_records, employee).items():
                if shift_date not in in_scope:
                    continue
                if not employee.works_on(shift_date):
                    summary.non_work_day_scans.append(
                        f"{employee.name}: {len(bucket)} scan(s) on non-work day {shift_date.isoformat()}"
                    )
                    continue
                outcome = await self.process_attendance(
                    employee, bucket, shift_date, upload.biometric_site_id
                )
                if outcome.status is not None:
                    summary.processed += 1
                summary.warnings.extend(f"{employee.name}: {w}" for w in outcome.warnings)

        file_dates = set(summary.dates_found)
        absent_dates = sorted(d for d in in_scope if d in file_dates)
        summary.ncns_marked = await self.mark_absent_employees(absent_dates, upload.biometric_site_id)
        return summary

    def _unmatched_entry(self, name: str, group: list[ScanRecord]) -> dict:
        entry = {"name": group[0].raw_name, "record_count": len(group), "suggestion": None, "suggestion_score": None}
        suggestion = self.resolver.suggest_closest(name)
        if suggestion is not None:
            entry["suggestion"], entry["suggestion_score"] = suggestion
        logger.warning(
            "Unmatched name '%s' (%d records), suggestion=%s",
            name, len(group), entry["suggestion"],
        )
        return entry

    # ------------------------------------------------------------------
    # Per-shift processing
    # ------------------------------------------------------------------

    async def process_attendance(
        self,
        employee: ScheduledEmployee,
        records: list[ScanRecord],
        shift_date: date,
        biometric_site_id: int | None = None,
    ) -> ShiftOutcome:
        """
        Compute and upsert the Attendance row for one employee and shift-date.

        ``biometric_site_id`` is the site of the uploaded export; scans that
        carry their own ``site_id`` (stored punches) use that instead.
        """
        calendar = ShiftCalendar(employee)
        bucket = sorted(
            (r for r in records if calendar.shift_date_for(r.datetime) == shift_date),
            key=lambda r: r.datetime,
        )
        outcome = ShiftOutcome(user_id=employee.user_id, shift_date=shift_date, observed=False)

        if calendar.next_day:
            start_hour, end_hour = calendar.time_in_hour_range()
            time_in = file_parser.find_time_in_record_by_time_range(bucket, shift_date, start_hour, end_hour)
        else:
            time_in = file_parser.find_time_in_record(bucket, shift_date, employee.scheduled_time_in)

        if time_in is None:
            logger.debug("No time-in for user %d on %s", employee.user_id, shift_date)
            return outcome
        outcome.observed = True

        existing = await self._get_attendance(employee.user_id, shift_date)
        if existing is not None and existing.admin_verified:
            outcome.skipped_reason = "admin_verified"
            outcome.attendance_id = existing.id
            outcome.status = existing.status
            return outcome

        scheduled_start = calendar.scheduled_start(shift_date)
        scheduled_end = calendar.scheduled_end(shift_date)

        if is_lone_time_out(bucket, time_in, scheduled_start, scheduled_end):
            time_in, time_out = None, time_in
            outcome.warnings.append(
                f"No time-in scan; the only scan at {time_out.datetime:%Y-%m-%d %H:%M} "
                "is past the shift midpoint and was taken as time-out"
            )
        else:
            time_out = self._find_time_out(bucket, calendar, shift_date, time_in, outcome.warnings)

        tardy_minutes = None
        if time_in is not None:
            tardy = max(0, _whole_minutes(time_in.datetime - scheduled_start))
            status = determine_time_in_status(tardy, employee.grace_period_minutes)
            tardy_minutes = tardy if tardy > 0 else None
        else:
            status = "half_day_absence"

        undertime_minutes = None
        overtime_minutes = None
        total_minutes = None
        if time_out is not None:
            early = _whole_minutes(scheduled_end - time_out.datetime)
            late = _whole_minutes(time_out.datetime - scheduled_end)
            if early >= 1:
                undertime_minutes = early
                if status == "on_time":
                    status = "undertime"
            elif late > settings.OVERTIME_THRESHOLD_MINUTES:
                overtime_minutes = late

            if time_in is not None:
                worked_until = time_out.datetime
                overtime_approved = existing is not None and existing.overtime_approved
                if overtime_minutes and not overtime_approved:
                    worked_until = scheduled_end
                total_minutes = self._minutes_worked(max(time_in.datetime, scheduled_start), worked_until)

        outcome.warnings.extend(
            detect_extreme_scan_patterns(bucket, time_in, time_out, scheduled_start, scheduled_end)
        )

        notes = None
        pending = await self.check_pending_leave(employee.user_id, shift_date)
        if pending is not None:
            if pending.days_requested == 1:
                await self.auto_cancel_pending_leave(pending, (time_in or time_out).datetime)
            else:
                notes = self.flag_pending_leave_for_review(pending, shift_date)

        in_site = _scan_site(time_in, biometric_site_id)
        out_site = _scan_site(time_out, biometric_site_id)
        row = await self._upsert_attendance(
            employee.user_id,
            shift_date,
            {
                "employee_schedule_id": employee.schedule_id,
                "scheduled_time_in": employee.scheduled_time_in,
                "scheduled_time_out": employee.scheduled_time_out,
                "actual_time_in": time_in.datetime if time_in else None,
                "actual_time_out": time_out.datetime if time_out else None,
                "bio_in_site_id": in_site,
                "bio_out_site_id": out_site,
                "status": status,
                "tardy_minutes": tardy_minutes,
                "undertime_minutes": undertime_minutes,
                "overtime_minutes": overtime_minutes,
                "total_minutes_worked": total_minutes,
                "is_cross_site_bio": any(
                    site is not None and site != employee.site_id for site in (in_site, out_site)
                ),
                "warnings": outcome.warnings or None,
                "notes": notes,
            },
        )
        outcome.status = status
        outcome.attendance_id = row.id
        return outcome

    def _find_time_out(
        self,
        bucket: list[ScanRecord],
        calendar: ShiftCalendar,
        shift_date: date,
        time_in: ScanRecord,
        warnings: list[str],
    ) -> ScanRecord | None:
        out_date = calendar.time_out_date(shift_date)
        later = [r for r in bucket if r.datetime > time_in.datetime]
        time_out = file_parser.find_time_out_record(later, out_date)
        if time_out is None:
            warnings.append(f"No time-out scan for shift {shift_date.isoformat()}")
            return None

        gap = _whole_minutes(time_out.datetime - time_in.datetime)
        if gap < settings.DOUBLE_PUNCH_MINUTES:
            warnings.append(
                f"Time-out {time_out.datetime:%H:%M} only {gap} min after time-in; treated as double punch"
            )
            return None
        if gap > settings.MAX_SHIFT_MINUTES:
            warnings.append(
                f"Time-out {time_out.datetime:%Y-%m-%d %H:%M} is {gap // 60}h after time-in; ignored"
            )
            return None
        return time_out

    @staticmethod
    def _minutes_worked(start: datetime, end: datetime) -> int:
        minutes = _whole_minutes(end - start)
        if minutes > settings.LUNCH_DEDUCTION_THRESHOLD_HOURS * 60:
            minutes -= settings.LUNCH_DEDUCTION_MINUTES
        return max(0, minutes)

    # ------------------------------------------------------------------
    # Absences
    # ------------------------------------------------------------------

    async def mark_absent_employees(self, dates: list[date], site_id: int | None = None) -> int:
        """
        Create ``ncns`` rows for scheduled employees with no row on a work day.

        Employees on approved leave are skipped.  ``site_id`` limits the pass to
        employees assigned to that site.
        """
        created = 0
        for day in dates:
            for employee in self.directory.active():
                if site_id is not None and employee.site_id != site_id:
                    continue
                if not employee.works_on(day):
                    continue
                if await self._get_attendance(employee.user_id, day) is not None:
                    continue
                approved = await self.check_approved_leave(employee.user_id, day)
                if approved is not None:
                    logger.debug("User %d on approved leave %d for %s", employee.user_id, approved.id, day)
                    continue

                await self._upsert_attendance(
                    employee.user_id,
                    day,
                    {
                        "employee_schedule_id": employee.schedule_id,
                        "scheduled_time_in": employee.scheduled_time_in,
                        "scheduled_time_out": employee.scheduled_time_out,
                        "status": "ncns",
                        "is_cross_site_bio": False,
                        "warnings": ["No biometric scans for scheduled shift"],
                    },
                )
                created += 1

        if created:
            logger.info("Marked %d NCNS rows for %s", created, ", ".join(d.isoformat() for d in dates))
        return created

    # ------------------------------------------------------------------
    # Leave boundary
    # ------------------------------------------------------------------

    async def _leave_on(self, user_id: int, day: date, status: str) -> LeaveRequest | None:
        result = await self.db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.user_id == user_id,
                LeaveRequest.status == status,
                LeaveRequest.start_date <= day,
                LeaveRequest.end_date >= day,
            )
            .order_by(LeaveRequest.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def check_pending_leave(self, user_id: int, day: date) -> LeaveRequest | None:
        return await self._leave_on(user_id, day, "pending")

    async def check_approved_leave(self, user_id: int, day: date) -> LeaveRequest | None:
        return await self._leave_on(user_id, day, "approved")

    async def auto_cancel_pending_leave(self, leave: LeaveRequest, detected_at: datetime) -> None:
        leave.status = "cancelled"
        leave.auto_cancelled = True
        leave.auto_cancelled_at = datetime.now(timezone.utc)
        leave.auto_cancelled_reason = (
            "Leave request automatically cancelled: biometric attendance was recorded "
            f"on {detected_at:%Y-%m-%d} at {detected_at:%H:%M}."
        )
        await self.db.flush()
        logger.info("Pending leave %d auto-cancelled for user %d", leave.id, leave.user_id)

    def flag_pending_leave_for_review(self, leave: LeaveRequest, shift_date: date) -> str:
        """Multi-day requests stay pending; the attendance row carries a review note."""
        logger.warning(
            "User %d has attendance on %s inside pending multi-day leave %d (%s..%s)",
            leave.user_id, shift_date, leave.id, leave.start_date, leave.end_date,
        )
        return (
            f"Attendance recorded during pending leave request #{leave.id} "
            f"({leave.start_date.isoformat()} to {leave.end_date.isoformat()}); needs manual review."
        )

    # ------------------------------------------------------------------
    # Biometric store
    # ------------------------------------------------------------------

    async def save_biometric_records(
        self, upload: AttendanceUpload, matched: dict[int, list[ScanRecord]]
    ) -> int:
        """Append matched punches; punches already stored for the same user, site and time are skipped."""
        if not matched:
            return 0

        all_times = [r.datetime for group in matched.values() for r in group]
        result = await self.db.execute(
            select(BiometricRecord.user_id, BiometricRecord.scanned_at).where(
                BiometricRecord.user_id.in_(list(matched)),
                BiometricRecord.site_id == upload.biometric_site_id,
                BiometricRecord.scanned_at >= min(all_times),
                BiometricRecord.scanned_at <= max(all_times),
            )
        )
        existing = {(user_id, scanned_at) for user_id, scanned_at in result.all()}

        rows = []
        for user_id, group in matched.items():
            for record in group:
                key = (user_id, record.datetime)
                if key in existing:
                    continue
                existing.add(key)
                rows.append(
                    BiometricRecord(
                        user_id=user_id,
                        site_id=upload.biometric_site_id,
                        upload_id=upload.id,
                        employee_name=record.raw_name,
                        scanned_at=record.datetime,
                        record_date=record.scan_date,
                    )
                )
        self.db.add_all(rows)
        await self.db.flush()
        return len(rows)

    async def reprocess_from_biometric(
        self, date_from: date, date_to: date, user_ids: list[int] | None = None
    ) -> dict:
        """Rebuild attendance for a date range from stored biometric punches."""
        if date_from > date_to:
            raise InvalidDateRangeError("date_from must not be after date_to")

        stmt = select(BiometricRecord).where(
            BiometricRecord.record_date >= date_from - timedelta(days=1),
            BiometricRecord.record_date <= date_to + timedelta(days=1),
        )
        if user_ids:
            stmt = stmt.where(BiometricRecord.user_id.in_(user_ids))
        result = await self.db.execute(stmt.order_by(BiometricRecord.scanned_at))

        by_user: dict[int, list[BiometricRecord]] = defaultdict(list)
        for row in result.scalars().all():
            by_user[row.user_id].append(row)

        days = [date_from + timedelta(days=i) for i in range((date_to - date_from).days + 1)]
        processed = 0
        skipped_users = 0
        for user_id, rows in by_user.items():
            employee = self.directory.get(user_id)
            if employee is None:
                skipped_users += 1
                continue
            scans = [
                ScanRecord(
                    raw_name=r.employee_name,
                    normalized_name=normalize_name(r.employee_name),
                    datetime=r.scanned_at,
                    site_id=r.site_id,
                )
                for r in rows
            ]
            for shift_date, bucket in group_records_by_shift_date(scans, employee).items():
                if shift_date not in days or not employee.works_on(shift_date):
                    continue
                outcome = await self.process_attendance(employee, bucket, shift_date)
                if outcome.status is not None:
                    processed += 1

        if user_ids:
            ncns = 0
        else:
            ncns = await self.mark_absent_employees(days)
        await self.db.commit()

        logger.info(
            "Reprocessed %s..%s: processed=%d ncns=%d skipped_users=%d",
            date_from, date_to, processed, ncns, skipped_users,
        )
        return {
            "date_from": date_from,
            "date_to": date_to,
            "processed": processed,
            "ncns_marked": ncns,
            "skipped_users": skipped_users,
        }

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def verify_attendance(self, attendance_id: int) -> tuple[Attendance, str | None]:
        """Mark a row admin-verified and record its point with the ledger."""
        row = await self.db.get(Attendance, attendance_id)
        if row is None:
            raise RecordNotFoundError(f"Attendance {attendance_id} not found")

        row.admin_verified = True
        point_type = map_status_to_point_type(row.status)
        if point_type is not None and self.ledger is not None:
            await self.ledger.record_point(row.user_id, row.id, row.shift_date, point_type)
        await self.db.commit()
        await self.db.refresh(row)
        return row, point_type

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    async def _get_attendance(self, user_id: int, shift_date: date) -> Attendance | None:
        result = await self.db.execute(
            select(Attendance)
            .where(Attendance.user_id == user_id, Attendance.shift_date == shift_date)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def _upsert_attendance(self, user_id: int, shift_date: date, values: dict) -> Attendance:
        """
        Insert or update the row for (user_id, shift_date).

        A concurrent insert of the same key surfaces as IntegrityError inside
        the savepoint; the row is then re-read and updated (last write wins).
        """
        row = await self._get_attendance(user_id, shift_date)
        if row is None:
            try:
                async with self.db.begin_nested():
                    row = Attendance(user_id=user_id, shift_date=shift_date, **values)
                    self.db.add(row)
            except IntegrityError:
                logger.info("Concurrent insert for user %d on %s, updating instead", user_id, shift_date)
                row = await self._get_attendance(user_id, shift_date)
                if row is None:
                    raise
                for key, value in values.items():
                    setattr(row, key, value)
        else:
            for key, value in values.items():
                setattr(row, key, value)

        await self.db.flush()
        return row
