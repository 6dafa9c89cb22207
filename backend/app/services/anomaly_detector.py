"""
Biometric anomaly detection.

Read-only analysis of stored BiometricRecord punches.  Records are loaded for a
date range into a pandas DataFrame and every check runs on that frame, so the
pure part (``analyze_records``) can be tested without a database.

Checks:
  simultaneous_sites  consecutive punches of one user at different sites too
                      close together to travel between them
  impossible_gaps     first scan of a day later than the last one (see below)
  duplicate_scans     several punches by one user at one site in one minute
  unusual_hours       punches in the pre-dawn window outside the user's shift
  excessive_scans     far more punches in a day than in/out/break
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pandas as pd
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import InvalidDateRangeError
from app.db.models import BiometricRecord, Site, User
from app.schemas.anomaly import (
    AnomalyReport,
    AnomalyStatistics,
    DuplicateScansAnomaly,
    ExcessiveScansAnomaly,
    ImpossibleGapAnomaly,
    ScanRef,
    SimultaneousSitesAnomaly,
    UnusualHoursAnomaly,
)
from app.services.schedule_directory import ScheduleDirectory
from app.services.shift_calendar import ShiftCalendar

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ["id", "user_id", "user_name", "site_id", "site_name", "scanned_at", "record_date"]

DEFAULT_WINDOW_DAYS = 7


def _scan_ref(row) -> ScanRef:
    return ScanRef(id=int(row.id), datetime=row.scanned_at.to_pydatetime(), site=row.site_name)


def _prepare(frame: pd.DataFrame) -> pd.DataFrame:
    frame = frame.copy()
    frame["scanned_at"] = pd.to_datetime(frame["scanned_at"])
    frame["user_name"] = frame["user_name"].fillna("Unknown")
    frame["site_name"] = frame["site_name"].where(
        frame["site_name"].notna(), "Site " + frame["site_id"].astype(str)
    )
    return frame.sort_values(["user_id", "scanned_at", "id"]).reset_index(drop=True)


def detect_simultaneous_sites(frame: pd.DataFrame) -> list[SimultaneousSitesAnomaly]:
    following = frame.groupby("user_id").shift(-1)
    pairs = frame.assign(
        next_id=following["id"],
        next_site_id=following["site_id"],
        next_site_name=following["site_name"],
        next_scanned_at=following["scanned_at"],
    )
    pairs = pairs[pairs["next_id"].notna() & (pairs["site_id"] != pairs["next_site_id"])]
    if pairs.empty:
        return []

    pairs = pairs.assign(
        minutes_apart=((pairs["next_scanned_at"] - pairs["scanned_at"]).dt.total_seconds() // 60).astype(int)
    )
    pairs = pairs[pairs["minutes_apart"] < settings.SIMULTANEOUS_SITES_MAX_TRAVEL_MINUTES]

    anomalies = []
    for row in pairs.itertuples(index=False):
        anomalies.append(
            SimultaneousSitesAnomaly(
                severity="high" if row.minutes_apart <= settings.SIMULTANEOUS_SITES_HIGH_MINUTES else "medium",
                user_id=int(row.user_id),
                user_name=row.user_name,
                record_1=_scan_ref(row),
                record_2=ScanRef(
                    id=int(row.next_id),
                    datetime=row.next_scanned_at.to_pydatetime(),
                    site=row.next_site_name,
                ),
                minutes_apart=int(row.minutes_apart),
                description=f"Bio at {row.minutes_apart} minutes apart at different sites",
            )
        )
    return anomalies


def detect_impossible_gaps(frame: pd.DataFrame) -> list[ImpossibleGapAnomaly]:
    """
    Flag days whose first scan has a later hour than the last scan.

    Scans are sorted before the comparison, so out-of-order raw input is never
    flagged.  Kept as the baseline heuristic until the intended rule is agreed.
    """
    anomalies = []
    days = frame.assign(scan_day=frame["scanned_at"].dt.date)
    for (user_id, scan_day), group in days.groupby(["user_id", "scan_day"], sort=True):
        if len(group) < 2:
            continue
        ordered = group.sort_values("scanned_at")
        first, last = ordered.iloc[0], ordered.iloc[-1]
        if first["scanned_at"].hour > last["scanned_at"].hour:
            anomalies.append(
                ImpossibleGapAnomaly(
                    severity="high",
                    user_id=int(user_id),
                    user_name=first["user_name"],
                    date=scan_day,
                    first_scan=first["scanned_at"].to_pydatetime(),
                    last_scan=last["scanned_at"].to_pydatetime(),
                    description=f"Time appears to go backwards on {scan_day.isoformat()}",
                )
            )
    return anomalies


def _duplicate_severity(count: int) -> str:
    if count >= settings.DUPLICATE_SCANS_HIGH_COUNT:
        return "high"
    if count >= 3:
        return "medium"
    return "low"


def detect_duplicate_scans(frame: pd.DataFrame) -> list[DuplicateScansAnomaly]:
    minutes = frame.assign(minute=frame["scanned_at"].dt.floor("min"))
    anomalies = []
    for (user_id, _site_id, minute), group in minutes.groupby(["user_id", "site_id", "minute"], sort=True):
        count = len(group)
        if count < 2:
            continue
        anomalies.append(
            DuplicateScansAnomaly(
                severity=_duplicate_severity(count),
                user_id=int(user_id),
                user_name=group["user_name"].iloc[0],
                datetime=minute.to_pydatetime(),
                site=group["site_name"].iloc[0],
                scan_count=count,
                record_ids=[int(i) for i in group["id"]],
                description=f"{count} scans within same minute",
            )
        )
    return anomalies


def detect_unusual_hours(
    frame: pd.DataFrame, calendars: dict[int, ShiftCalendar] | None = None
) -> list[UnusualHoursAnomaly]:
    calendars = calendars or {}
    hours = frame["scanned_at"].dt.hour
    window = frame[(hours >= settings.UNUSUAL_HOURS_START) & (hours < settings.UNUSUAL_HOURS_END)]

    anomalies = []
    for row in window.itertuples(index=False):
        scanned_at = row.scanned_at.to_pydatetime()
        calendar = calendars.get(int(row.user_id))
        if calendar is not None and calendar.covers(scanned_at, slack_minutes=60):
            continue
        anomalies.append(
            UnusualHoursAnomaly(
                severity="low",
                user_id=int(row.user_id),
                user_name=row.user_name,
                datetime=scanned_at,
                record_id=int(row.id),
                description=f"Scan at unusual hour ({scanned_at:%H:%M})",
            )
        )
    return anomalies


def detect_excessive_scans(frame: pd.DataFrame) -> list[ExcessiveScansAnomaly]:
    limit = settings.EXCESSIVE_SCANS_PER_DAY
    anomalies = []
    for (user_id, record_date), group in frame.groupby(["user_id", "record_date"], sort=True):
        count = len(group)
        if count <= limit:
            continue
        anomalies.append(
            ExcessiveScansAnomaly(
                severity="high" if count > settings.EXCESSIVE_SCANS_HIGH else "medium",
                user_id=int(user_id),
                user_name=group["user_name"].iloc[0],
                date=record_date,
                scan_count=count,
                scans=[_scan_ref(row) for row in group.itertuples(index=False)],
                description=f"{count} scans on {record_date.isoformat()} (expected at most {limit})",
            )
        )
    return anomalies


def analyze_records(
    frame: pd.DataFrame, calendars: dict[int, ShiftCalendar] | None = None
) -> AnomalyReport:
    """Run every check over a frame with FRAME_COLUMNS."""
    if frame.empty:
        return AnomalyReport()

    frame = _prepare(frame)
    return AnomalyReport(
        simultaneous_sites=detect_simultaneous_sites(frame),
        impossible_gaps=detect_impossible_gaps(frame),
        duplicate_scans=detect_duplicate_scans(frame),
        unusual_hours=detect_unusual_hours(frame, calendars),
        excessive_scans=detect_excessive_scans(frame),
    )


def summarize(report: AnomalyReport) -> AnomalyStatistics:
    by_type = {
        "simultaneous_sites": len(report.simultaneous_sites),
        "impossible_gaps": len(report.impossible_gaps),
        "duplicate_scans": len(report.duplicate_scans),
        "unusual_hours": len(report.unusual_hours),
        "excessive_scans": len(report.excessive_scans),
    }
    by_severity = {"high": 0, "medium": 0, "low": 0}
    for anomaly in report.all():
        by_severity[anomaly.severity] += 1
    return AnomalyStatistics(
        total_anomalies=sum(by_type.values()),
        by_type=by_type,
        by_severity=by_severity,
    )


class BiometricAnomalyDetector:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @staticmethod
    def _window(date_from: date | None, date_to: date | None) -> tuple[date, date]:
        date_to = date_to or date.today()
        date_from = date_from or date_to - timedelta(days=DEFAULT_WINDOW_DAYS)
        if date_from > date_to:
            raise InvalidDateRangeError("date_from must not be after date_to")
        return date_from, date_to

    async def load_frame(self, date_from: date, date_to: date) -> pd.DataFrame:
        stmt = (
            select(
                BiometricRecord.id,
                BiometricRecord.user_id,
                User.first_name,
                User.last_name,
                BiometricRecord.site_id,
                Site.name,
                BiometricRecord.scanned_at,
                BiometricRecord.record_date,
            )
            .join(User, User.id == BiometricRecord.user_id)
            .outerjoin(Site, Site.id == BiometricRecord.site_id)
            .where(BiometricRecord.record_date >= date_from, BiometricRecord.record_date <= date_to)
        )
        result = await self.db.execute(stmt)
        rows = [
            (rid, user_id, f"{first} {last}", site_id, site_name, scanned_at, record_date)
            for rid, user_id, first, last, site_id, site_name, scanned_at, record_date in result.all()
        ]
        return pd.DataFrame(rows, columns=FRAME_COLUMNS)

    async def detect_anomalies(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> AnomalyReport:
        date_from, date_to = self._window(date_from, date_to)
        frame = await self.load_frame(date_from, date_to)
        directory = await ScheduleDirectory.load(self.db, as_of=date_to)
        calendars = {e.user_id: ShiftCalendar(e) for e in directory.active()}

        report = analyze_records(frame, calendars)
        logger.info(
            "Anomaly scan %s..%s over %d records: %d anomalies",
            date_from, date_to, len(frame), len(report.all()),
        )
        return report

    async def get_statistics(
        self, date_from: date | None = None, date_to: date | None = None
    ) -> AnomalyStatistics:
        return summarize(await self.detect_anomalies(date_from, date_to))
