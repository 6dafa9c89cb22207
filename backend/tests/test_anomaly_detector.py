"""
Anomaly detection tests.

Pure checks run on hand-built DataFrames; the API tests go through stored
BiometricRecord rows.
"""

from __future__ import annotations

from datetime import date, datetime, time

import pandas as pd
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.anomaly_detector import FRAME_COLUMNS, analyze_records, summarize
from app.services.shift_calendar import ShiftCalendar
from tests.conftest import add_employee, add_punch, add_site, scheduled

SITES = {1: "Main Office", 2: "Annex"}


def _frame(*scans: tuple[int, int, str]) -> pd.DataFrame:
    """Build a frame from (user_id, site_id, iso datetime) tuples."""
    rows = []
    for idx, (user_id, site_id, when) in enumerate(scans, start=1):
        scanned_at = datetime.fromisoformat(when)
        rows.append((idx, user_id, f"User {user_id}", site_id, SITES[site_id], scanned_at, scanned_at.date()))
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)


class TestSimultaneousSites:
    def test_close_punches_at_different_sites(self) -> None:
        report = analyze_records(
            _frame((1, 1, "2025-11-05 08:00:00"), (1, 2, "2025-11-05 08:05:00"))
        )

        assert len(report.simultaneous_sites) == 1
        anomaly = report.simultaneous_sites[0]
        assert anomaly.severity == "high"
        assert anomaly.minutes_apart == 5
        assert anomaly.record_1.site == "Main Office"
        assert anomaly.record_2.site == "Annex"
        assert "5 minutes apart" in anomaly.description

    def test_medium_when_over_ten_minutes(self) -> None:
        report = analyze_records(
            _frame((1, 1, "2025-11-05 08:00:00"), (1, 2, "2025-11-05 08:20:00"))
        )
        assert [a.severity for a in report.simultaneous_sites] == ["medium"]

    def test_enough_travel_time_is_fine(self) -> None:
        report = analyze_records(
            _frame((1, 1, "2025-11-05 08:00:00"), (1, 2, "2025-11-05 08:45:00"))
        )
        assert report.simultaneous_sites == []

    def test_different_users_are_not_paired(self) -> None:
        report = analyze_records(
            _frame((1, 1, "2025-11-05 08:00:00"), (2, 2, "2025-11-05 08:01:00"))
        )
        assert report.simultaneous_sites == []


class TestDuplicateScans:
    def test_severity_by_count(self) -> None:
        scans = [(1, 1, f"2025-11-05 08:00:{s:02d}") for s in (1, 10, 20, 30, 40)]
        scans += [(2, 1, "2025-11-05 09:00:01"), (2, 1, "2025-11-05 09:00:50")]
        scans += [(3, 1, f"2025-11-05 10:00:{s:02d}") for s in (5, 15, 25)]
        report = analyze_records(_frame(*scans))

        by_user = {a.user_id: a for a in report.duplicate_scans}
        assert by_user[1].severity == "high"
        assert by_user[1].scan_count == 5
        assert by_user[2].severity == "low"
        assert by_user[3].severity == "medium"
        assert by_user[2].datetime == datetime(2025, 11, 5, 9, 0)

    def test_next_minute_is_not_a_duplicate(self) -> None:
        report = analyze_records(
            _frame((1, 1, "2025-11-05 08:00:59"), (1, 1, "2025-11-05 08:01:00"))
        )
        assert report.duplicate_scans == []


class TestUnusualHours:
    def test_pre_dawn_scan_without_schedule(self) -> None:
        report = analyze_records(_frame((1, 1, "2025-11-05 03:15:00")))

        assert len(report.unusual_hours) == 1
        assert report.unusual_hours[0].severity == "low"
        assert "03:15" in report.unusual_hours[0].description

    def test_window_bounds(self) -> None:
        report = analyze_records(
            _frame((1, 1, "2025-11-05 01:59:00"), (1, 1, "2025-11-05 05:00:00"))
        )
        assert report.unusual_hours == []

    def test_scheduled_night_worker_is_not_flagged(self) -> None:
        calendars = {1: ShiftCalendar(scheduled(1, "Benedict", "Nodado", time(22, 0), time(7, 0)))}
        report = analyze_records(_frame((1, 1, "2025-11-06 03:00:00")), calendars)
        assert report.unusual_hours == []


class TestExcessiveScans:
    def test_more_than_six_in_a_day(self) -> None:
        scans = [(1, 1, f"2025-11-05 {h:02d}:00:00") for h in range(8, 15)]
        report = analyze_records(_frame(*scans))

        assert len(report.excessive_scans) == 1
        anomaly = report.excessive_scans[0]
        assert anomaly.scan_count == 7
        assert anomaly.severity == "medium"
        assert anomaly.date == date(2025, 11, 5)
        assert len(anomaly.scans) == 7

    def test_high_above_ten(self) -> None:
        scans = [(1, 1, f"2025-11-05 {h:02d}:00:00") for h in range(6, 17)]
        report = analyze_records(_frame(*scans))
        assert report.excessive_scans[0].severity == "high"

    def test_normal_day(self) -> None:
        scans = [(1, 1, f"2025-11-05 {h:02d}:00:00") for h in (8, 12, 13, 17)]
        assert analyze_records(_frame(*scans)).excessive_scans == []


class TestReport:
    def test_impossible_gaps_never_fire_on_sorted_scans(self) -> None:
        report = analyze_records(
            _frame((1, 1, "2025-11-05 17:00:00"), (1, 1, "2025-11-05 08:00:00"))
        )
        assert report.impossible_gaps == []

    def test_empty_frame(self) -> None:
        report = analyze_records(pd.DataFrame(columns=FRAME_COLUMNS))
        assert report.all() == []

    def test_summarize(self) -> None:
        report = analyze_records(
            _frame(
                (1, 1, "2025-11-05 08:00:00"),
                (1, 2, "2025-11-05 08:05:00"),
                (2, 1, "2025-11-05 03:30:00"),
            )
        )
        stats = summarize(report)

        assert stats.total_anomalies == 2
        assert stats.by_type["simultaneous_sites"] == 1
        assert stats.by_type["unusual_hours"] == 1
        assert stats.by_severity == {"high": 1, "medium": 0, "low": 1}


class TestAnomalyApi:
    async def _seed(self, db: AsyncSession) -> None:
        main = await add_site(db, "Main Office")
        annex = await add_site(db, "Annex")
        angelo = await add_employee(db, "Angelo", "Nodado", main, time(7, 0), time(16, 0))
        await add_punch(db, angelo, main, "2025-11-05 07:00:00")
        await add_punch(db, angelo, annex, "2025-11-05 07:04:00")
        await add_punch(db, angelo, main, "2025-11-05 03:10:00")

    async def test_list_anomalies(self, client: AsyncClient, db: AsyncSession) -> None:
        await self._seed(db)

        resp = await client.get("/api/anomalies", params={"date_from": "2025-11-05", "date_to": "2025-11-05"})

        assert resp.status_code == 200
        body = resp.json()
        assert len(body["simultaneous_sites"]) == 1
        assert body["simultaneous_sites"][0]["user_name"] == "Angelo Nodado"
        assert len(body["unusual_hours"]) == 1

    async def test_filters(self, client: AsyncClient, db: AsyncSession) -> None:
        await self._seed(db)

        resp = await client.get(
            "/api/anomalies",
            params={"date_from": "2025-11-05", "date_to": "2025-11-05", "min_severity": "medium"},
        )
        body = resp.json()
        assert len(body["simultaneous_sites"]) == 1
        assert body["unusual_hours"] == []

        resp = await client.get(
            "/api/anomalies",
            params={"date_from": "2025-11-05", "date_to": "2025-11-05", "types": ["unusual_hours"]},
        )
        body = resp.json()
        assert body["simultaneous_sites"] == []
        assert len(body["unusual_hours"]) == 1

    async def test_stats(self, client: AsyncClient, db: AsyncSession) -> None:
        await self._seed(db)

        resp = await client.get("/api/anomalies/stats", params={"date_from": "2025-11-05", "date_to": "2025-11-05"})

        assert resp.status_code == 200
        assert resp.json()["total_anomalies"] == 2

    async def test_reversed_range_is_rejected(self, client: AsyncClient) -> None:
        resp = await client.get("/api/anomalies", params={"date_from": "2025-11-06", "date_to": "2025-11-05"})
        assert resp.status_code == 400
