from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel

Severity = Literal["low", "medium", "high"]

SEVERITY_RANK: dict[str, int] = {"low": 0, "medium": 1, "high": 2}


class ScanRef(BaseModel):
    id: int
    datetime: datetime
    site: str


class Anomaly(BaseModel):
    type: str
    severity: Severity
    user_id: int
    user_name: str
    description: str


class SimultaneousSitesAnomaly(Anomaly):
    type: Literal["simultaneous_sites"] = "simultaneous_sites"
    record_1: ScanRef
    record_2: ScanRef
    minutes_apart: int


class ImpossibleGapAnomaly(Anomaly):
    type: Literal["impossible_gaps"] = "impossible_gaps"
    date: date
    first_scan: datetime
    last_scan: datetime


class DuplicateScansAnomaly(Anomaly):
    type: Literal["duplicate_scans"] = "duplicate_scans"
    datetime: datetime
    site: str
    scan_count: int
    record_ids: list[int]


class UnusualHoursAnomaly(Anomaly):
    type: Literal["unusual_hours"] = "unusual_hours"
    datetime: datetime
    record_id: int


class ExcessiveScansAnomaly(Anomaly):
    type: Literal["excessive_scans"] = "excessive_scans"
    date: date
    scan_count: int
    scans: list[ScanRef]


class AnomalyReport(BaseModel):
    simultaneous_sites: list[SimultaneousSitesAnomaly] = []
    impossible_gaps: list[ImpossibleGapAnomaly] = []
    duplicate_scans: list[DuplicateScansAnomaly] = []
    unusual_hours: list[UnusualHoursAnomaly] = []
    excessive_scans: list[ExcessiveScansAnomaly] = []

    def all(self) -> list[Anomaly]:
        return [
            *self.simultaneous_sites,
            *self.impossible_gaps,
            *self.duplicate_scans,
            *self.unusual_hours,
            *self.excessive_scans,
        ]


class AnomalyStatistics(BaseModel):
    total_anomalies: int
    by_type: dict[str, int]
    by_severity: dict[Severity, int]
