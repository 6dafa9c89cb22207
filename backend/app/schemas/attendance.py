from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

AttendanceStatus = Literal["on_time", "tardy", "half_day_absence", "ncns", "undertime"]


class ScanRecord(BaseModel):
    """One biometric punch parsed from a device export line."""

    model_config = ConfigDict(frozen=True)

    raw_name: str
    normalized_name: str
    datetime: datetime
    row_no: str | None = None
    device_no: str | None = None
    device_user_id: str | None = None
    mode: str | None = None
    # Site a stored punch was recorded at; None for scans parsed from an upload
    site_id: int | None = None

    @field_validator("raw_name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field must not be empty")
        return v.strip()

    @property
    def scan_date(self) -> date:
        return self.datetime.date()

    @property
    def hour(self) -> int:
        return self.datetime.hour


class UnmatchedName(BaseModel):
    name: str
    record_count: int
    suggestion: str | None = None
    suggestion_score: int | None = None


class ImportResultResponse(BaseModel):
    upload_id: int
    filename: str
    status: Literal["pending", "processing", "completed", "failed"]
    total_records: int
    skipped_lines: int
    unique_employees: int
    matched_employees: int
    processed: int
    ncns_marked: int
    biometric_records_saved: int
    unmatched_names: list[UnmatchedName]
    non_work_day_scans: list[str]
    dates_found: list[date]
    warnings: list[str]
    errors: list[str]


class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    shift_date: date
    status: AttendanceStatus
    scheduled_time_in: time | None = None
    scheduled_time_out: time | None = None
    actual_time_in: datetime | None = None
    actual_time_out: datetime | None = None
    tardy_minutes: int | None = None
    undertime_minutes: int | None = None
    overtime_minutes: int | None = None
    overtime_approved: bool = False
    total_minutes_worked: int | None = None
    is_cross_site_bio: bool
    admin_verified: bool
    warnings: list[str] | None = None
    notes: str | None = None


class ReprocessRequest(BaseModel):
    date_from: date
    date_to: date
    user_ids: list[int] | None = Field(default=None)


class ReprocessResultResponse(BaseModel):
    date_from: date
    date_to: date
    processed: int
    ncns_marked: int
    skipped_users: int


class VerifyResultResponse(BaseModel):
    attendance: AttendanceResponse
    point_type: str | None
