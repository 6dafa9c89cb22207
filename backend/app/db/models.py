from datetime import date, datetime, time

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# JSONB on PostgreSQL, plain JSON on sqlite (tests)
JsonType = JSON().with_variant(JSONB(), "postgresql")

ATTENDANCE_STATUSES = ("on_time", "tardy", "half_day_absence", "ncns", "undertime")
LEAVE_STATUSES = ("pending", "approved", "denied", "cancelled")
UPLOAD_STATUSES = ("pending", "processing", "completed", "failed")
POINT_TYPES = ("whole_day_absence", "half_day_absence", "tardy", "undertime")


class Base(DeclarativeBase):
    pass


class Site(Base):
    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<Site id={self.id} name={self.name}>"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    schedules: Mapped[list["EmployeeSchedule"]] = relationship(
        "EmployeeSchedule", back_populates="user", lazy="raise"
    )

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name}>"


class EmployeeSchedule(Base):
    __tablename__ = "employee_schedules"

    __table_args__ = (Index("ix_schedule_user_active", "user_id", "is_active"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    site_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False
    )
    campaign_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    scheduled_time_in: Mapped[time] = mapped_column(Time, nullable=False)
    scheduled_time_out: Mapped[time] = mapped_column(Time, nullable=False)
    # lowercase weekday names, e.g. ["monday", "tuesday"]
    work_days: Mapped[list] = mapped_column(JsonType, nullable=False, default=list)
    grace_period_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=15)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="schedules")

    def __repr__(self) -> str:
        return (
            f"<EmployeeSchedule id={self.id} user_id={self.user_id} "
            f"{self.scheduled_time_in}-{self.scheduled_time_out}>"
        )


class AttendanceUpload(Base):
    __tablename__ = "attendance_uploads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    biometric_site_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False
    )
    date_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*UPLOAD_STATUSES, name="upload_status_enum"), nullable=False, default="pending"
    )
    stats: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AttendanceUpload id={self.id} filename={self.filename} status={self.status}>"


class BiometricRecord(Base):
    __tablename__ = "biometric_records"

    __table_args__ = (
        Index("ix_biometric_user_scanned_at", "user_id", "scanned_at"),
        Index("ix_biometric_record_date", "record_date"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    site_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False
    )
    upload_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("attendance_uploads.id", ondelete="SET NULL"), nullable=True
    )
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False)
    scanned_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    record_date: Mapped[date] = mapped_column(Date, nullable=False)

    user: Mapped["User"] = relationship("User", lazy="raise")
    site: Mapped["Site"] = relationship("Site", lazy="raise")

    def __repr__(self) -> str:
        return f"<BiometricRecord id={self.id} user_id={self.user_id} scanned_at={self.scanned_at}>"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    __table_args__ = (Index("ix_leave_user_dates", "user_id", "start_date", "end_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    leave_type: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*LEAVE_STATUSES, name="leave_status_enum"), nullable=False, default="pending"
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_cancelled_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def days_requested(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest id={self.id} user_id={self.user_id} "
            f"{self.start_date}..{self.end_date} status={self.status}>"
        )


class Attendance(Base):
    __tablename__ = "attendances"

    __table_args__ = (
        UniqueConstraint("user_id", "shift_date", name="uq_attendance_user_shift_date"),
        Index("ix_attendance_shift_date", "shift_date"),
        Index("ix_attendance_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    employee_schedule_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("employee_schedules.id", ondelete="SET NULL"), nullable=True
    )
    leave_request_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True
    )
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_time_in: Mapped[time | None] = mapped_column(Time, nullable=True)
    scheduled_time_out: Mapped[time | None] = mapped_column(Time, nullable=True)
    actual_time_in: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_time_out: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    bio_in_site_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("sites.id", ondelete="SET NULL"), nullable=True
    )
    bio_out_site_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("sites.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        Enum(*ATTENDANCE_STATUSES, name="attendance_status_enum"), nullable=False
    )
    tardy_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    undertime_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overtime_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overtime_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_minutes_worked: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_cross_site_bio: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    warnings: Mapped[list | None] = mapped_column(JsonType, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    user: Mapped["User"] = relationship("User", lazy="raise")

    def __repr__(self) -> str:
        return (
            f"<Attendance id={self.id} user_id={self.user_id} "
            f"shift_date={self.shift_date} status={self.status}>"
        )


class AttendancePoint(Base):
    __tablename__ = "attendance_points"

    __table_args__ = (
        UniqueConstraint("attendance_id", name="uq_attendance_point_attendance"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    attendance_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("attendances.id", ondelete="CASCADE"), nullable=False
    )
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    point_type: Mapped[str] = mapped_column(
        Enum(*POINT_TYPES, name="point_type_enum"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AttendancePoint id={self.id} user_id={self.user_id} type={self.point_type}>"
