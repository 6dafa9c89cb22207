"""initial: sites, users, schedules, uploads, biometric records, leave, attendance, points

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ENUM types are created by the before_create hook of op.create_table.

    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("middle_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_last_name", "users", ["last_name"])

    op.create_table(
        "employee_schedules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("site_id", sa.Integer(), nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_time_in", sa.Time(), nullable=False),
        sa.Column("scheduled_time_out", sa.Time(), nullable=False),
        sa.Column("work_days", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("grace_period_minutes", sa.Integer(), nullable=False, server_default="15"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_schedule_user_active", "employee_schedules", ["user_id", "is_active"])

    op.create_table(
        "attendance_uploads",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("shift_date", sa.Date(), nullable=False),
        sa.Column("biometric_site_id", sa.Integer(), nullable=False),
        sa.Column("date_from", sa.Date(), nullable=True),
        sa.Column("date_to", sa.Date(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("pending", "processing", "completed", "failed", name="upload_status_enum"),
            nullable=False,
        ),
        sa.Column("stats", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "uploaded_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["biometric_site_id"], ["sites.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "biometric_records",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("site_id", sa.Integer(), nullable=False),
        sa.Column("upload_id", sa.Integer(), nullable=True),
        sa.Column("employee_name", sa.String(255), nullable=False),
        sa.Column("scanned_at", sa.DateTime(), nullable=False),
        sa.Column("record_date", sa.Date(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["site_id"], ["sites.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["upload_id"], ["attendance_uploads.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_biometric_user_scanned_at", "biometric_records", ["user_id", "scanned_at"])
    op.create_index("ix_biometric_record_date", "biometric_records", ["record_date"])

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("leave_type", sa.String(20), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "denied", "cancelled", name="leave_status_enum"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("auto_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_cancelled_reason", sa.Text(), nullable=True),
        sa.Column("auto_cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leave_user_dates", "leave_requests", ["user_id", "start_date", "end_date"])

    op.create_table(
        "attendances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("employee_schedule_id", sa.Integer(), nullable=True),
        sa.Column("leave_request_id", sa.Integer(), nullable=True),
        sa.Column("shift_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time_in", sa.Time(), nullable=True),
        sa.Column("scheduled_time_out", sa.Time(), nullable=True),
        sa.Column("actual_time_in", sa.DateTime(), nullable=True),
        sa.Column("actual_time_out", sa.DateTime(), nullable=True),
        sa.Column("bio_in_site_id", sa.Integer(), nullable=True),
        sa.Column("bio_out_site_id", sa.Integer(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "on_time", "tardy", "half_day_absence", "ncns", "undertime",
                name="attendance_status_enum",
            ),
            nullable=False,
        ),
        sa.Column("tardy_minutes", sa.Integer(), nullable=True),
        sa.Column("undertime_minutes", sa.Integer(), nullable=True),
        sa.Column("total_minutes_worked", sa.Integer(), nullable=True),
        sa.Column("is_cross_site_bio", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("admin_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("warnings", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["employee_schedule_id"], ["employee_schedules.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["leave_request_id"], ["leave_requests.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["bio_in_site_id"], ["sites.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["bio_out_site_id"], ["sites.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "shift_date", name="uq_attendance_user_shift_date"),
    )
    op.create_index("ix_attendance_shift_date", "attendances", ["shift_date"])
    op.create_index("ix_attendance_status", "attendances", ["status"])

    op.create_table(
        "attendance_points",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("attendance_id", sa.Integer(), nullable=False),
        sa.Column("shift_date", sa.Date(), nullable=False),
        sa.Column(
            "point_type",
            sa.Enum(
                "whole_day_absence", "half_day_absence", "tardy", "undertime",
                name="point_type_enum",
            ),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["attendance_id"], ["attendances.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("attendance_id", name="uq_attendance_point_attendance"),
    )


def downgrade() -> None:
    op.drop_table("attendance_points")
    op.drop_index("ix_attendance_status", table_name="attendances")
    op.drop_index("ix_attendance_shift_date", table_name="attendances")
    op.drop_table("attendances")
    op.drop_index("ix_leave_user_dates", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_index("ix_biometric_record_date", table_name="biometric_records")
    op.drop_index("ix_biometric_user_scanned_at", table_name="biometric_records")
    op.drop_table("biometric_records")
    op.drop_table("attendance_uploads")
    op.drop_index("ix_schedule_user_active", table_name="employee_schedules")
    op.drop_table("employee_schedules")
    op.drop_index("ix_users_last_name", table_name="users")
    op.drop_table("users")
    op.drop_table("sites")
    op.execute("DROP TYPE IF EXISTS point_type_enum")
    op.execute("DROP TYPE IF EXISTS attendance_status_enum")
    op.execute("DROP TYPE IF EXISTS leave_status_enum")
    op.execute("DROP TYPE IF EXISTS upload_status_enum")
