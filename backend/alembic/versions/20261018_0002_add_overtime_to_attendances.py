"""add overtime to attendances

Revision ID: 0002_add_overtime
Revises: 0001_initial
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0002_add_overtime"
down_revision: Union[str, None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("attendances") as batch_op:
        batch_op.add_column(sa.Column("overtime_minutes", sa.Integer(), nullable=True))
        batch_op.add_column(
            sa.Column("overtime_approved", sa.Boolean(), nullable=False, server_default=sa.false())
        )


def downgrade() -> None:
    with op.batch_alter_table("attendances") as batch_op:
        batch_op.drop_column("overtime_approved")
        batch_op.drop_column("overtime_minutes")
