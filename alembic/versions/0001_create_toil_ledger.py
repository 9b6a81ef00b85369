"""create toil ledger

Revision ID: 0001
Revises:
Create Date: 2025-06-02 09:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "time_entry",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("job_number", sa.String(length=50), nullable=True),
        sa.Column("synthetic", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        _created_at(),
    )
    op.create_index("ix_time_entry_user_id", "time_entry", ["user_id"])
    op.create_index("ix_time_entry_created_at", "time_entry", ["created_at"])
    op.create_index("ix_time_entry_user_date_job", "time_entry", ["user_id", "date", "job_number"])

    op.create_table(
        "toil_record",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("month_year", sa.String(length=7), nullable=False),
        sa.Column("entry_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="active", nullable=False),
        sa.Column("rollover_from_id", sa.Uuid(), nullable=True, unique=True),
        _created_at(),
    )
    op.create_index("ix_toil_record_user_id", "toil_record", ["user_id"])
    op.create_index("ix_toil_record_created_at", "toil_record", ["created_at"])
    op.create_index("ix_toil_record_user_month", "toil_record", ["user_id", "month_year"])

    op.create_table(
        "toil_usage",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("entry_id", sa.Uuid(), nullable=False),
        sa.Column("month_year", sa.String(length=7), nullable=False),
        _created_at(),
    )
    op.create_index("ix_toil_usage_user_id", "toil_usage", ["user_id"])
    op.create_index("ix_toil_usage_entry_id", "toil_usage", ["entry_id"])
    op.create_index("ix_toil_usage_created_at", "toil_usage", ["created_at"])
    op.create_index("ix_toil_usage_user_month", "toil_usage", ["user_id", "month_year"])

    op.create_table(
        "toil_processing_record",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("total_hours", sa.Float(), nullable=False),
        sa.Column("rollover_hours", sa.Float(), nullable=False),
        sa.Column("surplus_hours", sa.Float(), nullable=False),
        sa.Column("surplus_action", sa.String(length=20), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approver_id", sa.Uuid(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("original_records", sa.JSON(), nullable=False),
    )
    op.create_index("ix_toil_processing_record_user_id", "toil_processing_record", ["user_id"])
    op.create_index("ix_processing_status", "toil_processing_record", ["status"])
    op.create_index(
        "uq_processing_open_user_month",
        "toil_processing_record",
        ["user_id", "month"],
        unique=True,
        postgresql_where=sa.text("status <> 'rejected'"),
        sqlite_where=sa.text("status <> 'rejected'"),
    )

    op.create_table(
        "day_action_state",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("action_type", sa.String(length=20), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("entry_id", sa.Uuid(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        sa.UniqueConstraint("user_id", "date", "action_type", name="uq_action_state_user_date_type"),
    )
    op.create_index("ix_day_action_state_user_id", "day_action_state", ["user_id"])

    op.create_table(
        "toil_threshold_setting",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_time", sa.Float(), nullable=False),
        sa.Column("part_time", sa.Float(), nullable=False),
        sa.Column("casual", sa.Float(), nullable=False),
        sa.Column("updated_by", sa.Uuid(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "public_holiday",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("public_holiday")
    op.drop_table("toil_threshold_setting")
    op.drop_table("day_action_state")
    op.drop_table("toil_processing_record")
    op.drop_table("toil_usage")
    op.drop_table("toil_record")
    op.drop_table("time_entry")
