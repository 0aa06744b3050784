"""Funnel core tables.

Revision ID: 20261019_01
Revises: 
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "guests",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=False),
        sa.Column("stage", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_stage_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("voucher_claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("stage >= 0 AND stage <= 4", name="ck_guests_stage_range"),
    )
    op.create_index("ix_guests_email", "guests", ["email"], unique=True)

    op.create_table(
        "visits",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "guest_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("guests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("visit_number", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("guest_id", "visit_number", name="uq_visits_guest_visit_number"),
        sa.CheckConstraint("visit_number IN (1, 2, 3)", name="ck_visits_visit_number"),
    )
    op.create_index("ix_visits_guest_id", "visits", ["guest_id"])

    op.create_table(
        "otp_challenges",
        sa.Column(
            "guest_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("guests.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("code_hash", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "admin_sessions",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("client_label", sa.String(length=120), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_admin_sessions_token_hash", "admin_sessions", ["token_hash"], unique=True)

    op.create_table(
        "monthly_metrics",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("month", sa.Date(), nullable=False),
        sa.Column("new_leads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vouchers_claimed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_visits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("second_visits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("third_visits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stage1_sms_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("ad_spend", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_ad_clicks", sa.Integer(), nullable=True),
        sa.Column("stage1_cogs", sa.Numeric(12, 2), nullable=True),
        sa.Column("stage2_cogs", sa.Numeric(12, 2), nullable=True),
        sa.Column("stage3_cogs", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_revenue", sa.Numeric(12, 2), nullable=True),
        sa.Column("aggregated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_monthly_metrics_month", "monthly_metrics", ["month"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_monthly_metrics_month", table_name="monthly_metrics")
    op.drop_table("monthly_metrics")
    op.drop_index("ix_admin_sessions_token_hash", table_name="admin_sessions")
    op.drop_table("admin_sessions")
    op.drop_table("otp_challenges")
    op.drop_index("ix_visits_guest_id", table_name="visits")
    op.drop_table("visits")
    op.drop_index("ix_guests_email", table_name="guests")
    op.drop_table("guests")
