"""otp tables

Revision ID: 5c1e2a7d9b30
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e2a7d9b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create challenge, lockout, verified-session and rate-window tables."""
    op.create_table(
        "otp_challenge",
        sa.Column("subject_id", sa.String(length=255), nullable=False),
        sa.Column("contact", sa.String(length=32), nullable=False),
        sa.Column("code_digest", sa.String(length=64), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resend_eligible_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("request_origin", sa.Text(), nullable=True),
        sa.CheckConstraint("attempts >= 0", name="ck_otp_challenge_attempts_nonnegative"),
        sa.PrimaryKeyConstraint("subject_id"),
    )
    op.create_index("ix_otp_challenge_expires_at", "otp_challenge", ["expires_at"])
    op.create_table(
        "otp_lock",
        sa.Column("subject_id", sa.String(length=255), nullable=False),
        sa.Column("locked_until", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("subject_id"),
    )
    op.create_table(
        "otp_verified_session",
        sa.Column("subject_id", sa.String(length=255), nullable=False),
        sa.Column("contact", sa.String(length=32), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("subject_id"),
    )
    op.create_table(
        "rate_window",
        sa.Column("key", sa.Text(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("window_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Drop the OTP tables."""
    op.drop_table("rate_window")
    op.drop_table("otp_verified_session")
    op.drop_table("otp_lock")
    op.drop_index("ix_otp_challenge_expires_at", table_name="otp_challenge")
    op.drop_table("otp_challenge")
