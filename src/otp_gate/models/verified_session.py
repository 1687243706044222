# src/otp_gate/models/verified_session.py
"""Proof that a subject completed OTP verification."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from otp_gate.db.session import Base
from otp_gate.db.types import UTCDateTime


class VerifiedSession(Base):
    """Verified contact for a subject, valid until ``expires_at``."""

    __tablename__ = "otp_verified_session"

    subject_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    contact: Mapped[str] = mapped_column(String(32), nullable=False)
    verified_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
