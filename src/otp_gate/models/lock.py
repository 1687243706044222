# src/otp_gate/models/lock.py
"""Temporary verification lockouts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from otp_gate.db.session import Base
from otp_gate.db.types import UTCDateTime


class ChallengeLock(Base):
    """Blocks verification for a subject until ``locked_until``.

    Independent of any particular challenge; a row whose ``locked_until`` has
    passed is treated as absent by every read.
    """

    __tablename__ = "otp_lock"

    subject_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    locked_until: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
