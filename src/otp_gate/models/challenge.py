# src/otp_gate/models/challenge.py
"""Outstanding one-time-passcode challenges."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from otp_gate.db.session import Base
from otp_gate.db.types import UTCDateTime


class OtpChallenge(Base):
    """The single live challenge for a subject (e.g. a cart).

    Only the keyed digest of the code is stored. Re-issuing a code overwrites
    the row in place, so ``subject_id`` stays unique.
    """

    __tablename__ = "otp_challenge"
    __table_args__ = (
        CheckConstraint("attempts >= 0", name="ck_otp_challenge_attempts_nonnegative"),
    )

    subject_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    contact: Mapped[str] = mapped_column(String(32), nullable=False)
    code_digest: Mapped[str] = mapped_column(String(64), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    resend_eligible_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    request_origin: Mapped[str | None] = mapped_column(Text, nullable=True)

    def is_live(self, now: datetime) -> bool:
        """Return True while the challenge has not reached its expiry."""
        return now < self.expires_at

    def in_cooldown(self, now: datetime) -> bool:
        """Return True while a resend is not yet permitted."""
        return now < self.resend_eligible_at
