# src/otp_gate/models/rate_window.py
"""Fixed-window rate limit counters."""

from datetime import datetime

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from otp_gate.db.session import Base
from otp_gate.db.types import UTCDateTime


class RateWindow(Base):
    """Request count for one abuse-control key inside its current window."""

    __tablename__ = "rate_window"

    # Keys look like "rl:ip:1m:<addr>" or "rl:phone:1h:<e164>".
    key: Mapped[str] = mapped_column(Text, primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False)
    window_expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
