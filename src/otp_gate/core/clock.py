"""Clock abstraction used for every expiry, cooldown and lockout decision."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from otp_gate.db.time import utcnow


class Clock(Protocol):
    """Source of the current instant."""

    def now(self) -> datetime: ...


class SystemClock:
    """Clock backed by the host's UTC wall time."""

    def now(self) -> datetime:
        return utcnow()


system_clock = SystemClock()
