"""Fixed-window rate limiting backed by the shared database.

Each key owns one ``rate_window`` row. A check is a single
``INSERT ... ON CONFLICT DO UPDATE ... RETURNING`` so that two concurrent
requests can never both observe an expired window and both reset it.
Stale rows are reclaimed lazily by the next check on the same key.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import case
from sqlalchemy.orm import Session

from otp_gate.core.clock import Clock, system_clock
from otp_gate.db.upsert import insert_for
from otp_gate.models import RateWindow
from otp_gate.services.errors import RateLimitedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single window check."""

    allowed: bool
    remaining: int
    reset_at: datetime


@dataclass(frozen=True)
class RateLimitRule:
    """A named limit applied to keys built from ``prefix`` and a discriminator."""

    prefix: str
    limit: int
    window_seconds: int

    def key_for(self, discriminator: str) -> str:
        return f"{self.prefix}:{discriminator}"


class RateLimiter:
    """Fixed-window counter keyed by arbitrary strings."""

    def __init__(self, db: Session, clock: Clock = system_clock) -> None:
        self._db = db
        self._clock = clock

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        """Count one request against ``key`` and report whether it is allowed.

        ``remaining`` may go negative once the limit is exceeded; callers clamp.
        """
        now = self._clock.now()
        fresh_expiry = now + timedelta(seconds=window_seconds)

        stmt = insert_for(self._db, RateWindow).values(
            key=key,
            count=1,
            window_expires_at=fresh_expiry,
        )
        window_over = RateWindow.window_expires_at <= now
        stmt = stmt.on_conflict_do_update(
            index_elements=[RateWindow.key],
            set_={
                "count": case((window_over, 1), else_=RateWindow.count + 1),
                "window_expires_at": case(
                    (window_over, stmt.excluded.window_expires_at),
                    else_=RateWindow.window_expires_at,
                ),
            },
        ).returning(RateWindow.count, RateWindow.window_expires_at)

        count, reset_at = self._db.execute(stmt).one()
        self._db.commit()
        return RateLimitResult(
            allowed=count <= limit,
            remaining=limit - count,
            reset_at=reset_at,
        )

    def enforce(self, checks: Iterable[tuple[str, int, int]]) -> None:
        """Evaluate ``(key, limit, window_seconds)`` checks in order.

        Raises:
            RateLimitedError: For the first disallowed check; later checks are
                not evaluated
        """
        for key, limit, window_seconds in checks:
            result = self.check(key, limit, window_seconds)
            if not result.allowed:
                logger.warning(
                    "Rate limit exceeded",
                    extra={"context": {"key": key, "reset_at": result.reset_at}},
                )
                raise RateLimitedError(key, result.reset_at)

    def enforce_rules(self, rules: Iterable[tuple[RateLimitRule, str]]) -> None:
        """Evaluate ``(rule, discriminator)`` pairs in order; see :meth:`enforce`."""
        self.enforce(
            (rule.key_for(discriminator), rule.limit, rule.window_seconds)
            for rule, discriminator in rules
        )
