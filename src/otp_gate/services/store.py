"""Durable storage for challenges, lockouts and verified sessions.

Every write is a single keyed upsert; reads for lockouts and verified sessions
filter on expiry so that a stale row is indistinguishable from a missing one.
The store never commits on its own: the caller owns the transaction.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from otp_gate.db.upsert import insert_for
from otp_gate.models import ChallengeLock, OtpChallenge, RateWindow, VerifiedSession

_CHALLENGE_FIELDS = (
    "contact",
    "code_digest",
    "attempts",
    "created_at",
    "expires_at",
    "resend_eligible_at",
    "request_origin",
)


class ChallengeStore:
    """Keyed CRUD over the OTP tables for one database session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    # --- Challenges -----------------------------------------------------------------
    def get_challenge(self, subject_id: str, *, for_update: bool = False) -> OtpChallenge | None:
        """Return the stored challenge, expired or not.

        With ``for_update`` the row stays locked until the caller's transaction
        ends (``SELECT ... FOR UPDATE`` where the backend supports it).
        """
        stmt = (
            select(OtpChallenge)
            .where(OtpChallenge.subject_id == subject_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._db.scalars(stmt).first()

    def save_challenge(
        self,
        *,
        subject_id: str,
        contact: str,
        code_digest: str,
        created_at: datetime,
        expires_at: datetime,
        resend_eligible_at: datetime,
        request_origin: str | None,
        attempts: int = 0,
    ) -> None:
        """Insert or overwrite the challenge for ``subject_id``."""
        stmt = insert_for(self._db, OtpChallenge).values(
            subject_id=subject_id,
            contact=contact,
            code_digest=code_digest,
            attempts=attempts,
            created_at=created_at,
            expires_at=expires_at,
            resend_eligible_at=resend_eligible_at,
            request_origin=request_origin,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[OtpChallenge.subject_id],
            set_={name: stmt.excluded[name] for name in _CHALLENGE_FIELDS},
        )
        self._db.execute(stmt)

    def record_failed_attempt(self, subject_id: str) -> int | None:
        """Atomically increment the attempt counter.

        Returns:
            The new attempt count, or None if the challenge no longer exists
        """
        stmt = (
            update(OtpChallenge)
            .where(OtpChallenge.subject_id == subject_id)
            .values(attempts=OtpChallenge.attempts + 1)
            .returning(OtpChallenge.attempts)
            .execution_options(synchronize_session=False)
        )
        return self._db.execute(stmt).scalar_one_or_none()

    def delete_challenge(self, subject_id: str, *, code_digest: str | None = None) -> bool:
        """Delete the challenge; return True if a row was removed.

        With ``code_digest`` only the challenge carrying that digest is removed,
        leaving a concurrently re-issued code in place.
        """
        stmt = delete(OtpChallenge).where(OtpChallenge.subject_id == subject_id)
        if code_digest is not None:
            stmt = stmt.where(OtpChallenge.code_digest == code_digest)
        result = self._db.execute(stmt.execution_options(synchronize_session=False))
        return bool(result.rowcount)

    # --- Lockouts -------------------------------------------------------------------
    def get_lock(self, subject_id: str, now: datetime) -> ChallengeLock | None:
        """Return the lockout if it is still in force at ``now``."""
        stmt = (
            select(ChallengeLock)
            .where(ChallengeLock.subject_id == subject_id, ChallengeLock.locked_until > now)
            .execution_options(populate_existing=True)
        )
        return self._db.scalars(stmt).first()

    def set_lock(self, subject_id: str, locked_until: datetime, now: datetime) -> None:
        """Create a lockout unless one is already in force.

        An active lockout is never extended or shortened; only a row whose
        ``locked_until`` has passed is replaced.
        """
        stmt = insert_for(self._db, ChallengeLock).values(
            subject_id=subject_id,
            locked_until=locked_until,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[ChallengeLock.subject_id],
            set_={"locked_until": stmt.excluded.locked_until},
            where=ChallengeLock.locked_until <= now,
        )
        self._db.execute(stmt)

    def delete_lock(self, subject_id: str) -> None:
        self._db.execute(
            delete(ChallengeLock)
            .where(ChallengeLock.subject_id == subject_id)
            .execution_options(synchronize_session=False)
        )

    # --- Verified sessions ----------------------------------------------------------
    def get_verified(self, subject_id: str, now: datetime) -> VerifiedSession | None:
        """Return the verified session if it has not expired at ``now``."""
        stmt = (
            select(VerifiedSession)
            .where(VerifiedSession.subject_id == subject_id, VerifiedSession.expires_at > now)
            .execution_options(populate_existing=True)
        )
        return self._db.scalars(stmt).first()

    def set_verified(
        self,
        subject_id: str,
        contact: str,
        verified_at: datetime,
        expires_at: datetime,
    ) -> None:
        """Insert or overwrite the verified session for ``subject_id``."""
        stmt = insert_for(self._db, VerifiedSession).values(
            subject_id=subject_id,
            contact=contact,
            verified_at=verified_at,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[VerifiedSession.subject_id],
            set_={
                "contact": stmt.excluded.contact,
                "verified_at": stmt.excluded.verified_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        self._db.execute(stmt)

    def delete_verified(self, subject_id: str) -> None:
        self._db.execute(
            delete(VerifiedSession)
            .where(VerifiedSession.subject_id == subject_id)
            .execution_options(synchronize_session=False)
        )

    # --- Housekeeping ---------------------------------------------------------------
    def purge_expired(self, now: datetime) -> dict[str, int]:
        """Physically delete rows that every read path already ignores.

        Returns:
            Number of rows removed per table
        """
        targets = (
            ("otp_challenge", delete(OtpChallenge).where(OtpChallenge.expires_at <= now)),
            ("otp_lock", delete(ChallengeLock).where(ChallengeLock.locked_until <= now)),
            (
                "otp_verified_session",
                delete(VerifiedSession).where(VerifiedSession.expires_at <= now),
            ),
            ("rate_window", delete(RateWindow).where(RateWindow.window_expires_at <= now)),
        )
        removed: dict[str, int] = {}
        for table, stmt in targets:
            result = self._db.execute(stmt.execution_options(synchronize_session=False))
            removed[table] = int(result.rowcount or 0)
        return removed
