"""OTP challenge lifecycle: issuing codes, verifying them, locking out guessers.

Per subject the lifecycle is ``NONE -> ACTIVE -> {CONSUMED, EXPIRED, LOCKED}``,
with ``LOCKED`` overriding every other state while a lockout is in force. All
state lives in the database; the engine keeps nothing between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy.orm import Session

from otp_gate.core.clock import Clock, system_clock
from otp_gate.core.settings import Settings
from otp_gate.services.codes import CodeCodec
from otp_gate.services.errors import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    DeliveryFailedError,
    InvalidCodeError,
    LockedError,
    ResendTooSoonError,
)
from otp_gate.services.notifier import DeliveryError, Notifier, send_with_retry
from otp_gate.services.phone import normalize_phone, validate_code, validate_subject_id
from otp_gate.services.rate_limit import RateLimiter, RateLimitRule
from otp_gate.services.store import ChallengeStore
from otp_gate.services.tokens import SessionTokenIssuer

logger = logging.getLogger(__name__)

DEFAULT_ORIGIN = "0.0.0.0"


class ChallengeState(Enum):
    """Observable lifecycle state of a subject."""

    NONE = "none"
    ACTIVE = "active"
    EXPIRED = "expired"
    CONSUMED = "consumed"
    LOCKED = "locked"


@dataclass(frozen=True)
class ChallengePolicy:
    """Durations, limits and abuse-control windows for the engine."""

    ttl_seconds: int = 5 * 60
    resend_cooldown_seconds: int = 45
    attempt_limit: int = 5
    lock_seconds: int = 15 * 60
    session_ttl_seconds: int = 30 * 60
    start_origin_rules: tuple[RateLimitRule, ...] = (
        RateLimitRule("rl:ip:1m", 3, 60),
        RateLimitRule("rl:ip:1h", 10, 3600),
    )
    start_contact_rules: tuple[RateLimitRule, ...] = (
        RateLimitRule("rl:phone:1m", 3, 60),
        RateLimitRule("rl:phone:1h", 10, 3600),
    )
    verify_origin_rules: tuple[RateLimitRule, ...] = (
        RateLimitRule("rl:verify:ip:1m", 20, 60),
        RateLimitRule("rl:verify:ip:1h", 100, 3600),
    )
    delivery_max_attempts: int = 3
    delivery_backoff_seconds: float = 0.5

    @classmethod
    def from_settings(cls, config: Settings) -> ChallengePolicy:
        """Build a policy from application settings."""
        return cls(
            ttl_seconds=config.otp_ttl_seconds,
            resend_cooldown_seconds=config.otp_resend_cooldown_seconds,
            attempt_limit=config.otp_attempt_limit,
            lock_seconds=config.otp_lock_seconds,
            session_ttl_seconds=config.verified_ttl_seconds,
            start_origin_rules=(
                RateLimitRule("rl:ip:1m", config.start_ip_minute_limit, 60),
                RateLimitRule("rl:ip:1h", config.start_ip_hour_limit, 3600),
            ),
            start_contact_rules=(
                RateLimitRule("rl:phone:1m", config.start_phone_minute_limit, 60),
                RateLimitRule("rl:phone:1h", config.start_phone_hour_limit, 3600),
            ),
            verify_origin_rules=(
                RateLimitRule("rl:verify:ip:1m", config.verify_ip_minute_limit, 60),
                RateLimitRule("rl:verify:ip:1h", config.verify_ip_hour_limit, 3600),
            ),
            delivery_max_attempts=config.notifier_max_attempts,
            delivery_backoff_seconds=config.notifier_backoff_base_seconds,
        )


@dataclass(frozen=True)
class StartResult:
    """Handle returned once a code has been delivered."""

    challenge_id: str
    resend_eligible_at: datetime


@dataclass(frozen=True)
class VerifyResult:
    """Session credential returned after a correct code."""

    token: str
    expires_at: datetime
    contact: str


class ChallengeEngine:
    """Orchestrates rate limiting, storage, digests and token issuance."""

    def __init__(
        self,
        db: Session,
        *,
        codec: CodeCodec,
        tokens: SessionTokenIssuer,
        notifier: Notifier,
        policy: ChallengePolicy | None = None,
        clock: Clock = system_clock,
    ) -> None:
        self._db = db
        self._codec = codec
        self._tokens = tokens
        self._notifier = notifier
        self._policy = policy or ChallengePolicy()
        self._clock = clock
        self._store = ChallengeStore(db)
        self._limiter = RateLimiter(db, clock)

    @property
    def policy(self) -> ChallengePolicy:
        return self._policy

    async def start(
        self,
        subject_id: str,
        contact: str,
        origin: str | None = None,
        *,
        deadline: float | None = None,
    ) -> StartResult:
        """Issue a fresh code for ``subject_id`` and deliver it to ``contact``.

        Args:
            subject_id: Caller-chosen identifier owning the challenge
            contact: Phone number in any accepted notation
            origin: Provenance used for per-origin limits (e.g. client address)
            deadline: ``time.monotonic()`` instant bounding delivery retries

        Raises:
            InvalidInputError: Malformed subject or contact
            RateLimitedError: An abuse-control window is exhausted
            ResendTooSoonError: A live code was issued within the cooldown
            DeliveryFailedError: The code could not be delivered
        """
        subject = validate_subject_id(subject_id)
        phone = normalize_phone(contact)
        origin_key = (origin or "").strip() or DEFAULT_ORIGIN
        policy = self._policy

        self._limiter.enforce_rules(
            [(rule, origin_key) for rule in policy.start_origin_rules]
            + [(rule, phone) for rule in policy.start_contact_rules]
        )

        now = self._clock.now()
        existing = self._store.get_challenge(subject, for_update=True)
        if existing is not None and existing.is_live(now) and existing.in_cooldown(now):
            resend_at = existing.resend_eligible_at
            self._db.rollback()
            logger.info(
                "Resend refused during cooldown",
                extra={"context": {"subject_id": subject}},
            )
            raise ResendTooSoonError(subject, resend_at)

        code = self._codec.generate()
        code_digest = self._codec.digest(code)
        expires_at = now + timedelta(seconds=policy.ttl_seconds)
        resend_eligible_at = min(
            now + timedelta(seconds=policy.resend_cooldown_seconds),
            expires_at,
        )
        self._store.save_challenge(
            subject_id=subject,
            contact=phone,
            code_digest=code_digest,
            created_at=now,
            expires_at=expires_at,
            resend_eligible_at=resend_eligible_at,
            request_origin=origin_key,
        )
        # Committed before delivery; rolled back below if delivery fails.
        self._db.commit()

        try:
            await send_with_retry(
                self._notifier,
                phone,
                code,
                max_attempts=policy.delivery_max_attempts,
                base_delay=policy.delivery_backoff_seconds,
                deadline=deadline,
            )
        except DeliveryError as err:
            self._store.delete_challenge(subject, code_digest=code_digest)
            self._db.commit()
            logger.error(
                "Failed to deliver code",
                extra={"context": {"subject_id": subject, "contact": phone, "error": str(err)}},
            )
            raise DeliveryFailedError("Failed to send code") from err

        logger.info("Challenge started", extra={"context": {"subject_id": subject, "contact": phone}})
        return StartResult(challenge_id=subject, resend_eligible_at=resend_eligible_at)

    def verify(self, subject_id: str, code: str, origin: str | None = None) -> VerifyResult:
        """Check ``code`` against the live challenge for ``subject_id``.

        Raises:
            InvalidInputError: Malformed subject or code
            RateLimitedError: An abuse-control window is exhausted
            LockedError: The subject is locked out
            ChallengeNotFoundError: No challenge exists
            ChallengeExpiredError: The challenge outlived its TTL
            InvalidCodeError: Wrong code with attempts left
        """
        subject = validate_subject_id(subject_id)
        code = validate_code(code)
        origin_key = (origin or "").strip() or DEFAULT_ORIGIN
        policy = self._policy

        self._limiter.enforce_rules((rule, origin_key) for rule in policy.verify_origin_rules)

        now = self._clock.now()
        lock = self._store.get_lock(subject, now)
        if lock is not None:
            locked_until = lock.locked_until
            self._db.rollback()
            raise LockedError(subject, locked_until)

        challenge = self._store.get_challenge(subject, for_update=True)
        if challenge is None:
            self._db.rollback()
            raise ChallengeNotFoundError("No active challenge")

        if not challenge.is_live(now):
            self._store.delete_challenge(subject)
            self._db.commit()
            raise ChallengeExpiredError("Challenge expired")

        if challenge.attempts >= policy.attempt_limit:
            raise self._lock_out(subject, now)

        if not self._codec.matches(code, challenge.code_digest):
            attempts = self._store.record_failed_attempt(subject)
            if attempts is None:
                self._db.rollback()
                raise ChallengeNotFoundError("No active challenge")
            if attempts >= policy.attempt_limit:
                raise self._lock_out(subject, now)
            self._db.commit()
            logger.info(
                "Invalid code submitted",
                extra={"context": {"subject_id": subject, "attempts": attempts}},
            )
            raise InvalidCodeError(attempts, policy.attempt_limit - attempts)

        contact = challenge.contact
        if not self._store.delete_challenge(subject, code_digest=challenge.code_digest):
            # Consumed or replaced by a concurrent request.
            self._db.rollback()
            raise ChallengeNotFoundError("No active challenge")
        # The stored session and the reported expiry follow the token's exp claim.
        token, expires_at = self._tokens.issue(subject, contact, policy.session_ttl_seconds)
        self._store.set_verified(subject, contact, verified_at=now, expires_at=expires_at)
        self._db.commit()

        logger.info("Challenge verified", extra={"context": {"subject_id": subject, "contact": contact}})
        return VerifyResult(token=token, expires_at=expires_at, contact=contact)

    def state_of(self, subject_id: str) -> ChallengeState:
        """Report the lifecycle state of ``subject_id`` without changing it."""
        subject = validate_subject_id(subject_id)
        now = self._clock.now()
        if self._store.get_lock(subject, now) is not None:
            return ChallengeState.LOCKED
        challenge = self._store.get_challenge(subject)
        if challenge is not None:
            return ChallengeState.ACTIVE if challenge.is_live(now) else ChallengeState.EXPIRED
        if self._store.get_verified(subject, now) is not None:
            return ChallengeState.CONSUMED
        return ChallengeState.NONE

    def _lock_out(self, subject_id: str, now: datetime) -> LockedError:
        """Drop the challenge and lock the subject; return the error to raise."""
        self._store.delete_challenge(subject_id)
        self._store.set_lock(
            subject_id,
            now + timedelta(seconds=self._policy.lock_seconds),
            now,
        )
        self._db.commit()
        lock = self._store.get_lock(subject_id, now)
        locked_until = lock.locked_until if lock else now + timedelta(seconds=self._policy.lock_seconds)
        logger.warning(
            "Subject locked after too many attempts",
            extra={"context": {"subject_id": subject_id, "locked_until": locked_until}},
        )
        return LockedError(subject_id, locked_until)
