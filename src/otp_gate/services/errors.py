"""Exceptions raised by the challenge lifecycle and its collaborators."""

from __future__ import annotations

from datetime import datetime


class ChallengeError(RuntimeError):
    """Base exception for every refused Start or Verify."""


class InvalidInputError(ChallengeError):
    """Raised for a malformed subject id, contact or code.

    Always raised before any state is touched.
    """


class RateLimitedError(ChallengeError):
    """Raised when an abuse-control window is exhausted."""

    def __init__(self, key: str, reset_at: datetime) -> None:
        super().__init__(f"Rate limit exceeded for {key}")
        self.key = key
        self.reset_at = reset_at


class ResendTooSoonError(ChallengeError):
    """Raised when a new code is requested inside the resend cooldown."""

    def __init__(self, subject_id: str, resend_eligible_at: datetime) -> None:
        super().__init__("A code was sent recently; wait before requesting another")
        self.subject_id = subject_id
        self.resend_eligible_at = resend_eligible_at


class DeliveryFailedError(ChallengeError):
    """Raised when the code could not be delivered after all retries."""


class LockedError(ChallengeError):
    """Raised while a subject is locked out of verification."""

    def __init__(self, subject_id: str, locked_until: datetime) -> None:
        super().__init__("Too many invalid attempts")
        self.subject_id = subject_id
        self.locked_until = locked_until


class ChallengeNotFoundError(ChallengeError):
    """Raised when no challenge exists for the subject."""


class ChallengeExpiredError(ChallengeError):
    """Raised when the challenge outlived its TTL."""


class InvalidCodeError(ChallengeError):
    """Raised for a wrong code that did not exhaust the attempt budget."""

    def __init__(self, attempts: int, remaining: int) -> None:
        super().__init__("Invalid code")
        self.attempts = attempts
        self.remaining = remaining


class InvalidTokenError(Exception):
    """Raised for any session token that fails validation.

    Carries no detail about why, so callers cannot be used as an oracle.
    """


class NotVerifiedError(Exception):
    """Raised when no live verified session backs a release request."""


class ResolverError(RuntimeError):
    """Raised when the protected resource cannot be fetched."""
