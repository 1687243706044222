"""Signed session tokens handed out after a successful verification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from otp_gate.core.clock import Clock, system_clock
from otp_gate.services.errors import InvalidTokenError


@dataclass(frozen=True)
class TokenClaims:
    """Claims bound into a session token."""

    subject_id: str
    contact: str
    issued_at: datetime
    expires_at: datetime


class SessionTokenIssuer:
    """Issue and validate compact HMAC-signed JWTs.

    The token binds a subject id to the contact that was verified. It is
    opaque to clients and only this service checks it.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", clock: Clock = system_clock) -> None:
        if not secret:
            raise ValueError("A non-empty signing secret is required")
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock

    def issue(self, subject_id: str, contact: str, ttl_seconds: int) -> tuple[str, datetime]:
        """Return ``(token, expires_at)`` for the given claims."""
        issued_at = self._clock.now().replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=ttl_seconds)
        payload: dict[str, Any] = {
            "sub": subject_id,
            "phone": contact,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token: str = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        return token, expires_at

    def validate(self, token: str) -> TokenClaims:
        """Verify signature, structure and expiry.

        Raises:
            InvalidTokenError: For every failure, without saying which
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # Expiry is checked against the injected clock below.
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as err:
            raise InvalidTokenError() from err

        subject = payload.get("sub")
        contact = payload.get("phone")
        issued = payload.get("iat")
        expires = payload.get("exp")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError()
        if not isinstance(contact, str) or not contact:
            raise InvalidTokenError()
        if not isinstance(issued, int) or not isinstance(expires, int):
            raise InvalidTokenError()

        expires_at = datetime.fromtimestamp(expires, tz=UTC)
        if self._clock.now() >= expires_at:
            raise InvalidTokenError()
        return TokenClaims(
            subject_id=subject,
            contact=contact,
            issued_at=datetime.fromtimestamp(issued, tz=UTC),
            expires_at=expires_at,
        )
