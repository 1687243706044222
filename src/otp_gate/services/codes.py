"""One-time code generation and keyed digests."""

from __future__ import annotations

import hashlib
import hmac
import secrets

CODE_LENGTH = 6
_CODE_SPACE = 10**CODE_LENGTH


def generate_code() -> str:
    """Return a uniformly random 6-digit code, leading zeros preserved."""
    return f"{secrets.randbelow(_CODE_SPACE):0{CODE_LENGTH}d}"


def digest_code(code: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 of ``code`` under ``secret``."""
    return hmac.new(secret.encode("utf-8"), code.encode("utf-8"), hashlib.sha256).hexdigest()


def code_matches(code: str, stored_digest: str, secret: str) -> bool:
    """Compare ``code`` against a stored digest in constant time.

    A stored digest that is not valid hex, or whose length differs from a
    fresh digest, never matches.
    """
    computed = bytes.fromhex(digest_code(code, secret))
    try:
        stored = bytes.fromhex(stored_digest)
    except ValueError:
        return False
    if len(computed) != len(stored):
        return False
    return hmac.compare_digest(computed, stored)


class CodeCodec:
    """Binds the digest helpers to a server-held secret."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("A non-empty digest secret is required")
        self._secret = secret

    @staticmethod
    def generate() -> str:
        return generate_code()

    def digest(self, code: str) -> str:
        return digest_code(code, self._secret)

    def matches(self, code: str, stored_digest: str) -> bool:
        return code_matches(code, stored_digest, self._secret)
