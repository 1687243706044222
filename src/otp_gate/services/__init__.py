# src/otp_gate/services/__init__.py
"""Business logic services for the OTP gate."""

from .challenge import ChallengeEngine, ChallengePolicy, ChallengeState
from .checkout import CheckoutReleaseService
from .codes import CodeCodec
from .rate_limit import RateLimiter, RateLimitRule
from .store import ChallengeStore
from .tokens import SessionTokenIssuer

__all__ = [
    "ChallengeEngine",
    "ChallengePolicy",
    "ChallengeState",
    "ChallengeStore",
    "CheckoutReleaseService",
    "CodeCodec",
    "RateLimiter",
    "RateLimitRule",
    "SessionTokenIssuer",
]
