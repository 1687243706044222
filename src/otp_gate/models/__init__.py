# src/otp_gate/models/__init__.py
"""SQLAlchemy models for the OTP gate."""

from .challenge import OtpChallenge
from .lock import ChallengeLock
from .rate_window import RateWindow
from .verified_session import VerifiedSession

__all__ = [
    "OtpChallenge",
    "ChallengeLock",
    "RateWindow",
    "VerifiedSession",
]
