"""OTP gate: one-time-passcode verification in front of checkout release."""

__version__ = "0.1.0"
