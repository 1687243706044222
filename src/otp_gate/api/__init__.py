"""HTTP API for the OTP gate."""
