"""Operational scripts for the OTP gate."""
