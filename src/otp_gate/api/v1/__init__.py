# src/otp_gate/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import checkout_router, otp_router, system_router

__all__ = [
    "otp_router",
    "checkout_router",
    "system_router",
]
