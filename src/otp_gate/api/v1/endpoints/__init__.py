# src/otp_gate/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .checkout import router as checkout_router
from .otp import router as otp_router
from .system import router as system_router

__all__ = [
    "otp_router",
    "checkout_router",
    "system_router",
]
