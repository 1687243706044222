"""System endpoints for the OTP gate."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from otp_gate.api.v1.dependencies import SessionDep
from otp_gate.core.settings import settings

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/health")
async def get_system_health(db: SessionDep) -> dict[str, str]:
    """Report service status including a database round trip.

    Raises:
        HTTPException: 503 when the database cannot be reached
    """
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as err:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from err
    return {
        "status": "ok",
        "database": "ok",
        "version": settings.app_version,
    }
