# src/otp_gate/api/v1/endpoints/otp.py
"""OTP issuance and verification endpoints."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, HTTPException, Response, status

from otp_gate.api.v1.dependencies import ChallengeEngineDep, ClientOriginDep, RequestIdDep
from otp_gate.core.settings import settings
from otp_gate.schemas.otp import (
    OtpStartRequest,
    OtpStartResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
)
from otp_gate.services.errors import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    DeliveryFailedError,
    InvalidCodeError,
    InvalidInputError,
    LockedError,
    RateLimitedError,
    ResendTooSoonError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/otp", tags=["otp"])

# Upper bound on time spent retrying delivery within one request
START_DELIVERY_BUDGET_SECONDS = 8.0


def _rate_limited(err: RateLimitedError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={"error": "Too many requests", "retry_at": err.reset_at.isoformat()},
    )


@router.post("/start", response_model=OtpStartResponse)
async def start_challenge(
    payload: OtpStartRequest,
    engine: ChallengeEngineDep,
    origin: ClientOriginDep,
    request_id: RequestIdDep,
) -> OtpStartResponse:
    """Issue a code for the cart and deliver it to the phone number."""
    try:
        result = await engine.start(
            payload.cart_id,
            payload.phone,
            origin,
            deadline=time.monotonic() + START_DELIVERY_BUDGET_SECONDS,
        )
    except InvalidInputError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except RateLimitedError as err:
        raise _rate_limited(err) from err
    except ResendTooSoonError as err:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "Code recently sent",
                "challenge_id": err.subject_id,
                "resend_at": err.resend_eligible_at.isoformat(),
            },
        ) from err
    except DeliveryFailedError as err:
        logger.error(
            "Start failed at delivery",
            extra={"context": {"request_id": request_id, "subject_id": payload.cart_id}},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to send code",
        ) from err

    logger.info(
        "Start accepted",
        extra={"context": {"request_id": request_id, "subject_id": result.challenge_id}},
    )
    return OtpStartResponse(challenge_id=result.challenge_id, resend_at=result.resend_eligible_at)


@router.post("/verify", response_model=OtpVerifyResponse)
async def verify_challenge(
    payload: OtpVerifyRequest,
    response: Response,
    engine: ChallengeEngineDep,
    origin: ClientOriginDep,
    request_id: RequestIdDep,
) -> OtpVerifyResponse:
    """Check a code and, on success, hand out the session token."""
    try:
        result = engine.verify(payload.cart_id, payload.code, origin)
    except InvalidInputError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except RateLimitedError as err:
        raise _rate_limited(err) from err
    except LockedError as err:
        raise HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail={"error": "Too many attempts", "locked_until": err.locked_until.isoformat()},
        ) from err
    except ChallengeNotFoundError as err:
        code = (
            status.HTTP_404_NOT_FOUND
            if settings.distinguish_missing_challenge
            else status.HTTP_410_GONE
        )
        raise HTTPException(status_code=code, detail="Code expired or not found") from err
    except ChallengeExpiredError as err:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Code expired or not found",
        ) from err
    except InvalidCodeError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid code", "remaining_attempts": err.remaining},
        ) from err

    response.set_cookie(
        key=settings.token_cookie_name,
        value=result.token,
        max_age=engine.policy.session_ttl_seconds,
        httponly=True,
        secure=settings.token_cookie_secure,
        samesite="strict",
        path="/",
    )
    logger.info(
        "Verify accepted",
        extra={"context": {"request_id": request_id, "subject_id": payload.cart_id.strip()}},
    )
    return OtpVerifyResponse(token=result.token, expires_at=result.expires_at)
