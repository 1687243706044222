# src/otp_gate/api/v1/endpoints/checkout.py
"""Release of the checkout URL to verified carts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from otp_gate.api.v1.dependencies import ReleaseServiceDep, RequestIdDep, SessionTokenDep
from otp_gate.schemas.otp import CheckoutUrlRequest, CheckoutUrlResponse
from otp_gate.services.errors import (
    InvalidInputError,
    InvalidTokenError,
    NotVerifiedError,
    ResolverError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout"])


@router.post("/checkout-url", response_model=CheckoutUrlResponse)
async def get_checkout_url(
    payload: CheckoutUrlRequest,
    service: ReleaseServiceDep,
    token: SessionTokenDep,
    request_id: RequestIdDep,
) -> CheckoutUrlResponse:
    """Return the checkout URL once the caller proves a verified session."""
    try:
        checkout_url = await service.release(payload.cart_id, token)
    except InvalidInputError as err:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(err)) from err
    except (InvalidTokenError, NotVerifiedError) as err:
        logger.info(
            "Checkout URL refused",
            extra={"context": {"request_id": request_id, "subject_id": payload.cart_id}},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not verified") from err
    except ResolverError as err:
        logger.error(
            "Checkout URL lookup failed",
            extra={
                "context": {
                    "request_id": request_id,
                    "subject_id": payload.cart_id,
                    "error": str(err),
                }
            },
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to get checkout URL",
        ) from err

    return CheckoutUrlResponse(checkout_url=checkout_url)
