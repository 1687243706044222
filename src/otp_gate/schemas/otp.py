"""Request and response schemas for the OTP and checkout endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class OtpStartRequest(BaseModel):
    """Request a code for a cart."""

    cart_id: str = Field(..., description="Identifier of the cart the code unlocks")
    phone: str = Field(..., description="Destination phone number, any common notation")


class OtpStartResponse(BaseModel):
    """Returned once a code has been delivered."""

    challenge_id: str = Field(..., description="Opaque challenge handle")
    resend_at: datetime = Field(..., description="Earliest instant a new code may be requested")


class OtpVerifyRequest(BaseModel):
    """Submit a received code."""

    cart_id: str = Field(..., description="Identifier of the cart being verified")
    code: str = Field(..., description="Six digit code")


class OtpVerifyResponse(BaseModel):
    """Session credential issued after a correct code."""

    token: str = Field(..., description="Signed session token")
    expires_at: datetime = Field(..., description="Expiry of the verified session")


class CheckoutUrlRequest(BaseModel):
    """Ask for the checkout URL of a verified cart."""

    cart_id: str = Field(..., description="Identifier of the verified cart")


class CheckoutUrlResponse(BaseModel):
    """The released checkout URL."""

    checkout_url: str = Field(..., description="Checkout URL for the cart")
