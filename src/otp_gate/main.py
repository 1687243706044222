# src/otp_gate/main.py
"""Main entry point for the OTP gate application."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from otp_gate.api.v1 import checkout_router, otp_router, system_router
from otp_gate.api.v1.dependencies import get_notifier, get_resolver
from otp_gate.core.logging import configure_logging
from otp_gate.core.settings import settings
from otp_gate.services.checkout import CheckoutResolver
from otp_gate.services.notifier import Notifier

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Releases checkout URLs to carts verified by a one-time passcode",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["content-type", "authorization"],
)

# Include API routers
app.include_router(otp_router, prefix="/api/v1")
app.include_router(checkout_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()
    # Misconfigured collaborators fail here rather than on the first request.
    app.state.notifier = get_notifier()
    app.state.resolver = get_resolver()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    notifier: Notifier | None = getattr(app.state, "notifier", None)
    if notifier:
        await notifier.close()
    resolver: CheckoutResolver | None = getattr(app.state, "resolver", None)
    if resolver:
        await resolver.close()
    get_notifier.cache_clear()
    get_resolver.cache_clear()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("otp_gate.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
