"""Shared API dependencies: services, collaborators and request metadata."""

from functools import lru_cache
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from otp_gate.core.clock import Clock, system_clock
from otp_gate.core.settings import settings
from otp_gate.db.session import get_db
from otp_gate.services.challenge import DEFAULT_ORIGIN, ChallengeEngine, ChallengePolicy
from otp_gate.services.checkout import CheckoutReleaseService, CheckoutResolver, build_resolver
from otp_gate.services.codes import CodeCodec
from otp_gate.services.notifier import Notifier, build_notifier
from otp_gate.services.tokens import SessionTokenIssuer

# Optional so that the cookie can carry the token instead
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_clock() -> Clock:
    return system_clock


@lru_cache
def get_notifier() -> Notifier:
    """Return the process-wide notifier built from settings."""
    return build_notifier(settings)


@lru_cache
def get_resolver() -> CheckoutResolver:
    """Return the process-wide checkout resolver built from settings."""
    return build_resolver(settings)


def get_code_codec() -> CodeCodec:
    return CodeCodec(settings.hmac_secret)


def get_policy() -> ChallengePolicy:
    return ChallengePolicy.from_settings(settings)


ClockDep = Annotated[Clock, Depends(get_clock)]


def get_token_issuer(clock: ClockDep) -> SessionTokenIssuer:
    return SessionTokenIssuer(settings.hmac_secret, settings.jwt_algorithm, clock)


TokenIssuerDep = Annotated[SessionTokenIssuer, Depends(get_token_issuer)]


def get_challenge_engine(
    db: SessionDep,
    clock: ClockDep,
    tokens: TokenIssuerDep,
    codec: Annotated[CodeCodec, Depends(get_code_codec)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    policy: Annotated[ChallengePolicy, Depends(get_policy)],
) -> ChallengeEngine:
    """Assemble a challenge engine bound to the request's database session."""
    return ChallengeEngine(
        db,
        codec=codec,
        tokens=tokens,
        notifier=notifier,
        policy=policy,
        clock=clock,
    )


def get_release_service(
    db: SessionDep,
    clock: ClockDep,
    tokens: TokenIssuerDep,
    resolver: Annotated[CheckoutResolver, Depends(get_resolver)],
) -> CheckoutReleaseService:
    return CheckoutReleaseService(db, tokens=tokens, resolver=resolver, clock=clock)


def get_client_origin(request: Request) -> str:
    """Return the caller's address for per-origin rate limiting.

    The first ``X-Forwarded-For`` entry wins, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if request.client and request.client.host:
        return request.client.host
    return DEFAULT_ORIGIN


def get_request_id() -> str:
    return uuid4().hex


def get_session_token(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str | None:
    """Return the session token from the cookie, falling back to the bearer header."""
    token = request.cookies.get(settings.token_cookie_name)
    if token:
        return token
    if credentials is not None and credentials.credentials:
        return credentials.credentials
    return None


ChallengeEngineDep = Annotated[ChallengeEngine, Depends(get_challenge_engine)]
ReleaseServiceDep = Annotated[CheckoutReleaseService, Depends(get_release_service)]
ClientOriginDep = Annotated[str, Depends(get_client_origin)]
RequestIdDep = Annotated[str, Depends(get_request_id)]
SessionTokenDep = Annotated[str | None, Depends(get_session_token)]
