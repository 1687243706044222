"""Release of the protected checkout URL to verified subjects."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from sqlalchemy.orm import Session

from otp_gate.core.clock import Clock, system_clock
from otp_gate.core.settings import Settings
from otp_gate.services.errors import InvalidTokenError, NotVerifiedError, ResolverError
from otp_gate.services.phone import validate_subject_id
from otp_gate.services.store import ChallengeStore
from otp_gate.services.tokens import SessionTokenIssuer

logger = logging.getLogger(__name__)

CART_QUERY = "query GetCart($id: ID!) { cart(id: $id) { checkoutUrl } }"


class CheckoutResolver(Protocol):
    """Fetches the resource a verified session unlocks."""

    async def resolve(self, subject_id: str) -> str: ...

    async def close(self) -> None: ...


class ShopifyCheckoutResolver:
    """Look up a cart's checkout URL through the Storefront GraphQL API."""

    def __init__(
        self,
        *,
        api_url: str,
        access_token: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._access_token = access_token
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = client is None

    async def resolve(self, subject_id: str) -> str:
        try:
            response = await self._client.post(
                self._api_url,
                json={"query": CART_QUERY, "variables": {"id": subject_id}},
                headers={"X-Shopify-Storefront-Access-Token": self._access_token},
            )
        except httpx.HTTPError as err:
            raise ResolverError(f"Storefront API unreachable: {err}") from err
        if response.is_error:
            raise ResolverError(f"Storefront API request failed with status {response.status_code}")

        try:
            body: dict[str, Any] = response.json()
        except ValueError as err:
            raise ResolverError("Storefront API returned malformed JSON") from err
        if body.get("errors"):
            raise ResolverError(f"Storefront API returned errors: {body['errors']}")
        cart = (body.get("data") or {}).get("cart") or {}
        checkout_url = cart.get("checkoutUrl")
        if not checkout_url:
            raise ResolverError("Checkout URL not found")
        return str(checkout_url)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_resolver(config: Settings) -> CheckoutResolver:
    """Return the Storefront resolver configured in settings.

    Raises:
        RuntimeError: If the Storefront endpoint or token is missing
    """
    if not config.shopify_storefront_api_url or not config.shopify_storefront_api_token:
        raise RuntimeError(
            "SHOPIFY_STOREFRONT_API_URL and SHOPIFY_STOREFRONT_API_TOKEN must be configured"
        )
    return ShopifyCheckoutResolver(
        api_url=config.shopify_storefront_api_url,
        access_token=config.shopify_storefront_api_token,
        timeout_seconds=config.shopify_timeout_seconds,
    )


class CheckoutReleaseService:
    """Gate the resolver behind a valid token and a live verified session.

    The stored verified session is authoritative; a valid token alone is not
    sufficient.
    """

    def __init__(
        self,
        db: Session,
        *,
        tokens: SessionTokenIssuer,
        resolver: CheckoutResolver,
        clock: Clock = system_clock,
    ) -> None:
        self._store = ChallengeStore(db)
        self._tokens = tokens
        self._resolver = resolver
        self._clock = clock

    def authorize(self, subject_id: str, token: str | None) -> str:
        """Return the verified contact for ``subject_id``.

        Raises:
            InvalidInputError: Malformed subject id
            InvalidTokenError: Missing, invalid or mismatched token
            NotVerifiedError: No live verified session for the subject
        """
        subject = validate_subject_id(subject_id)
        if not token:
            raise NotVerifiedError("No session token supplied")
        claims = self._tokens.validate(token)
        if claims.subject_id != subject:
            raise InvalidTokenError()
        session = self._store.get_verified(subject, self._clock.now())
        if session is None:
            raise NotVerifiedError("No verified session")
        return session.contact

    async def release(self, subject_id: str, token: str | None) -> str:
        """Authorize the caller, then fetch the checkout URL.

        Raises:
            ResolverError: The URL could not be fetched
        """
        self.authorize(subject_id, token)
        subject = subject_id.strip()
        checkout_url = await self._resolver.resolve(subject)
        logger.info("Checkout URL released", extra={"context": {"subject_id": subject}})
        return checkout_url
