"""Tests for the checkout resolver and the release authorization."""

from __future__ import annotations

import json
from datetime import timedelta

import httpx
import pytest

from otp_gate.core.settings import Settings
from otp_gate.services.checkout import (
    CART_QUERY,
    CheckoutReleaseService,
    ShopifyCheckoutResolver,
    build_resolver,
)
from otp_gate.services.errors import (
    InvalidInputError,
    InvalidTokenError,
    NotVerifiedError,
    ResolverError,
)
from otp_gate.services.store import ChallengeStore

STOREFRONT_URL = "https://shop.example/api/2024-04/graphql.json"


def _resolver(handler) -> ShopifyCheckoutResolver:
    return ShopifyCheckoutResolver(
        api_url=STOREFRONT_URL,
        access_token="storefront-token",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


class TestShopifyCheckoutResolver:
    """Storefront GraphQL lookups."""

    @pytest.mark.asyncio
    async def test_returns_checkout_url(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"data": {"cart": {"checkoutUrl": "https://shop.example/checkouts/c1"}}},
            )

        url = await _resolver(handler).resolve("gid://shopify/Cart/c1")

        assert url == "https://shop.example/checkouts/c1"
        body = json.loads(seen[0].content)
        assert body == {"query": CART_QUERY, "variables": {"id": "gid://shopify/Cart/c1"}}
        assert seen[0].headers["X-Shopify-Storefront-Access-Token"] == "storefront-token"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500),
            httpx.Response(200, json={"errors": [{"message": "Throttled"}]}),
            httpx.Response(200, json={"data": {"cart": None}}),
            httpx.Response(200, content=b"<html>"),
        ],
    )
    async def test_failures_raise_resolver_error(self, response):
        with pytest.raises(ResolverError):
            await _resolver(lambda request: response).resolve("gid://shopify/Cart/c1")

    def test_build_requires_configuration(self):
        with pytest.raises(RuntimeError):
            build_resolver(Settings(HMAC_SECRET="x", SHOPIFY_STOREFRONT_API_URL=None))


class TestCheckoutRelease:
    """Token plus stored verified session gate the resolver."""

    def _verify(self, db_session, clock, subject_id="cart-1"):
        ChallengeStore(db_session).set_verified(
            subject_id,
            "+34600123456",
            verified_at=clock.now(),
            expires_at=clock.now() + timedelta(seconds=1800),
        )
        db_session.commit()

    def _service(self, db_session, tokens, resolver, clock):
        return CheckoutReleaseService(db_session, tokens=tokens, resolver=resolver, clock=clock)

    @pytest.mark.asyncio
    async def test_release_for_verified_subject(self, db_session, tokens, resolver, clock):
        self._verify(db_session, clock)
        token, _ = tokens.issue("cart-1", "+34600123456", 1800)

        url = await self._service(db_session, tokens, resolver, clock).release("cart-1", token)

        assert url == "https://shop.example/checkouts/cart-1"
        assert resolver.requested == ["cart-1"]

    @pytest.mark.asyncio
    async def test_token_for_other_subject_refused(self, db_session, tokens, resolver, clock):
        self._verify(db_session, clock, "cart-1")
        self._verify(db_session, clock, "cart-2")
        token, _ = tokens.issue("cart-2", "+34600123456", 1800)

        with pytest.raises(InvalidTokenError):
            await self._service(db_session, tokens, resolver, clock).release("cart-1", token)
        assert resolver.requested == []

    @pytest.mark.asyncio
    async def test_missing_verified_session_refused(self, db_session, tokens, resolver, clock):
        token, _ = tokens.issue("cart-1", "+34600123456", 1800)
        with pytest.raises(NotVerifiedError):
            await self._service(db_session, tokens, resolver, clock).release("cart-1", token)

    @pytest.mark.asyncio
    async def test_expired_verified_session_refused(self, db_session, tokens, resolver, clock):
        self._verify(db_session, clock)
        token, _ = tokens.issue("cart-1", "+34600123456", 3600)
        clock.advance(1800)
        with pytest.raises(NotVerifiedError):
            await self._service(db_session, tokens, resolver, clock).release("cart-1", token)

    @pytest.mark.asyncio
    async def test_missing_token_refused(self, db_session, tokens, resolver, clock):
        self._verify(db_session, clock)
        with pytest.raises(NotVerifiedError):
            await self._service(db_session, tokens, resolver, clock).release("cart-1", None)

    @pytest.mark.asyncio
    async def test_blank_cart_rejected(self, db_session, tokens, resolver, clock):
        with pytest.raises(InvalidInputError):
            await self._service(db_session, tokens, resolver, clock).release(" ", "token")
