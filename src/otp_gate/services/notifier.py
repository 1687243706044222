"""Out-of-band delivery of one-time codes.

The challenge engine only depends on the :class:`Notifier` protocol. Retries
live here, at the delivery boundary, and nowhere else.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Protocol

import httpx

from otp_gate.core.settings import Settings

logger = logging.getLogger(__name__)

GRAPH_API_BASE_URL = "https://graph.facebook.com"


class DeliveryError(RuntimeError):
    """Raised when a code could not be handed to the delivery provider."""


class Notifier(Protocol):
    """Delivers a code to a contact."""

    async def send(self, contact: str, code: str) -> None: ...

    async def close(self) -> None: ...


class WhatsAppNotifier:
    """Send codes as WhatsApp authentication-template messages.

    The template carries the code and the recipient number in its body, plus a
    URL button and a copy-code button that both take the code.
    """

    def __init__(
        self,
        *,
        phone_number_id: str,
        access_token: str,
        api_version: str = "v23.0",
        template_name: str = "otp3",
        language: str = "en_US",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = f"{GRAPH_API_BASE_URL}/{api_version}/{phone_number_id}/messages"
        self._access_token = access_token
        self._template_name = template_name
        self._language = language
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._owns_client = client is None

    def build_payload(self, contact: str, code: str) -> dict[str, Any]:
        """Return the Graph API message body for ``code`` sent to ``contact``."""
        with_plus = contact if contact.startswith("+") else f"+{contact}"
        return {
            "messaging_product": "whatsapp",
            "to": contact.lstrip("+"),
            "type": "template",
            "template": {
                "name": self._template_name,
                "language": {"code": self._language},
                "components": [
                    {
                        "type": "body",
                        "parameters": [
                            {"type": "text", "text": code},
                            {"type": "text", "text": with_plus},
                        ],
                    },
                    {
                        "type": "button",
                        "sub_type": "url",
                        "index": "0",
                        "parameters": [{"type": "text", "text": code}],
                    },
                    {
                        "type": "button",
                        "sub_type": "copy_code",
                        "index": "1",
                        "parameters": [{"type": "text", "text": code}],
                    },
                ],
            },
        }

    async def send(self, contact: str, code: str) -> None:
        try:
            response = await self._client.post(
                self._url,
                json=self.build_payload(contact, code),
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
        except httpx.HTTPError as err:
            raise DeliveryError(f"Messaging provider unreachable: {err}") from err
        if response.is_error:
            raise DeliveryError(
                f"Messaging provider rejected message: {response.status_code} {response.text}"
            )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class LoggingNotifier:
    """Development notifier that records deliveries in the log only."""

    async def send(self, contact: str, code: str) -> None:
        logger.info(
            "Code delivery skipped (logging notifier)",
            extra={"context": {"contact": contact}},
        )

    async def close(self) -> None:
        return None


async def send_with_retry(
    notifier: Notifier,
    contact: str,
    code: str,
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    deadline: float | None = None,
) -> None:
    """Deliver a code, retrying with exponential backoff.

    Args:
        notifier: Delivery collaborator
        contact: Normalized destination
        code: Raw code to deliver
        max_attempts: Upper bound on delivery attempts
        base_delay: Delay before the second attempt; doubles after each failure
        deadline: ``time.monotonic()`` value after which no further attempt starts

    Raises:
        DeliveryError: When every permitted attempt failed
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    last_error: DeliveryError | None = None
    for attempt in range(max_attempts):
        try:
            await notifier.send(contact, code)
            return
        except DeliveryError as err:
            last_error = err

        if attempt + 1 >= max_attempts:
            break
        delay = base_delay * (2**attempt)
        if deadline is not None and time.monotonic() + delay >= deadline:
            logger.warning(
                "Delivery retries cut short by request deadline",
                extra={"context": {"attempt": attempt + 1, "error": str(last_error)}},
            )
            break
        logger.warning(
            "Retrying code delivery",
            extra={"context": {"attempt": attempt + 1, "delay": delay, "error": str(last_error)}},
        )
        await asyncio.sleep(delay)

    raise DeliveryError(f"Delivery failed after {attempt + 1} attempt(s): {last_error}")


def build_notifier(config: Settings) -> Notifier:
    """Return the notifier selected by ``NOTIFIER_BACKEND``.

    Raises:
        RuntimeError: If the WhatsApp backend is selected without credentials
    """
    if config.notifier_backend == "log":
        return LoggingNotifier()
    if config.notifier_backend != "whatsapp":
        raise RuntimeError(f"Unknown notifier backend: {config.notifier_backend}")
    if not config.meta_phone_number_id or not config.meta_token:
        raise RuntimeError("META_PHONE_NUMBER_ID and META_TOKEN are required for WhatsApp delivery")
    return WhatsAppNotifier(
        phone_number_id=config.meta_phone_number_id,
        access_token=config.meta_token,
        api_version=config.meta_api_version,
        template_name=config.whatsapp_template_name,
        language=config.whatsapp_template_language,
        timeout_seconds=config.notifier_timeout_seconds,
    )
