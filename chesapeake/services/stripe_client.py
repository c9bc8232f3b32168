"""
Stripe client: webhook verification, checkout session creation and retrieval.
Handles rate limiting, retries, and error reporting.
"""
import asyncio
import json
import uuid
from typing import Any, Optional

import httpx
import stripe
from fastapi import Depends, HTTPException, status

from chesapeake.core.config import Settings, get_settings
from chesapeake.core.exceptions import StripeAPIError, WebhookVerificationError
from chesapeake.core.logging import get_logger
from chesapeake.schemas.stripe import CheckoutSession, CreatedCheckoutSession

logger = get_logger(__name__)


class StripeClient:
    """
    Async Stripe REST client for the few calls the storefront and
    reconciliation need.

    Features:
    - Signature verification through the stripe library
    - Session retrieval with line items, products and card details expanded
    - Session creation with an idempotency key held across retries
    - Retry on rate limiting and transient transport failures
    """

    API_VERSION = "2024-06-20"
    SESSIONS_PATH = "/v1/checkout/sessions"
    SESSION_PATH = SESSIONS_PATH + "/{session_id}"
    SESSION_EXPAND = (
        "line_items.data.price.product",
        "payment_intent.payment_method",
    )
    MAX_RETRIES = 3

    def __init__(
        self,
        secret_key: str,
        webhook_secret: Optional[str] = None,
        api_base: str = "https://api.stripe.com",
        webhook_tolerance: int = 300,
    ) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.api_base = api_base.rstrip("/")
        self.webhook_tolerance = webhook_tolerance

    def verify_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Check the Stripe-Signature header and decode the event body.

        Raises:
            WebhookVerificationError: Signature missing, stale or wrong
        """
        if not self.webhook_secret:
            raise WebhookVerificationError("webhook secret not configured")
        if not signature:
            raise WebhookVerificationError("missing signature")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise WebhookVerificationError("event body is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                tolerance=self.webhook_tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(str(e)) from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise WebhookVerificationError("event body is not valid JSON") from e

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[list[tuple[str, str]]] = None,
        data: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Stripe-Version": self.API_VERSION,
        }
        if idempotency_key:
            # Same key on every attempt so a retried create is not applied twice
            headers["Idempotency-Key"] = idempotency_key
        url = f"{self.api_base}{path}"

        async with httpx.AsyncClient(timeout=20.0) as client:
            for attempt in range(self.MAX_RETRIES):
                try:
                    response = await client.request(
                        method, url, params=params, data=data, headers=headers
                    )
                    response.raise_for_status()
                    return response.json()

                except httpx.HTTPStatusError as e:
                    code = e.response.status_code
                    if (code == 429 or code >= 500) and attempt < self.MAX_RETRIES - 1:
                        await asyncio.sleep(2 ** attempt)
                        continue
                    logger.error(
                        "Stripe API error",
                        method=method,
                        path=path,
                        status=code,
                        response=e.response.text[:500],
                    )
                    raise StripeAPIError(f"HTTP error: {code}", status_code=code)

                except httpx.RequestError as e:
                    if attempt < self.MAX_RETRIES - 1:
                        continue
                    raise StripeAPIError(f"Request failed: {str(e)}")

        raise StripeAPIError("Max retries exceeded")

    async def _get(
        self,
        path: str,
        params: Optional[list[tuple[str, str]]] = None,
    ) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def _post(self, path: str, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", path, data=data, idempotency_key=uuid.uuid4().hex)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        """Fetch a checkout session with line items and payment details expanded."""
        params = [("expand[]", field) for field in self.SESSION_EXPAND]
        data = await self._get(self.SESSION_PATH.format(session_id=session_id), params)
        return CheckoutSession.model_validate(data)

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        quantity: int,
        return_url: str,
        metadata: dict[str, str],
        shipping_countries: list[str],
    ) -> CreatedCheckoutSession:
        """
        Create an embedded-mode payment session for one catalog price.

        The metadata is what the webhook later decodes into a catalog sale.
        """
        form: dict[str, Any] = {
            "mode": "payment",
            "ui_mode": "embedded",
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": str(quantity),
            "return_url": return_url,
            "consent_collection[promotions]": "auto",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = value
        for index, country in enumerate(shipping_countries):
            form[f"shipping_address_collection[allowed_countries][{index}]"] = country

        data = await self._post(self.SESSIONS_PATH, form)
        return CreatedCheckoutSession.model_validate(data)


def _build_client(settings: Settings) -> StripeClient:
    return StripeClient(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_base=settings.stripe_api_base,
        webhook_tolerance=settings.stripe_webhook_tolerance,
    )


def get_stripe_client(settings: Settings = Depends(get_settings)) -> StripeClient:
    """Dependency for API calls; needs the secret key."""
    if not settings.stripe_secret_key:
        logger.error("STRIPE_SECRET_KEY is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe is not configured",
        )
    return _build_client(settings)


def get_webhook_stripe_client(settings: Settings = Depends(get_settings)) -> StripeClient:
    """Dependency for the webhook; refuses to run without both Stripe secrets."""
    if not settings.stripe_configured:
        logger.error("Stripe secrets are not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe is not configured",
        )
    return _build_client(settings)
