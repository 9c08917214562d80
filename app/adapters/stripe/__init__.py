"""Stripe hosted checkout adapter."""

import asyncio
import json
from typing import Any, Dict

import stripe
from ..base import CheckoutGateway, CheckoutSession, normalize_event
from ..exceptions import GatewayError, InvalidSignatureError


class StripeAdapter(CheckoutGateway):
    """Create Stripe Checkout sessions and verify Stripe webhooks.

    Each adapter owns a ``stripe.StripeClient`` instead of assigning the
    module-level ``stripe.api_key``, so several adapters can coexist in one
    process. The SDK is synchronous; calls run in a worker thread bounded by
    ``timeout`` seconds, and the client's HTTP timeout is the same bound so
    an abandoned request does not outlive it.
    """

    def __init__(
        self, api_key: str, webhook_secret: str, timeout: float = 10.0
    ) -> None:
        if not api_key or not webhook_secret:
            raise ValueError("Stripe API key and webhook secret are required")
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self._client = stripe.StripeClient(
            api_key,
            http_client=stripe.RequestsClient(timeout=timeout),
            max_network_retries=0,
        )

    def _create_session(self, params: Dict[str, Any]):
        return self._client.v1.checkout.sessions.create(params=params)

    async def create_checkout_session(
        self,
        product_name: str,
        unit_amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        params = {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": product_name},
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        try:
            session = await asyncio.wait_for(
                asyncio.to_thread(self._create_session, params), self.timeout
            )
        except asyncio.TimeoutError as exc:
            raise GatewayError(
                f"Stripe did not respond within {self.timeout}s"
            ) from exc
        except stripe.StripeError as exc:
            message = exc.user_message or str(exc)
            raise GatewayError(message) from exc

        return CheckoutSession(id=session.id, url=session.url)

    async def webhook_verify(
        self, payload: bytes, sig_header: str
    ) -> Dict[str, Any]:
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                sig_header,
                self.webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
            event = json.loads(body)
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignatureError(str(exc)) from exc
        except ValueError as exc:
            # UnicodeDecodeError and JSONDecodeError both land here.
            raise InvalidSignatureError(f"Malformed payload: {exc}") from exc

        if not isinstance(event, dict):
            raise InvalidSignatureError("Malformed payload: expected a JSON object")

        return normalize_event(event)


__all__ = ["StripeAdapter"]
