"""In-house sandbox checkout gateway."""

import hashlib
import hmac
import json
import uuid
from typing import Any, Dict

from ..base import CheckoutGateway, CheckoutSession, normalize_event
from ..exceptions import InvalidSignatureError


def sign_payload(payload: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 signature the sandbox expects in the webhook header."""
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class CustomAdapter(CheckoutGateway):
    """Self-contained gateway for local development and tests.

    There is no hosted page: ``url`` is the success URL with the session id
    filled in, as if the customer had paid immediately. Webhooks are signed
    with ``sign_payload`` using the shared ``webhook_secret``, so the
    reconciler's verification gate behaves the same as it does against Stripe.
    """

    def __init__(self, webhook_secret: str = "sandbox_secret") -> None:
        self.webhook_secret = webhook_secret

    async def create_checkout_session(
        self,
        product_name: str,
        unit_amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        session_id = f"cs_mock_{uuid.uuid4().hex}"
        return CheckoutSession(
            id=session_id,
            url=success_url.replace("{CHECKOUT_SESSION_ID}", session_id),
        )

    async def webhook_verify(
        self, payload: bytes, sig_header: str
    ) -> Dict[str, Any]:
        expected = sign_payload(payload, self.webhook_secret)
        if not sig_header or not hmac.compare_digest(expected, sig_header):
            raise InvalidSignatureError("Signature mismatch")
        try:
            data = json.loads(payload.decode())
        except ValueError as exc:
            raise InvalidSignatureError(f"Malformed payload: {exc}") from exc
        if not isinstance(data, dict):
            raise InvalidSignatureError("Malformed payload: expected a JSON object")
        return normalize_event(data)


__all__ = ["CustomAdapter", "sign_payload"]
