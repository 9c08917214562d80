"""Base classes and helpers for hosted checkout gateways."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict
from urllib.parse import urlsplit

# Stripe's upper bound for a single unit_amount, in minor units.
MAX_AMOUNT_MINOR = 99_999_999

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"


def validate_amount_minor(amount: Any) -> bool:
    """Check that an amount is a positive integer number of minor units."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        return False
    return 0 < amount <= MAX_AMOUNT_MINOR


def validate_product_name(name: Any) -> bool:
    return isinstance(name, str) and bool(name.strip())


def build_success_url(base_url: str) -> str:
    """Append the gateway's session id placeholder to the success URL."""
    separator = "&" if urlsplit(base_url).query else "?"
    return f"{base_url}{separator}session_id={{CHECKOUT_SESSION_ID}}"


def normalize_event(event: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a verified event to its id, type and data object.

    ``data`` is always a dict; any other shape becomes ``{}``.
    """
    data = event.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    return {
        "id": event.get("id"),
        "type": event.get("type", "unknown"),
        "data": obj if isinstance(obj, dict) else {},
    }


@dataclass(frozen=True)
class CheckoutSession:
    """A gateway-issued hosted checkout session."""

    id: str
    url: str


class CheckoutGateway(ABC):
    """Abstract base class for hosted checkout providers."""

    @abstractmethod
    async def create_checkout_session(
        self,
        product_name: str,
        unit_amount: int,
        currency: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a single line-item hosted checkout session.

        Args:
            product_name: Display name shown on the hosted page
            unit_amount: Price in the smallest currency unit
            currency: Lower-case ISO currency code
            success_url: Redirect target after payment
            cancel_url: Redirect target when the customer backs out

        Returns:
            The session id and hosted redirect URL

        Raises:
            GatewayError: If the gateway fails or rejects the request
        """
        pass

    @abstractmethod
    async def webhook_verify(
        self,
        payload: bytes,
        sig_header: str
    ) -> Dict[str, Any]:
        """Verify and parse webhook payload.

        The signature is checked before the payload is parsed.

        Args:
            payload: Raw webhook payload
            sig_header: Signature header for verification

        Returns:
            Event id, type and the event's data object

        Raises:
            InvalidSignatureError: If verification fails
        """
        pass
