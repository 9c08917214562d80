"""Adapters for integrating hosted checkout gateways."""

from .base import CheckoutGateway, CheckoutSession
from .exceptions import PaymentError, ValidationError, GatewayError, InvalidSignatureError, DuplicateSessionError

__all__ = ["CheckoutGateway", "CheckoutSession", "PaymentError", "ValidationError", "GatewayError", "InvalidSignatureError", "DuplicateSessionError"]
