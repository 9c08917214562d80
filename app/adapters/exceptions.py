"""Exceptions raised by checkout gateway adapters and the deposit store."""


class PaymentError(Exception):
    """Base exception for payment-related errors."""
    pass


class ValidationError(PaymentError):
    """Raised when a checkout request is malformed."""
    pass


class GatewayError(PaymentError):
    """Raised when the gateway rejects or fails to create a session."""
    pass


class InvalidSignatureError(PaymentError):
    """Raised when a webhook payload fails authenticity verification."""
    pass


class DuplicateSessionError(PaymentError):
    """Raised when a deposit already exists for a gateway session id."""
    pass
