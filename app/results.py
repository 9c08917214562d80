"""Plain result values returned by the checkout and webhook handlers."""

import enum
from dataclasses import dataclass
from typing import Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    GATEWAY = "gateway"
    STORE = "store"
    INVALID_SIGNATURE = "invalid_signature"


class WebhookAction(str, enum.Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    NOT_FOUND = "not_found"
    IGNORED = "ignored"


@dataclass(frozen=True)
class CheckoutResult:
    ok: bool
    redirect_url: Optional[str] = None
    session_id: Optional[str] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, redirect_url: str, session_id: str) -> "CheckoutResult":
        return cls(ok=True, redirect_url=redirect_url, session_id=session_id)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> "CheckoutResult":
        return cls(ok=False, error=error, message=message)


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of one webhook delivery.

    ``ok`` is true for every delivery whose signature verified, including
    unknown sessions and ignored event types, so the gateway stops retrying.
    """

    ok: bool
    action: Optional[WebhookAction] = None
    event_type: Optional[str] = None
    session_id: Optional[str] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def acknowledged(
        cls,
        action: WebhookAction,
        event_type: str,
        session_id: Optional[str] = None,
    ) -> "WebhookResult":
        return cls(ok=True, action=action, event_type=event_type, session_id=session_id)

    @classmethod
    def rejected(cls, message: str) -> "WebhookResult":
        return cls(ok=False, error=ErrorKind.INVALID_SIGNATURE, message=message)
