import logging

from deposit_store import DepositStore
from adapters.base import CHECKOUT_SESSION_COMPLETED, CheckoutGateway
from adapters.exceptions import InvalidSignatureError
from results import WebhookAction, WebhookResult

logger = logging.getLogger(__name__)


class WebhookReconciler:
    """Apply verified gateway events to deposit records."""

    def __init__(self, gateway: CheckoutGateway, store: DepositStore):
        self._gateway = gateway
        self._store = store

    async def handle_event(
        self, raw_payload: bytes, signature_header: str
    ) -> WebhookResult:
        """Verify a webhook delivery and reconcile the deposit it refers to.

        Nothing in ``raw_payload`` is acted on until the gateway has verified
        the signature. Verified deliveries are always acknowledged, including
        unknown sessions and event types this service does not handle.
        """
        if not signature_header:
            logger.warning("Webhook rejected: missing signature header")
            return WebhookResult.rejected("Missing signature header")

        try:
            evt = await self._gateway.webhook_verify(raw_payload, signature_header)
        except InvalidSignatureError as exc:
            logger.warning(f"Webhook verification failed: {exc}")
            return WebhookResult.rejected(str(exc))

        etype = evt["type"]
        data = evt["data"]
        logger.info(f"Received webhook: {etype} ({evt.get('id')})")

        if etype != CHECKOUT_SESSION_COMPLETED:
            logger.info(f"Unhandled webhook type: {etype}")
            return WebhookResult.acknowledged(WebhookAction.IGNORED, etype)

        session_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(session_id, str) or not session_id:
            logger.warning("Completion event %s carries no session id", evt.get("id"))
            return WebhookResult.acknowledged(WebhookAction.NOT_FOUND, etype)

        deposit = await self._store.find_by_session_id(session_id)
        if deposit is None:
            logger.warning("No deposit found for session %s", session_id)
            return WebhookResult.acknowledged(
                WebhookAction.NOT_FOUND, etype, session_id
            )

        if await self._store.mark_completed(deposit.id):
            logger.info("Deposit %s for session %s completed", deposit.id, session_id)
            action = WebhookAction.COMPLETED
        else:
            logger.info("Deposit %s already completed; duplicate delivery", deposit.id)
            action = WebhookAction.ALREADY_COMPLETED

        return WebhookResult.acknowledged(action, etype, session_id)
