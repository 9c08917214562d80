import logging
from decimal import Decimal

from config import CheckoutConfig
from deposit_store import DepositStore
from adapters.base import (
    CheckoutGateway,
    build_success_url,
    validate_amount_minor,
    validate_product_name,
)
from adapters.exceptions import GatewayError, PaymentError, ValidationError
from results import CheckoutResult, ErrorKind

logger = logging.getLogger(__name__)


class CheckoutSessionHandler:
    """Create hosted checkout sessions and record them as pending deposits."""

    def __init__(
        self,
        gateway: CheckoutGateway,
        store: DepositStore,
        config: CheckoutConfig,
    ):
        self._gateway = gateway
        self._store = store
        self._config = config
        logger.info(f"CheckoutSessionHandler initialized with {gateway.__class__.__name__}")

    @staticmethod
    def _validate(product_name, amount_minor_units) -> None:
        if not validate_product_name(product_name):
            raise ValidationError("Product name is required")
        if not validate_amount_minor(amount_minor_units):
            raise ValidationError(f"Invalid amount: {amount_minor_units!r}")

    async def create_session(
        self, product_name: str, amount_minor_units: int
    ) -> CheckoutResult:
        """Create a gateway session, then persist a pending deposit for it.

        The deposit is written only after the gateway returns a session id, so
        a failed gateway call leaves no local state behind.
        """
        try:
            self._validate(product_name, amount_minor_units)
        except ValidationError as e:
            logger.warning("Validation error creating checkout session: %s", e)
            return CheckoutResult.failure(ErrorKind.VALIDATION, str(e))

        product_name = product_name.strip()

        try:
            checkout_session = await self._gateway.create_checkout_session(
                product_name=product_name,
                unit_amount=amount_minor_units,
                currency=self._config.currency,
                success_url=build_success_url(self._config.success_url),
                cancel_url=self._config.cancel_url,
            )
        except GatewayError as e:
            logger.error(f"Gateway failed to create checkout session: {e}")
            return CheckoutResult.failure(ErrorKind.GATEWAY, str(e))
        except Exception as e:
            logger.exception("Unexpected gateway error")
            return CheckoutResult.failure(ErrorKind.GATEWAY, f"Gateway error: {e}")

        amount = Decimal(amount_minor_units) / 100
        try:
            await self._store.create(
                amount=amount,
                session_id=checkout_session.id,
                currency=self._config.currency,
                product_name=product_name,
            )
        except PaymentError as e:
            logger.error("Failed to record session %s: %s", checkout_session.id, e)
            return CheckoutResult.failure(ErrorKind.STORE, str(e))
        except Exception as e:
            logger.exception(
                "Error recording deposit for session %s", checkout_session.id
            )
            return CheckoutResult.failure(
                ErrorKind.STORE, f"Failed to record deposit: {e}"
            )

        logger.info(
            "Created checkout session %s for %s %s",
            checkout_session.id,
            amount,
            self._config.currency.upper(),
        )
        return CheckoutResult.success(checkout_session.url, checkout_session.id)
