"""
Payment collaborator used by the escrow ledger.
The concrete gateway is chosen by settings.PRODUCTION_PAYMENT_GATEWAY.
Ships with a sandbox gateway for development. Replace with a real
processor integration in production.
"""
import logging
import uuid
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """Raised by a gateway when the processor rejects or cannot complete a call."""


class PaymentGateway:
    """
    Interface of the external payment processor.
    Amounts are integer minor units.
    """

    def authorize(self, customer_id, amount: int) -> str:
        """Place an authorization hold and return its token."""
        raise NotImplementedError

    def capture(self, hold_token: str, amount: int) -> None:
        """Capture a previously authorized hold."""
        raise NotImplementedError

    def charge_additional(self, customer_id, amount: int) -> bool:
        """Charge an extra amount to the customer's payment instrument."""
        raise NotImplementedError

    def refund(self, hold_token: str, amount: int) -> None:
        """Return an amount to the customer."""
        raise NotImplementedError


class SandboxPaymentGateway(PaymentGateway):
    """Gateway that accepts everything and only logs. Development only."""

    def authorize(self, customer_id, amount):
        token = f"sandbox_hold_{uuid.uuid4().hex}"
        logger.info(f"[SANDBOX] Authorized {amount} for customer {customer_id}: {token}")
        return token

    def capture(self, hold_token, amount):
        logger.info(f"[SANDBOX] Captured {amount} on {hold_token}")

    def charge_additional(self, customer_id, amount):
        logger.info(f"[SANDBOX] Charged additional {amount} to customer {customer_id}")
        return True

    def refund(self, hold_token, amount):
        logger.info(f"[SANDBOX] Refunded {amount} on {hold_token}")


def get_payment_gateway() -> PaymentGateway:
    """Instantiate the configured payment gateway."""
    path = getattr(
        settings,
        'PRODUCTION_PAYMENT_GATEWAY',
        'apps.production.services.payment_gateway.SandboxPaymentGateway'
    )
    return import_string(path)()
