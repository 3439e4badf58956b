"""
Escrow service - manages fund holding, top-ups, release and refund.
Critical: handles real money. Every payment call happens inside the
caller's transaction so a failed call leaves no local change behind.
"""
import logging
from django.conf import settings
from django.db import transaction
from django.utils import timezone
from apps.production.exceptions import (
    AlreadyReleased,
    AlreadyTerminal,
    DuplicateHold,
    InvalidAmount,
    NotHeld,
    PaymentFailed,
    TopUpFailed,
)
from apps.production.models import EscrowAccount, ProductionOrder, TimelineEvent
from apps.production.services.payment_gateway import PaymentGatewayError, get_payment_gateway
from apps.production.services.timeline_service import TimelineService

logger = logging.getLogger(__name__)


def is_valid_amount(amount) -> bool:
    """Money is a positive integer of minor units."""
    return isinstance(amount, int) and not isinstance(amount, bool) and amount > 0


class EscrowService:
    """
    Escrow ledger for production orders.
    Holds the captured amount until delivery is confirmed or the order is cancelled.
    """

    @staticmethod
    def _locked_escrow(order: ProductionOrder) -> EscrowAccount:
        escrow = EscrowAccount.objects.select_for_update().filter(order=order).first()
        if escrow is None:
            raise NotHeld()
        return escrow

    @staticmethod
    def _ensure_holding(escrow: EscrowAccount) -> None:
        if escrow.status == EscrowAccount.RELEASED:
            raise AlreadyReleased()
        if escrow.status == EscrowAccount.REFUNDED:
            raise AlreadyTerminal("Escrow has already been refunded.")

    @staticmethod
    def _return_excess(order: ProductionOrder, escrow: EscrowAccount, excess: int) -> None:
        """Give back whatever is held above the amount being settled."""
        if not excess:
            return
        try:
            get_payment_gateway().refund(escrow.hold_token, excess)
        except PaymentGatewayError as e:
            logger.warning(f"Returning excess escrow failed for order {order.id}: {e}")
            raise PaymentFailed(f"Returning the price difference failed: {e}")

    @staticmethod
    def held_balance(order: ProductionOrder) -> int:
        """Amount currently held for the order."""
        escrow = EscrowAccount.objects.filter(order=order).first()
        if escrow is None:
            raise NotHeld()
        return escrow.remaining_balance()

    @staticmethod
    @transaction.atomic
    def hold(order: ProductionOrder, amount: int, actor=None) -> EscrowAccount:
        """
        Capture the order amount into escrow. Called once at order creation.

        Args:
            order: Newly created order
            amount: Amount to capture (minor units)
            actor: User on whose behalf the hold is placed

        Returns:
            Created escrow account

        Raises:
            DuplicateHold: If escrow already exists for the order
            PaymentFailed: If the processor rejects the authorization or capture
        """
        if not is_valid_amount(amount):
            raise InvalidAmount()

        if EscrowAccount.objects.filter(order=order).exists():
            raise DuplicateHold()

        gateway = get_payment_gateway()
        try:
            hold_token = gateway.authorize(order.customer_id, amount)
            gateway.capture(hold_token, amount)
        except PaymentGatewayError as e:
            logger.warning(f"Escrow capture failed for order {order.id}: {e}")
            raise PaymentFailed(f"Escrow capture failed: {e}")

        escrow = EscrowAccount.objects.create(
            order=order,
            hold_token=hold_token,
            amount_held=amount,
            status=EscrowAccount.HOLDING
        )

        TimelineService.record(
            order,
            TimelineEvent.EventType.ESCROW_HELD,
            f"{amount} {order.currency} captured into escrow",
            actor=actor,
            metadata={'amount': amount}
        )
        logger.info(f"Escrow of {amount} held for production order {order.id}")

        return escrow

    @staticmethod
    @transaction.atomic
    def top_up(order: ProductionOrder, delta: int, actor=None) -> EscrowAccount:
        """
        Charge the customer an additional amount and add it to escrow.

        Raises:
            NotHeld: If there is no escrow for the order
            TopUpFailed: If the processor does not confirm the charge
        """
        if not is_valid_amount(delta):
            raise InvalidAmount("Top-up amount must be a positive whole number of minor units.")

        escrow = EscrowService._locked_escrow(order)
        EscrowService._ensure_holding(escrow)

        gateway = get_payment_gateway()
        try:
            charged = gateway.charge_additional(order.customer_id, delta)
        except PaymentGatewayError as e:
            logger.warning(f"Escrow top-up of {delta} failed for order {order.id}: {e}")
            raise TopUpFailed(f"The additional amount could not be charged: {e}")
        if not charged:
            logger.warning(f"Escrow top-up of {delta} declined for order {order.id}")
            raise TopUpFailed()

        escrow.amount_held += delta
        escrow.amount_topped_up += delta
        escrow.save(update_fields=['amount_held', 'amount_topped_up'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.ESCROW_TOPPED_UP,
            f"Additional {delta} {order.currency} added to escrow",
            actor=actor,
            metadata={'amount': delta, 'amount_held': escrow.amount_held}
        )

        return escrow

    @staticmethod
    @transaction.atomic
    def release(order: ProductionOrder, actor=None) -> int:
        """
        Settle the order's final price to the provider payout path.
        Any amount held above the final price goes back to the customer.

        Args:
            order: Locked order instance; escrow_released_at is set on it

        Returns:
            Released amount (the order's final price)

        Raises:
            NotHeld: If there is no escrow for the order
            AlreadyReleased: If escrow was already released
        """
        escrow = EscrowService._locked_escrow(order)
        EscrowService._ensure_holding(escrow)

        amount = order.final_price
        remaining = escrow.remaining_balance()
        if amount > remaining:
            raise InvalidAmount(
                f"Escrow balance ({remaining}) does not cover the final price ({amount})"
            )

        excess = remaining - amount
        EscrowService._return_excess(order, escrow, excess)

        fee_bps = getattr(settings, 'PRODUCTION_PLATFORM_FEE_BPS', 1500)
        now = timezone.now()

        escrow.amount_released = amount
        escrow.amount_refunded += excess
        escrow.platform_fee = amount * fee_bps // 10000
        escrow.status = EscrowAccount.RELEASED
        escrow.released_at = now
        escrow.save()

        order.escrow_released_at = now
        order.save(update_fields=['escrow_released_at', 'updated_at'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.ESCROW_RELEASED,
            f"{amount} {order.currency} released to provider",
            actor=actor,
            metadata={
                'amount': amount,
                'platform_fee': escrow.platform_fee,
                'provider_payout': escrow.provider_payout,
                'returned_to_customer': excess,
            }
        )
        logger.info(
            f"Escrow released for production order {order.id}: "
            f"{amount} (payout {escrow.provider_payout}, fee {escrow.platform_fee})"
        )

        return amount

    @staticmethod
    @transaction.atomic
    def refund(order: ProductionOrder, amount: int, actor=None) -> EscrowAccount:
        """
        Return funds to the customer and close the escrow. Used on cancellation.
        Any balance held above amount is returned as a separate excess refund.

        Raises:
            NotHeld: If there is no escrow for the order
            AlreadyReleased: If escrow was already released
            InvalidAmount: If amount exceeds the remaining balance
        """
        if not is_valid_amount(amount):
            raise InvalidAmount("Refund amount must be a positive whole number of minor units.")

        escrow = EscrowService._locked_escrow(order)
        EscrowService._ensure_holding(escrow)

        remaining = escrow.remaining_balance()
        if amount > remaining:
            raise InvalidAmount(
                f"Cannot refund {amount}; remaining balance is {remaining}"
            )

        try:
            get_payment_gateway().refund(escrow.hold_token, amount)
        except PaymentGatewayError as e:
            logger.warning(f"Escrow refund failed for order {order.id}: {e}")
            raise PaymentFailed(f"Refund failed: {e}")

        excess = remaining - amount
        EscrowService._return_excess(order, escrow, excess)

        escrow.amount_refunded += amount + excess
        escrow.status = EscrowAccount.REFUNDED
        escrow.refunded_at = timezone.now()
        escrow.save(update_fields=['amount_refunded', 'status', 'refunded_at'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.ESCROW_REFUNDED,
            f"{amount} {order.currency} refunded to customer",
            actor=actor,
            metadata={'amount': amount, 'returned_excess': excess}
        )
        logger.info(f"Escrow refund of {amount} for production order {order.id}")

        return escrow
