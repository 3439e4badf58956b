"""
Production order service - main business logic for the order lifecycle.
Orchestrates the state machine, consultation gate, price negotiation and escrow.
"""
import logging
from typing import Optional
from django.core.exceptions import ValidationError
from django.conf import settings
from django.db import models, transaction
from django.utils import timezone
from apps.production.exceptions import (
    AlreadyTerminal,
    ConsultationPending,
    InvalidAmount,
    InvalidTransition,
    OrderNotFound,
    ProofPending,
    Unauthorized,
)
from apps.production.models import ProductionOrder, TimelineEvent
from apps.production.services.consultation_service import ConsultationService
from apps.production.services.escrow_service import EscrowService, is_valid_amount
from apps.production.services.locking import lock_order
from apps.production.services.price_adjustment_service import PriceAdjustmentService
from apps.production.services.proof_service import ProofService
from apps.production.services.state_machine import StateMachine
from apps.production.services.timeline_service import TimelineService

logger = logging.getLogger(__name__)

Status = ProductionOrder.Status


def is_staff(user) -> bool:
    return bool(getattr(user, 'is_staff', False))


class ProductionOrderService:
    """
    Lifecycle controller for production orders.
    The only component that changes an order's status.
    """

    @classmethod
    @transaction.atomic
    def create_order(
        cls,
        customer,
        provider,
        escrow_amount: int,
        consultation_required: bool = False,
        title: str = "",
        currency: Optional[str] = None
    ) -> ProductionOrder:
        """
        Create an order once the customer's payment is authorized.
        Captures the full amount into escrow.

        Args:
            customer: User paying for the order
            provider: User producing the order
            escrow_amount: Amount to capture (minor units)
            consultation_required: Whether the consultation gate applies
            title: Optional order title
            currency: ISO currency code (defaults to settings)

        Returns:
            Created order in pending_consultation or pending_order_received

        Raises:
            InvalidAmount: If escrow_amount is not a positive integer
            PaymentFailed: If the escrow capture fails (nothing is saved)
        """
        if not is_valid_amount(escrow_amount):
            raise InvalidAmount("Escrow amount must be a positive whole number of minor units.")

        # Prevent self-purchase
        if customer.pk == provider.pk:
            raise Unauthorized("Cannot place an order with yourself.")

        initial_status = StateMachine.initial_status(consultation_required)
        fields = {
            'customer': customer,
            'provider': provider,
            'title': title[:200],
            'status': initial_status,
            'escrow_amount': escrow_amount,
            'final_price': escrow_amount,
            'consultation_required': consultation_required,
        }
        if currency:
            fields['currency'] = currency.upper()[:3]
        order = ProductionOrder.objects.create(**fields)

        EscrowService.hold(order, escrow_amount, actor=customer)

        TimelineService.record(
            order,
            TimelineEvent.EventType.CREATED,
            f"Order created with {escrow_amount} {order.currency} in escrow",
            actor=customer,
            metadata={
                'status': initial_status,
                'escrow_amount': escrow_amount,
                'consultation_required': consultation_required,
            }
        )

        StateMachine.notify(order, None, initial_status, customer, timezone.now())
        logger.info(f"Production order {order.id} created ({initial_status})")

        return order

    @classmethod
    @transaction.atomic
    def advance(
        cls,
        order_id,
        user,
        tracking_number: Optional[str] = None,
        shipping_carrier: Optional[str] = None
    ) -> ProductionOrder:
        """
        Move the order to the next state in the progression.

        Args:
            order_id: Order to advance
            user: Customer or provider driving the step
            tracking_number: Carrier tracking number, stored when entering shipped
            shipping_carrier: Carrier name, stored when entering shipped

        Returns:
            Updated order

        Raises:
            AlreadyTerminal: If the order is completed or cancelled
            ConsultationPending: If the consultation gate is not satisfied
            ProofPending: If a submitted proof still awaits the customer's review
            Unauthorized: If the user may not drive this step
        """
        order = lock_order(order_id)

        if order.is_terminal:
            raise AlreadyTerminal()

        to_state = StateMachine.next_status(order.status)
        if to_state is None:
            raise InvalidTransition(f"No next status after {order.status}")

        StateMachine.validate_user_can_advance(order, user, to_state)

        if order.status == Status.PENDING_CONSULTATION and not ConsultationService.is_satisfied(order):
            raise ConsultationPending()

        if order.status == Status.PENDING_APPROVAL and ProofService.pending_for(order) is not None:
            raise ProofPending()

        metadata = {}
        if to_state == Status.SHIPPED:
            if tracking_number:
                order.tracking_number = tracking_number.strip()[:100]
                metadata['tracking_number'] = order.tracking_number
            if shipping_carrier:
                order.shipping_carrier = shipping_carrier.strip()[:100]
                metadata['shipping_carrier'] = order.shipping_carrier
        elif to_state == Status.COMPLETED:
            cls._settle(order, user)

        return StateMachine.transition(
            order=order,
            to_state=to_state,
            user=user,
            metadata=metadata
        )

    @classmethod
    @transaction.atomic
    def confirm_delivery(cls, order_id, user) -> ProductionOrder:
        """
        Customer confirms receipt. Releases escrow to the provider.
        Valid from shipped or ready_for_delivery.

        Raises:
            AlreadyTerminal: If the order is completed or cancelled
            InvalidTransition: If the order is not ready for delivery or shipped
        """
        order = lock_order(order_id)

        if not (order.is_customer(user) or is_staff(user)):
            raise Unauthorized("Only the customer can confirm delivery.")

        if order.is_terminal:
            raise AlreadyTerminal()

        if order.status not in (Status.SHIPPED, Status.READY_FOR_DELIVERY):
            raise InvalidTransition(
                f"Delivery can only be confirmed once the order is ready or shipped (currently {order.status})"
            )

        cls._settle(order, user)

        return StateMachine.transition(
            order=order,
            to_state=Status.COMPLETED,
            user=user,
            event_type=TimelineEvent.EventType.DELIVERY_CONFIRMED
        )

    @classmethod
    @transaction.atomic
    def cancel_order(cls, order_id, user, reason: str) -> ProductionOrder:
        """
        Cancel the order and refund the current final price to the customer.
        Any escrow held above the final price is returned as well.

        Args:
            order_id: Order to cancel
            user: Customer, provider or staff cancelling
            reason: Cancellation reason

        Returns:
            Updated order

        Raises:
            AlreadyTerminal: If the order is completed or cancelled
        """
        order = lock_order(order_id)

        if not (order.is_participant(user) or is_staff(user)):
            raise Unauthorized("You cannot cancel this order.")

        if order.is_terminal:
            raise AlreadyTerminal()

        PriceAdjustmentService.close_pending(order, reason='order_cancelled')

        # Refund the current final price; anything held above it goes back too
        balance = EscrowService.held_balance(order)
        refunded = min(order.final_price, balance)
        if refunded > 0:
            EscrowService.refund(order, refunded, actor=user)

        order.cancellation_reason = (reason or '')[:1000]

        return StateMachine.transition(
            order=order,
            to_state=Status.CANCELLED,
            user=user,
            event_type=TimelineEvent.EventType.CANCELLED,
            reason=order.cancellation_reason,
            metadata={'refunded': refunded, 'returned_excess': balance - refunded}
        )

    @staticmethod
    def _settle(order: ProductionOrder, user) -> int:
        """Close any open negotiation and release escrow before completing."""
        PriceAdjustmentService.close_pending(order, reason='order_completed')
        return EscrowService.release(order, actor=user)

    # ==================== Queries ====================

    @staticmethod
    def get_order(order_id, user=None) -> ProductionOrder:
        """
        Fetch an order visible to the user (participants and staff).

        Raises:
            OrderNotFound: If the order does not exist or is not visible
        """
        try:
            order = ProductionOrder.objects.select_related(
                'customer', 'provider', 'escrow'
            ).get(id=order_id)
        except (ProductionOrder.DoesNotExist, ValidationError, ValueError):
            raise OrderNotFound()
        if user is not None and not (order.is_participant(user) or is_staff(user)):
            raise OrderNotFound()
        return order

    @staticmethod
    def orders_for(user, status: Optional[str] = None):
        """Orders where the user is customer or provider."""
        queryset = ProductionOrder.objects.filter(
            models.Q(customer=user) | models.Q(provider=user)
        ).select_related('customer', 'provider').order_by('-created_at')
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    @staticmethod
    def recent_timeline(order_id, limit: Optional[int] = None, user=None):
        order = ProductionOrderService.get_order(order_id, user=user)
        return TimelineService.recent(order, limit)

    @staticmethod
    def active_consultation(order: ProductionOrder):
        return ConsultationService.active_for(order)

    @staticmethod
    def pending_adjustment(order: ProductionOrder):
        return PriceAdjustmentService.pending_for(order)

    @staticmethod
    def proofs(order: ProductionOrder):
        return ProofService.proofs_for(order)

    @staticmethod
    def provider_summary(provider) -> dict:
        """
        Order counts and payouts for a provider.
        Payouts are net of the platform fee; pending covers orders not yet settled.
        """
        orders = ProductionOrder.objects.filter(provider=provider)
        summary = orders.aggregate(
            total_orders=models.Count('id'),
            active_orders=models.Count(
                'id', filter=~models.Q(status__in=ProductionOrder.TERMINAL_STATUSES)
            ),
            pending_proofs=models.Count('id', filter=models.Q(status=Status.PENDING_APPROVAL)),
            completed_orders=models.Count('id', filter=models.Q(status=Status.COMPLETED)),
            released=models.Sum('escrow__amount_released'),
            fees=models.Sum('escrow__platform_fee'),
        )
        fee_bps = getattr(settings, 'PRODUCTION_PLATFORM_FEE_BPS', 1500)
        unsettled = orders.filter(escrow_released_at__isnull=True).exclude(status=Status.CANCELLED)

        released = summary.pop('released') or 0
        fees = summary.pop('fees') or 0
        summary['total_earnings'] = released - fees
        summary['pending_earnings'] = sum(
            price - price * fee_bps // 10000
            for price in unsettled.values_list('final_price', flat=True)
        )
        return summary
