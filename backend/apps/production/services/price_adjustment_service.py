"""
Price adjustment service - single-use propose / approve / reject / expire
negotiation of an order's final price.
Expiry behaves like an implicit rejection.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from apps.production.exceptions import (
    AlreadyPending,
    AlreadyResolved,
    AlreadyTerminal,
    AlreadyUsed,
    InvalidAmount,
    InvalidDeadline,
    InvalidJustification,
    InvalidState,
    NoOpAdjustment,
    PriceAdjustmentNotFound,
    Unauthorized,
)
from apps.production.models import PriceAdjustment, ProductionOrder, TimelineEvent
from apps.production.services.escrow_service import EscrowService, is_valid_amount
from apps.production.services.locking import lock_order
from apps.production.services.timeline_service import TimelineService

logger = logging.getLogger(__name__)

APPROVE = 'approve'
REJECT = 'reject'
DECISIONS = (APPROVE, REJECT)


class PriceAdjustmentService:
    """
    Runs at most one price negotiation per order.
    Proposed by the provider, resolved by the customer or by deadline expiry.
    """

    @staticmethod
    def pending_for(order: ProductionOrder) -> Optional[PriceAdjustment]:
        return order.price_adjustments.filter(status=PriceAdjustment.Status.PENDING).first()

    @staticmethod
    def _lock(adjustment_id) -> Tuple[ProductionOrder, PriceAdjustment]:
        """Lock the owning order, then the adjustment itself."""
        try:
            order_id = PriceAdjustment.objects.values_list('order_id', flat=True).get(id=adjustment_id)
        except (PriceAdjustment.DoesNotExist, ValidationError, ValueError):
            raise PriceAdjustmentNotFound()
        order = lock_order(order_id)
        adjustment = PriceAdjustment.objects.select_for_update().get(id=adjustment_id)
        return order, adjustment

    @staticmethod
    @transaction.atomic
    def propose(
        order_id,
        user,
        adjusted_price: int,
        justification: str,
        response_deadline: Optional[datetime] = None
    ) -> PriceAdjustment:
        """
        Provider proposes a new final price.

        Args:
            order_id: Order to adjust
            user: The order's provider
            adjusted_price: Proposed price (minor units)
            justification: Reason shown to the customer (required)
            response_deadline: When the proposal lapses

        Returns:
            Created PriceAdjustment in pending status

        Raises:
            AlreadyUsed: If the order already had its one adjustment
            AlreadyPending: If another proposal awaits a response
            InvalidJustification: If justification is blank
            NoOpAdjustment: If the price does not change
        """
        order = lock_order(order_id)

        if not order.is_provider(user):
            raise Unauthorized("Only the provider can propose a price adjustment.")
        if order.is_terminal:
            raise AlreadyTerminal()
        if order.price_adjustment_used:
            raise AlreadyUsed()
        if PriceAdjustmentService.pending_for(order) is not None:
            raise AlreadyPending()

        justification = (justification or '').strip()
        if not justification:
            raise InvalidJustification()
        if not is_valid_amount(adjusted_price):
            raise InvalidAmount()

        original_price = order.final_price
        if adjusted_price == original_price:
            raise NoOpAdjustment()

        now = timezone.now()
        if response_deadline is None:
            hours = getattr(settings, 'PRODUCTION_PRICE_ADJUSTMENT_RESPONSE_HOURS', 72)
            response_deadline = now + timedelta(hours=hours)
        if response_deadline <= now:
            raise InvalidDeadline()

        if adjusted_price > original_price:
            adjustment_type = PriceAdjustment.AdjustmentType.INCREASE
        else:
            adjustment_type = PriceAdjustment.AdjustmentType.DECREASE

        adjustment = PriceAdjustment.objects.create(
            order=order,
            proposed_by=user,
            original_price=original_price,
            adjusted_price=adjusted_price,
            adjustment_type=adjustment_type,
            justification=justification[:2000],
            response_deadline=response_deadline,
            status=PriceAdjustment.Status.PENDING
        )

        TimelineService.record(
            order,
            TimelineEvent.EventType.PRICE_PROPOSED,
            f"Provider proposed a price {adjustment_type} from {original_price} to {adjusted_price}",
            actor=user,
            metadata={
                'price_adjustment_id': str(adjustment.id),
                'original_price': original_price,
                'adjusted_price': adjusted_price,
                'justification': adjustment.justification,
                'response_deadline': response_deadline.isoformat(),
            }
        )
        logger.info(f"Price adjustment {adjustment.id} proposed for order {order.id}")

        return adjustment

    @staticmethod
    @transaction.atomic
    def resolve(adjustment_id, user, decision: str) -> PriceAdjustment:
        """
        Customer approves or rejects a pending proposal.
        An approved increase is charged before anything is committed.

        Raises:
            AlreadyResolved: If the proposal is no longer pending
            Unauthorized: If the user is not the order's customer
            TopUpFailed: If the price increase could not be charged
        """
        if decision not in DECISIONS:
            raise ValueError(f"decision must be one of {DECISIONS}")

        order, adjustment = PriceAdjustmentService._lock(adjustment_id)

        if not adjustment.is_pending:
            raise AlreadyResolved(f"This price adjustment was already {adjustment.status}.")
        if not order.is_customer(user):
            raise Unauthorized("Only the customer can respond to a price adjustment.")
        if order.is_terminal:
            raise AlreadyTerminal()

        now = timezone.now()

        if decision == APPROVE:
            shortfall = adjustment.adjusted_price - EscrowService.held_balance(order)
            if shortfall > 0:
                EscrowService.top_up(order, shortfall, actor=user)
                adjustment.top_up_amount = shortfall

            adjustment.status = PriceAdjustment.Status.APPROVED
            order.final_price = adjustment.adjusted_price
            event_type = TimelineEvent.EventType.PRICE_APPROVED
            description = f"Customer approved final price of {adjustment.adjusted_price}"
        else:
            adjustment.status = PriceAdjustment.Status.REJECTED
            event_type = TimelineEvent.EventType.PRICE_REJECTED
            description = "Customer rejected the price adjustment"

        adjustment.responded_by = user
        adjustment.responded_at = now
        adjustment.save()

        order.price_adjustment_used = True
        order.save(update_fields=['final_price', 'price_adjustment_used', 'updated_at'])

        TimelineService.record(
            order,
            event_type,
            description,
            actor=user,
            metadata={
                'price_adjustment_id': str(adjustment.id),
                'final_price': order.final_price,
                'top_up_amount': adjustment.top_up_amount,
            }
        )
        logger.info(f"Price adjustment {adjustment.id} {adjustment.status} for order {order.id}")

        return adjustment

    @staticmethod
    def _mark_expired(order: ProductionOrder, adjustment: PriceAdjustment, now, reason: str) -> None:
        adjustment.status = PriceAdjustment.Status.EXPIRED
        adjustment.expired_at = now
        adjustment.save(update_fields=['status', 'expired_at', 'updated_at'])

        order.price_adjustment_used = True
        order.save(update_fields=['price_adjustment_used', 'updated_at'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.PRICE_EXPIRED,
            "Price adjustment expired without a response; price unchanged",
            metadata={'price_adjustment_id': str(adjustment.id), 'reason': reason}
        )
        logger.info(f"Price adjustment {adjustment.id} for order {order.id} expired ({reason})")

    @staticmethod
    @transaction.atomic
    def expire(adjustment_id, now=None) -> PriceAdjustment:
        """
        Expire a proposal whose response deadline has passed.

        Raises:
            AlreadyResolved: If the customer responded first
            InvalidState: If the deadline has not passed yet
        """
        now = now or timezone.now()
        order, adjustment = PriceAdjustmentService._lock(adjustment_id)

        if not adjustment.is_pending:
            raise AlreadyResolved(f"This price adjustment was already {adjustment.status}.")
        if adjustment.response_deadline > now:
            raise InvalidState("The response deadline has not passed yet.")

        PriceAdjustmentService._mark_expired(order, adjustment, now, 'deadline_passed')
        return adjustment

    @staticmethod
    @transaction.atomic
    def close_pending(order: ProductionOrder, reason: str) -> Optional[PriceAdjustment]:
        """
        Close any open proposal when the order reaches a terminal state.
        Caller holds the order lock.
        """
        adjustment = (
            PriceAdjustment.objects.select_for_update()
            .filter(order=order, status=PriceAdjustment.Status.PENDING)
            .first()
        )
        if adjustment is None:
            return None
        PriceAdjustmentService._mark_expired(order, adjustment, timezone.now(), reason)
        return adjustment
