"""
Production order state machine.
Owns the transition table and the single write path for order status.
"""
import logging
from typing import Optional
from django.db import transaction
from django.utils import timezone
from apps.production.exceptions import AlreadyTerminal, InvalidTransition, Unauthorized
from apps.production.models import ProductionOrder, TimelineEvent
from apps.production.services.timeline_service import TimelineService
from apps.production.signals import production_status_changed

logger = logging.getLogger(__name__)

Status = ProductionOrder.Status


class StateMachine:
    """
    Strict forward-only lifecycle with cancellation from any non-terminal state.
    """

    SEQUENCE = [
        Status.PENDING_CONSULTATION,
        Status.PENDING_ORDER_RECEIVED,
        Status.ORDER_RECEIVED,
        Status.IN_PRODUCTION,
        Status.PENDING_APPROVAL,
        Status.READY_FOR_DELIVERY,
        Status.SHIPPED,
        Status.COMPLETED,
    ]

    # Valid state transitions
    TRANSITIONS = {
        Status.PENDING_CONSULTATION: [Status.PENDING_ORDER_RECEIVED, Status.CANCELLED],
        Status.PENDING_ORDER_RECEIVED: [Status.ORDER_RECEIVED, Status.CANCELLED],
        Status.ORDER_RECEIVED: [Status.IN_PRODUCTION, Status.CANCELLED],
        Status.IN_PRODUCTION: [Status.PENDING_APPROVAL, Status.CANCELLED],
        Status.PENDING_APPROVAL: [Status.READY_FOR_DELIVERY, Status.CANCELLED],
        Status.READY_FOR_DELIVERY: [Status.SHIPPED, Status.COMPLETED, Status.CANCELLED],
        Status.SHIPPED: [Status.COMPLETED, Status.CANCELLED],
        Status.COMPLETED: [],  # Terminal state
        Status.CANCELLED: [],  # Terminal state
    }

    # Who may drive the order into each state with advance()
    ADVANCE_ROLES = {
        Status.PENDING_ORDER_RECEIVED: ['customer', 'provider'],
        Status.ORDER_RECEIVED: ['provider'],
        Status.IN_PRODUCTION: ['provider'],
        Status.PENDING_APPROVAL: ['provider'],
        Status.READY_FOR_DELIVERY: ['customer', 'provider'],
        Status.SHIPPED: ['provider'],
        Status.COMPLETED: ['customer'],
    }

    @classmethod
    def initial_status(cls, consultation_required: bool) -> str:
        if consultation_required:
            return Status.PENDING_CONSULTATION
        return Status.PENDING_ORDER_RECEIVED

    @classmethod
    def next_status(cls, status: str) -> Optional[str]:
        """Next state in the progression, or None for terminal states."""
        if status not in cls.SEQUENCE or status == Status.COMPLETED:
            return None
        return cls.SEQUENCE[cls.SEQUENCE.index(status) + 1]

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """Check if transition is valid."""
        return to_state in cls.TRANSITIONS.get(from_state, [])

    @classmethod
    def validate_user_can_advance(cls, order: ProductionOrder, user, to_state: str) -> None:
        """
        Raises:
            Unauthorized: If the user's role may not move the order into to_state
        """
        role = order.role_of(user)
        if role is None:
            raise Unauthorized("Only the order's customer or provider can do this.")
        if role not in cls.ADVANCE_ROLES.get(to_state, []):
            raise Unauthorized(f"The {role} cannot move this order to {to_state}.")

    @classmethod
    def transition(
        cls,
        order: ProductionOrder,
        to_state: str,
        user=None,
        event_type: str = TimelineEvent.EventType.STATUS_CHANGED,
        reason: str = "",
        metadata: Optional[dict] = None
    ) -> ProductionOrder:
        """
        Move a locked order to a new state.
        Writes one timeline event and notifies listeners after commit.

        Args:
            order: Order locked by the caller (select_for_update)
            to_state: Target state
            user: User making the change (None for system)
            event_type: Timeline event type to record
            reason: Free text stored in the event metadata
            metadata: Extra timeline metadata

        Returns:
            Updated order

        Raises:
            AlreadyTerminal: If the order is completed or cancelled
            InvalidTransition: If the transition table forbids the move
        """
        old_state = order.status
        if order.is_terminal:
            raise AlreadyTerminal()
        if not cls.can_transition(old_state, to_state):
            raise InvalidTransition(f"Cannot transition from {old_state} to {to_state}")

        now = timezone.now()
        order.status = to_state

        # Set timestamps for specific states
        if to_state == Status.ORDER_RECEIVED and order.order_received_at is None:
            order.order_received_at = now
        elif to_state == Status.SHIPPED and order.shipped_at is None:
            order.shipped_at = now
        elif to_state == Status.CANCELLED:
            order.cancelled_at = now

        order.save()

        details = {'from_status': old_state, 'to_status': to_state}
        if reason:
            details['reason'] = reason
        details.update(metadata or {})
        TimelineService.record(
            order,
            event_type,
            f"Status changed from {ProductionOrder.Status(old_state).label} "
            f"to {ProductionOrder.Status(to_state).label}",
            actor=user,
            metadata=details
        )

        cls.notify(order, old_state, to_state, user, now)
        logger.info(f"Production order {order.id}: {old_state} -> {to_state}")

        return order

    @staticmethod
    def notify(order: ProductionOrder, from_status, to_status, user, timestamp) -> None:
        """Emit the status change to external notifiers once the transaction commits."""
        payload = {
            'order_id': order.id,
            'from_status': str(from_status) if from_status else None,
            'to_status': str(to_status),
            'actor_id': user.pk if user is not None else None,
            'timestamp': timestamp,
        }
        transaction.on_commit(
            lambda: production_status_changed.send(sender=ProductionOrder, **payload)
        )
