"""
Consultation gate - blocks order progression until a consultation is
completed or waived. Expiry never unblocks the gate.
"""
import logging
from datetime import timedelta
from typing import Optional, Tuple
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from apps.production.exceptions import (
    AlreadyActive,
    AlreadyTerminal,
    ConsultationNotFound,
    InvalidDeadline,
    InvalidState,
    Unauthorized,
)
from apps.production.models import Consultation, ProductionOrder, TimelineEvent
from apps.production.services.locking import lock_order
from apps.production.services.timeline_service import TimelineService

logger = logging.getLogger(__name__)


class ConsultationService:
    """Tracks consultation requests and decides whether the gate is satisfied."""

    @staticmethod
    def is_satisfied(order: ProductionOrder) -> bool:
        """
        Gate predicate: not required, waived, or a consultation was completed.
        """
        if not order.consultation_required or order.consultation_waived:
            return True
        return order.consultations.filter(status=Consultation.Status.COMPLETED).exists()

    @staticmethod
    def active_for(order: ProductionOrder) -> Optional[Consultation]:
        """Return the pending or in-progress consultation, if any."""
        return order.consultations.filter(status__in=Consultation.ACTIVE_STATUSES).first()

    @staticmethod
    def _lock(consultation_id) -> Tuple[ProductionOrder, Consultation]:
        """Lock the owning order, then the consultation itself."""
        try:
            order_id = Consultation.objects.values_list('order_id', flat=True).get(id=consultation_id)
        except (Consultation.DoesNotExist, ValidationError, ValueError):
            raise ConsultationNotFound()
        order = lock_order(order_id)
        consultation = Consultation.objects.select_for_update().get(id=consultation_id)
        return order, consultation

    @staticmethod
    def _require_participant(order: ProductionOrder, user) -> str:
        role = order.role_of(user)
        if role is None:
            raise Unauthorized("Only the order's customer or provider can do this.")
        return role

    @staticmethod
    @transaction.atomic
    def request(order_id, user, timeout: Optional[timedelta] = None) -> Consultation:
        """
        Open a consultation for an order.

        Args:
            order_id: Order to consult on
            user: Customer or provider requesting it
            timeout: How long the consultation may stay open

        Returns:
            Created Consultation in pending status

        Raises:
            AlreadyActive: If a pending or in-progress consultation exists
            InvalidState: If the order has no open consultation gate
        """
        order = lock_order(order_id)
        role = ConsultationService._require_participant(order, user)

        if order.is_terminal:
            raise AlreadyTerminal()

        if not order.consultation_required:
            raise InvalidState("This order does not require a consultation.")
        if order.consultation_waived:
            raise InvalidState("The consultation for this order was waived.")
        if order.status != ProductionOrder.Status.PENDING_CONSULTATION:
            raise InvalidState(f"Consultations cannot be requested once the order is {order.status}.")

        if ConsultationService.active_for(order) is not None:
            raise AlreadyActive()

        if timeout is None:
            timeout = timedelta(hours=getattr(settings, 'PRODUCTION_CONSULTATION_TIMEOUT_HOURS', 48))
        if timeout <= timedelta(0):
            raise InvalidDeadline("Consultation timeout must be positive.")

        consultation = Consultation.objects.create(
            order=order,
            status=Consultation.Status.PENDING,
            requested_by=role,
            requested_by_user=user,
            timeout_at=timezone.now() + timeout
        )

        TimelineService.record(
            order,
            TimelineEvent.EventType.CONSULTATION_REQUESTED,
            f"Consultation requested by {role}",
            actor=user,
            metadata={
                'consultation_id': str(consultation.id),
                'timeout_at': consultation.timeout_at.isoformat(),
            }
        )
        logger.info(f"Consultation {consultation.id} requested for order {order.id} by {role}")

        return consultation

    @staticmethod
    @transaction.atomic
    def start(consultation_id, user) -> Consultation:
        """
        pending -> in_progress. Re-entering an in-progress session is a no-op.

        Raises:
            InvalidState: If the consultation is completed, waived or expired
        """
        order, consultation = ConsultationService._lock(consultation_id)
        ConsultationService._require_participant(order, user)

        if consultation.status == Consultation.Status.IN_PROGRESS:
            return consultation
        if consultation.status != Consultation.Status.PENDING:
            raise InvalidState(f"Cannot start a {consultation.status} consultation.")
        if order.is_terminal:
            raise AlreadyTerminal()

        consultation.status = Consultation.Status.IN_PROGRESS
        consultation.started_at = timezone.now()
        consultation.save(update_fields=['status', 'started_at', 'updated_at'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.CONSULTATION_STARTED,
            "Consultation started",
            actor=user,
            metadata={'consultation_id': str(consultation.id)}
        )

        return consultation

    @staticmethod
    @transaction.atomic
    def complete(consultation_id, user, notes: str = "") -> Consultation:
        """
        in_progress -> completed. Satisfies the gate for the order.

        Raises:
            InvalidState: If the consultation is not in progress
        """
        order, consultation = ConsultationService._lock(consultation_id)
        ConsultationService._require_participant(order, user)

        if consultation.status != Consultation.Status.IN_PROGRESS:
            raise InvalidState(f"Cannot complete a {consultation.status} consultation.")
        if order.is_terminal:
            raise AlreadyTerminal()

        now = timezone.now()
        consultation.status = Consultation.Status.COMPLETED
        consultation.completed_at = now
        if notes:
            consultation.notes = notes[:2000]
        consultation.save(update_fields=['status', 'completed_at', 'notes', 'updated_at'])

        order.consultation_completed_at = now
        order.save(update_fields=['consultation_completed_at', 'updated_at'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.CONSULTATION_COMPLETED,
            "Consultation completed",
            actor=user,
            metadata={'consultation_id': str(consultation.id)}
        )
        logger.info(f"Consultation {consultation.id} completed for order {order.id}")

        return consultation

    @staticmethod
    @transaction.atomic
    def waive(order_id, user) -> ProductionOrder:
        """
        Waive the consultation requirement. Either party may waive.
        No-op when no consultation is required or it is already waived.
        """
        order = lock_order(order_id)
        role = ConsultationService._require_participant(order, user)

        if not order.consultation_required or order.consultation_waived:
            return order
        if order.is_terminal:
            raise AlreadyTerminal()

        now = timezone.now()
        order.consultation_waived = True
        order.consultation_waived_at = now
        order.save(update_fields=['consultation_waived', 'consultation_waived_at', 'updated_at'])

        metadata = {'waived_by_role': role}
        active = ConsultationService.active_for(order)
        if active is not None:
            active.status = Consultation.Status.WAIVED
            active.waived_at = now
            active.waived_by = user
            active.save(update_fields=['status', 'waived_at', 'waived_by', 'updated_at'])
            metadata['consultation_id'] = str(active.id)

        TimelineService.record(
            order,
            TimelineEvent.EventType.CONSULTATION_WAIVED,
            f"Consultation waived by {role}",
            actor=user,
            metadata=metadata
        )
        logger.info(f"Consultation waived for order {order.id} by {role}")

        return order

    @staticmethod
    @transaction.atomic
    def expire(consultation_id, now=None) -> Consultation:
        """
        Mark an overdue consultation expired. The gate stays closed.

        Raises:
            InvalidState: If it is no longer active or not yet due
        """
        now = now or timezone.now()
        order, consultation = ConsultationService._lock(consultation_id)

        if not consultation.is_active:
            raise InvalidState(f"Consultation is already {consultation.status}.")
        if not consultation.is_overdue(now):
            raise InvalidState("Consultation has not timed out yet.")

        previous = consultation.status
        consultation.status = Consultation.Status.EXPIRED
        consultation.expired_at = now
        consultation.save(update_fields=['status', 'expired_at', 'updated_at'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.CONSULTATION_EXPIRED,
            "Consultation timed out",
            metadata={'consultation_id': str(consultation.id), 'previous_status': previous}
        )
        logger.info(f"Consultation {consultation.id} for order {order.id} expired")

        return consultation
