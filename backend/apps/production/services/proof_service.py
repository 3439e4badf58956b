"""
Proof service - versioned proofs of work reviewed by the customer.
Submitting moves the order to pending_approval, approving moves it to
ready_for_delivery. A revision request keeps the order where it is.
"""
import logging
from typing import List, Optional, Tuple
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone
from apps.production.exceptions import (
    AlreadyPending,
    AlreadyResolved,
    AlreadyTerminal,
    InvalidJustification,
    InvalidProof,
    InvalidState,
    ProofNotFound,
    Unauthorized,
)
from apps.production.models import ProductionOrder, ProductionProof, TimelineEvent
from apps.production.services.locking import lock_order
from apps.production.services.state_machine import StateMachine
from apps.production.services.timeline_service import TimelineService

logger = logging.getLogger(__name__)

Status = ProductionOrder.Status


def clean_file_list(files) -> List[str]:
    """Strip blanks from a list of file URLs."""
    return [str(f).strip()[:500] for f in (files or []) if str(f).strip()]


class ProofService:
    """Runs the submit / review loop between provider and customer."""

    SUBMIT_FROM = (Status.IN_PRODUCTION, Status.PENDING_APPROVAL)

    @staticmethod
    def pending_for(order: ProductionOrder) -> Optional[ProductionProof]:
        return order.proofs.filter(status=ProductionProof.Status.PENDING).first()

    @staticmethod
    def proofs_for(order: ProductionOrder):
        """All proof versions, newest first."""
        return order.proofs.select_related('submitted_by', 'reviewed_by').order_by('-version_number')

    @staticmethod
    def _lock(proof_id) -> Tuple[ProductionOrder, ProductionProof]:
        """Lock the owning order, then the proof itself."""
        try:
            order_id = ProductionProof.objects.values_list('order_id', flat=True).get(id=proof_id)
        except (ProductionProof.DoesNotExist, ValidationError, ValueError):
            raise ProofNotFound()
        order = lock_order(order_id)
        proof = ProductionProof.objects.select_for_update().get(id=proof_id)
        return order, proof

    @staticmethod
    @transaction.atomic
    def submit(
        order_id,
        user,
        proof_images,
        design_files=None,
        notes: str = ""
    ) -> ProductionProof:
        """
        Provider submits the next proof version.

        Args:
            order_id: Order the proof belongs to
            user: The order's provider
            proof_images: Image URLs (at least one)
            design_files: Optional source file URLs
            notes: Notes for the customer

        Returns:
            Created proof in pending status

        Raises:
            AlreadyPending: If an earlier proof still awaits review
            InvalidProof: If no images are given
            InvalidState: If the order is not in production or awaiting approval
        """
        order = lock_order(order_id)

        if not order.is_provider(user):
            raise Unauthorized("Only the provider can submit proofs.")
        if order.is_terminal:
            raise AlreadyTerminal()
        if order.status not in ProofService.SUBMIT_FROM:
            raise InvalidState(f"Proofs cannot be submitted while the order is {order.status}.")
        if ProofService.pending_for(order) is not None:
            raise AlreadyPending("A proof is already awaiting the customer's review.")

        images = clean_file_list(proof_images)
        if not images:
            raise InvalidProof()

        latest = order.proofs.aggregate(latest=models.Max('version_number'))['latest']
        version = (latest or 0) + 1

        proof = ProductionProof.objects.create(
            order=order,
            version_number=version,
            submitted_by=user,
            proof_images=images,
            design_files=clean_file_list(design_files),
            provider_notes=(notes or '')[:2000],
            status=ProductionProof.Status.PENDING
        )

        order.proofs_submitted_at = timezone.now()
        metadata = {'proof_id': str(proof.id), 'version': version}

        if order.status == Status.IN_PRODUCTION:
            StateMachine.transition(
                order=order,
                to_state=Status.PENDING_APPROVAL,
                user=user,
                event_type=TimelineEvent.EventType.PROOF_SUBMITTED,
                metadata=metadata
            )
        else:
            order.save(update_fields=['proofs_submitted_at', 'updated_at'])
            TimelineService.record(
                order,
                TimelineEvent.EventType.PROOF_SUBMITTED,
                f"Proof version {version} submitted",
                actor=user,
                metadata=metadata
            )

        logger.info(f"Proof v{version} submitted for production order {order.id}")

        return proof

    @staticmethod
    @transaction.atomic
    def approve(proof_id, user, feedback: str = "") -> ProductionProof:
        """
        Customer approves a proof. The order becomes ready for delivery.

        Raises:
            AlreadyResolved: If the proof was already reviewed
        """
        order, proof = ProofService._lock(proof_id)

        if not order.is_customer(user):
            raise Unauthorized("Only the customer can review proofs.")
        if order.is_terminal:
            raise AlreadyTerminal()
        if not proof.is_pending:
            raise AlreadyResolved(f"Proof version {proof.version_number} was already reviewed.")

        proof.status = ProductionProof.Status.APPROVED
        proof.customer_feedback = (feedback or '').strip()[:2000]
        proof.reviewed_by = user
        proof.reviewed_at = timezone.now()
        proof.save(update_fields=['status', 'customer_feedback', 'reviewed_by', 'reviewed_at'])

        StateMachine.transition(
            order=order,
            to_state=Status.READY_FOR_DELIVERY,
            user=user,
            event_type=TimelineEvent.EventType.PROOF_APPROVED,
            metadata={'proof_id': str(proof.id), 'version': proof.version_number}
        )
        logger.info(f"Proof v{proof.version_number} approved for production order {order.id}")

        return proof

    @staticmethod
    @transaction.atomic
    def request_revision(proof_id, user, feedback: str) -> ProductionProof:
        """
        Customer asks for changes. The order stays in pending_approval
        until the provider submits the next version.

        Raises:
            AlreadyResolved: If the proof was already reviewed
            InvalidJustification: If feedback is blank
        """
        order, proof = ProofService._lock(proof_id)

        if not order.is_customer(user):
            raise Unauthorized("Only the customer can review proofs.")
        if order.is_terminal:
            raise AlreadyTerminal()
        if not proof.is_pending:
            raise AlreadyResolved(f"Proof version {proof.version_number} was already reviewed.")

        feedback = (feedback or '').strip()
        if not feedback:
            raise InvalidJustification("Feedback is required when requesting a revision.")

        proof.status = ProductionProof.Status.REVISION_REQUESTED
        proof.customer_feedback = feedback[:2000]
        proof.reviewed_by = user
        proof.reviewed_at = timezone.now()
        proof.save(update_fields=['status', 'customer_feedback', 'reviewed_by', 'reviewed_at'])

        TimelineService.record(
            order,
            TimelineEvent.EventType.PROOF_REVISION_REQUESTED,
            f"Revision requested on proof version {proof.version_number}",
            actor=user,
            metadata={
                'proof_id': str(proof.id),
                'version': proof.version_number,
                'feedback': proof.customer_feedback,
            }
        )
        logger.info(f"Revision requested on proof v{proof.version_number} for production order {order.id}")

        return proof
