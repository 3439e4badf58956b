"""
Tests for proof submission and review.
"""
from rest_framework import status
from apps.production.exceptions import (
    AlreadyPending,
    AlreadyResolved,
    InvalidJustification,
    InvalidProof,
    InvalidState,
    ProofNotFound,
    ProofPending,
    Unauthorized,
)
from apps.production.models import ProductionOrder, ProductionProof, TimelineEvent
from apps.production.services.order_service import ProductionOrderService
from apps.production.services.proof_service import ProofService
from apps.production.tests.base import BaseProductionTestCase

Status = ProductionOrder.Status
EventType = TimelineEvent.EventType

IMAGES = ['https://cdn.example.com/proofs/front.png', 'https://cdn.example.com/proofs/back.png']


class ProofSubmissionTestCase(BaseProductionTestCase):

    def setUp(self):
        super().setUp()
        self.order = self.advance_to(self.create_order(), Status.IN_PRODUCTION)

    def test_submit_moves_order_to_pending_approval(self):
        proof = ProofService.submit(
            self.order.id, self.provider, IMAGES,
            design_files=['https://cdn.example.com/proofs/source.ai'],
            notes='First draft'
        )

        self.assertEqual(proof.version_number, 1)
        self.assertEqual(proof.status, ProductionProof.Status.PENDING)
        self.assertEqual(proof.proof_images, IMAGES)
        self.assertEqual(proof.provider_notes, 'First draft')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Status.PENDING_APPROVAL)
        self.assertIsNotNone(self.order.proofs_submitted_at)

        event = self.order.timeline_events.get(event_type=EventType.PROOF_SUBMITTED)
        self.assertEqual(event.metadata['version'], 1)
        self.assertEqual(event.metadata['to_status'], Status.PENDING_APPROVAL)

    def test_only_provider_can_submit(self):
        with self.assertRaises(Unauthorized):
            ProofService.submit(self.order.id, self.customer, IMAGES)
        with self.assertRaises(Unauthorized):
            ProofService.submit(self.order.id, self.outsider, IMAGES)

    def test_images_required(self):
        for images in ([], ['  '], None):
            with self.assertRaises(InvalidProof):
                ProofService.submit(self.order.id, self.provider, images)
        self.assertEqual(self.order.proofs.count(), 0)

    def test_one_proof_awaits_review_at_a_time(self):
        ProofService.submit(self.order.id, self.provider, IMAGES)

        with self.assertRaises(AlreadyPending):
            ProofService.submit(self.order.id, self.provider, IMAGES)

    def test_submit_before_production(self):
        order = self.create_order()

        with self.assertRaises(InvalidState):
            ProofService.submit(order.id, self.provider, IMAGES)


class ProofReviewTestCase(BaseProductionTestCase):

    def setUp(self):
        super().setUp()
        self.order = self.advance_to(self.create_order(), Status.IN_PRODUCTION)
        self.proof = ProofService.submit(self.order.id, self.provider, IMAGES)

    def test_approve_makes_order_ready_for_delivery(self):
        proof = ProofService.approve(self.proof.id, self.customer, feedback='Looks great')

        self.assertEqual(proof.status, ProductionProof.Status.APPROVED)
        self.assertEqual(proof.customer_feedback, 'Looks great')
        self.assertEqual(proof.reviewed_by, self.customer)
        self.assertIsNotNone(proof.reviewed_at)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Status.READY_FOR_DELIVERY)
        self.assertIn(EventType.PROOF_APPROVED, self.event_types(self.order))

        order = ProductionOrderService.confirm_delivery(self.order.id, self.customer)
        self.assertEqual(order.status, Status.COMPLETED)

    def test_revision_keeps_order_in_pending_approval(self):
        proof = ProofService.request_revision(self.proof.id, self.customer, 'Make the logo larger')

        self.assertEqual(proof.status, ProductionProof.Status.REVISION_REQUESTED)
        self.assertEqual(proof.customer_feedback, 'Make the logo larger')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Status.PENDING_APPROVAL)

        event = self.order.timeline_events.get(event_type=EventType.PROOF_REVISION_REQUESTED)
        self.assertEqual(event.metadata['feedback'], 'Make the logo larger')

        second = ProofService.submit(self.order.id, self.provider, IMAGES[:1], notes='Bigger logo')
        self.assertEqual(second.version_number, 2)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Status.PENDING_APPROVAL)

        versions = list(ProductionOrderService.proofs(self.order).values_list('version_number', flat=True))
        self.assertEqual(versions, [2, 1])

        ProofService.approve(second.id, self.customer)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Status.READY_FOR_DELIVERY)

    def test_revision_requires_feedback(self):
        with self.assertRaises(InvalidJustification):
            ProofService.request_revision(self.proof.id, self.customer, '   ')

        self.proof.refresh_from_db()
        self.assertEqual(self.proof.status, ProductionProof.Status.PENDING)

    def test_only_customer_reviews(self):
        with self.assertRaises(Unauthorized):
            ProofService.approve(self.proof.id, self.provider)
        with self.assertRaises(Unauthorized):
            ProofService.request_revision(self.proof.id, self.outsider, 'No')

    def test_review_is_final(self):
        ProofService.request_revision(self.proof.id, self.customer, 'Change the colour')

        with self.assertRaises(AlreadyResolved):
            ProofService.approve(self.proof.id, self.customer)
        with self.assertRaises(AlreadyResolved):
            ProofService.request_revision(self.proof.id, self.customer, 'Again')

    def test_unknown_proof(self):
        with self.assertRaises(ProofNotFound):
            ProofService.approve('00000000-0000-0000-0000-000000000000', self.customer)
        with self.assertRaises(ProofNotFound):
            ProofService.approve('bogus', self.customer)

    def test_advance_blocked_while_proof_awaits_review(self):
        with self.assertRaises(ProofPending):
            ProductionOrderService.advance(self.order.id, self.provider)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Status.PENDING_APPROVAL)

        ProofService.request_revision(self.proof.id, self.customer, 'Change the colour')
        order = ProductionOrderService.advance(self.order.id, self.customer)
        self.assertEqual(order.status, Status.READY_FOR_DELIVERY)


class ProviderSummaryTestCase(BaseProductionTestCase):

    def test_counts_and_payouts(self):
        self.advance_to(self.create_order(escrow_amount=10000), Status.COMPLETED)
        self.advance_to(self.create_order(escrow_amount=20000), Status.PENDING_APPROVAL)
        self.create_order(escrow_amount=4000)
        cancelled = self.create_order(escrow_amount=5000)
        ProductionOrderService.cancel_order(cancelled.id, self.customer, 'Changed my mind')

        summary = ProductionOrderService.provider_summary(self.provider)

        self.assertEqual(summary, {
            'total_orders': 4,
            'active_orders': 2,
            'pending_proofs': 1,
            'completed_orders': 1,
            'total_earnings': 8500,
            'pending_earnings': 17000 + 3400,
        })

    def test_empty_summary(self):
        summary = ProductionOrderService.provider_summary(self.outsider)

        self.assertEqual(summary['total_orders'], 0)
        self.assertEqual(summary['total_earnings'], 0)
        self.assertEqual(summary['pending_earnings'], 0)


class ProofAPITestCase(BaseProductionTestCase):

    def setUp(self):
        super().setUp()
        self.order = self.advance_to(self.create_order(), Status.IN_PRODUCTION)
        self.url = f'/api/production/orders/{self.order.id}/proofs/'

    def test_submit_and_approve(self):
        self.authenticate(self.provider)
        response = self.client.post(self.url, {'proof_images': IMAGES, 'notes': 'Draft'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['version_number'], 1)
        proof_id = response.data['id']

        response = self.client.post(f'/api/production/proofs/{proof_id}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'unauthorized')

        self.authenticate(self.customer)
        response = self.client.get(f'/api/production/orders/{self.order.id}/')
        self.assertEqual(response.data['latest_proof']['id'], proof_id)

        response = self.client.post(f'/api/production/proofs/{proof_id}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ProductionProof.Status.APPROVED)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Status.READY_FOR_DELIVERY)

    def test_request_revision_and_list(self):
        proof = ProofService.submit(self.order.id, self.provider, IMAGES)
        self.authenticate(self.customer)

        response = self.client.post(f'/api/production/proofs/{proof.id}/request-revision/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_justification')

        response = self.client.post(
            f'/api/production/proofs/{proof.id}/request-revision/',
            {'feedback': 'Warmer colours please'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], ProductionProof.Status.REVISION_REQUESTED)

        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        self.authenticate(self.outsider)
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_submit_requires_images(self):
        self.authenticate(self.provider)

        response = self.client.post(self.url, {'proof_images': []}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_provider_summary_endpoint(self):
        self.authenticate(self.provider)

        response = self.client.get('/api/production/provider-summary/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_orders'], 1)
        self.assertEqual(response.data['active_orders'], 1)
        self.assertEqual(response.data['pending_earnings'], 8500)
