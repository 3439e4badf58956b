"""
API tests for production order endpoints.
"""
from rest_framework import status
from apps.production.models import EscrowAccount, PriceAdjustment, ProductionOrder
from apps.production.services.consultation_service import ConsultationService
from apps.production.tests.base import BaseProductionTestCase

Status = ProductionOrder.Status

ORDERS_URL = '/api/production/orders/'


def order_url(order, action=''):
    return f'{ORDERS_URL}{order.id}/{action}'


class OrderAPITestCase(BaseProductionTestCase):
    """Test order lifecycle endpoints."""

    def test_create_order(self):
        self.authenticate(self.customer)

        response = self.client.post(ORDERS_URL, {
            'provider_id': self.provider.pk,
            'escrow_amount': 10000,
            'title': 'Oak table',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Status.PENDING_ORDER_RECEIVED)
        self.assertEqual(response.data['customer'], self.customer.pk)
        self.assertEqual(response.data['final_price'], 10000)
        self.assertEqual(response.data['escrow']['amount_held'], 10000)
        self.assertEqual(response.data['escrow']['status'], EscrowAccount.HOLDING)
        self.assertEqual(len(response.data['timeline']), 2)
        self.assertIsNone(response.data['active_consultation'])

    def test_create_order_validation(self):
        self.authenticate(self.customer)

        response = self.client.post(ORDERS_URL, {
            'provider_id': self.provider.pk,
            'escrow_amount': 0,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('escrow_amount', response.data)

    def test_create_order_with_yourself(self):
        self.authenticate(self.customer)

        response = self.client.post(ORDERS_URL, {
            'provider_id': self.customer.pk,
            'escrow_amount': 10000,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'unauthorized')

    def test_unauthenticated(self):
        response = self.client.get(ORDERS_URL)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_list_only_own_orders(self):
        self.create_order()
        self.authenticate(self.outsider)

        response = self.client.get(ORDERS_URL)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)

        self.authenticate(self.provider)
        response = self.client.get(ORDERS_URL)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['status_label'], 'Pending Confirmation')

    def test_detail_hidden_from_outsiders(self):
        order = self.create_order()

        self.authenticate(self.outsider)
        response = self.client.get(order_url(order))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.authenticate(self.staff)
        response = self.client.get(order_url(order))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_detail_timeline_limit(self):
        order = self.advance_to(self.create_order(), Status.IN_PRODUCTION)
        self.authenticate(self.customer)

        response = self.client.get(order_url(order), {'limit': 1})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['timeline']), 1)
        self.assertEqual(response.data['timeline'][0]['metadata']['to_status'], Status.IN_PRODUCTION)
        self.assertEqual(response.data['progress_percent'], 60)

    def test_advance(self):
        order = self.create_order()
        self.authenticate(self.provider)

        response = self.client.post(order_url(order, 'advance/'), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Status.ORDER_RECEIVED)

    def test_advance_wrong_role(self):
        order = self.create_order()
        self.authenticate(self.customer)

        response = self.client.post(order_url(order, 'advance/'), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['code'], 'unauthorized')

    def test_advance_as_outsider(self):
        order = self.create_order()
        self.authenticate(self.outsider)

        response = self.client.post(order_url(order, 'advance/'), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_ship_with_tracking(self):
        order = self.advance_to(self.create_order(), Status.READY_FOR_DELIVERY)
        self.authenticate(self.provider)

        response = self.client.post(order_url(order, 'advance/'), {
            'tracking_number': '1Z999AA10123456784',
            'shipping_carrier': 'UPS',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Status.SHIPPED)
        self.assertEqual(response.data['tracking_number'], '1Z999AA10123456784')

    def test_confirm_delivery(self):
        order = self.advance_to(self.create_order(), Status.SHIPPED)
        self.authenticate(self.customer)

        response = self.client.post(order_url(order, 'confirm-delivery/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Status.COMPLETED)
        self.assertEqual(response.data['escrow']['status'], EscrowAccount.RELEASED)
        self.assertEqual(response.data['escrow']['provider_payout'], 8500)

    def test_confirm_delivery_too_early(self):
        order = self.create_order()
        self.authenticate(self.customer)

        response = self.client.post(order_url(order, 'confirm-delivery/'))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_transition')

    def test_cancel(self):
        order = self.create_order()
        self.authenticate(self.customer)

        response = self.client.post(order_url(order, 'cancel/'), {'reason': 'Found a cheaper maker'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Status.CANCELLED)
        self.assertEqual(response.data['escrow']['amount_refunded'], 10000)

        response = self.client.post(order_url(order, 'cancel/'), {'reason': 'Again'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'already_terminal')

    def test_cancel_requires_reason(self):
        order = self.create_order()
        self.authenticate(self.customer)

        response = self.client.post(order_url(order, 'cancel/'), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_timeline_endpoint(self):
        order = self.advance_to(self.create_order(), Status.ORDER_RECEIVED)
        self.authenticate(self.provider)

        response = self.client.get(order_url(order, 'timeline/'), {'limit': 2})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([e['event_type'] for e in response.data], ['created', 'status_changed'])

        self.authenticate(self.outsider)
        response = self.client.get(order_url(order, 'timeline/'))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_unknown_order(self):
        self.authenticate(self.customer)

        response = self.client.post(
            f'{ORDERS_URL}00000000-0000-0000-0000-000000000000/advance/', {}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['code'], 'order_not_found')


class ConsultationAPITestCase(BaseProductionTestCase):

    def test_consultation_flow(self):
        order = self.create_order(consultation_required=True)
        self.authenticate(self.customer)

        response = self.client.post(order_url(order, 'advance/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'consultation_pending')

        response = self.client.post(order_url(order, 'consultations/'), {'timeout_hours': 24}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        consultation_id = response.data['id']

        response = self.client.post(order_url(order, 'consultations/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'already_active')

        self.authenticate(self.provider)
        response = self.client.post(f'/api/production/consultations/{consultation_id}/start/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'in_progress')

        response = self.client.post(
            f'/api/production/consultations/{consultation_id}/complete/',
            {'notes': 'Dimensions confirmed'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'completed')

        self.authenticate(self.customer)
        response = self.client.post(order_url(order, 'advance/'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Status.PENDING_ORDER_RECEIVED)

    def test_waive(self):
        order = self.create_order(consultation_required=True)
        ConsultationService.request(order.id, self.customer)
        self.authenticate(self.provider)

        response = self.client.post(order_url(order, 'consultation/waive/'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['consultation_waived'])
        self.assertIsNone(response.data['active_consultation'])

    def test_complete_pending_consultation(self):
        order = self.create_order(consultation_required=True)
        consultation = ConsultationService.request(order.id, self.customer)
        self.authenticate(self.provider)

        response = self.client.post(f'/api/production/consultations/{consultation.id}/complete/')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_state')


class PriceAdjustmentAPITestCase(BaseProductionTestCase):

    def setUp(self):
        super().setUp()
        self.order = self.advance_to(self.create_order(), Status.IN_PRODUCTION)

    def propose(self, adjusted_price=12000):
        self.authenticate(self.provider)
        return self.client.post(order_url(self.order, 'price-adjustments/'), {
            'adjusted_price': adjusted_price,
            'justification': 'Hardwood prices rose',
        }, format='json')

    def test_propose_and_approve(self):
        response = self.propose()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['adjustment_type'], 'increase')
        self.assertEqual(response.data['adjustment_amount'], 2000)
        adjustment_id = response.data['id']

        self.authenticate(self.customer)
        response = self.client.get(order_url(self.order))
        self.assertEqual(response.data['pending_price_adjustment']['id'], adjustment_id)

        response = self.client.post(
            f'/api/production/price-adjustments/{adjustment_id}/resolve/',
            {'decision': 'approve'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], PriceAdjustment.Status.APPROVED)
        self.assertEqual(response.data['top_up_amount'], 2000)

        response = self.client.get(order_url(self.order))
        self.assertEqual(response.data['final_price'], 12000)
        self.assertTrue(response.data['price_adjustment_used'])
        self.assertEqual(response.data['escrow']['amount_held'], 12000)

    def test_customer_cannot_propose(self):
        self.authenticate(self.customer)

        response = self.client.post(order_url(self.order, 'price-adjustments/'), {
            'adjusted_price': 9000,
            'justification': 'Please',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_blank_justification(self):
        self.authenticate(self.provider)

        response = self.client.post(order_url(self.order, 'price-adjustments/'), {
            'adjusted_price': 12000,
            'justification': '',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'invalid_justification')

    def test_top_up_declined(self):
        adjustment_id = self.propose().data['id']
        self.gateway.charge_additional.return_value = False
        self.authenticate(self.customer)

        response = self.client.post(
            f'/api/production/price-adjustments/{adjustment_id}/resolve/',
            {'decision': 'approve'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED)
        self.assertEqual(response.data['code'], 'top_up_failed')

    def test_invalid_decision(self):
        adjustment_id = self.propose().data['id']
        self.authenticate(self.customer)

        response = self.client.post(
            f'/api/production/price-adjustments/{adjustment_id}/resolve/',
            {'decision': 'maybe'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('decision', response.data)
