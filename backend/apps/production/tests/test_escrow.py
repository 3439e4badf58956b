"""
Tests for the escrow ledger.
"""
from django.test import SimpleTestCase, override_settings
from apps.production.exceptions import (
    AlreadyReleased,
    AlreadyTerminal,
    DuplicateHold,
    InvalidAmount,
    NotHeld,
    PaymentFailed,
)
from apps.production.models import EscrowAccount, ProductionOrder
from apps.production.services.escrow_service import EscrowService, is_valid_amount
from apps.production.services.payment_gateway import PaymentGatewayError, SandboxPaymentGateway
from apps.production.tests.base import BaseProductionTestCase


class AmountValidationTestCase(SimpleTestCase):

    def test_is_valid_amount(self):
        self.assertTrue(is_valid_amount(1))
        self.assertTrue(is_valid_amount(10 ** 12))
        for amount in (0, -1, 1.0, True, None, '5'):
            self.assertFalse(is_valid_amount(amount), amount)


class SandboxGatewayTestCase(SimpleTestCase):

    def test_sandbox_accepts_everything(self):
        gateway = SandboxPaymentGateway()
        token = gateway.authorize(1, 500)
        self.assertTrue(token.startswith('sandbox_hold_'))
        self.assertIsNone(gateway.capture(token, 500))
        self.assertTrue(gateway.charge_additional(1, 100))
        self.assertIsNone(gateway.refund(token, 100))


class EscrowServiceTestCase(BaseProductionTestCase):

    def setUp(self):
        super().setUp()
        self.order = self.create_order(escrow_amount=10000)

    def test_duplicate_hold(self):
        with self.assertRaises(DuplicateHold):
            EscrowService.hold(self.order, 10000, actor=self.customer)
        self.assertEqual(self.gateway.authorize.call_count, 1)

    def test_order_without_escrow(self):
        order = ProductionOrder.objects.create(
            customer=self.customer,
            provider=self.provider,
            escrow_amount=500,
            final_price=500
        )

        with self.assertRaises(NotHeld):
            EscrowService.held_balance(order)
        with self.assertRaises(NotHeld):
            EscrowService.top_up(order, 100)
        with self.assertRaises(NotHeld):
            EscrowService.release(order)

    def test_release_twice(self):
        EscrowService.release(self.order, actor=self.customer)

        with self.assertRaises(AlreadyReleased):
            EscrowService.release(self.order, actor=self.customer)
        with self.assertRaises(AlreadyReleased):
            EscrowService.refund(self.order, 100)
        with self.assertRaises(AlreadyReleased):
            EscrowService.top_up(self.order, 100)

    def test_refund_more_than_held(self):
        with self.assertRaises(InvalidAmount):
            EscrowService.refund(self.order, 10001)
        self.gateway.refund.assert_not_called()

    def test_refunded_escrow_is_closed(self):
        EscrowService.refund(self.order, 10000)

        with self.assertRaises(AlreadyTerminal):
            EscrowService.release(self.order)

    def test_partial_refund_returns_excess_and_closes(self):
        escrow = EscrowService.refund(self.order, 7000)

        self.assertEqual(self.gateway.refund.call_count, 2)
        self.gateway.refund.assert_any_call('tok_123', 7000)
        self.gateway.refund.assert_any_call('tok_123', 3000)
        self.assertEqual(escrow.status, EscrowAccount.REFUNDED)
        self.assertEqual(escrow.amount_refunded, 10000)
        self.assertEqual(escrow.remaining_balance(), 0)

    def test_excess_return_failure_rolls_back_refund(self):
        self.gateway.refund.side_effect = [None, PaymentGatewayError('processor down')]

        with self.assertRaises(PaymentFailed):
            EscrowService.refund(self.order, 7000)

        escrow = EscrowAccount.objects.get(order=self.order)
        self.assertEqual(escrow.status, EscrowAccount.HOLDING)
        self.assertEqual(escrow.amount_refunded, 0)

    def test_refund_failure_leaves_balance(self):
        self.gateway.refund.side_effect = PaymentGatewayError('processor down')

        with self.assertRaises(PaymentFailed):
            EscrowService.refund(self.order, 10000)

        escrow = EscrowAccount.objects.get(order=self.order)
        self.assertEqual(escrow.status, EscrowAccount.HOLDING)
        self.assertEqual(escrow.remaining_balance(), 10000)

    def test_top_up_rejects_invalid_delta(self):
        with self.assertRaises(InvalidAmount):
            EscrowService.top_up(self.order, 0)
        self.gateway.charge_additional.assert_not_called()

    def test_top_up(self):
        escrow = EscrowService.top_up(self.order, 2500, actor=self.customer)

        self.assertEqual(escrow.amount_held, 12500)
        self.assertEqual(escrow.amount_topped_up, 2500)
        self.assertEqual(EscrowService.held_balance(self.order), 12500)

    @override_settings(PRODUCTION_PLATFORM_FEE_BPS=1000)
    def test_platform_fee_from_settings(self):
        released = EscrowService.release(self.order)

        escrow = EscrowAccount.objects.get(order=self.order)
        self.assertEqual(released, 10000)
        self.assertEqual(escrow.platform_fee, 1000)
        self.assertEqual(escrow.provider_payout, 9000)

    def test_fee_rounds_down(self):
        order = self.create_order(escrow_amount=333)

        EscrowService.release(order)

        # 333 * 15% = 49.95
        self.assertEqual(EscrowAccount.objects.get(order=order).platform_fee, 49)
