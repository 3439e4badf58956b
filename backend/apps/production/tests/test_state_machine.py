"""
Tests for the production order state machine.
"""
from django.test import SimpleTestCase
from apps.production.exceptions import AlreadyTerminal, InvalidTransition, Unauthorized
from apps.production.models import ProductionOrder, TimelineEvent
from apps.production.services.state_machine import StateMachine
from apps.production.tests.base import BaseProductionTestCase

Status = ProductionOrder.Status


class TransitionTableTestCase(SimpleTestCase):
    """Pure checks on the transition table."""

    def test_initial_status(self):
        self.assertEqual(StateMachine.initial_status(True), Status.PENDING_CONSULTATION)
        self.assertEqual(StateMachine.initial_status(False), Status.PENDING_ORDER_RECEIVED)

    def test_next_status_follows_sequence(self):
        status = Status.PENDING_CONSULTATION
        visited = [status]
        while StateMachine.next_status(status) is not None:
            status = StateMachine.next_status(status)
            visited.append(status)
        self.assertEqual(visited, StateMachine.SEQUENCE)

    def test_terminal_states_have_no_next(self):
        self.assertIsNone(StateMachine.next_status(Status.COMPLETED))
        self.assertIsNone(StateMachine.next_status(Status.CANCELLED))

    def test_cancel_allowed_from_every_non_terminal_state(self):
        for status in Status.values:
            if status in ProductionOrder.TERMINAL_STATUSES:
                self.assertFalse(StateMachine.can_transition(status, Status.CANCELLED))
            else:
                self.assertTrue(StateMachine.can_transition(status, Status.CANCELLED), status)

    def test_no_skipping_or_going_back(self):
        self.assertFalse(StateMachine.can_transition(Status.IN_PRODUCTION, Status.SHIPPED))
        self.assertFalse(StateMachine.can_transition(Status.SHIPPED, Status.IN_PRODUCTION))
        self.assertFalse(StateMachine.can_transition(Status.PENDING_CONSULTATION, Status.ORDER_RECEIVED))

    def test_ready_for_delivery_can_complete_directly(self):
        self.assertTrue(StateMachine.can_transition(Status.READY_FOR_DELIVERY, Status.COMPLETED))


class StateMachineTestCase(BaseProductionTestCase):

    def test_transition_records_event(self):
        order = self.create_order()

        StateMachine.transition(order, Status.ORDER_RECEIVED, user=self.provider)

        order.refresh_from_db()
        self.assertEqual(order.status, Status.ORDER_RECEIVED)
        self.assertIsNotNone(order.order_received_at)

        event = order.timeline_events.filter(event_type=TimelineEvent.EventType.STATUS_CHANGED).get()
        self.assertEqual(event.metadata['from_status'], Status.PENDING_ORDER_RECEIVED)
        self.assertEqual(event.metadata['to_status'], Status.ORDER_RECEIVED)
        self.assertEqual(event.actor, self.provider)

    def test_invalid_transition_leaves_order_unchanged(self):
        order = self.create_order()
        events_before = order.timeline_events.count()

        with self.assertRaises(InvalidTransition):
            StateMachine.transition(order, Status.SHIPPED, user=self.provider)

        order.refresh_from_db()
        self.assertEqual(order.status, Status.PENDING_ORDER_RECEIVED)
        self.assertEqual(order.timeline_events.count(), events_before)

    def test_transition_from_terminal_raises(self):
        order = self.create_order()
        StateMachine.transition(order, Status.CANCELLED, user=self.customer)

        with self.assertRaises(AlreadyTerminal):
            StateMachine.transition(order, Status.ORDER_RECEIVED, user=self.provider)

    def test_role_checks(self):
        order = self.create_order()

        with self.assertRaises(Unauthorized):
            StateMachine.validate_user_can_advance(order, self.outsider, Status.ORDER_RECEIVED)
        with self.assertRaises(Unauthorized):
            StateMachine.validate_user_can_advance(order, self.customer, Status.ORDER_RECEIVED)
        with self.assertRaises(Unauthorized):
            StateMachine.validate_user_can_advance(order, self.provider, Status.COMPLETED)

        StateMachine.validate_user_can_advance(order, self.provider, Status.ORDER_RECEIVED)
        StateMachine.validate_user_can_advance(order, self.customer, Status.COMPLETED)
