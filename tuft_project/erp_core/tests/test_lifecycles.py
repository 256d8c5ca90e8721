from django.test import SimpleTestCase

from ..exceptions import IllegalTransition, StateConflict
from ..lifecycles import (JOB_LIFECYCLE, ORDER_LIFECYCLE, PURCHASE_LIFECYCLE,
                          JobEvent, JobState, OrderEvent, OrderState,
                          PurchaseEvent, PurchaseState)


class LifecycleTableTests(SimpleTestCase):
    def test_order_happy_path(self):
        state = OrderState.DRAFT
        for event in (OrderEvent.SUBMIT, OrderEvent.DEPOSIT_PAID,
                      OrderEvent.START_PRODUCTION, OrderEvent.PRODUCTION_FINISHED,
                      OrderEvent.DISPATCH, OrderEvent.CLOSE, OrderEvent.ARCHIVE):
            state = ORDER_LIFECYCLE.next_state(state, event)
        self.assertEqual(state, OrderState.ARCHIVED)

    def test_unknown_pair_raises(self):
        with self.assertRaises(IllegalTransition) as ctx:
            ORDER_LIFECYCLE.next_state(OrderState.DRAFT, OrderEvent.DISPATCH)
        self.assertEqual(ctx.exception.current, OrderState.DRAFT)
        # callers may catch the broader state conflict
        self.assertIsInstance(ctx.exception, StateConflict)

    def test_plain_strings_from_the_database_match(self):
        self.assertEqual(
            ORDER_LIFECYCLE.next_state("DRAFT", "submit"), OrderState.PENDING_DEPOSIT)
        self.assertTrue(PURCHASE_LIFECYCLE.can("SENT", "receive_all"))

    def test_archive_only_from_draft_pending_or_closed(self):
        for state in (OrderState.DRAFT, OrderState.PENDING_DEPOSIT, OrderState.CLOSED):
            self.assertTrue(ORDER_LIFECYCLE.can(state, OrderEvent.ARCHIVE))
        for state in (OrderState.IN_PRODUCTION, OrderState.DISPATCHED):
            self.assertFalse(ORDER_LIFECYCLE.can(state, OrderEvent.ARCHIVE))

    def test_event_for_target(self):
        self.assertEqual(
            ORDER_LIFECYCLE.event_for(OrderState.DEPOSIT_PAID, OrderState.IN_PRODUCTION),
            OrderEvent.START_PRODUCTION,
        )
        with self.assertRaises(IllegalTransition):
            ORDER_LIFECYCLE.event_for(OrderState.DRAFT, OrderState.CLOSED)

    def test_purchase_receipts(self):
        self.assertEqual(
            PURCHASE_LIFECYCLE.next_state(PurchaseState.PARTIALLY_RECEIVED,
                                          PurchaseEvent.RECEIVE_PARTIAL),
            PurchaseState.PARTIALLY_RECEIVED,
        )
        with self.assertRaises(IllegalTransition):
            PURCHASE_LIFECYCLE.next_state(PurchaseState.CLOSED, PurchaseEvent.RECEIVE_ALL)

    def test_jobs_cancel_from_any_open_state(self):
        for state in (JobState.PLANNED, JobState.MATERIALS_ALLOCATED,
                      JobState.IN_PROGRESS, JobState.QUALITY_CHECK):
            self.assertEqual(
                JOB_LIFECYCLE.next_state(state, JobEvent.CANCEL), JobState.CANCELLED)
        for state in JOB_LIFECYCLE.terminal:
            self.assertEqual(JOB_LIFECYCLE.events_from(state), [])

    def test_rework_loops_back(self):
        self.assertEqual(
            JOB_LIFECYCLE.next_state(JobState.QUALITY_CHECK, JobEvent.REWORK),
            JobState.IN_PROGRESS,
        )
        self.assertEqual(
            sorted(JOB_LIFECYCLE.events_from(JobState.QUALITY_CHECK)),
            ["cancel", "complete", "rework"],
        )
