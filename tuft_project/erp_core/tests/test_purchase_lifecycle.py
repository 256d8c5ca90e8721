from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import (HasHistory, IllegalTransition, LedgerValidationError,
                          MissingAccount, OverReceipt, StateConflict,
                          TransitionGuardFailed)
from ..models import (Account, InventoryTransaction, JournalEntry,
                      PurchaseOrder, StockLot)
from ..services import chart, inventory, purchases
from .factories import ErpTestMixin


class PurchaseLifecycleTests(ErpTestMixin, TestCase):
    def setUp(self):
        self.seed()
        self.supplier = self.make_supplier()
        self.yarn = self.make_item()

    def make_po(self, qty="100", cost="2.00"):
        return purchases.create_purchase_order(self.supplier, [
            {"inventory_item": self.yarn, "ordered_qty": qty, "unit_cost": cost},
        ])

    def sent_po(self, **kwargs):
        po = self.make_po(**kwargs)
        purchases.send_purchase_order(po.pk)
        return po

    def test_partial_then_full_receipt(self):
        po = self.sent_po()
        line = po.lines.get()

        purchases.receive_goods(po.pk, [{"line_id": line.pk, "quantity": "60"}])
        po.refresh_from_db()
        self.assertEqual(po.state, "PARTIALLY_RECEIVED")
        self.assertEqual(self.balance(chart.ACCOUNTS_PAYABLE), Decimal("120.00"))
        self.assertEqual(self.balance(chart.INVENTORY_RAW), Decimal("120.00"))
        self.yarn.refresh_from_db()
        self.assertEqual(self.yarn.current_stock, Decimal("60"))

        purchases.receive_goods(po.pk, [{"line_id": line.pk, "quantity": "40"}])
        po.refresh_from_db()
        self.assertEqual(po.state, "FULLY_RECEIVED")
        self.assertEqual(self.balance(chart.ACCOUNTS_PAYABLE), Decimal("200.00"))
        self.yarn.refresh_from_db()
        self.assertEqual(self.yarn.current_stock, Decimal("100"))
        self.assertEqual(self.yarn.average_cost, Decimal("2.0000"))

        self.assertEqual(
            JournalEntry.objects.filter(entry_type="PURCHASE", status="POSTED").count(), 2)

        purchases.close_purchase_order(po.pk)
        po.refresh_from_db()
        self.assertEqual(po.state, "CLOSED")

    def test_receive_everything_outstanding(self):
        po = self.sent_po(qty="25", cost="3.20")
        purchases.receive_goods(po.pk)
        po.refresh_from_db()
        self.assertEqual(po.state, "FULLY_RECEIVED")
        self.assertEqual(self.balance(chart.ACCOUNTS_PAYABLE), Decimal("80.00"))

    def test_over_receipt_is_rejected(self):
        po = self.sent_po()
        line = po.lines.get()
        purchases.receive_goods(po.pk, [{"line_id": line.pk, "quantity": "60"}])

        with self.assertRaises(OverReceipt):
            purchases.receive_goods(po.pk, [{"line_id": line.pk, "quantity": "41"}])

        line.refresh_from_db()
        self.assertEqual(line.received_qty, Decimal("60"))
        self.assertEqual(self.balance(chart.ACCOUNTS_PAYABLE), Decimal("120.00"))
        po.refresh_from_db()
        self.assertEqual(po.state, "PARTIALLY_RECEIVED")

    def test_draft_cannot_receive(self):
        po = self.make_po()
        with self.assertRaises(IllegalTransition):
            purchases.receive_goods(po.pk)
        self.yarn.refresh_from_db()
        self.assertEqual(self.yarn.current_stock, Decimal("0"))

    def test_early_close_only_after_some_receipt(self):
        po = self.sent_po()
        with self.assertRaises(IllegalTransition):
            purchases.close_purchase_order(po.pk)

        purchases.receive_goods(po.pk, [{"line_id": po.lines.get().pk, "quantity": "10"}])
        purchases.close_purchase_order(po.pk)
        po.refresh_from_db()
        self.assertEqual(po.state, "CLOSED")

    def test_send_needs_lines(self):
        po = purchases.create_purchase_order(self.supplier)
        with self.assertRaises(TransitionGuardFailed):
            purchases.send_purchase_order(po.pk)

    def test_invalid_line_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.make_po(qty="0")
        self.assertFalse(PurchaseOrder.objects.exists())

    def test_lines_fixed_after_sending(self):
        po = self.make_po()
        po = purchases.replace_lines(po.pk, [
            {"inventory_item": self.yarn.pk, "ordered_qty": "5", "unit_cost": "1.00"},
        ])
        self.assertEqual(po.total_amount, Decimal("5.00"))

        purchases.send_purchase_order(po.pk)
        with self.assertRaises(StateConflict):
            purchases.replace_lines(po.pk, [])
        with self.assertRaises(HasHistory):
            purchases.delete_purchase_order(po.pk)

    def test_transition_checks_expected_state(self):
        po = self.sent_po()
        line = po.lines.get()
        with self.assertRaises(TransitionGuardFailed):
            purchases.transition(po.pk, "FULLY_RECEIVED", payload={
                "receipts": [{"line_id": line.pk, "quantity": "10"}],
            })
        self.assertEqual(self.balance(chart.ACCOUNTS_PAYABLE), Decimal("0.00"))

        po = purchases.transition(po.pk, "PARTIALLY_RECEIVED", payload={
            "receipts": [{"line_id": line.pk, "quantity": "10"}],
        })
        self.assertEqual(po.state, "PARTIALLY_RECEIVED")

    def test_each_delivery_opens_a_stock_lot(self):
        po = self.sent_po()
        line = po.lines.get()
        purchases.receive_goods(po.pk, [
            {"line_id": line.pk, "quantity": "60", "lot_number": "DL-0912"},
        ])
        purchases.receive_goods(po.pk, [{"line_id": line.pk, "quantity": "40"}])

        first, second = StockLot.objects.filter(purchase_line=line).order_by("pk")
        self.assertEqual(first.lot_number, "DL-0912")
        self.assertEqual(second.lot_number, po.reference)
        self.assertEqual(first.supplier, self.supplier)
        self.assertEqual(first.quantity_remaining, Decimal("60"))
        self.assertEqual(second.unit_cost, Decimal("2.0000"))

        # stock leaves the oldest lot first
        inventory.consume(self.yarn.pk, Decimal("70"))
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertTrue(first.is_depleted)
        self.assertEqual(second.quantity_remaining, Decimal("30"))

        # a restore fills the newest lot back up first
        inventory.restore(self.yarn.pk, Decimal("15"), Decimal("2.00"))
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(second.quantity_remaining, Decimal("40"))
        self.assertEqual(first.quantity_remaining, Decimal("5"))
        self.yarn.refresh_from_db()
        self.assertEqual(self.yarn.current_stock, Decimal("45"))

    def test_failed_posting_rolls_back_the_whole_delivery(self):
        po = self.sent_po()
        line = po.lines.get()
        # stock moves before the ledger step looks up Accounts Payable
        Account.objects.filter(code=chart.ACCOUNTS_PAYABLE).delete()

        with self.assertRaises(MissingAccount):
            purchases.receive_goods(po.pk, [{"line_id": line.pk, "quantity": "60"}])

        self.yarn.refresh_from_db()
        self.assertEqual(self.yarn.current_stock, Decimal("0"))
        self.assertEqual(self.yarn.average_cost, Decimal("0"))
        self.assertFalse(InventoryTransaction.objects.filter(item=self.yarn).exists())
        self.assertFalse(StockLot.objects.exists())
        line.refresh_from_db()
        self.assertEqual(line.received_qty, Decimal("0"))
        po.refresh_from_db()
        self.assertEqual(po.state, "SENT")
        self.assertEqual(self.balance(chart.INVENTORY_RAW), Decimal("0.00"))

    def test_unparseable_line_numbers_are_rejected(self):
        with self.assertRaises(LedgerValidationError):
            self.make_po(qty="abc")
        with self.assertRaises(LedgerValidationError):
            self.make_po(cost="two dollars")
        self.assertFalse(PurchaseOrder.objects.exists())
