from decimal import Decimal

from django.db.models import Sum
from django.test import TestCase

from ..exceptions import HasHistory, InsufficientStock, NonPositiveAmount
from ..models import InventoryItem, InventoryTransaction
from ..services.inventory import (adjust, consume, delete_item, get_stock_level,
                                  items_needing_reorder, receive, restore)
from .factories import ErpTestMixin


class WeightedAverageTests(ErpTestMixin, TestCase):
    def setUp(self):
        self.item = self.make_item(reorder_point=Decimal("5"))

    def refresh(self):
        self.item.refresh_from_db()
        return self.item

    def test_receipts_blend_average_cost(self):
        receive(self.item.pk, Decimal("10"), Decimal("2.00"))
        movement = receive(self.item.pk, Decimal("10"), Decimal("4.00"))

        self.assertEqual(movement.value, Decimal("40.00"))
        self.assertEqual(movement.average_cost_after, Decimal("3.0000"))
        item = self.refresh()
        self.assertEqual(item.current_stock, Decimal("20"))
        self.assertEqual(item.average_cost, Decimal("3.0000"))

    def test_consumption_uses_average_and_keeps_it(self):
        receive(self.item.pk, Decimal("10"), Decimal("2.00"))
        receive(self.item.pk, Decimal("10"), Decimal("4.00"))
        movement = consume(self.item.pk, Decimal("5"))

        self.assertEqual(movement.quantity, Decimal("-5"))
        self.assertEqual(movement.value, Decimal("15.00"))
        item = self.refresh()
        self.assertEqual(item.current_stock, Decimal("15"))
        self.assertEqual(item.average_cost, Decimal("3.0000"))

    def test_consuming_more_than_on_hand_changes_nothing(self):
        receive(self.item.pk, Decimal("3"), Decimal("2.00"))
        receive(self.item.pk, Decimal("1"), Decimal("3.00"))
        with self.assertRaises(InsufficientStock) as ctx:
            consume(self.item.pk, Decimal("4.5"))
        self.assertEqual(ctx.exception.sku, "YARN-RED")

        item = self.refresh()
        self.assertEqual(item.current_stock, Decimal("4"))
        self.assertEqual(item.average_cost, Decimal("2.2500"))
        self.assertEqual(InventoryTransaction.objects.filter(item=item).count(), 2)

    def test_quantities_must_be_positive(self):
        with self.assertRaises(NonPositiveAmount):
            receive(self.item.pk, Decimal("0"), Decimal("2.00"))
        with self.assertRaises(NonPositiveAmount):
            consume(self.item.pk, Decimal("-1"))
        with self.assertRaises(NonPositiveAmount):
            adjust(self.item.pk, Decimal("0"))

    def test_adjust_changes_quantity_only(self):
        receive(self.item.pk, Decimal("10"), Decimal("2.50"))
        adjust(self.item.pk, Decimal("-2"), reason="Stock count")
        item = self.refresh()
        self.assertEqual(item.current_stock, Decimal("8"))
        self.assertEqual(item.average_cost, Decimal("2.5000"))

        with self.assertRaises(InsufficientStock):
            adjust(self.item.pk, Decimal("-9"))

    def test_restore_puts_stock_back_at_original_cost(self):
        receive(self.item.pk, Decimal("10"), Decimal("2.00"))
        taken = consume(self.item.pk, Decimal("4"))
        restore(self.item.pk, Decimal("4"), taken.unit_cost)

        item = self.refresh()
        self.assertEqual(item.current_stock, Decimal("10"))
        self.assertEqual(item.average_cost, Decimal("2.0000"))
        self.assertEqual(
            list(item.movements.values_list("movement", flat=True)),
            ["RECEIPT", "CONSUMPTION", "REVERSAL"],
        )

    def test_empty_stock_resets_average(self):
        receive(self.item.pk, Decimal("2"), Decimal("7.00"))
        consume(self.item.pk, Decimal("2"))
        self.assertEqual(self.refresh().current_stock, Decimal("0"))
        # next receipt starts from its own cost
        receive(self.item.pk, Decimal("1"), Decimal("3.00"))
        self.assertEqual(self.refresh().average_cost, Decimal("3.0000"))

    def test_movements_sum_to_current_stock(self):
        receive(self.item.pk, Decimal("12.5"), Decimal("2.00"))
        consume(self.item.pk, Decimal("3.25"))
        adjust(self.item.pk, Decimal("1"))
        restore(self.item.pk, Decimal("0.25"), Decimal("2.00"))

        total = self.item.movements.aggregate(s=Sum("quantity_change"))["s"]
        self.assertEqual(total, self.refresh().current_stock)
        self.assertEqual(total, Decimal("10.5"))

    def test_stock_level_and_reorder(self):
        receive(self.item.pk, Decimal("4"), Decimal("2.00"))
        level = get_stock_level(self.item.pk)
        self.assertEqual(level.stock_value, Decimal("8.00"))
        self.assertTrue(level.needs_reorder)
        self.assertIn(self.item, list(items_needing_reorder()))

        receive(self.item.pk, Decimal("6"), Decimal("2.00"))
        self.assertFalse(get_stock_level(self.item.pk).needs_reorder)
        self.assertNotIn(self.item, list(items_needing_reorder()))

    def test_only_unused_items_can_be_deleted(self):
        receive(self.item.pk, Decimal("1"), Decimal("2.00"))
        with self.assertRaises(HasHistory):
            delete_item(self.item.pk)

        spare = self.make_item(sku="GLUE-01", name="Latex glue")
        delete_item(spare.pk)
        self.assertFalse(InventoryItem.objects.filter(sku="GLUE-01").exists())
