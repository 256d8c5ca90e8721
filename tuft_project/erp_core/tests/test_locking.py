from decimal import Decimal
from unittest import mock

from django.db import OperationalError
from django.db.models.query import QuerySet
from django.test import TestCase, override_settings

from ..exceptions import ConcurrentWriteConflict
from ..models import InventoryItem, InventoryTransaction
from ..services.inventory import consume, receive
from ..services.locking import lock_many, lock_one
from .factories import ErpTestMixin


def _lock_unavailable(*args, **kwargs):
    raise OperationalError("could not obtain lock on row in relation")


class RowLockTests(ErpTestMixin, TestCase):
    def setUp(self):
        self.yarn = self.make_item()
        self.cloth = self.make_item(sku="CLOTH-PRIMARY", name="Primary tufting cloth")

    def test_lock_many_returns_rows_by_pk(self):
        rows = lock_many(InventoryItem, [self.cloth.pk, self.yarn.pk, self.yarn.pk])
        self.assertEqual(sorted(rows), sorted([self.yarn.pk, self.cloth.pk]))
        self.assertEqual(rows[self.cloth.pk].sku, "CLOTH-PRIMARY")
        self.assertEqual(lock_many(InventoryItem, []), {})

        with self.assertRaises(InventoryItem.DoesNotExist):
            lock_many(InventoryItem, [self.yarn.pk, 999999])

    def test_busy_row_becomes_conflict(self):
        with mock.patch.object(QuerySet, "select_for_update", _lock_unavailable):
            with self.assertRaises(ConcurrentWriteConflict):
                lock_one(InventoryItem, self.yarn.pk)
            with self.assertRaises(ConcurrentWriteConflict):
                lock_many(InventoryItem, [self.yarn.pk, self.cloth.pk])

    @override_settings(ERP_LOCK_NOWAIT=True)
    def test_nowait_is_passed_to_the_database(self):
        with mock.patch.object(QuerySet, "select_for_update",
                               autospec=True, side_effect=_lock_unavailable) as sfu:
            with self.assertRaises(ConcurrentWriteConflict):
                lock_one(InventoryItem, self.yarn.pk)
        self.assertEqual(sfu.call_args.kwargs, {"nowait": True})

    def test_conflict_leaves_stock_untouched(self):
        receive(self.yarn.pk, Decimal("5"), Decimal("2.00"))
        with mock.patch.object(QuerySet, "select_for_update", _lock_unavailable):
            with self.assertRaises(ConcurrentWriteConflict):
                consume(self.yarn.pk, Decimal("2"))

        self.yarn.refresh_from_db()
        self.assertEqual(self.yarn.current_stock, Decimal("5"))
        self.assertEqual(InventoryTransaction.objects.filter(item=self.yarn).count(), 1)
