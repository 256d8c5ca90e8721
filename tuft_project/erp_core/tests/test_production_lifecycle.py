from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase, override_settings

from ..exceptions import (HasHistory, IllegalTransition, InsufficientStock,
                          NonPositiveAmount, StateConflict)
from ..models import (CostSnapshot, JournalEntry, MaterialConsumption,
                      ProductionJob)
from ..services import chart, orders, production
from ..services.inventory import receive
from .factories import ErpTestMixin


class ProductionLifecycleTests(ErpTestMixin, TestCase):
    def setUp(self):
        self.seed()
        self.yarn = self.make_item()
        self.cloth = self.make_item(sku="CLOTH-PRIMARY", name="Primary tufting cloth", unit="m")
        receive(self.yarn.pk, Decimal("50"), Decimal("2.00"))
        receive(self.cloth.pk, Decimal("20"), Decimal("5.00"))

    def running_job(self, order_item=None):
        job = production.create_job(order_item=order_item)
        production.allocate_materials(job.pk, [
            {"inventory_item": self.yarn, "planned_quantity": "10"},
            {"inventory_item": self.cloth.pk, "planned_quantity": "2"},
        ])
        production.start_job(job.pk)
        return job

    def stock(self, item):
        item.refresh_from_db()
        return item.current_stock

    def test_job_walks_through_its_states(self):
        job = production.create_job()
        self.assertEqual(job.state, "PLANNED")
        self.assertTrue(job.reference.startswith("JOB-"))

        with self.assertRaises(IllegalTransition):
            production.start_job(job.pk)

        production.allocate_materials(job.pk, [
            {"inventory_item": self.yarn, "planned_quantity": "10"},
        ])
        self.assertEqual(production.reserved_quantity(self.yarn), Decimal("10"))
        # reservation only, nothing leaves stock
        self.assertEqual(self.stock(self.yarn), Decimal("50"))

        production.start_job(job.pk)
        production.submit_for_qc(job.pk)
        production.rework(job.pk, notes="Loose loops in corner")
        job.refresh_from_db()
        self.assertEqual(job.state, "IN_PROGRESS")
        self.assertIn("Loose loops", job.notes)
        self.assertIsNotNone(job.actual_start_at)

    def test_consumption_moves_cost_into_wip(self):
        job = self.running_job()
        consumption = production.record_consumption(
            job.pk, self.yarn.pk, Decimal("10"), waste_quantity=Decimal("1"))

        self.assertEqual(consumption.unit_cost, Decimal("2.0000"))
        self.assertEqual(consumption.total_cost, Decimal("20.00"))
        self.assertEqual(consumption.consumed_quantity, Decimal("9"))
        self.assertEqual(self.stock(self.yarn), Decimal("40"))
        self.assertEqual(self.balance(chart.WORK_IN_PROGRESS), Decimal("20.00"))
        self.assertEqual(self.balance(chart.INVENTORY_RAW), Decimal("-20.00"))
        job.refresh_from_db()
        self.assertEqual(job.actual_material_cost, Decimal("20.00"))

    def test_consumption_needs_stock_and_a_running_job(self):
        planned = production.create_job()
        with self.assertRaises(StateConflict):
            production.record_consumption(planned.pk, self.yarn.pk, Decimal("1"))

        job = self.running_job()
        with self.assertRaises(InsufficientStock):
            production.record_consumption(job.pk, self.cloth.pk, Decimal("25"))
        self.assertEqual(self.stock(self.cloth), Decimal("20"))
        self.assertFalse(MaterialConsumption.objects.exists())
        self.assertEqual(self.balance(chart.WORK_IN_PROGRESS), Decimal("0.00"))

    def test_update_consumption_reverses_then_records(self):
        job = self.running_job()
        first = production.record_consumption(job.pk, self.yarn.pk, Decimal("10"))
        second = production.update_consumption(first.pk, Decimal("6"))

        first.refresh_from_db()
        self.assertTrue(first.is_reversed)
        self.assertEqual(first.journal_entry.status, "VOID")
        self.assertFalse(second.is_reversed)
        self.assertEqual(second.total_cost, Decimal("12.00"))
        self.assertEqual(self.stock(self.yarn), Decimal("44"))
        self.assertEqual(self.balance(chart.WORK_IN_PROGRESS), Decimal("12.00"))
        job.refresh_from_db()
        self.assertEqual(job.actual_material_cost, Decimal("12.00"))

    def test_delete_consumption_restores_stock(self):
        job = self.running_job()
        consumption = production.record_consumption(job.pk, self.cloth.pk, Decimal("3"))
        production.delete_consumption(consumption.pk)

        consumption.refresh_from_db()
        self.assertTrue(consumption.is_reversed)
        self.assertEqual(self.stock(self.cloth), Decimal("20"))
        self.assertEqual(self.balance(chart.WORK_IN_PROGRESS), Decimal("0.00"))
        self.assertEqual(self.balance(chart.INVENTORY_RAW), Decimal("0.00"))

        with self.assertRaises(StateConflict):
            production.delete_consumption(consumption.pk)

    def test_complete_standalone_job_makes_stock_rug(self):
        job = self.running_job()
        production.record_consumption(job.pk, self.yarn.pk, Decimal("10"))
        production.record_consumption(job.pk, self.cloth.pk, Decimal("2"))
        production.submit_for_qc(job.pk)
        production.complete_job(job.pk, product_name="Sample runner", selling_price="80.00")

        job.refresh_from_db()
        self.assertEqual(job.state, "COMPLETED")
        self.assertIsNotNone(job.actual_end_at)
        product = job.finished_product
        self.assertEqual(product.cost_price, Decimal("30.00"))
        self.assertEqual(product.status, "IN_STOCK")
        self.assertIsNone(product.order)
        self.assertEqual(self.balance(chart.WORK_IN_PROGRESS), Decimal("0.00"))
        self.assertEqual(self.balance(chart.FINISHED_GOODS), Decimal("30.00"))

        # terminal: no more consumption or cancellation
        with self.assertRaises(StateConflict):
            production.record_consumption(job.pk, self.yarn.pk, Decimal("1"))
        with self.assertRaises(IllegalTransition):
            production.cancel_job(job.pk)

    @override_settings(ERP_LABOR_RATE=Decimal("15.00"), ERP_OVERHEAD_RATE=Decimal("0.20"))
    def test_completion_charges_labour_and_captures_costs(self):
        job = self.running_job()
        # BOM: 10 yarn @ 2.00 + 2 cloth @ 5.00 → 30.00 budgeted
        production.record_consumption(job.pk, self.yarn.pk, Decimal("12"))
        production.record_consumption(job.pk, self.cloth.pk, Decimal("2"))
        production.submit_for_qc(job.pk)
        production.complete_job(job.pk, labor_hours="2.5")

        job.refresh_from_db()
        self.assertEqual(job.actual_labor_hours, Decimal("2.50"))
        # labour is a period cost, the rug carries material only
        self.assertEqual(job.finished_product.cost_price, Decimal("34.00"))
        self.assertEqual(self.balance(chart.FINISHED_GOODS), Decimal("34.00"))
        self.assertEqual(self.balance(chart.DIRECT_LABOR), Decimal("37.50"))
        self.assertEqual(self.balance(chart.SALARIES_AND_WAGES), Decimal("-37.50"))

        snapshot = job.cost_snapshot
        self.assertEqual(snapshot.budgeted_cost, Decimal("30.00"))
        self.assertEqual(snapshot.actual_material_cost, Decimal("34.00"))
        self.assertEqual(snapshot.labor_cost, Decimal("37.50"))
        self.assertEqual(snapshot.overhead_allocated, Decimal("6.80"))
        self.assertEqual(snapshot.actual_cost, Decimal("78.30"))
        self.assertEqual(snapshot.variance, Decimal("48.30"))

    def test_completion_without_hours_posts_no_labour(self):
        job = self.running_job()
        production.record_consumption(job.pk, self.yarn.pk, Decimal("10"))
        production.submit_for_qc(job.pk)
        production.complete_job(job.pk)

        job.refresh_from_db()
        self.assertEqual(job.cost_snapshot.labor_cost, Decimal("0.00"))
        self.assertEqual(self.balance(chart.DIRECT_LABOR), Decimal("0.00"))
        self.assertFalse(JournalEntry.objects.filter(entry_type="ADJUSTMENT").exists())

    def test_negative_labour_hours_leave_job_in_qc(self):
        job = self.running_job()
        production.submit_for_qc(job.pk)
        with self.assertRaises(NonPositiveAmount):
            production.complete_job(job.pk, labor_hours="-1")
        job.refresh_from_db()
        self.assertEqual(job.state, "QUALITY_CHECK")
        self.assertFalse(CostSnapshot.objects.exists())

    def test_cancel_returns_material_and_releases_reservation(self):
        job = self.running_job()
        production.record_consumption(job.pk, self.yarn.pk, Decimal("8"))
        production.record_consumption(job.pk, self.cloth.pk, Decimal("2"))
        production.cancel_job(job.pk, reason="Client changed design")

        job.refresh_from_db()
        self.assertEqual(job.state, "CANCELLED")
        self.assertEqual(job.actual_material_cost, Decimal("0.00"))
        self.assertEqual(self.stock(self.yarn), Decimal("50"))
        self.assertEqual(self.stock(self.cloth), Decimal("20"))
        self.assertEqual(self.balance(chart.WORK_IN_PROGRESS), Decimal("0.00"))
        self.assertEqual(production.reserved_quantity(self.yarn), Decimal("0"))
        self.assertFalse(
            JournalEntry.objects.filter(status="POSTED", entry_type="INVENTORY").exists())

    def test_one_live_job_per_order_item(self):
        client = self.make_client()
        order = orders.create_order(client, [self.rug("100.00")])
        item = order.items.get()
        job = production.create_job(order_item=item)

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                production.create_job(order_item=item)

        # a cancelled job can be replaced
        production.cancel_job(job.pk)
        replacement = production.create_job(order_item=item)
        self.assertEqual(item.production_jobs.count(), 2)
        self.assertEqual(replacement.state, "PLANNED")

    def test_only_planned_jobs_can_be_deleted(self):
        planned = production.create_job()
        production.delete_job(planned.pk)
        self.assertFalse(ProductionJob.objects.filter(pk=planned.pk).exists())

        running = self.running_job()
        with self.assertRaises(HasHistory):
            production.delete_job(running.pk)

    def test_transition_entry_point(self):
        job = production.create_job()
        production.transition(job.pk, "MATERIALS_ALLOCATED", payload={
            "bom_lines": [{"inventory_item": self.yarn, "planned_quantity": "1"}],
        })
        job = production.transition(job.pk, "IN_PROGRESS")
        self.assertEqual(job.state, "IN_PROGRESS")
        job = production.transition(job.pk, "CANCELLED", payload={"reason": "Test"})
        self.assertEqual(job.state, "CANCELLED")
