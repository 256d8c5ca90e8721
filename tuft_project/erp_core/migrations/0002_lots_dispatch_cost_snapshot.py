from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

DISPATCH_STATUSES = [
    ("PENDING", "Pending"),
    ("IN_TRANSIT", "In Transit"),
    ("DELIVERED", "Delivered"),
    ("RETURNED", "Returned"),
]


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("erp_core", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="account",
            name="is_contra",
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name="productionjob",
            name="actual_labor_hours",
            field=models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=8),
        ),
        migrations.CreateModel(
            name="StockLot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("lot_number", models.CharField(max_length=64)),
                ("quantity_received", models.DecimalField(decimal_places=4, max_digits=14)),
                ("quantity_remaining", models.DecimalField(decimal_places=4, max_digits=14)),
                ("unit_cost", models.DecimalField(decimal_places=4, max_digits=18)),
                ("received_at", models.DateTimeField()),
                ("inventory_item", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lots", to="erp_core.inventoryitem")),
                ("purchase_line", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lots", to="erp_core.purchaseline")),
                ("supplier", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lots", to="erp_core.supplier")),
            ],
            options={
                "ordering": ["received_at", "id"],
                "indexes": [
                    models.Index(fields=["inventory_item", "received_at"], name="erp_lot_item_received_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity_received__gt", 0)), name="lot_received_positive"),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("quantity_remaining__gte", 0),
                            ("quantity_remaining__lte", models.F("quantity_received")),
                        ),
                        name="lot_remaining_within_received",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Dispatch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("carrier", models.CharField(blank=True, default="", max_length=120)),
                ("shipment_reference", models.CharField(blank=True, default="", max_length=120)),
                ("status", models.CharField(choices=DISPATCH_STATUSES, default="PENDING", max_length=12)),
                ("shipped_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("order", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="dispatch", to="erp_core.order")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["status"], name="erp_dispatch_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="CostSnapshot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("budgeted_cost", models.DecimalField(decimal_places=2, max_digits=18)),
                ("actual_material_cost", models.DecimalField(decimal_places=2, max_digits=18)),
                ("labor_hours", models.DecimalField(decimal_places=2, max_digits=8)),
                ("labor_cost", models.DecimalField(decimal_places=2, max_digits=18)),
                ("overhead_allocated", models.DecimalField(decimal_places=2, max_digits=18)),
                ("actual_cost", models.DecimalField(decimal_places=2, max_digits=18)),
                ("variance", models.DecimalField(decimal_places=2, max_digits=18)),
                ("captured_at", models.DateTimeField()),
                ("notes", models.TextField(blank=True, default="")),
                ("production_job", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="cost_snapshot", to="erp_core.productionjob")),
            ],
            options={"ordering": ["-captured_at", "-id"]},
        ),
    ]
