from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

ACCOUNT_TYPES = [
    ("ASSET", "Asset"),
    ("LIABILITY", "Liability"),
    ("EQUITY", "Equity"),
    ("REVENUE", "Revenue"),
    ("EXPENSE", "Expense"),
    ("COGS", "Cost of Goods Sold"),
]

ACCOUNT_CATEGORIES = [
    ("CASH", "Cash"),
    ("BANK", "Bank"),
    ("ACCOUNTS_RECEIVABLE", "Accounts Receivable"),
    ("INVENTORY", "Inventory"),
    ("WORK_IN_PROGRESS", "Work in Progress"),
    ("FIXED_ASSET", "Fixed Asset"),
    ("ACCOUNTS_PAYABLE", "Accounts Payable"),
    ("CUSTOMER_DEPOSITS", "Customer Deposits"),
    ("SHORT_TERM_LOAN", "Short-term Loan"),
    ("LONG_TERM_LOAN", "Long-term Loan"),
    ("OWNER_EQUITY", "Owner Equity"),
    ("RETAINED_EARNINGS", "Retained Earnings"),
    ("SALES", "Sales"),
    ("SERVICE_REVENUE", "Service Revenue"),
    ("COST_OF_GOODS_SOLD", "Cost of Goods Sold"),
    ("OPERATING_EXPENSE", "Operating Expense"),
    ("OTHER_EXPENSE", "Other Expense"),
    ("OTHER", "Other"),
]

ENTRY_TYPES = [
    ("GENERAL", "General"),
    ("SALES", "Sales"),
    ("PURCHASE", "Purchase"),
    ("PAYMENT", "Payment"),
    ("RECEIPT", "Receipt"),
    ("EXPENSE", "Expense"),
    ("ADJUSTMENT", "Adjustment"),
    ("DEPRECIATION", "Depreciation"),
    ("INVENTORY", "Inventory"),
]

ENTRY_STATUSES = [("DRAFT", "Draft"), ("POSTED", "Posted"), ("VOID", "Void")]

LINE_TYPES = [("DEBIT", "Debit"), ("CREDIT", "Credit")]

SOURCE_KINDS = [
    ("ORDER", "Order"),
    ("PURCHASE_ORDER", "Purchase Order"),
    ("PRODUCTION_JOB", "Production Job"),
    ("EXPENSE", "Expense"),
]

ITEM_TYPES = [
    ("RAW_MATERIAL", "Raw Material"),
    ("CONSUMABLE", "Consumable"),
    ("FINISHED_GOOD", "Finished Good"),
]

MOVEMENT_TYPES = [
    ("RECEIPT", "Receipt"),
    ("CONSUMPTION", "Consumption"),
    ("REVERSAL", "Reversal"),
    ("ADJUSTMENT", "Adjustment"),
]

ORDER_STATES = [
    ("DRAFT", "Draft"),
    ("PENDING_DEPOSIT", "Pending Deposit"),
    ("DEPOSIT_PAID", "Deposit Paid"),
    ("IN_PRODUCTION", "In Production"),
    ("READY_FOR_DISPATCH", "Ready for Dispatch"),
    ("DISPATCHED", "Dispatched"),
    ("CLOSED", "Closed"),
    ("ARCHIVED", "Archived"),
]

PURCHASE_STATES = [
    ("DRAFT", "Draft"),
    ("SENT", "Sent"),
    ("PARTIALLY_RECEIVED", "Partially Received"),
    ("FULLY_RECEIVED", "Fully Received"),
    ("CLOSED", "Closed"),
]

JOB_STATES = [
    ("PLANNED", "Planned"),
    ("MATERIALS_ALLOCATED", "Materials Allocated"),
    ("IN_PROGRESS", "In Progress"),
    ("QUALITY_CHECK", "Quality Check"),
    ("COMPLETED", "Completed"),
    ("CANCELLED", "Cancelled"),
]

DIMENSION_UNITS = [
    ("cm", "Centimetres"),
    ("m", "Metres"),
    ("in", "Inches"),
    ("ft", "Feet"),
]

PAYMENT_METHODS = [
    ("cash", "Cash"),
    ("bank_transfer", "Bank Transfer"),
    ("mobile_money", "Mobile Money"),
    ("card", "Card"),
]

PAYMENT_KINDS = [("deposit", "Deposit"), ("balance", "Balance")]

FINISHED_PRODUCT_STATUSES = [
    ("IN_STOCK", "In Stock"),
    ("RESERVED", "Reserved"),
    ("DISPATCHED", "Dispatched"),
]

QUALITY_STATUSES = [("PASSED", "Passed"), ("FAILED", "Failed"), ("PENDING", "Pending")]

EXPENSE_CATEGORIES = [
    ("RENT", "Rent"),
    ("ELECTRICITY", "Electricity"),
    ("WATER", "Water"),
    ("INTERNET", "Internet"),
    ("PHONE", "Phone"),
    ("TRANSPORT", "Transport"),
    ("FOOD", "Food"),
    ("OFFICE_SUPPLIES", "Office Supplies"),
    ("MAINTENANCE", "Maintenance"),
    ("SALARIES", "Salaries"),
    ("MARKETING", "Marketing"),
    ("INSURANCE", "Insurance"),
    ("TAX", "Tax"),
    ("OTHER", "Other"),
]


def _user_fk(related_name="+"):
    return models.ForeignKey(
        blank=True,
        null=True,
        on_delete=django.db.models.deletion.SET_NULL,
        related_name=related_name,
        to=settings.AUTH_USER_MODEL,
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ---------- Chart of accounts ----------
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=32, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("ac_type", models.CharField(choices=ACCOUNT_TYPES, max_length=10)),
                ("category", models.CharField(choices=ACCOUNT_CATEGORIES, default="OTHER", max_length=32)),
                ("balance", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("description", models.TextField(blank=True, default="")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("parent", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="children", to="erp_core.account")),
            ],
            options={
                "ordering": ["code"],
                "indexes": [
                    models.Index(fields=["ac_type"], name="erp_account_type_idx"),
                    models.Index(fields=["parent"], name="erp_account_parent_idx"),
                ],
            },
        ),
        # ---------- Journal ----------
        migrations.CreateModel(
            name="JournalEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=32, unique=True)),
                ("entry_type", models.CharField(choices=ENTRY_TYPES, default="GENERAL", max_length=16)),
                ("status", models.CharField(choices=ENTRY_STATUSES, default="DRAFT", max_length=8)),
                ("transaction_date", models.DateField()),
                ("description", models.TextField(blank=True, default="")),
                ("source_type", models.CharField(blank=True, choices=SOURCE_KINDS, max_length=20, null=True)),
                ("source_id", models.BigIntegerField(blank=True, null=True)),
                ("posted_at", models.DateTimeField(blank=True, null=True)),
                ("voided_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", _user_fk()),
                ("posted_by", _user_fk()),
            ],
            options={
                "verbose_name_plural": "journal entries",
                "ordering": ["-transaction_date", "-id"],
                "indexes": [
                    models.Index(fields=["transaction_date"], name="erp_je_date_idx"),
                    models.Index(fields=["status"], name="erp_je_status_idx"),
                    models.Index(fields=["source_type", "source_id"], name="erp_je_source_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("source_id__isnull", True), ("source_type__isnull", True)),
                            models.Q(("source_id__isnull", False), ("source_type__isnull", False)),
                            _connector="OR",
                        ),
                        name="je_source_pair_complete",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="JournalEntryLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("line_type", models.CharField(choices=LINE_TYPES, max_length=6)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("memo", models.CharField(blank=True, default="", max_length=400)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lines", to="erp_core.account")),
                ("entry", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="erp_core.journalentry")),
            ],
            options={
                "ordering": ["id"],
                "indexes": [models.Index(fields=["account"], name="erp_jel_account_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="jel_amount_positive"),
                ],
            },
        ),
        # ---------- Inventory ----------
        migrations.CreateModel(
            name="InventoryItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(max_length=80, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("item_type", models.CharField(choices=ITEM_TYPES, default="RAW_MATERIAL", max_length=16)),
                ("unit", models.CharField(default="kg", max_length=16)),
                ("current_stock", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=14)),
                ("average_cost", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=18)),
                ("reorder_point", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=14)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["sku"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("average_cost__gte", 0)), name="inv_item_average_cost_non_negative"),
                    models.CheckConstraint(condition=models.Q(("current_stock__gte", 0)), name="inv_item_stock_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="InventoryTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("movement", models.CharField(choices=MOVEMENT_TYPES, max_length=12)),
                ("quantity_change", models.DecimalField(decimal_places=4, max_digits=14)),
                ("unit_cost_before", models.DecimalField(decimal_places=4, max_digits=18)),
                ("unit_cost_after", models.DecimalField(decimal_places=4, max_digits=18)),
                ("value", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("source_type", models.CharField(blank=True, choices=SOURCE_KINDS, max_length=20, null=True)),
                ("source_id", models.BigIntegerField(blank=True, null=True)),
                ("notes", models.CharField(blank=True, default="", max_length=400)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("item", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="movements", to="erp_core.inventoryitem")),
            ],
            options={
                "ordering": ["id"],
                "indexes": [
                    models.Index(fields=["item", "created_at"], name="erp_invtx_item_idx"),
                    models.Index(fields=["source_type", "source_id"], name="erp_invtx_source_idx"),
                ],
            },
        ),
        # ---------- Orders ----------
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("full_name", models.CharField(max_length=200)),
                ("phone", models.CharField(max_length=40, unique=True)),
                ("nickname", models.CharField(blank=True, default="", max_length=100)),
                ("address", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"ordering": ["full_name"]},
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=32, unique=True)),
                ("state", models.CharField(choices=ORDER_STATES, default="DRAFT", max_length=20)),
                ("deposit_percent", models.DecimalField(decimal_places=2, default=Decimal("30.00"), max_digits=5)),
                ("total_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("notes", models.TextField(blank=True, default="")),
                ("delivery_address", models.TextField(blank=True, default="")),
                ("delivery_contact", models.CharField(blank=True, default="", max_length=100)),
                ("dispatched_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="orders", to="erp_core.client")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["state"], name="erp_order_state_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("deposit_percent__gte", 0), ("deposit_percent__lte", 100)),
                        name="order_deposit_percent_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(blank=True, default="", max_length=80)),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("width", models.DecimalField(decimal_places=2, max_digits=10)),
                ("height", models.DecimalField(decimal_places=2, max_digits=10)),
                ("unit", models.CharField(choices=DIMENSION_UNITS, default="cm", max_length=2)),
                ("area", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=12)),
                ("planned_price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("notes", models.TextField(blank=True, default="")),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="erp_core.order")),
            ],
            options={"ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("method", models.CharField(choices=PAYMENT_METHODS, max_length=16)),
                ("kind", models.CharField(choices=PAYMENT_KINDS, max_length=8)),
                ("reference", models.CharField(blank=True, default="", max_length=64)),
                ("paid_at", models.DateTimeField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("journal_entry", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="payment", to="erp_core.journalentry")),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="erp_core.order")),
                ("recorded_by", _user_fk()),
            ],
            options={
                "ordering": ["paid_at", "id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                ],
            },
        ),
        # ---------- Purchasing ----------
        migrations.CreateModel(
            name="Supplier",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("contact", models.CharField(blank=True, default="", max_length=200)),
                ("phone", models.CharField(blank=True, default="", max_length=40)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("address", models.TextField(blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="PurchaseOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=32, unique=True)),
                ("state", models.CharField(choices=PURCHASE_STATES, default="DRAFT", max_length=20)),
                ("expected_date", models.DateField(blank=True, null=True)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("created_by", _user_fk()),
                ("supplier", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="purchase_orders", to="erp_core.supplier")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["state"], name="erp_po_state_idx")],
            },
        ),
        migrations.CreateModel(
            name="PurchaseLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.CharField(blank=True, default="", max_length=400)),
                ("ordered_qty", models.DecimalField(decimal_places=4, max_digits=14)),
                ("received_qty", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=14)),
                ("unit_cost", models.DecimalField(decimal_places=4, max_digits=18)),
                ("inventory_item", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="purchase_lines", to="erp_core.inventoryitem")),
                ("purchase_order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lines", to="erp_core.purchaseorder")),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("ordered_qty__gt", 0)), name="po_line_ordered_positive"),
                    models.CheckConstraint(
                        condition=models.Q(("received_qty__lte", models.F("ordered_qty"))),
                        name="po_line_no_over_receipt",
                    ),
                ],
            },
        ),
        # ---------- Production ----------
        migrations.CreateModel(
            name="ProductionJob",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=32, unique=True)),
                ("state", models.CharField(choices=JOB_STATES, default="PLANNED", max_length=20)),
                ("planned_start_at", models.DateTimeField(blank=True, null=True)),
                ("planned_end_at", models.DateTimeField(blank=True, null=True)),
                ("actual_start_at", models.DateTimeField(blank=True, null=True)),
                ("actual_end_at", models.DateTimeField(blank=True, null=True)),
                ("actual_material_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=18)),
                ("notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("assignee", _user_fk("production_jobs")),
                ("order_item", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="production_jobs", to="erp_core.orderitem")),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [models.Index(fields=["state"], name="erp_job_state_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("state", "CANCELLED"), _negated=True),
                        fields=("order_item",),
                        name="one_live_job_per_order_item",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BomLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("planned_quantity", models.DecimalField(decimal_places=4, max_digits=14)),
                ("unit", models.CharField(blank=True, default="", max_length=16)),
                ("notes", models.CharField(blank=True, default="", max_length=400)),
                ("released", models.BooleanField(default=False)),
                ("inventory_item", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="bom_lines", to="erp_core.inventoryitem")),
                ("job", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="bom_lines", to="erp_core.productionjob")),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("planned_quantity__gt", 0)), name="bom_line_quantity_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MaterialConsumption",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.DecimalField(decimal_places=4, max_digits=14)),
                ("waste_quantity", models.DecimalField(decimal_places=4, default=Decimal("0"), max_digits=14)),
                ("unit_cost", models.DecimalField(decimal_places=4, max_digits=18)),
                ("total_cost", models.DecimalField(decimal_places=2, max_digits=18)),
                ("is_reversed", models.BooleanField(default=False)),
                ("recorded_at", models.DateTimeField()),
                ("notes", models.CharField(blank=True, default="", max_length=400)),
                ("inventory_item", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="consumptions", to="erp_core.inventoryitem")),
                ("job", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="consumptions", to="erp_core.productionjob")),
                ("journal_entry", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="+", to="erp_core.journalentry")),
                ("recorded_by", _user_fk()),
            ],
            options={
                "ordering": ["recorded_at", "id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("quantity__gt", 0)), name="consumption_quantity_positive"),
                    models.CheckConstraint(condition=models.Q(("waste_quantity__gte", 0)), name="consumption_waste_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="FinishedProduct",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=32, unique=True)),
                ("product_name", models.CharField(max_length=200)),
                ("cost_price", models.DecimalField(decimal_places=2, max_digits=18)),
                ("selling_price", models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ("status", models.CharField(choices=FINISHED_PRODUCT_STATUSES, default="IN_STOCK", max_length=12)),
                ("quality_status", models.CharField(choices=QUALITY_STATUSES, default="PASSED", max_length=8)),
                ("quality_notes", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="finished_products", to="erp_core.order")),
                ("order_item", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="finished_products", to="erp_core.orderitem")),
                ("production_job", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="finished_product", to="erp_core.productionjob")),
            ],
            options={"ordering": ["-created_at", "-id"]},
        ),
        # ---------- Expenses ----------
        migrations.CreateModel(
            name="Expense",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("reference", models.CharField(max_length=32, unique=True)),
                ("expense_date", models.DateField()),
                ("category", models.CharField(choices=EXPENSE_CATEGORIES, max_length=20)),
                ("vendor_name", models.CharField(blank=True, default="", max_length=200)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=18)),
                ("payment_method", models.CharField(choices=PAYMENT_METHODS, max_length=16)),
                ("receipt_number", models.CharField(blank=True, default="", max_length=64)),
                ("description", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="expenses", to="erp_core.account")),
                ("created_by", _user_fk()),
                ("journal_entry", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="expense", to="erp_core.journalentry")),
            ],
            options={
                "ordering": ["-expense_date", "-id"],
                "indexes": [models.Index(fields=["category", "expense_date"], name="erp_expense_cat_date_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="expense_amount_positive"),
                ],
            },
        ),
        # ---------- Audit log ----------
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["object_type", "object_id"], name="erp_audit_object_idx"),
                    models.Index(fields=["created_at"], name="erp_audit_created_idx"),
                ],
            },
        ),
    ]
