from decimal import Decimal
from django.conf import settings
from django.db import models
from ..lifecycles import JobState
from .inventory import InventoryItem
from .journal import JournalEntry
from .order import Order, OrderItem


# ---------- Production Jobs ----------
class ProductionJob(models.Model):
    """
    Tufting job for one order item (or a standalone stock rug).
    Material cost flows: Inventory → WIP (consumption) → Finished Goods (completion).
    """

    reference = models.CharField(max_length=32, unique=True)
    # nullable: standalone jobs produce rugs for stock
    # a cancelled job may be replaced, so this is not one-to-one
    order_item = models.ForeignKey(
        OrderItem,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="production_jobs",
    )
    state = models.CharField(
        max_length=20, choices=JobState.choices, default=JobState.PLANNED
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="production_jobs",
    )
    planned_start_at = models.DateTimeField(null=True, blank=True)
    planned_end_at = models.DateTimeField(null=True, blank=True)
    actual_start_at = models.DateTimeField(null=True, blank=True)
    actual_end_at = models.DateTimeField(null=True, blank=True)
    # Σ active (non-reversed) consumption cost
    actual_material_cost = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    actual_labor_hours = models.DecimalField(
        max_digits=8, decimal_places=2, default=Decimal("0.00")
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["state"], name="erp_job_state_idx")]
        constraints = [
            # At most one live (non-cancelled) job per order item
            models.UniqueConstraint(
                fields=["order_item"],
                condition=~models.Q(state=JobState.CANCELLED),
                name="one_live_job_per_order_item",
            ),
        ]

    def __str__(self):
        return f"{self.reference} [{self.state}]"

    @property
    def order(self):
        return self.order_item.order if self.order_item_id else None

    @property
    def estimated_material_cost(self):
        return sum(
            (line.estimated_cost for line in self.bom_lines.filter(released=False)),
            Decimal("0.00"),
        )


class BomLine(models.Model):  # Planned material for a job (reservation only)
    job = models.ForeignKey(
        ProductionJob, on_delete=models.CASCADE, related_name="bom_lines"
    )
    inventory_item = models.ForeignKey(
        InventoryItem, on_delete=models.PROTECT, related_name="bom_lines"
    )
    planned_quantity = models.DecimalField(max_digits=14, decimal_places=4)
    unit = models.CharField(max_length=16, blank=True, default="")
    notes = models.CharField(max_length=400, blank=True, default="")
    # set when the job is cancelled; released lines reserve nothing
    released = models.BooleanField(default=False)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(planned_quantity__gt=0),
                name="bom_line_quantity_positive",
            ),
        ]

    def __str__(self):
        return f"{self.job_id} | {self.inventory_item_id} x {self.planned_quantity}"

    @property
    def estimated_cost(self):
        return (self.planned_quantity * self.inventory_item.average_cost).quantize(
            Decimal("0.01")
        )


class MaterialConsumption(models.Model):
    job = models.ForeignKey(
        ProductionJob, on_delete=models.PROTECT, related_name="consumptions"
    )
    inventory_item = models.ForeignKey(
        InventoryItem, on_delete=models.PROTECT, related_name="consumptions"
    )
    # quantity taken out of stock, waste included
    quantity = models.DecimalField(max_digits=14, decimal_places=4)
    waste_quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    # average cost at the moment of consumption
    unit_cost = models.DecimalField(max_digits=18, decimal_places=4)
    total_cost = models.DecimalField(max_digits=18, decimal_places=2)
    # INVENTORY entry Dr WIP / Cr Inventory for this consumption
    journal_entry = models.ForeignKey(
        JournalEntry,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )
    is_reversed = models.BooleanField(default=False)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    recorded_at = models.DateTimeField()
    notes = models.CharField(max_length=400, blank=True, default="")

    class Meta:
        ordering = ["recorded_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="consumption_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(waste_quantity__gte=0),
                name="consumption_waste_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.job_id} | {self.inventory_item_id} x {self.quantity}"

    @property
    def consumed_quantity(self):
        """Quantity that ended up in the rug."""
        return self.quantity - self.waste_quantity


class FinishedProductStatus(models.TextChoices):
    IN_STOCK = "IN_STOCK", "In Stock"
    RESERVED = "RESERVED", "Reserved"  # made for an order, waiting for dispatch
    DISPATCHED = "DISPATCHED", "Dispatched"


class QualityStatus(models.TextChoices):
    PASSED = "PASSED", "Passed"
    FAILED = "FAILED", "Failed"
    PENDING = "PENDING", "Pending"


class FinishedProduct(models.Model):
    reference = models.CharField(max_length=32, unique=True)
    production_job = models.OneToOneField(
        ProductionJob, on_delete=models.PROTECT, related_name="finished_product"
    )
    order = models.ForeignKey(
        Order,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="finished_products",
    )
    order_item = models.ForeignKey(
        OrderItem,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="finished_products",
    )
    product_name = models.CharField(max_length=200)
    # production cost rolled up from material consumption
    cost_price = models.DecimalField(max_digits=18, decimal_places=2)
    selling_price = models.DecimalField(
        max_digits=18, decimal_places=2, null=True, blank=True
    )
    status = models.CharField(
        max_length=12,
        choices=FinishedProductStatus.choices,
        default=FinishedProductStatus.IN_STOCK,
    )
    quality_status = models.CharField(
        max_length=8, choices=QualityStatus.choices, default=QualityStatus.PASSED
    )
    quality_notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.reference} – {self.product_name}"


class CostSnapshot(models.Model):
    """
    Budget vs actual for a completed job, captured once at completion.
    Reporting only: the finished product's cost_price stays the material cost.
    """

    production_job = models.OneToOneField(
        ProductionJob, on_delete=models.PROTECT, related_name="cost_snapshot"
    )
    # BOM estimate at the average cost of the day
    budgeted_cost = models.DecimalField(max_digits=18, decimal_places=2)
    actual_material_cost = models.DecimalField(max_digits=18, decimal_places=2)
    labor_hours = models.DecimalField(max_digits=8, decimal_places=2)
    labor_cost = models.DecimalField(max_digits=18, decimal_places=2)
    overhead_allocated = models.DecimalField(max_digits=18, decimal_places=2)
    actual_cost = models.DecimalField(max_digits=18, decimal_places=2)
    # actual - budgeted; positive means over budget
    variance = models.DecimalField(max_digits=18, decimal_places=2)
    captured_at = models.DateTimeField()
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-captured_at", "-id"]

    def __str__(self):
        return f"{self.production_job_id} actual {self.actual_cost} / budget {self.budgeted_cost}"
