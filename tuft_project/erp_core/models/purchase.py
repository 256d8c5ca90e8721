from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..lifecycles import PurchaseState
from .inventory import InventoryItem


# ---------- Suppliers ----------
class Supplier(models.Model):
    name = models.CharField(max_length=200)
    contact = models.CharField(max_length=200, blank=True, default="")
    phone = models.CharField(max_length=40, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    address = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


# ---------- Purchase Orders ----------
class PurchaseOrder(models.Model):
    reference = models.CharField(max_length=32, unique=True)
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, related_name="purchase_orders"
    )
    state = models.CharField(
        max_length=20, choices=PurchaseState.choices, default=PurchaseState.DRAFT
    )
    expected_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["state"], name="erp_po_state_idx")]

    def __str__(self):
        return f"{self.reference} [{self.state}]"

    @property
    def total_amount(self):
        return sum(
            (line.line_total for line in self.lines.all()), Decimal("0.00")
        )

    def is_fully_received(self):
        """Every line has received at least what was ordered."""
        lines = list(self.lines.all())
        return bool(lines) and all(
            line.received_qty >= line.ordered_qty for line in lines
        )


class PurchaseLine(models.Model):
    purchase_order = models.ForeignKey(
        PurchaseOrder, on_delete=models.CASCADE, related_name="lines"
    )
    inventory_item = models.ForeignKey(
        InventoryItem, on_delete=models.PROTECT, related_name="purchase_lines"
    )
    description = models.CharField(max_length=400, blank=True, default="")
    ordered_qty = models.DecimalField(max_digits=14, decimal_places=4)
    received_qty = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    unit_cost = models.DecimalField(max_digits=18, decimal_places=4)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(ordered_qty__gt=0),
                name="po_line_ordered_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(received_qty__lte=models.F("ordered_qty")),
                name="po_line_no_over_receipt",
            ),
        ]

    def __str__(self):
        return f"{self.purchase_order_id} | {self.inventory_item_id} x {self.ordered_qty}"

    @property
    def line_total(self):
        return (self.ordered_qty * self.unit_cost).quantize(Decimal("0.01"))

    @property
    def outstanding_qty(self):
        return self.ordered_qty - self.received_qty

    def clean(self):
        if self.unit_cost is not None and self.unit_cost < 0:
            raise ValidationError("Unit cost cannot be negative")
        if self.ordered_qty is not None and self.ordered_qty <= 0:
            raise ValidationError("Ordered quantity must be > 0")


# ---------- Stock lots ----------
class StockLot(models.Model):
    """
    One row per line per delivery, for tracing material back to its supplier.
    Valuation stays weighted-average; quantity_remaining is drawn down
    oldest lot first as stock leaves.
    """

    inventory_item = models.ForeignKey(
        InventoryItem, on_delete=models.PROTECT, related_name="lots"
    )
    supplier = models.ForeignKey(
        Supplier, on_delete=models.PROTECT, related_name="lots"
    )
    purchase_line = models.ForeignKey(
        PurchaseLine, on_delete=models.PROTECT, related_name="lots"
    )
    lot_number = models.CharField(max_length=64)
    quantity_received = models.DecimalField(max_digits=14, decimal_places=4)
    quantity_remaining = models.DecimalField(max_digits=14, decimal_places=4)
    unit_cost = models.DecimalField(max_digits=18, decimal_places=4)
    received_at = models.DateTimeField()

    class Meta:
        ordering = ["received_at", "id"]
        indexes = [
            models.Index(fields=["inventory_item", "received_at"],
                         name="erp_lot_item_received_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity_received__gt=0),
                name="lot_received_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(quantity_remaining__gte=0)
                & models.Q(quantity_remaining__lte=models.F("quantity_received")),
                name="lot_remaining_within_received",
            ),
        ]

    def __str__(self):
        return f"{self.lot_number} | {self.inventory_item_id} x {self.quantity_remaining}"

    @property
    def is_depleted(self):
        return self.quantity_remaining <= 0
