from decimal import Decimal
from django.db import models
from ..managers import InventoryItemQuerySet
from .journal import SourceKind


class ItemType(models.TextChoices):
    RAW_MATERIAL = "RAW_MATERIAL", "Raw Material"  # yarn, backing cloth, glue
    CONSUMABLE = "CONSUMABLE", "Consumable"
    FINISHED_GOOD = "FINISHED_GOOD", "Finished Good"


class MovementType(models.TextChoices):
    RECEIPT = "RECEIPT", "Receipt"  # stock in at a cost (purchase receipt)
    CONSUMPTION = "CONSUMPTION", "Consumption"  # stock out at average cost
    REVERSAL = "REVERSAL", "Reversal"  # consumption undone, stock back in
    ADJUSTMENT = "ADJUSTMENT", "Adjustment"  # stock count correction


# ---------- Inventory (stock + weighted-average cost) ----------
class InventoryItem(models.Model):
    """
    One stocked SKU.
    current_stock & average_cost are caches owned by services.inventory;
    the movement rows in InventoryTransaction are the history behind them.
    """

    sku = models.CharField(max_length=80, unique=True)
    name = models.CharField(max_length=200)
    item_type = models.CharField(
        max_length=16, choices=ItemType.choices, default=ItemType.RAW_MATERIAL
    )
    unit = models.CharField(max_length=16, default="kg")  # kg, m, roll, pcs

    # Fractional stock is allowed (e.g. 2.5 kg of yarn)
    current_stock = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    average_cost = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0")
    )
    reorder_point = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("0")
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = InventoryItemQuerySet.as_manager()

    class Meta:
        ordering = ["sku"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(average_cost__gte=0),
                name="inv_item_average_cost_non_negative",
            ),
            # Reject-only policy: no backorders
            models.CheckConstraint(
                condition=models.Q(current_stock__gte=0),
                name="inv_item_stock_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.sku} – {self.name}"

    @property
    def stock_value(self):
        return (self.current_stock * self.average_cost).quantize(Decimal("0.01"))

    @property
    def needs_reorder(self):
        return self.current_stock <= self.reorder_point


class InventoryTransaction(models.Model):
    """Movement ledger: one row per applied stock change."""

    item = models.ForeignKey(
        InventoryItem, on_delete=models.PROTECT, related_name="movements"
    )
    movement = models.CharField(max_length=12, choices=MovementType.choices)
    # Signed: positive adds stock, negative removes it
    quantity_change = models.DecimalField(max_digits=14, decimal_places=4)
    unit_cost_before = models.DecimalField(max_digits=18, decimal_places=4)
    unit_cost_after = models.DecimalField(max_digits=18, decimal_places=4)
    # Cost of the moved quantity (receipt value or consumption cost)
    value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    source_type = models.CharField(
        max_length=20, choices=SourceKind.choices, null=True, blank=True
    )
    source_id = models.BigIntegerField(null=True, blank=True)
    notes = models.CharField(max_length=400, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["item", "created_at"], name="erp_invtx_item_idx"),
            models.Index(fields=["source_type", "source_id"], name="erp_invtx_source_idx"),
        ]

    def __str__(self):
        return f"{self.item_id} {self.movement} {self.quantity_change}"
