from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Sum
from ..lifecycles import OrderState
from .journal import JournalEntry


# ---------- Clients ----------
class Client(models.Model):  # Customer placing rug orders
    full_name = models.CharField(max_length=200)
    phone = models.CharField(max_length=40, unique=True)
    nickname = models.CharField(max_length=100, blank=True, default="")
    address = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["full_name"]

    def __str__(self):
        return f"{self.full_name} ({self.phone})"


class DimensionUnit(models.TextChoices):
    CM = "cm", "Centimetres"
    M = "m", "Metres"
    IN = "in", "Inches"
    FT = "ft", "Feet"


# How many centimetres one unit is worth
CM_PER_UNIT = {
    DimensionUnit.CM: Decimal("1"),
    DimensionUnit.M: Decimal("100"),
    DimensionUnit.IN: Decimal("2.54"),
    DimensionUnit.FT: Decimal("30.48"),
}


def to_cm(value, unit):
    return Decimal(value) * CM_PER_UNIT[DimensionUnit(unit)]


class PaymentMethod(models.TextChoices):
    CASH = "cash", "Cash"
    BANK_TRANSFER = "bank_transfer", "Bank Transfer"
    MOBILE_MONEY = "mobile_money", "Mobile Money"
    CARD = "card", "Card"


class PaymentKind(models.TextChoices):
    DEPOSIT = "deposit", "Deposit"
    BALANCE = "balance", "Balance"


# ---------- Orders ----------
class Order(models.Model):
    """
    Client order for one or more rugs.
    state only moves through services.orders (ORDER_LIFECYCLE).
    balance_due is derived from payments, never stored.
    """

    reference = models.CharField(max_length=32, unique=True)
    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="orders"
    )
    state = models.CharField(
        max_length=20, choices=OrderState.choices, default=OrderState.DRAFT
    )
    deposit_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("30.00")
    )
    # Σ item planned prices, refreshed whenever items change
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    notes = models.TextField(blank=True, default="")
    delivery_address = models.TextField(blank=True, default="")
    delivery_contact = models.CharField(max_length=100, blank=True, default="")
    dispatched_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["state"], name="erp_order_state_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(deposit_percent__gte=0, deposit_percent__lte=100),
                name="order_deposit_percent_range",
            ),
        ]

    def __str__(self):
        return f"{self.reference} [{self.state}]"

    @property
    def deposit_required_amount(self):
        return (self.total_amount * self.deposit_percent / Decimal("100")).quantize(
            Decimal("0.01")
        )

    @property
    def amount_paid(self):
        return self.payments.aggregate(s=Sum("amount"))["s"] or Decimal("0.00")

    @property
    def balance_due(self):
        return self.total_amount - self.amount_paid

    @property
    def deposit_met(self):
        return self.total_amount > 0 and self.amount_paid >= self.deposit_required_amount

    def recalc_total(self):
        self.total_amount = self.items.aggregate(
            s=Sum("planned_price"))["s"] or Decimal("0.00")
        return self.total_amount


class OrderItem(models.Model):  # One rug on the order
    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name="items"
    )
    sku = models.CharField(max_length=80, blank=True, default="")
    description = models.CharField(max_length=400, blank=True, default="")
    quantity = models.PositiveIntegerField(default=1)
    width = models.DecimalField(max_digits=10, decimal_places=2)
    height = models.DecimalField(max_digits=10, decimal_places=2)
    unit = models.CharField(
        max_length=2, choices=DimensionUnit.choices, default=DimensionUnit.CM
    )
    # Square metres, recomputed from width x height on every save
    area = models.DecimalField(
        max_digits=12, decimal_places=4, default=Decimal("0")
    )
    planned_price = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.order_id} | {self.description or self.sku}"

    def compute_area(self):
        width_cm = to_cm(self.width, self.unit)
        height_cm = to_cm(self.height, self.unit)
        return (width_cm * height_cm / Decimal("10000")).quantize(Decimal("0.0001"))

    def clean(self):
        if self.width is not None and self.width <= 0:
            raise ValidationError("Width must be > 0")
        if self.height is not None and self.height <= 0:
            raise ValidationError("Height must be > 0")
        if self.planned_price is not None and self.planned_price < 0:
            raise ValidationError("Planned price cannot be negative")

    def save(self, *args, **kwargs):
        self.full_clean()
        self.area = self.compute_area()
        return super().save(*args, **kwargs)


class Payment(models.Model):  # Money received against an order
    order = models.ForeignKey(
        Order, on_delete=models.PROTECT, related_name="payments"
    )
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    method = models.CharField(max_length=16, choices=PaymentMethod.choices)
    kind = models.CharField(max_length=8, choices=PaymentKind.choices)
    reference = models.CharField(max_length=64, blank=True, default="")
    paid_at = models.DateTimeField()
    # RECEIPT entry that recorded this payment in the ledger
    journal_entry = models.OneToOneField(
        JournalEntry,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="payment",
    )
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["paid_at", "id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.order_id} {self.kind} {self.amount}"


class DispatchStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    IN_TRANSIT = "IN_TRANSIT", "In Transit"
    DELIVERED = "DELIVERED", "Delivered"
    RETURNED = "RETURNED", "Returned"


class Dispatch(models.Model):  # Shipment of a dispatched order
    order = models.OneToOneField(
        Order, on_delete=models.PROTECT, related_name="dispatch"
    )
    carrier = models.CharField(max_length=120, blank=True, default="")
    shipment_reference = models.CharField(max_length=120, blank=True, default="")
    status = models.CharField(
        max_length=12, choices=DispatchStatus.choices, default=DispatchStatus.PENDING
    )
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["status"], name="erp_dispatch_status_idx")]

    def __str__(self):
        return f"{self.order_id} {self.carrier} [{self.status}]"

    @property
    def is_delivered(self):
        return self.status == DispatchStatus.DELIVERED and self.delivered_at is not None
