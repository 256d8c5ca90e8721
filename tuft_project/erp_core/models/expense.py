from django.conf import settings
from django.db import models
from .account import Account
from .journal import JournalEntry
from .order import PaymentMethod


class ExpenseCategory(models.TextChoices):
    RENT = "RENT", "Rent"
    ELECTRICITY = "ELECTRICITY", "Electricity"
    WATER = "WATER", "Water"
    INTERNET = "INTERNET", "Internet"
    PHONE = "PHONE", "Phone"
    TRANSPORT = "TRANSPORT", "Transport"
    FOOD = "FOOD", "Food"
    OFFICE_SUPPLIES = "OFFICE_SUPPLIES", "Office Supplies"
    MAINTENANCE = "MAINTENANCE", "Maintenance"
    SALARIES = "SALARIES", "Salaries"
    MARKETING = "MARKETING", "Marketing"
    INSURANCE = "INSURANCE", "Insurance"
    TAX = "TAX", "Tax"
    OTHER = "OTHER", "Other"


# ---------- Operating expenses ----------
class Expense(models.Model):  # One paid overhead cost (rent, power, fuel...)
    reference = models.CharField(max_length=32, unique=True)
    expense_date = models.DateField()
    category = models.CharField(max_length=20, choices=ExpenseCategory.choices)
    # expense account the category resolved to
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="expenses"
    )
    vendor_name = models.CharField(max_length=200, blank=True, default="")
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices)
    receipt_number = models.CharField(max_length=64, blank=True, default="")
    description = models.TextField(blank=True, default="")
    journal_entry = models.OneToOneField(
        JournalEntry,
        null=True, blank=True,
        on_delete=models.PROTECT,
        related_name="expense",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-expense_date", "-id"]
        indexes = [models.Index(fields=["category", "expense_date"], name="erp_expense_cat_date_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="expense_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.reference} {self.category} {self.amount}"
