from dataclasses import dataclass
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import JournalEntryLineQuerySet, JournalEntryQuerySet
from .account import Account


class EntryType(models.TextChoices):
    GENERAL = "GENERAL", "General"
    SALES = "SALES", "Sales"
    PURCHASE = "PURCHASE", "Purchase"
    PAYMENT = "PAYMENT", "Payment"
    RECEIPT = "RECEIPT", "Receipt"
    EXPENSE = "EXPENSE", "Expense"
    ADJUSTMENT = "ADJUSTMENT", "Adjustment"
    DEPRECIATION = "DEPRECIATION", "Depreciation"
    INVENTORY = "INVENTORY", "Inventory"


class EntryStatus(models.TextChoices):
    DRAFT = "DRAFT", "Draft"  # created & balanced, no effect on balances yet
    POSTED = "POSTED", "Posted"  # applied to account balances
    VOID = "VOID", "Void"  # reversed, kept for audit


class LineType(models.TextChoices):
    DEBIT = "DEBIT", "Debit"
    CREDIT = "CREDIT", "Credit"


class SourceKind(models.TextChoices):
    ORDER = "ORDER", "Order"
    PURCHASE_ORDER = "PURCHASE_ORDER", "Purchase Order"
    PRODUCTION_JOB = "PRODUCTION_JOB", "Production Job"
    EXPENSE = "EXPENSE", "Expense"


@dataclass(frozen=True)
class EntrySource:
    """
    Weak back-reference from a journal entry to the business object
    that caused it. Lookup only, never an ownership edge.
    """

    kind: str
    pk: int

    def __post_init__(self):
        if self.kind not in SourceKind.values:
            raise ValueError(f"Unknown journal source kind: {self.kind}")

    @classmethod
    def order(cls, pk):
        return cls(SourceKind.ORDER, pk)

    @classmethod
    def purchase_order(cls, pk):
        return cls(SourceKind.PURCHASE_ORDER, pk)

    @classmethod
    def production_job(cls, pk):
        return cls(SourceKind.PRODUCTION_JOB, pk)

    @classmethod
    def expense(cls, pk):
        return cls(SourceKind.EXPENSE, pk)

    def resolve(self):
        """Load the referenced object (or None if it no longer exists)."""
        from django.apps import apps

        model_name = {
            SourceKind.ORDER: "Order",
            SourceKind.PURCHASE_ORDER: "PurchaseOrder",
            SourceKind.PRODUCTION_JOB: "ProductionJob",
            SourceKind.EXPENSE: "Expense",
        }[self.kind]
        model = apps.get_model("erp_core", model_name)
        return model.objects.filter(pk=self.pk).first()


# ---------- Journal (Header) & JournalEntryLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    reference = models.CharField(max_length=32, unique=True)
    entry_type = models.CharField(
        max_length=16, choices=EntryType.choices, default=EntryType.GENERAL
    )
    status = models.CharField(
        max_length=8, choices=EntryStatus.choices, default=EntryStatus.DRAFT
    )
    transaction_date = models.DateField()
    description = models.TextField(blank=True, default="")

    # optional polymorphic source info (order, purchase, job, expense)
    # read & written through the `source` property as an EntrySource
    source_type = models.CharField(
        max_length=20, choices=SourceKind.choices, null=True, blank=True
    )
    source_id = models.BigIntegerField(null=True, blank=True)

    posted_at = models.DateTimeField(null=True, blank=True)
    voided_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = JournalEntryQuerySet.as_manager()

    class Meta:
        ordering = ["-transaction_date", "-id"]
        verbose_name_plural = "journal entries"
        indexes = [
            models.Index(fields=["transaction_date"], name="erp_je_date_idx"),
            models.Index(fields=["status"], name="erp_je_status_idx"),
            models.Index(fields=["source_type", "source_id"], name="erp_je_source_idx"),
        ]
        constraints = [
            # Source is all-or-nothing
            models.CheckConstraint(
                condition=(
                    models.Q(source_type__isnull=True, source_id__isnull=True) |
                    models.Q(source_type__isnull=False, source_id__isnull=False)
                ),
                name="je_source_pair_complete",
            ),
        ]

    def __str__(self):
        return f"{self.reference} {self.transaction_date} [{self.status}]"

    @property
    def source(self):
        if self.source_type is None:
            return None
        return EntrySource(self.source_type, self.source_id)

    @source.setter
    def source(self, value):
        if value is None:
            self.source_type, self.source_id = None, None
        else:
            self.source_type, self.source_id = value.kind, value.pk

    # Aggregate all debit and credit amounts across entry’s lines
    def compute_totals(self):
        """Return (debits, credits) sums for lines"""
        debit = credit = Decimal("0.00")
        for line in self.lines.all():
            if line.line_type == LineType.DEBIT:
                debit += line.amount
            else:
                credit += line.amount
        return debit, credit

    def is_balanced(self):
        debit, credit = self.compute_totals()
        return abs(debit - credit) <= settings.ERP_BALANCE_TOLERANCE

    @property
    def is_posted(self):
        return self.status == EntryStatus.POSTED

    @property
    def total_amount(self):
        return self.compute_totals()[0]

    def save(self, *args, **kwargs):
        if self.pk:
            orig = JournalEntry.objects.filter(pk=self.pk).values(
                "status").first()
            # Status only ever moves forward: DRAFT → POSTED → VOID
            if orig:
                order = [EntryStatus.DRAFT, EntryStatus.POSTED, EntryStatus.VOID]
                if order.index(self.status) < order.index(orig["status"]):
                    raise ValidationError(
                        f"Cannot move journal {self.reference} "
                        f"from {orig['status']} back to {self.status}"
                    )
        super().save(*args, **kwargs)


class JournalEntryLine(models.Model):  # Stores one debit or credit
    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    # Must point to one Account (can’t delete account if lines exist → PROTECT)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="lines"
    )
    line_type = models.CharField(max_length=6, choices=LineType.choices)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    memo = models.CharField(max_length=400, blank=True, default="")

    objects = JournalEntryLineQuerySet.as_manager()

    class Meta:
        ordering = ["id"]
        indexes = [
            models.Index(fields=["account"], name="erp_jel_account_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="jel_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.entry_id} | {self.account.code} | {self.line_type} {self.amount}"

    @property
    def signed_effect(self):
        """Balance movement this line causes on its account when posted."""
        return self.account.signed_effect(self.line_type, self.amount)

    def clean(self):
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Journal line amount must be > 0")

        # Lines of a posted/void journal are frozen
        if self.entry_id:
            frozen = JournalEntry.objects.filter(
                pk=self.entry_id
            ).exclude(status=EntryStatus.DRAFT).exists()
            if frozen:
                raise ValidationError(
                    "Cannot add or modify lines: parent journal entry is not a draft."
                )

    def save(self, *args, **kwargs):
        # clean()+field validation always run whenever
        # you save a JournalEntryLine programmatically
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        if JournalEntry.objects.filter(pk=self.entry_id).exclude(
            status=EntryStatus.DRAFT
        ).exists():
            raise ValidationError(
                "Cannot delete line: parent journal entry is not a draft."
            )
        return super().delete(*args, **kwargs)
