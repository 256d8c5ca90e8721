from decimal import Decimal
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import AccountQuerySet


class AccountType(models.TextChoices):
    # Used to classify general ledger accounts
    ASSET = "ASSET", "Asset"
    LIABILITY = "LIABILITY", "Liability"
    EQUITY = "EQUITY", "Equity"
    REVENUE = "REVENUE", "Revenue"
    EXPENSE = "EXPENSE", "Expense"
    COGS = "COGS", "Cost of Goods Sold"


# Account types that normally increase on the debit side
DEBIT_NORMAL_TYPES = frozenset({
    AccountType.ASSET,
    AccountType.EXPENSE,
    AccountType.COGS,
})


class AccountCategory(models.TextChoices):
    CASH = "CASH", "Cash"
    BANK = "BANK", "Bank"
    ACCOUNTS_RECEIVABLE = "ACCOUNTS_RECEIVABLE", "Accounts Receivable"
    INVENTORY = "INVENTORY", "Inventory"
    WORK_IN_PROGRESS = "WORK_IN_PROGRESS", "Work in Progress"
    FIXED_ASSET = "FIXED_ASSET", "Fixed Asset"
    ACCOUNTS_PAYABLE = "ACCOUNTS_PAYABLE", "Accounts Payable"
    CUSTOMER_DEPOSITS = "CUSTOMER_DEPOSITS", "Customer Deposits"
    SHORT_TERM_LOAN = "SHORT_TERM_LOAN", "Short-term Loan"
    LONG_TERM_LOAN = "LONG_TERM_LOAN", "Long-term Loan"
    OWNER_EQUITY = "OWNER_EQUITY", "Owner Equity"
    RETAINED_EARNINGS = "RETAINED_EARNINGS", "Retained Earnings"
    SALES = "SALES", "Sales"
    SERVICE_REVENUE = "SERVICE_REVENUE", "Service Revenue"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD", "Cost of Goods Sold"
    OPERATING_EXPENSE = "OPERATING_EXPENSE", "Operating Expense"
    OTHER_EXPENSE = "OTHER_EXPENSE", "Other Expense"
    OTHER = "OTHER", "Other"


class Account(models.Model):
    """
    Ledger account in the Chart of Accounts.
    - code is unique and sorts accounts in reports
    - ac_type decides the sign convention (debit- or credit-normal)
    - balance is a running cache of posted lines, written only by the ledger service
    """

    # Every account has a code
    # which lets you sort/group accounts consistently in reports.
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(
        max_length=200
    )  # Human-readable name → "Cash on Hand", "Accounts Payable".

    ac_type = models.CharField(max_length=10, choices=AccountType.choices)
    category = models.CharField(
        max_length=32,
        choices=AccountCategory.choices,
        default=AccountCategory.OTHER,
    )

    # Optional hierarchy (e.g. 1300 Inventory → 1310 Finished Goods)
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        # you can’t delete a parent if children exist
        related_name="children",
    )

    # Signed running balance in the account's normal direction
    balance = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    description = models.TextField(blank=True, default="")

    # Contra accounts (accumulated depreciation) sit on the opposite side
    # of their type, e.g. a credit-balance asset
    is_contra = models.BooleanField(default=False)

    # “soft deactivate” accounts (stop new postings) without deleting history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = AccountQuerySet.as_manager()

    class Meta:
        ordering = ["code"]
        indexes = [
            # For reports grouped by ac_type (Trial Balance, P&L)
            models.Index(fields=["ac_type"], name="erp_account_type_idx"),
            models.Index(fields=["parent"], name="erp_account_parent_idx"),
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"  # Example: "1000 – Cash on Hand".

    @property
    def is_debit_normal(self):
        return (self.ac_type in DEBIT_NORMAL_TYPES) != self.is_contra

    def signed_effect(self, line_type, amount):
        """
        How much a DEBIT/CREDIT line of `amount` moves this account's balance.
        Debit-normal accounts grow with debits, credit-normal with credits.
        """
        from .journal import LineType

        grows = LineType.DEBIT if self.is_debit_normal else LineType.CREDIT
        return amount if line_type == grows else -amount

    def clean(self):
        # A parent must be a different account of the same type family
        if self.parent_id and self.parent_id == self.pk:
            raise ValidationError("An account cannot be its own parent.")
        if self.parent and self.parent.ac_type != self.ac_type:
            raise ValidationError(
                "Parent & child accounts must share the same account type."
            )

    def save(self, *args, **kwargs):
        """Enforce business immutability
        (can’t disable accounts used in journal lines)"""
        if not self.pk:
            # New object → no history to protect
            return super().save(*args, **kwargs)
        old = Account.objects.filter(pk=self.pk).first()

        # If account was active before, but now being set to inactive
        if old and old.is_active and not self.is_active:
            if self.lines.exists():
                raise ValidationError(
                    "Cannot disable an account that is used in journal lines."
                )
        return super().save(*args, **kwargs)
