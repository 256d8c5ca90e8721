"""
Chart of accounts: the well-known codes the workflows post to, the standard
chart seeded into a fresh database, and lookups from business vocabulary
(payment method, expense category) to ledger accounts.
"""
import logging

from django.db import transaction

from ..exceptions import MissingAccount
from ..models import (Account, AccountCategory, AccountType, ExpenseCategory,
                      PaymentMethod)

logger = logging.getLogger(__name__)

# ---------- Control accounts used by the workflows ----------
CASH = "1000"
BANK = "1100"
ACCOUNTS_RECEIVABLE = "1200"
INVENTORY_RAW = "1300"
FINISHED_GOODS = "1310"
WORK_IN_PROGRESS = "1350"
ACCOUNTS_PAYABLE = "2000"
CUSTOMER_DEPOSITS = "2300"
SALES_REVENUE = "4000"
COST_OF_GOODS_SOLD = "5000"
DIRECT_LABOR = "5200"
SALARIES_AND_WAGES = "6800"
MISC_EXPENSE = "6990"
ACCUMULATED_DEPRECIATION = "1410"

EXPENSE_ACCOUNT_CODES = {
    ExpenseCategory.RENT: "6000",
    ExpenseCategory.ELECTRICITY: "6100",
    ExpenseCategory.WATER: "6200",
    ExpenseCategory.INTERNET: "6300",
    ExpenseCategory.PHONE: "6300",
    ExpenseCategory.TRANSPORT: "6400",
    ExpenseCategory.FOOD: "6500",
    ExpenseCategory.OFFICE_SUPPLIES: "6600",
    ExpenseCategory.MAINTENANCE: "6700",
    ExpenseCategory.SALARIES: SALARIES_AND_WAGES,
    ExpenseCategory.MARKETING: "6900",
    ExpenseCategory.INSURANCE: "6950",
    ExpenseCategory.TAX: MISC_EXPENSE,
    ExpenseCategory.OTHER: MISC_EXPENSE,
}

# Credit-normal despite their type
CONTRA_CODES = frozenset({ACCUMULATED_DEPRECIATION})

# (code, name, type, category, parent code)
STANDARD_CHART = [
    # ASSETS (1000-1999)
    (CASH, "Cash on Hand", AccountType.ASSET, AccountCategory.CASH, None),
    (BANK, "Bank Account", AccountType.ASSET, AccountCategory.BANK, None),
    (ACCOUNTS_RECEIVABLE, "Accounts Receivable", AccountType.ASSET,
     AccountCategory.ACCOUNTS_RECEIVABLE, None),
    (INVENTORY_RAW, "Inventory - Raw Materials", AccountType.ASSET,
     AccountCategory.INVENTORY, None),
    (FINISHED_GOODS, "Inventory - Finished Goods", AccountType.ASSET,
     AccountCategory.INVENTORY, INVENTORY_RAW),
    (WORK_IN_PROGRESS, "Work in Progress", AccountType.ASSET,
     AccountCategory.WORK_IN_PROGRESS, INVENTORY_RAW),
    ("1400", "Equipment", AccountType.ASSET, AccountCategory.FIXED_ASSET, None),
    (ACCUMULATED_DEPRECIATION, "Accumulated Depreciation - Equipment", AccountType.ASSET,
     AccountCategory.FIXED_ASSET, "1400"),
    # LIABILITIES (2000-2999)
    (ACCOUNTS_PAYABLE, "Accounts Payable", AccountType.LIABILITY,
     AccountCategory.ACCOUNTS_PAYABLE, None),
    ("2100", "Short-term Loans", AccountType.LIABILITY,
     AccountCategory.SHORT_TERM_LOAN, None),
    ("2200", "Long-term Loans", AccountType.LIABILITY,
     AccountCategory.LONG_TERM_LOAN, None),
    (CUSTOMER_DEPOSITS, "Customer Deposits", AccountType.LIABILITY,
     AccountCategory.CUSTOMER_DEPOSITS, None),
    # EQUITY (3000-3999)
    ("3000", "Owner's Capital", AccountType.EQUITY, AccountCategory.OWNER_EQUITY, None),
    ("3100", "Retained Earnings", AccountType.EQUITY,
     AccountCategory.RETAINED_EARNINGS, None),
    # REVENUE (4000-4999)
    (SALES_REVENUE, "Sales Revenue - Custom Rugs", AccountType.REVENUE,
     AccountCategory.SALES, None),
    ("4100", "Service Revenue", AccountType.REVENUE,
     AccountCategory.SERVICE_REVENUE, None),
    # COST OF GOODS SOLD (5000-5999)
    (COST_OF_GOODS_SOLD, "Cost of Goods Sold", AccountType.COGS,
     AccountCategory.COST_OF_GOODS_SOLD, None),
    ("5100", "Raw Materials Used", AccountType.COGS,
     AccountCategory.COST_OF_GOODS_SOLD, COST_OF_GOODS_SOLD),
    (DIRECT_LABOR, "Direct Labor", AccountType.COGS,
     AccountCategory.COST_OF_GOODS_SOLD, COST_OF_GOODS_SOLD),
    # OPERATING EXPENSES (6000-6999)
    ("6000", "Rent Expense", AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSE, None),
    ("6100", "Electricity Expense", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6200", "Water Expense", AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSE, None),
    ("6300", "Internet & Phone Expense", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6400", "Transport Expense", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6500", "Food & Meals Expense", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6600", "Office Supplies Expense", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6700", "Maintenance & Repairs", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    (SALARIES_AND_WAGES, "Salaries & Wages", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6900", "Marketing & Advertising", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6950", "Insurance Expense", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    ("6980", "Depreciation Expense", AccountType.EXPENSE,
     AccountCategory.OPERATING_EXPENSE, None),
    (MISC_EXPENSE, "Miscellaneous Expense", AccountType.EXPENSE,
     AccountCategory.OTHER_EXPENSE, None),
]


def seed_chart():
    """
    Create the standard chart. Existing codes are left untouched,
    so running it twice is harmless. Returns the number of accounts created.
    """
    created = 0
    with transaction.atomic():
        for code, name, ac_type, category, parent_code in STANDARD_CHART:
            parent = Account.objects.get(code=parent_code) if parent_code else None
            _, was_created = Account.objects.get_or_create(
                code=code,
                defaults={
                    "name": name,
                    "ac_type": ac_type,
                    "category": category,
                    "parent": parent,
                    "is_contra": code in CONTRA_CODES,
                },
            )
            created += int(was_created)
    logger.info("Chart of accounts seeded: %d new account(s)", created)
    return created


def account_for(code):
    """Resolve a control account by code; it must exist."""
    try:
        return Account.objects.by_code(code)
    except Account.DoesNotExist:
        raise MissingAccount(
            f"Account {code} is not configured; run seed_chart_of_accounts."
        ) from None


def payment_account_code(method):
    # Cash goes to the till, everything else lands in the bank
    return CASH if method == PaymentMethod.CASH else BANK


def payment_account(method):
    return account_for(payment_account_code(method))


def expense_account_code(category):
    return EXPENSE_ACCOUNT_CODES.get(category, MISC_EXPENSE)


def expense_account(category):
    return account_for(expense_account_code(category))
