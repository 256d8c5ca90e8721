import datetime
from decimal import Decimal

from django.test import TestCase

from ..exceptions import InvalidVoidTarget, LedgerValidationError, NonPositiveAmount
from ..models import Expense
from ..services import chart
from ..services.expenses import record_expense, void_expense
from .factories import ErpTestMixin


class ExpenseTests(ErpTestMixin, TestCase):
    def setUp(self):
        self.seed()

    def test_cash_expense_posts_to_category_account(self):
        expense = record_expense(
            datetime.date(2025, 9, 1), "RENT", Decimal("500.00"), "cash",
            vendor_name="Landlord",
        )
        self.assertEqual(expense.reference, "EXP-000001")
        self.assertEqual(expense.account.code, "6000")
        self.assertEqual(expense.journal_entry.status, "POSTED")
        self.assertEqual(expense.journal_entry.entry_type, "EXPENSE")
        self.assertEqual(self.balance("6000"), Decimal("500.00"))
        # paid from the till
        self.assertEqual(self.balance(chart.CASH), Decimal("-500.00"))

    def test_non_cash_expense_is_paid_from_bank(self):
        record_expense(datetime.date(2025, 9, 2), "ELECTRICITY", "80", "mobile_money")
        self.assertEqual(self.balance(chart.BANK), Decimal("-80.00"))
        self.assertEqual(self.balance("6100"), Decimal("80.00"))

    def test_unmapped_category_falls_back_to_misc(self):
        expense = record_expense(datetime.date(2025, 9, 3), "TAX", "15", "bank_transfer")
        self.assertEqual(expense.account.code, chart.MISC_EXPENSE)

    def test_rejects_bad_input(self):
        with self.assertRaises(NonPositiveAmount):
            record_expense(datetime.date(2025, 9, 3), "RENT", "0", "cash")
        with self.assertRaises(LedgerValidationError):
            record_expense(datetime.date(2025, 9, 3), "HOLIDAY", "10", "cash")
        with self.assertRaises(LedgerValidationError):
            record_expense(datetime.date(2025, 9, 3), "RENT", "abc", "cash")
        self.assertFalse(Expense.objects.exists())

    def test_void_expense_reverses_balances(self):
        expense = record_expense(datetime.date(2025, 9, 4), "TRANSPORT", "25", "cash")
        void_expense(expense.pk)
        expense.journal_entry.refresh_from_db()
        self.assertEqual(expense.journal_entry.status, "VOID")
        self.assertEqual(self.balance("6400"), Decimal("0.00"))
        self.assertEqual(self.balance(chart.CASH), Decimal("0.00"))

        with self.assertRaises(InvalidVoidTarget):
            void_expense(expense.pk)
