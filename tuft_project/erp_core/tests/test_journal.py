import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ..exceptions import (AlreadyPosted, ConcurrentWriteConflict, EmptyEntry,
                          HasChildren, HasJournalLines, ImbalancedEntry,
                          InactiveAccount, InvalidVoidTarget, MissingAccount)
from ..models import Account, AuditLog, EntrySource, JournalEntry
from ..services import chart
from ..services.ledger import (create_and_post, create_entry, delete_account,
                               post_entry, recompute_account_balance,
                               trial_balance, void_entry)
from ..services.references import ReferenceGenerator, use_generator
from .factories import ErpTestMixin

TODAY = datetime.date(2025, 9, 18)


class JournalPostingTests(ErpTestMixin, TestCase):
    def setUp(self):
        self.seed()

    def cash_sale(self, amount="100.00"):
        return [
            {"account_code": chart.CASH, "line_type": "DEBIT", "amount": Decimal(amount)},
            {"account_code": chart.SALES_REVENUE, "line_type": "CREDIT", "amount": Decimal(amount)},
        ]

    def test_draft_has_no_effect_until_posted(self):
        je = create_entry("SALES", TODAY, "Cash sale", self.cash_sale())
        self.assertEqual(je.status, "DRAFT")
        self.assertEqual(je.lines.count(), 2)
        self.assertEqual(self.balance(chart.CASH), Decimal("0.00"))

        post_entry(je.pk)
        je.refresh_from_db()
        self.assertEqual(je.status, "POSTED")
        self.assertIsNotNone(je.posted_at)
        # debit-normal asset and credit-normal revenue both grow
        self.assertEqual(self.balance(chart.CASH), Decimal("100.00"))
        self.assertEqual(self.balance(chart.SALES_REVENUE), Decimal("100.00"))

    def test_void_reverses_posting(self):
        je = create_and_post("SALES", TODAY, "Cash sale", self.cash_sale("40.00"))
        void_entry(je.pk)
        je.refresh_from_db()
        self.assertEqual(je.status, "VOID")
        self.assertEqual(self.balance(chart.CASH), Decimal("0.00"))
        self.assertEqual(self.balance(chart.SALES_REVENUE), Decimal("0.00"))
        # lines are kept for audit
        self.assertEqual(je.lines.count(), 2)

    def test_imbalanced_entry_is_rejected(self):
        lines = self.cash_sale()
        lines[1]["amount"] = Decimal("99.00")
        with self.assertRaises(ImbalancedEntry):
            create_entry("SALES", TODAY, "Broken", lines)
        self.assertFalse(JournalEntry.objects.exists())

    def test_difference_within_tolerance_is_accepted(self):
        lines = self.cash_sale()
        lines[1]["amount"] = Decimal("99.99")
        je = create_entry("SALES", TODAY, "Rounding", lines)
        self.assertEqual(je.status, "DRAFT")

    def test_single_line_or_zero_amount_is_empty(self):
        with self.assertRaises(EmptyEntry):
            create_entry("GENERAL", TODAY, "One line", self.cash_sale()[:1])
        with self.assertRaises(EmptyEntry):
            create_entry("GENERAL", TODAY, "Zero", self.cash_sale("0.00"))
        # validation errors are ValidationErrors for callers
        with self.assertRaises(ValidationError):
            create_entry("GENERAL", TODAY, "None", [])

    def test_posting_twice_is_rejected(self):
        je = create_and_post("SALES", TODAY, "Cash sale", self.cash_sale())
        with self.assertRaises(AlreadyPosted):
            post_entry(je.pk)
        self.assertEqual(self.balance(chart.CASH), Decimal("100.00"))

    def test_only_posted_entries_can_be_voided(self):
        draft = create_entry("SALES", TODAY, "Cash sale", self.cash_sale())
        with self.assertRaises(InvalidVoidTarget):
            void_entry(draft.pk)

        posted = create_and_post("SALES", TODAY, "Cash sale", self.cash_sale())
        void_entry(posted.pk)
        with self.assertRaises(InvalidVoidTarget):
            void_entry(posted.pk)

    def test_inactive_account_rejects_new_lines(self):
        Account.objects.filter(code=chart.BANK).update(is_active=False)
        lines = self.cash_sale()
        lines[0]["account_code"] = chart.BANK
        with self.assertRaises(InactiveAccount):
            create_entry("SALES", TODAY, "Bank sale", lines)

    def test_unknown_account_code(self):
        lines = self.cash_sale()
        lines[0]["account_code"] = "9999"
        with self.assertRaises(MissingAccount):
            create_entry("SALES", TODAY, "Nowhere", lines)

    def test_cached_balance_matches_posted_lines(self):
        create_and_post("SALES", TODAY, "A", self.cash_sale("100.00"))
        voided = create_and_post("SALES", TODAY, "B", self.cash_sale("30.00"))
        create_and_post("SALES", TODAY, "C", self.cash_sale("12.50"))
        void_entry(voided.pk)
        # drafts never count
        create_entry("SALES", TODAY, "D", self.cash_sale("999.00"))

        for code in (chart.CASH, chart.SALES_REVENUE):
            account = self.account(code)
            self.assertEqual(recompute_account_balance(account), account.balance)
            self.assertEqual(account.balance, Decimal("112.50"))

    def test_posting_writes_audit_log(self):
        je = create_and_post("SALES", TODAY, "Cash sale", self.cash_sale())
        log = AuditLog.objects.get(object_type="JournalEntry", object_id=str(je.pk))
        self.assertEqual(log.action, "post")

    def test_source_round_trip(self):
        source = EntrySource.order(42)
        je = create_entry("SALES", TODAY, "Linked", self.cash_sale(), source=source)
        je.refresh_from_db()
        self.assertEqual(je.source, source)
        self.assertEqual(list(JournalEntry.objects.for_source(source)), [je])

    def test_references_are_sequential(self):
        first = create_entry("GENERAL", TODAY, "1", self.cash_sale())
        second = create_entry("GENERAL", TODAY, "2", self.cash_sale())
        self.assertEqual(first.reference, "JE-000001")
        self.assertEqual(second.reference, "JE-000002")

    def test_missing_date_uses_generator_clock(self):
        pinned = datetime.datetime(2024, 1, 5, 10, 0, tzinfo=datetime.timezone.utc)
        with use_generator(ReferenceGenerator(clock=lambda: pinned)):
            je = create_entry("GENERAL", None, "Undated", self.cash_sale())
        self.assertEqual(je.transaction_date, datetime.date(2024, 1, 5))

    def test_numbering_continues_past_six_digits(self):
        JournalEntry.objects.create(reference="JE-999999", transaction_date=TODAY)
        first = create_entry("GENERAL", TODAY, "1", self.cash_sale())
        second = create_entry("GENERAL", TODAY, "2", self.cash_sale())
        self.assertEqual(first.reference, "JE-1000000")
        self.assertEqual(second.reference, "JE-1000001")

    def test_reference_taken_by_another_writer(self):
        class StaleGenerator(ReferenceGenerator):
            # read the highest number before the other writer inserted
            def journal(self):
                return "JE-000001"

        create_entry("GENERAL", TODAY, "Winner", self.cash_sale())
        with use_generator(StaleGenerator()):
            with self.assertRaises(ConcurrentWriteConflict):
                create_and_post("GENERAL", TODAY, "Loser", self.cash_sale())
        self.assertEqual(JournalEntry.objects.count(), 1)
        self.assertEqual(self.balance(chart.CASH), Decimal("0.00"))


class AccountMaintenanceTests(ErpTestMixin, TestCase):
    def setUp(self):
        self.seed()

    def test_seed_is_idempotent(self):
        self.assertEqual(chart.seed_chart(), 0)
        self.assertEqual(self.account(chart.FINISHED_GOODS).parent.code, chart.INVENTORY_RAW)

    def test_delete_account_guards(self):
        with self.assertRaises(HasChildren):
            delete_account(self.account(chart.INVENTORY_RAW).pk)

        create_and_post("GENERAL", TODAY, "Opening cash", [
            {"account_code": chart.CASH, "line_type": "DEBIT", "amount": Decimal("10")},
            {"account_code": "3000", "line_type": "CREDIT", "amount": Decimal("10")},
        ])
        with self.assertRaises(HasJournalLines):
            delete_account(self.account(chart.CASH).pk)

        unused = self.account("2200")
        delete_account(unused.pk)
        self.assertFalse(Account.objects.filter(code="2200").exists())

    def test_used_account_cannot_be_deactivated(self):
        create_and_post("GENERAL", TODAY, "Opening cash", [
            {"account_code": chart.CASH, "line_type": "DEBIT", "amount": Decimal("10")},
            {"account_code": "3000", "line_type": "CREDIT", "amount": Decimal("10")},
        ])
        cash = self.account(chart.CASH)
        cash.is_active = False
        with self.assertRaises(ValidationError):
            cash.save()

    def test_trial_balance_is_balanced(self):
        create_and_post("GENERAL", TODAY, "Capital", [
            {"account_code": chart.BANK, "line_type": "DEBIT", "amount": Decimal("1000")},
            {"account_code": "3000", "line_type": "CREDIT", "amount": Decimal("1000")},
        ])
        create_and_post("EXPENSE", TODAY, "Rent", [
            {"account_code": "6000", "line_type": "DEBIT", "amount": Decimal("250")},
            {"account_code": chart.BANK, "line_type": "CREDIT", "amount": Decimal("250")},
        ])
        tb = trial_balance()
        self.assertTrue(tb.is_balanced)
        self.assertEqual(tb.total_debit, Decimal("1000.00"))
        rows = {row.code: row for row in tb.rows}
        self.assertEqual(rows[chart.BANK].debit, Decimal("750.00"))
        self.assertEqual(rows["3000"].credit, Decimal("1000.00"))
        self.assertEqual(rows["6000"].debit, Decimal("250.00"))

    def test_accumulated_depreciation_is_credit_normal(self):
        create_and_post("DEPRECIATION", TODAY, "Tufting gun depreciation", [
            {"account_code": "6980", "line_type": "DEBIT", "amount": Decimal("100")},
            {"account_code": chart.ACCUMULATED_DEPRECIATION, "line_type": "CREDIT",
             "amount": Decimal("100")},
        ])
        contra = self.account(chart.ACCUMULATED_DEPRECIATION)
        self.assertTrue(contra.is_contra)
        self.assertFalse(contra.is_debit_normal)
        self.assertEqual(contra.balance, Decimal("100.00"))
        self.assertEqual(recompute_account_balance(contra), contra.balance)

        rows = {row.code: row for row in trial_balance().rows}
        self.assertEqual(rows[chart.ACCUMULATED_DEPRECIATION].credit, Decimal("100.00"))
