import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction

from ..exceptions import LedgerValidationError, NonPositiveAmount
from ..models import (EntrySource, EntryType, Expense, ExpenseCategory,
                      LineType, PaymentMethod)
from . import chart, ledger
from .audit_helper import log_action
from .locking import lock_one
from .references import get_generator, save_with_reference

logger = logging.getLogger(__name__)


def record_expense(expense_date, category, amount, payment_method,
                   vendor_name="", receipt_number="", description="", user=None):
    """
    Record a paid overhead cost and post it straight away:
      Debit:  expense account for the category (6000-6990)
      Credit: Cash 1000 or Bank 1100 depending on how it was paid
    """
    if category not in ExpenseCategory.values:
        raise LedgerValidationError(f"Unknown expense category {category!r}")
    if payment_method not in PaymentMethod.values:
        raise LedgerValidationError(f"Unknown payment method {payment_method!r}")
    try:
        amount = Decimal(str(amount)).quantize(Decimal("0.01"))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid amount: {amount!r}") from None
    if amount <= 0:
        raise NonPositiveAmount("Expense amount must be > 0")

    expense_account = chart.expense_account(category)
    paid_from = chart.payment_account(payment_method)
    refs = get_generator()

    with transaction.atomic():
        expense = save_with_reference(Expense(
            expense_date=expense_date or refs.today(),
            category=category,
            account=expense_account,
            vendor_name=vendor_name,
            amount=amount,
            payment_method=payment_method,
            receipt_number=receipt_number,
            description=description,
            created_by=user,
        ), refs.expense)
        label = description or f"{expense.get_category_display()} expense"
        je = ledger.create_and_post(
            EntryType.EXPENSE,
            expense.expense_date,
            f"{expense.reference}: {label}",
            [
                {"account": expense_account, "line_type": LineType.DEBIT,
                 "amount": amount, "memo": vendor_name},
                {"account": paid_from, "line_type": LineType.CREDIT,
                 "amount": amount, "memo": expense.reference},
            ],
            source=EntrySource.expense(expense.pk),
            user=user,
        )
        expense.journal_entry = je
        expense.save(update_fields=["journal_entry"])
        log_action(action="create", instance=expense, user=user,
                   changes={"amount": str(amount), "category": category})
    logger.info("Expense %s %s %s", expense.reference, category, amount)
    return expense


def void_expense(expense_id, user=None):
    """Reverse the expense's posting; the expense row stays for reference."""
    with transaction.atomic():
        expense = lock_one(Expense, expense_id)
        if expense.journal_entry_id is None:
            raise LedgerValidationError(
                f"Expense {expense.reference} has no journal entry to void."
            )
        ledger.void_entry(expense.journal_entry_id, user=user)
        log_action(action="void", instance=expense, user=user)
    logger.info("Voided expense %s", expense.reference)
    return expense
