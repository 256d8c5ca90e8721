"""
Ledger engine: the only code that changes Account.balance.

  create_entry  → DRAFT entry, balanced & validated, no balance effect
  post_entry    → DRAFT → POSTED, applies every line to its account
  void_entry    → POSTED → VOID, applies the exact negation

Lines are passed as dicts:
    {"account": <Account | pk> or "account_code": "1000",
     "line_type": "DEBIT" | "CREDIT", "amount": Decimal, "memo": str}
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q, Sum

from ..exceptions import (AlreadyPosted, AlreadyVoid, EmptyEntry, HasChildren,
                          HasJournalLines, ImbalancedEntry, InactiveAccount,
                          InvalidVoidTarget, LedgerValidationError,
                          MissingAccount)
from ..models import (Account, EntryStatus, EntryType, JournalEntry,
                      JournalEntryLine, LineType)
from .audit_helper import log_action
from .locking import lock_many, lock_one
from .references import get_generator, save_with_reference

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _tolerance():
    return settings.ERP_BALANCE_TOLERANCE


def _to_money(value):
    try:
        return Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid amount: {value!r}") from None


# ----------------------------
# Line preparation
# ----------------------------
def _resolve_account(data):
    account = data.get("account")
    code = data.get("account_code")
    if isinstance(account, Account):
        return account
    try:
        if account is not None:
            return Account.objects.get(pk=account)
        if code is not None:
            return Account.objects.by_code(code)
    except Account.DoesNotExist:
        raise MissingAccount(f"Account {account or code} does not exist") from None
    raise LedgerValidationError("Each journal line needs an account")


def _prepare_lines(lines):
    """Validate raw line dicts; return [(account, line_type, amount, memo)]."""
    lines = list(lines or [])
    if len(lines) < 2:
        raise EmptyEntry("A journal entry needs at least two lines.")

    prepared = []
    for data in lines:
        line_type = str(data.get("line_type", "")).upper()
        if line_type not in LineType.values:
            raise LedgerValidationError(
                f"Line type must be DEBIT or CREDIT, got {data.get('line_type')!r}"
            )
        amount = _to_money(data.get("amount"))
        if amount <= 0:
            raise EmptyEntry("Every journal line amount must be > 0.")
        account = _resolve_account(data)
        if not account.is_active:
            raise InactiveAccount(f"Account {account.code} is inactive.")
        prepared.append((account, line_type, amount, data.get("memo", "") or ""))
    return prepared


def _check_balanced(debit, credit):
    if abs(debit - credit) > _tolerance():
        raise ImbalancedEntry(
            f"Entry is not balanced: debits {debit} vs credits {credit}."
        )


# ----------------------------
# Journal workflows
# ----------------------------
def create_entry(entry_type, transaction_date, description, lines,
                 source=None, user=None):
    """Create a balanced DRAFT entry. Nothing touches account balances yet."""
    if entry_type not in EntryType.values:
        raise LedgerValidationError(f"Unknown entry type {entry_type!r}")

    prepared = _prepare_lines(lines)
    debit = sum((a for _, t, a, _ in prepared if t == LineType.DEBIT), Decimal("0"))
    credit = sum((a for _, t, a, _ in prepared if t == LineType.CREDIT), Decimal("0"))
    _check_balanced(debit, credit)

    refs = get_generator()
    with transaction.atomic():
        je = JournalEntry(
            entry_type=entry_type,
            status=EntryStatus.DRAFT,
            transaction_date=transaction_date or refs.today(),
            description=description or "",
            created_by=user,
        )
        je.source = source
        save_with_reference(je, refs.journal)
        for account, line_type, amount, memo in prepared:
            JournalEntryLine.objects.create(
                entry=je,
                account=account,
                line_type=line_type,
                amount=amount,
                memo=memo,
            )
    logger.debug("Created draft %s (%s) for %s", je.reference, entry_type, debit)
    return je


def _apply_lines(lines, direction):
    """
    Move account balances by each line's signed effect (direction=+1 to post,
    -1 to void). Account rows are locked in pk order first.
    """
    accounts = lock_many(Account, [line.account_id for line in lines])
    deltas = defaultdict(Decimal)
    for line in lines:
        account = accounts[line.account_id]
        deltas[account.pk] += account.signed_effect(line.line_type, line.amount)

    for pk, delta in deltas.items():
        if direction > 0 and not accounts[pk].is_active:
            raise InactiveAccount(f"Account {accounts[pk].code} is inactive.")
        # F() keeps the update relative to the locked row
        Account.objects.filter(pk=pk).update(balance=F("balance") + delta * direction)
    return deltas


def post_entry(entry_id, user=None):
    """DRAFT → POSTED; entry & balances change together or not at all."""
    with transaction.atomic():
        # Lock the row to avoid two concurrent posts of one entry
        je = lock_one(JournalEntry, entry_id)
        if je.status == EntryStatus.POSTED:
            raise AlreadyPosted(f"Journal {je.reference} is already posted.")
        if je.status == EntryStatus.VOID:
            raise AlreadyVoid(f"Journal {je.reference} is void.")

        lines = list(je.lines.all())
        if len(lines) < 2:
            raise EmptyEntry(f"Journal {je.reference} has fewer than two lines.")
        debit, credit = je.compute_totals()
        _check_balanced(debit, credit)

        _apply_lines(lines, +1)

        je.status = EntryStatus.POSTED
        je.posted_at = get_generator().now()
        je.posted_by = user
        je.save(update_fields=["status", "posted_at", "posted_by"])
        log_action(
            action="post", instance=je, user=user,
            changes={"status": [EntryStatus.DRAFT, EntryStatus.POSTED],
                     "amount": str(debit)},
        )
    logger.info("Posted %s (%s) %s", je.reference, je.entry_type, debit)
    return je


def void_entry(entry_id, user=None):
    """POSTED → VOID, reversing exactly what posting applied."""
    with transaction.atomic():
        je = lock_one(JournalEntry, entry_id)
        if je.status != EntryStatus.POSTED:
            raise InvalidVoidTarget(
                f"Only posted entries can be voided; {je.reference} is {je.status}."
            )
        lines = list(je.lines.all())
        _apply_lines(lines, -1)

        je.status = EntryStatus.VOID
        je.voided_at = get_generator().now()
        je.save(update_fields=["status", "voided_at"])
        log_action(
            action="void", instance=je, user=user,
            changes={"status": [EntryStatus.POSTED, EntryStatus.VOID]},
        )
    logger.info("Voided %s (%s)", je.reference, je.entry_type)
    return je


def create_and_post(entry_type, transaction_date, description, lines,
                    source=None, user=None):
    """Convenience for the workflows: create the draft & post it in one unit."""
    with transaction.atomic():
        je = create_entry(entry_type, transaction_date, description, lines,
                          source=source, user=user)
        return post_entry(je.pk, user=user)


# ----------------------------
# Balances & accounts
# ----------------------------
def get_account_balance(account_id):
    return Account.objects.values_list("balance", flat=True).get(pk=account_id)


def recompute_account_balance(account):
    """
    Balance rebuilt from posted lines only, independent of the cached
    Account.balance. Used by reconciliation & tests.
    """
    if not isinstance(account, Account):
        account = Account.objects.get(pk=account)
    agg = JournalEntryLine.objects.posted().filter(account=account).aggregate(
        debit=Sum("amount", filter=Q(line_type=LineType.DEBIT)),
        credit=Sum("amount", filter=Q(line_type=LineType.CREDIT)),
    )
    # If nothing was posted, Django returns None → so fallback to 0
    debit = agg["debit"] or Decimal("0.00")
    credit = agg["credit"] or Decimal("0.00")
    return debit - credit if account.is_debit_normal else credit - debit


def delete_account(account_id):
    with transaction.atomic():
        account = lock_one(Account, account_id)
        if account.children.exists():
            raise HasChildren(f"Account {account.code} has child accounts.")
        if account.lines.exists():
            raise HasJournalLines(f"Account {account.code} has journal lines.")
        code = account.code
        account.delete()
    logger.info("Deleted account %s", code)


# ---------- Trial balance ----------
@dataclass
class TrialBalanceRow:
    code: str
    name: str
    ac_type: str
    debit: Decimal
    credit: Decimal


@dataclass
class TrialBalance:
    rows: list = field(default_factory=list)
    total_debit: Decimal = Decimal("0.00")
    total_credit: Decimal = Decimal("0.00")

    @property
    def is_balanced(self):
        return abs(self.total_debit - self.total_credit) <= _tolerance()


def trial_balance():
    """Debit/credit columns from the cached balances of every account."""
    tb = TrialBalance()
    for account in Account.objects.order_by("code"):
        balance = account.balance
        if balance == 0:
            continue
        # A positive balance sits on the account's normal side
        on_debit_side = (balance > 0) == account.is_debit_normal
        amount = abs(balance)
        row = TrialBalanceRow(
            code=account.code,
            name=account.name,
            ac_type=account.ac_type,
            debit=amount if on_debit_side else Decimal("0.00"),
            credit=Decimal("0.00") if on_debit_side else amount,
        )
        tb.rows.append(row)
        tb.total_debit += row.debit
        tb.total_credit += row.credit
    return tb
