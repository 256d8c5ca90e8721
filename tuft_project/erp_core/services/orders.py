"""
Order workflows.

Every state change goes through ORDER_LIFECYCLE; the money side effects
(receipts, revenue recognition, cost of sales) are posted in the same
transaction.atomic() block as the state write, so an order never shows a
state whose postings are missing.

Ledger flow for a typical order:
  payment before dispatch   Dr Cash/Bank          Cr Customer Deposits 2300
  dispatch (revenue)        Dr Customer Deposits  Cr Sales Revenue 4000
                            Dr Accounts Receivable (unpaid part)
  dispatch (cost of sales)  Dr COGS 5000          Cr Finished Goods 1310
  payment after dispatch    Dr Cash/Bank          Cr Accounts Receivable 1200
"""
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from ..exceptions import (HasHistory, LedgerValidationError,
                          NonPositiveAmount, OrderItemsLocked, Overpayment,
                          StateConflict, TransitionGuardFailed)
from ..lifecycles import (JOB_LIFECYCLE, ORDER_ITEMS_FROZEN, ORDER_LIFECYCLE,
                          JobState, OrderEvent, OrderState)
from ..models import (Dispatch, DispatchStatus, EntrySource, EntryType,
                      FinishedProduct, FinishedProductStatus, LineType, Order,
                      OrderItem, Payment, PaymentKind, PaymentMethod,
                      ProductionJob)
from . import chart, ledger
from .audit_helper import log_action
from .locking import lock_one
from .references import get_generator, save_with_reference

logger = logging.getLogger(__name__)

# States in which money can still come in against an order
PAYABLE_STATES = frozenset({
    OrderState.PENDING_DEPOSIT,
    OrderState.DEPOSIT_PAID,
    OrderState.IN_PRODUCTION,
    OrderState.READY_FOR_DISPATCH,
    OrderState.DISPATCHED,
})

ITEM_FIELDS = ("sku", "description", "quantity", "width", "height", "unit",
               "planned_price", "notes")


def _advance(order, event, user=None, extra_fields=()):
    """Apply one lifecycle event to a locked order and save it."""
    previous = order.state
    order.state = ORDER_LIFECYCLE.next_state(order.state, event)
    order.save(update_fields=["state", "updated_at", *extra_fields])
    log_action(
        action="transition", instance=order, user=user,
        changes={"state": [previous, order.state], "event": str(event)},
    )
    logger.info("Order %s: %s -> %s (%s)", order.reference, previous, order.state, event)
    return order


def _create_items(order, items):
    for data in items:
        OrderItem.objects.create(
            order=order, **{k: v for k, v in data.items() if k in ITEM_FIELDS}
        )
    # totals are refreshed by the OrderItem signals
    order.refresh_from_db(fields=["total_amount"])


# ----------------------------
# Creation & editing
# ----------------------------
def create_order(client, items=(), deposit_percent=None, notes="",
                 delivery_address="", delivery_contact="", user=None):
    if deposit_percent is None:
        deposit_percent = settings.ERP_DEFAULT_DEPOSIT_PERCENT
    try:
        deposit_percent = Decimal(str(deposit_percent))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid deposit percent: {deposit_percent!r}") from None
    if not Decimal("0") <= deposit_percent <= Decimal("100"):
        raise LedgerValidationError("Deposit percent must be between 0 and 100")

    with transaction.atomic():
        order = save_with_reference(Order(
            client=client,
            deposit_percent=deposit_percent,
            notes=notes,
            delivery_address=delivery_address,
            delivery_contact=delivery_contact,
        ), get_generator().order)
        _create_items(order, items)
        log_action(action="create", instance=order, user=user,
                   changes={"total_amount": str(order.total_amount)})
    logger.info("Created order %s total %s", order.reference, order.total_amount)
    return order


def replace_items(order_id, items, user=None):
    """Swap the whole item list; only allowed before production starts."""
    with transaction.atomic():
        order = lock_one(Order, order_id)
        if order.state in ORDER_ITEMS_FROZEN:
            raise OrderItemsLocked(
                f"Items of order {order.reference} are locked in state {order.state}."
            )
        paid = order.amount_paid
        order.items.all().delete()
        _create_items(order, items)
        if order.total_amount < paid:
            raise Overpayment(
                f"New total {order.total_amount} is below the {paid} already paid."
            )
        log_action(action="update", instance=order, user=user,
                   changes={"items": len(items), "total_amount": str(order.total_amount)})
    return order


def delete_order(order_id, user=None):
    with transaction.atomic():
        order = lock_one(Order, order_id)
        if order.state not in (OrderState.DRAFT, OrderState.ARCHIVED):
            raise HasHistory(
                f"Only draft or archived orders can be deleted; {order.reference} is {order.state}."
            )
        if order.payments.exists():
            raise HasHistory(f"Order {order.reference} has payments.")
        reference = order.reference
        log_action(action="delete", instance=order, user=user)
        order.delete()
    logger.info("Deleted order %s", reference)


# ----------------------------
# Payments
# ----------------------------
def record_payment(order_id, amount, method, paid_at=None, reference="", user=None):
    """
    Receive money against an order.
      Debit:  Cash 1000 (cash) or Bank 1100 (anything else)
      Credit: Customer Deposits 2300 before dispatch,
              Accounts Receivable 1200 once revenue was recognised
    """
    try:
        amount = Decimal(str(amount)).quantize(Decimal("0.01"))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid amount: {amount!r}") from None
    if amount <= 0:
        raise NonPositiveAmount("Payment amount must be > 0")
    if method not in PaymentMethod.values:
        raise LedgerValidationError(f"Unknown payment method {method!r}")

    refs = get_generator()
    paid_at = paid_at or refs.now()

    with transaction.atomic():
        order = lock_one(Order, order_id)
        if order.state not in PAYABLE_STATES:
            raise StateConflict(
                f"Order {order.reference} cannot take payments in state {order.state}."
            )
        balance_due = order.balance_due
        if amount > balance_due:
            raise Overpayment(
                f"Payment {amount} exceeds balance due {balance_due} on {order.reference}."
            )

        kind = (PaymentKind.DEPOSIT if order.state == OrderState.PENDING_DEPOSIT
                else PaymentKind.BALANCE)
        if order.state == OrderState.DISPATCHED:
            credit_code = chart.ACCOUNTS_RECEIVABLE
        else:
            credit_code = chart.CUSTOMER_DEPOSITS

        je = ledger.create_and_post(
            EntryType.RECEIPT,
            timezone.localdate(paid_at),
            f"{kind.label} received - Order {order.reference}",
            [
                {"account": chart.payment_account(method), "line_type": LineType.DEBIT,
                 "amount": amount, "memo": reference},
                {"account": chart.account_for(credit_code), "line_type": LineType.CREDIT,
                 "amount": amount, "memo": order.reference},
            ],
            source=EntrySource.order(order.pk),
            user=user,
        )
        payment = Payment.objects.create(
            order=order,
            amount=amount,
            method=method,
            kind=kind,
            reference=reference,
            paid_at=paid_at,
            journal_entry=je,
            recorded_by=user,
        )
        log_action(action="payment", instance=order, user=user,
                   changes={"amount": str(amount), "kind": str(kind)})

        # Deposit requirement met → order may go to production
        if order.state == OrderState.PENDING_DEPOSIT and order.deposit_met:
            _advance(order, OrderEvent.DEPOSIT_PAID, user)
    logger.info("Payment %s on order %s (%s)", amount, order.reference, kind)
    return payment


# ----------------------------
# Transitions
# ----------------------------
def submit_order(order_id, user=None):
    with transaction.atomic():
        order = lock_one(Order, order_id)
        ORDER_LIFECYCLE.next_state(order.state, OrderEvent.SUBMIT)
        if not order.items.exists():
            raise TransitionGuardFailed(f"Order {order.reference} has no items.")
        if order.total_amount <= 0:
            raise TransitionGuardFailed(f"Order {order.reference} total must be > 0.")
        return _advance(order, OrderEvent.SUBMIT, user)


def mark_deposit_paid(order_id, user=None):
    with transaction.atomic():
        order = lock_one(Order, order_id)
        ORDER_LIFECYCLE.next_state(order.state, OrderEvent.DEPOSIT_PAID)
        if not order.deposit_met:
            raise TransitionGuardFailed(
                f"Order {order.reference}: deposit {order.deposit_required_amount} "
                f"not met ({order.amount_paid} paid)."
            )
        return _advance(order, OrderEvent.DEPOSIT_PAID, user)


def start_production(order_id, user=None):
    """DEPOSIT_PAID → IN_PRODUCTION, one PLANNED job per item without a live job."""
    from . import production

    with transaction.atomic():
        order = lock_one(Order, order_id)
        ORDER_LIFECYCLE.next_state(order.state, OrderEvent.START_PRODUCTION)
        if not order.deposit_met:
            raise TransitionGuardFailed(
                f"Order {order.reference}: deposit requirement not met."
            )
        created = []
        for item in order.items.all():
            has_live_job = item.production_jobs.exclude(
                state=JobState.CANCELLED).exists()
            if not has_live_job:
                created.append(production.create_job(order_item=item, user=user))
        _advance(order, OrderEvent.START_PRODUCTION, user)
    logger.info("Order %s: %d production job(s) created", order.reference, len(created))
    return order


def _production_finished(order):
    """Every item has a completed job and no live job is still running."""
    items = list(order.items.all())
    if not items:
        return False
    for item in items:
        live = item.production_jobs.exclude(state=JobState.CANCELLED)
        if not live.exists():
            return False
        if live.exclude(state=JobState.COMPLETED).exists():
            return False
    return True


def mark_ready_for_dispatch(order_id, user=None):
    with transaction.atomic():
        order = lock_one(Order, order_id)
        ORDER_LIFECYCLE.next_state(order.state, OrderEvent.PRODUCTION_FINISHED)
        if not _production_finished(order):
            raise TransitionGuardFailed(
                f"Order {order.reference}: not every production job is completed."
            )
        return _advance(order, OrderEvent.PRODUCTION_FINISHED, user)


def advance_if_production_finished(order_id, user=None):
    """Called after a job completes; quietly does nothing if not ready yet."""
    with transaction.atomic():
        order = lock_one(Order, order_id)
        if not ORDER_LIFECYCLE.can(order.state, OrderEvent.PRODUCTION_FINISHED):
            return order
        if _production_finished(order):
            _advance(order, OrderEvent.PRODUCTION_FINISHED, user)
    return order


def dispatch_order(order_id, carrier="", shipment_reference="", notes="", user=None):
    """
    READY_FOR_DISPATCH → DISPATCHED.
    Recognises the sale (deposits held + receivable for the rest), moves
    the rugs' production cost from Finished Goods to COGS, and opens the
    Dispatch record for the shipment.
    """
    refs = get_generator()
    with transaction.atomic():
        order = lock_one(Order, order_id)
        ORDER_LIFECYCLE.next_state(order.state, OrderEvent.DISPATCH)
        source = EntrySource.order(order.pk)
        today = refs.today()

        paid = order.amount_paid
        due = order.total_amount - paid
        lines = []
        if paid > 0:
            lines.append({"account": chart.account_for(chart.CUSTOMER_DEPOSITS),
                          "line_type": LineType.DEBIT, "amount": paid,
                          "memo": "Deposits applied"})
        if due > 0:
            lines.append({"account": chart.account_for(chart.ACCOUNTS_RECEIVABLE),
                          "line_type": LineType.DEBIT, "amount": due,
                          "memo": "Balance receivable"})
        lines.append({"account": chart.account_for(chart.SALES_REVENUE),
                      "line_type": LineType.CREDIT, "amount": order.total_amount,
                      "memo": order.reference})
        ledger.create_and_post(
            EntryType.SALES, today,
            f"Sale recognised - Order {order.reference} - {order.client.full_name}",
            lines, source=source, user=user,
        )

        products = list(
            FinishedProduct.objects.select_for_update()
            .filter(order=order)
            .exclude(status=FinishedProductStatus.DISPATCHED)
            .order_by("pk")
        )
        cost = sum((p.cost_price for p in products), Decimal("0.00"))
        if cost > 0:
            ledger.create_and_post(
                EntryType.INVENTORY, today,
                f"Cost of sales - Order {order.reference}",
                [
                    {"account": chart.account_for(chart.COST_OF_GOODS_SOLD),
                     "line_type": LineType.DEBIT, "amount": cost},
                    {"account": chart.account_for(chart.FINISHED_GOODS),
                     "line_type": LineType.CREDIT, "amount": cost},
                ],
                source=source, user=user,
            )
        FinishedProduct.objects.filter(pk__in=[p.pk for p in products]).update(
            status=FinishedProductStatus.DISPATCHED)

        order.dispatched_at = refs.now()
        Dispatch.objects.create(
            order=order,
            carrier=carrier,
            shipment_reference=shipment_reference,
            status=DispatchStatus.IN_TRANSIT,
            shipped_at=order.dispatched_at,
            created_by=user,
            notes=notes,
        )
        return _advance(order, OrderEvent.DISPATCH, user, extra_fields=("dispatched_at",))


def mark_delivered(order_id, delivered_at=None, user=None):
    """The client has the rugs; no ledger effect."""
    with transaction.atomic():
        order = lock_one(Order, order_id)
        try:
            dispatch = Dispatch.objects.select_for_update().get(order=order)
        except Dispatch.DoesNotExist:
            raise StateConflict(f"Order {order.reference} has not been dispatched.") from None
        if dispatch.status != DispatchStatus.IN_TRANSIT:
            raise StateConflict(
                f"Dispatch for {order.reference} is {dispatch.status}, not in transit."
            )
        dispatch.status = DispatchStatus.DELIVERED
        dispatch.delivered_at = delivered_at or get_generator().now()
        dispatch.save(update_fields=["status", "delivered_at"])
        log_action(action="deliver", instance=order, user=user,
                   changes={"delivered_at": dispatch.delivered_at.isoformat()})
    logger.info("Order %s delivered", order.reference)
    return dispatch


def close_order(order_id, user=None):
    with transaction.atomic():
        order = lock_one(Order, order_id)
        ORDER_LIFECYCLE.next_state(order.state, OrderEvent.CLOSE)
        if order.balance_due != 0:
            raise TransitionGuardFailed(
                f"Order {order.reference} still has {order.balance_due} outstanding."
            )
        return _advance(order, OrderEvent.CLOSE, user)


def archive_order(order_id, user=None):
    with transaction.atomic():
        order = lock_one(Order, order_id)
        return _advance(order, OrderEvent.ARCHIVE, user)


_HANDLERS = {
    OrderEvent.SUBMIT: submit_order,
    OrderEvent.DEPOSIT_PAID: mark_deposit_paid,
    OrderEvent.START_PRODUCTION: start_production,
    OrderEvent.PRODUCTION_FINISHED: mark_ready_for_dispatch,
    OrderEvent.DISPATCH: dispatch_order,
    OrderEvent.CLOSE: close_order,
    OrderEvent.ARCHIVE: archive_order,
}


def transition(order_id, target_state, payload=None, user=None):
    """
    Uniform entry point: move the order to target_state.
    Raises IllegalTransition when the table has no such move.
    """
    current = Order.objects.values_list("state", flat=True).get(pk=order_id)
    event = ORDER_LIFECYCLE.event_for(current, target_state)
    handler = _HANDLERS[event]
    handler(order_id, user=user, **(payload or {}))
    return Order.objects.get(pk=order_id)


def jobs_for_order(order):
    return ProductionJob.objects.filter(order_item__order=order)


def order_summary(order):
    """Money figures for display, all derived from payments."""
    paid = order.payments.aggregate(s=Sum("amount"))["s"] or Decimal("0.00")
    return {
        "total_amount": order.total_amount,
        "deposit_required_amount": order.deposit_required_amount,
        "amount_paid": paid,
        "balance_due": order.total_amount - paid,
        "open_jobs": jobs_for_order(order).exclude(
            state__in=JOB_LIFECYCLE.terminal).count(),
    }
