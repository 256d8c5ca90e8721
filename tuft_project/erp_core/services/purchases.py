"""
Purchase order workflows.

  DRAFT → SENT                     no stock or ledger effect
  SENT → PARTIALLY/FULLY_RECEIVED  stock in at line cost + one PURCHASE entry
                                   Dr Inventory - Raw Materials 1300
                                   Cr Accounts Payable 2000
                                   + one StockLot per line received
  → CLOSED                         from FULLY_RECEIVED, or early from PARTIALLY_RECEIVED
"""
import logging
from collections import defaultdict
from decimal import Decimal, InvalidOperation

from django.db import transaction

from ..exceptions import (HasHistory, LedgerValidationError,
                          NonPositiveAmount, OverReceipt, StateConflict,
                          TransitionGuardFailed)
from ..lifecycles import PURCHASE_LIFECYCLE, PurchaseEvent, PurchaseState
from ..models import (EntrySource, EntryType, InventoryItem, LineType,
                      PurchaseLine, PurchaseOrder, StockLot)
from . import chart, inventory, ledger
from .audit_helper import log_action
from .locking import lock_many, lock_one
from .references import get_generator, save_with_reference

logger = logging.getLogger(__name__)


def _advance(po, event, user=None):
    previous = po.state
    po.state = PURCHASE_LIFECYCLE.next_state(po.state, event)
    po.save(update_fields=["state"])
    log_action(
        action="transition", instance=po, user=user,
        changes={"state": [previous, po.state], "event": str(event)},
    )
    logger.info("PO %s: %s -> %s (%s)", po.reference, previous, po.state, event)
    return po


def _decimal(value, what):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid {what}: {value!r}") from None


def _create_lines(po, lines):
    for data in lines:
        item = data["inventory_item"]
        if not isinstance(item, InventoryItem):
            item = InventoryItem.objects.get(pk=item)
        line = PurchaseLine(
            purchase_order=po,
            inventory_item=item,
            description=data.get("description") or item.name,
            ordered_qty=_decimal(data["ordered_qty"], "ordered quantity"),
            unit_cost=_decimal(data["unit_cost"], "unit cost"),
        )
        line.full_clean()
        line.save()


def create_purchase_order(supplier, lines=(), expected_date=None, notes="", user=None):
    with transaction.atomic():
        po = save_with_reference(PurchaseOrder(
            supplier=supplier,
            expected_date=expected_date,
            notes=notes,
            created_by=user,
        ), get_generator().purchase_order)
        _create_lines(po, lines)
        log_action(action="create", instance=po, user=user,
                   changes={"lines": len(lines)})
    logger.info("Created PO %s (%d line(s))", po.reference, len(lines))
    return po


def replace_lines(po_id, lines, user=None):
    """Lines are editable while the PO is still a draft."""
    with transaction.atomic():
        po = lock_one(PurchaseOrder, po_id)
        if po.state != PurchaseState.DRAFT:
            raise StateConflict(f"PO {po.reference} is {po.state}; lines are fixed.")
        po.lines.all().delete()
        _create_lines(po, lines)
        log_action(action="update", instance=po, user=user,
                   changes={"lines": len(lines)})
    return po


def delete_purchase_order(po_id, user=None):
    with transaction.atomic():
        po = lock_one(PurchaseOrder, po_id)
        if po.state != PurchaseState.DRAFT:
            raise HasHistory(f"Only draft POs can be deleted; {po.reference} is {po.state}.")
        log_action(action="delete", instance=po, user=user)
        po.delete()


def send_purchase_order(po_id, user=None):
    with transaction.atomic():
        po = lock_one(PurchaseOrder, po_id)
        PURCHASE_LIFECYCLE.next_state(po.state, PurchaseEvent.SEND)
        if not po.lines.exists():
            raise TransitionGuardFailed(f"PO {po.reference} has no lines.")
        return _advance(po, PurchaseEvent.SEND, user)


def _parse_receipts(po, receipts):
    """[{"line_id", "quantity"}] → {line_id: total quantity}; None = everything outstanding."""
    if receipts is None:
        wanted = {line.pk: line.outstanding_qty for line in po.lines.all()
                  if line.outstanding_qty > 0}
    else:
        wanted = defaultdict(Decimal)
        for receipt in receipts:
            try:
                qty = Decimal(str(receipt["quantity"]))
            except (InvalidOperation, TypeError, ValueError, KeyError):
                raise LedgerValidationError(f"Invalid receipt: {receipt!r}") from None
            if qty <= 0:
                raise NonPositiveAmount(f"Received quantity must be > 0, got {qty}")
            wanted[receipt["line_id"]] += qty
        wanted = dict(wanted)
    if not wanted:
        raise LedgerValidationError(f"Nothing to receive on PO {po.reference}.")
    return wanted


def receive_goods(po_id, receipts=None, user=None, expect_state=None):
    """
    Book a delivery against the PO.
    receipts: [{"line_id", "quantity", "lot_number" (optional)}]
    Each line's quantity enters stock at the line's unit cost; the whole
    delivery is one PURCHASE journal entry. PARTIALLY vs FULLY received is
    derived from received vs ordered on every line.
    """
    refs = get_generator()
    with transaction.atomic():
        po = lock_one(PurchaseOrder, po_id)
        if not PURCHASE_LIFECYCLE.can(po.state, PurchaseEvent.RECEIVE_PARTIAL):
            PURCHASE_LIFECYCLE.next_state(po.state, PurchaseEvent.RECEIVE_PARTIAL)

        wanted = _parse_receipts(po, receipts)
        lines = lock_many(PurchaseLine, wanted.keys())

        # Validate every line before anything moves
        for line_id, qty in wanted.items():
            line = lines[line_id]
            if line.purchase_order_id != po.pk:
                raise LedgerValidationError(
                    f"Line {line_id} does not belong to PO {po.reference}.")
            if line.received_qty + qty > line.ordered_qty:
                raise OverReceipt(
                    f"Line {line_id}: receiving {qty} would exceed ordered "
                    f"{line.ordered_qty} (already received {line.received_qty})."
                )

        source = EntrySource.purchase_order(po.pk)
        received_at = refs.now()
        lot_numbers = {r["line_id"]: r.get("lot_number") for r in receipts or ()}
        total = Decimal("0.00")
        for line_id in sorted(wanted):
            line, qty = lines[line_id], wanted[line_id]
            movement = inventory.receive(
                line.inventory_item_id, qty, line.unit_cost,
                source=source, notes=f"PO {po.reference}",
            )
            line.received_qty += qty
            line.save(update_fields=["received_qty"])
            StockLot.objects.create(
                inventory_item_id=line.inventory_item_id,
                supplier_id=po.supplier_id,
                purchase_line=line,
                lot_number=lot_numbers.get(line_id) or po.reference,
                quantity_received=qty,
                quantity_remaining=qty,
                unit_cost=line.unit_cost,
                received_at=received_at,
            )
            total += movement.value

        if total > 0:
            ledger.create_and_post(
                EntryType.PURCHASE,
                refs.today(),
                f"Goods received - PO {po.reference} - {po.supplier.name}",
                [
                    {"account": chart.account_for(chart.INVENTORY_RAW),
                     "line_type": LineType.DEBIT, "amount": total},
                    {"account": chart.account_for(chart.ACCOUNTS_PAYABLE),
                     "line_type": LineType.CREDIT, "amount": total,
                     "memo": po.supplier.name},
                ],
                source=source,
                user=user,
            )

        event = (PurchaseEvent.RECEIVE_ALL if po.is_fully_received()
                 else PurchaseEvent.RECEIVE_PARTIAL)
        target = PURCHASE_LIFECYCLE.next_state(po.state, event)
        if expect_state is not None and target != expect_state:
            raise TransitionGuardFailed(
                f"PO {po.reference}: delivery leaves it {target}, not {expect_state}."
            )
        _advance(po, event, user)
    logger.info("PO %s received, value %s", po.reference, total)
    return po


def close_purchase_order(po_id, user=None):
    with transaction.atomic():
        po = lock_one(PurchaseOrder, po_id)
        return _advance(po, PurchaseEvent.CLOSE, user)


def transition(po_id, target_state, payload=None, user=None):
    current = PurchaseOrder.objects.values_list("state", flat=True).get(pk=po_id)
    event = PURCHASE_LIFECYCLE.event_for(current, target_state)
    payload = payload or {}
    if event == PurchaseEvent.SEND:
        send_purchase_order(po_id, user=user)
    elif event in (PurchaseEvent.RECEIVE_PARTIAL, PurchaseEvent.RECEIVE_ALL):
        receive_goods(po_id, payload.get("receipts"), user=user,
                      expect_state=target_state)
    else:
        close_purchase_order(po_id, user=user)
    return PurchaseOrder.objects.get(pk=po_id)
