"""
Inventory valuation engine (weighted-average cost).

Only this module writes InventoryItem.current_stock / average_cost.
Every call locks the item row, applies one movement, and appends one
InventoryTransaction row, so the movement ledger always sums to current_stock.

    receive   stock in at a cost, blends the cost into the average
    consume   stock out at the current average, average unchanged
    adjust    count correction, average unchanged
    restore   undo a consumption, stock back in at its original cost

Stock lots (one per purchase receipt) only trace where material came from:
stock leaving draws the oldest lots down, a restore refills the newest
drawn lots first. They never affect valuation.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import F

from ..exceptions import (HasHistory, InsufficientStock, LedgerValidationError,
                          NonPositiveAmount)
from ..models import InventoryItem, InventoryTransaction, MovementType, StockLot
from .locking import lock_one

logger = logging.getLogger(__name__)

QTY = Decimal("0.0001")
UNIT_COST = Decimal("0.0001")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class StockMovement:
    item_id: int
    sku: str
    movement: str
    quantity: Decimal  # signed
    unit_cost: Decimal  # cost the quantity moved at
    value: Decimal  # |quantity| x unit_cost, rounded to cents
    stock_after: Decimal
    average_cost_after: Decimal


@dataclass(frozen=True)
class StockLevel:
    current_stock: Decimal
    average_cost: Decimal
    stock_value: Decimal
    needs_reorder: bool


def _decimal(value, what):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid {what}: {value!r}") from None


def _positive_qty(quantity):
    qty = _decimal(quantity, "quantity").quantize(QTY)
    if qty <= 0:
        raise NonPositiveAmount(f"Quantity must be > 0, got {quantity}")
    return qty


def _unit_cost(unit_cost):
    cost = _decimal(unit_cost, "unit cost").quantize(UNIT_COST)
    if cost < 0:
        raise NonPositiveAmount(f"Unit cost cannot be negative, got {unit_cost}")
    return cost


def _record(item, movement, qty_change, cost_before, unit_cost, source, notes):
    value = (abs(qty_change) * unit_cost).quantize(CENT)
    InventoryTransaction.objects.create(
        item=item,
        movement=movement,
        quantity_change=qty_change,
        unit_cost_before=cost_before,
        unit_cost_after=item.average_cost,
        value=value,
        source_type=source.kind if source else None,
        source_id=source.pk if source else None,
        notes=notes or "",
    )
    logger.info(
        "%s %s %s @ %s → stock %s avg %s",
        movement, item.sku, qty_change, unit_cost,
        item.current_stock, item.average_cost,
    )
    return StockMovement(
        item_id=item.pk,
        sku=item.sku,
        movement=movement,
        quantity=qty_change,
        unit_cost=unit_cost,
        value=value,
        stock_after=item.current_stock,
        average_cost_after=item.average_cost,
    )


def _draw_lots(item, qty):
    """Take qty off the item's open lots, oldest first."""
    lots = StockLot.objects.select_for_update().filter(
        inventory_item=item, quantity_remaining__gt=0,
    ).order_by("received_at", "pk")
    for lot in lots:
        if qty <= 0:
            break
        taken = min(qty, lot.quantity_remaining)
        lot.quantity_remaining -= taken
        lot.save(update_fields=["quantity_remaining"])
        qty -= taken


def _refill_lots(item, qty):
    """Give qty back to drawn lots, newest first."""
    lots = StockLot.objects.select_for_update().filter(
        inventory_item=item, quantity_remaining__lt=F("quantity_received"),
    ).order_by("-received_at", "-pk")
    for lot in lots:
        if qty <= 0:
            break
        given = min(qty, lot.quantity_received - lot.quantity_remaining)
        lot.quantity_remaining += given
        lot.save(update_fields=["quantity_remaining"])
        qty -= given


def _stock_in(item_id, qty, cost, source, notes, movement):
    with transaction.atomic():
        item = lock_one(InventoryItem, item_id)
        cost_before = item.average_cost
        new_stock = item.current_stock + qty
        # Weighted average; nothing on hand afterwards means no cost to carry
        if new_stock == 0:
            item.average_cost = Decimal("0")
        else:
            blended = item.current_stock * item.average_cost + qty * cost
            item.average_cost = (blended / new_stock).quantize(UNIT_COST)
        item.current_stock = new_stock
        item.save(update_fields=["current_stock", "average_cost"])
        if movement == MovementType.REVERSAL:
            _refill_lots(item, qty)
        return _record(item, movement, qty, cost_before, cost, source, notes)


def receive(item_id, quantity, unit_cost, source=None, notes=""):
    """Stock in at unit_cost (purchase receipt, opening stock)."""
    return _stock_in(
        item_id, _positive_qty(quantity), _unit_cost(unit_cost),
        source, notes, MovementType.RECEIPT,
    )


def restore(item_id, quantity, unit_cost, source=None, notes=""):
    """Put back stock a consumption took out, at the cost it was taken at."""
    return _stock_in(
        item_id, _positive_qty(quantity), _unit_cost(unit_cost),
        source, notes, MovementType.REVERSAL,
    )


def consume(item_id, quantity, source=None, notes=""):
    """
    Stock out at the current average cost.
    Returns the movement; movement.value is the cost of consumption.
    """
    qty = _positive_qty(quantity)
    with transaction.atomic():
        item = lock_one(InventoryItem, item_id)
        # No backorders: never let stock go below zero
        if item.current_stock - qty < 0:
            raise InsufficientStock(item.sku, qty, item.current_stock)
        avg = item.average_cost
        item.current_stock -= qty
        item.save(update_fields=["current_stock"])
        _draw_lots(item, qty)
        return _record(item, MovementType.CONSUMPTION, -qty, avg, avg, source, notes)


def adjust(item_id, delta, reason="", notes=""):
    """Stock count correction; changes quantity only, never the average."""
    delta = _decimal(delta, "adjustment").quantize(QTY)
    if delta == 0:
        raise NonPositiveAmount("Adjustment must change the stock level")
    with transaction.atomic():
        item = lock_one(InventoryItem, item_id)
        if item.current_stock + delta < 0:
            raise InsufficientStock(item.sku, -delta, item.current_stock)
        item.current_stock += delta
        item.save(update_fields=["current_stock"])
        if delta < 0:
            _draw_lots(item, -delta)
        text = " - ".join(part for part in (reason, notes) if part)
        return _record(
            item, MovementType.ADJUSTMENT, delta,
            item.average_cost, item.average_cost, None, text,
        )


def get_stock_level(item_id):
    item = InventoryItem.objects.get(pk=item_id)
    return StockLevel(
        current_stock=item.current_stock,
        average_cost=item.average_cost,
        stock_value=item.stock_value,
        needs_reorder=item.needs_reorder,
    )


def items_needing_reorder():
    return InventoryItem.objects.active().below_reorder_point()


def delete_item(item_id):
    """Items that ever moved stay for history; deactivate them instead."""
    with transaction.atomic():
        item = lock_one(InventoryItem, item_id)
        if item.movements.exists() or item.bom_lines.exists():
            raise HasHistory(f"Item {item.sku} has stock history.")
        sku = item.sku
        item.delete()
    logger.info("Deleted item %s", sku)
