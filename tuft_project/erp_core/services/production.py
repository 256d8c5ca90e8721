"""
Production job workflows.

Material cost path through the ledger:
  record_consumption   Dr Work in Progress 1350   Cr Inventory - Raw Materials 1300
  complete_job         Dr Finished Goods 1310     Cr Work in Progress 1350
                       Dr Direct Labor 5200       Cr Salaries & Wages 6800 (hours x rate)
Correcting a consumption never edits history: the old entry is voided, the
stock is restored at the cost it left at, and (for updates) a fresh
consumption is recorded.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction
from django.db.models import Sum

from ..exceptions import (HasHistory, LedgerValidationError,
                          NonPositiveAmount, StateConflict)
from ..lifecycles import (JOB_CONSUMPTION_STATES, JOB_LIFECYCLE, JobEvent,
                          JobState)
from ..models import (BomLine, CostSnapshot, EntrySource, EntryType,
                      FinishedProduct, FinishedProductStatus, InventoryItem,
                      LineType, MaterialConsumption, ProductionJob)
from . import chart, inventory, ledger
from .audit_helper import log_action
from .locking import lock_one
from .references import get_generator, save_with_reference

logger = logging.getLogger(__name__)

# Jobs whose BOM lines still hold material
RESERVING_STATES = JOB_CONSUMPTION_STATES

CENT = Decimal("0.01")


def _advance(job, event, user=None, extra_fields=()):
    previous = job.state
    job.state = JOB_LIFECYCLE.next_state(job.state, event)
    job.save(update_fields=["state", *extra_fields])
    log_action(
        action="transition", instance=job, user=user,
        changes={"state": [previous, job.state], "event": str(event)},
    )
    logger.info("Job %s: %s -> %s (%s)", job.reference, previous, job.state, event)
    return job


def _qty(value, what="quantity", allow_zero=False):
    try:
        qty = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerValidationError(f"Invalid {what}: {value!r}") from None
    if qty < 0 or (qty == 0 and not allow_zero):
        raise NonPositiveAmount(f"{what.capitalize()} must be > 0, got {value}")
    return qty


# ----------------------------
# Job creation & planning
# ----------------------------
def create_job(order_item=None, planned_start_at=None, planned_end_at=None,
               assignee=None, notes="", user=None):
    """PLANNED job, for an order item or (order_item=None) for stock."""
    with transaction.atomic():
        job = save_with_reference(ProductionJob(
            order_item=order_item,
            planned_start_at=planned_start_at,
            planned_end_at=planned_end_at,
            assignee=assignee,
            notes=notes,
        ), get_generator().production_job)
        log_action(action="create", instance=job, user=user)
    logger.info("Created job %s for item %s", job.reference, job.order_item_id)
    return job


def allocate_materials(job_id, bom_lines, user=None):
    """
    PLANNED → MATERIALS_ALLOCATED.
    bom_lines: [{"inventory_item": <item | pk>, "planned_quantity": ..., "unit": ..., "notes": ...}]
    Reservation only; stock moves when consumption is recorded.
    """
    bom_lines = list(bom_lines or [])
    if not bom_lines:
        raise LedgerValidationError("At least one BOM line is required")

    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        JOB_LIFECYCLE.next_state(job.state, JobEvent.ALLOCATE)
        for data in bom_lines:
            item = data["inventory_item"]
            if not isinstance(item, InventoryItem):
                item = InventoryItem.objects.get(pk=item)
            BomLine.objects.create(
                job=job,
                inventory_item=item,
                planned_quantity=_qty(data["planned_quantity"], "planned quantity"),
                unit=data.get("unit") or item.unit,
                notes=data.get("notes", ""),
            )
        return _advance(job, JobEvent.ALLOCATE, user)


def reserved_quantity(item):
    """Σ planned quantity of the item held by allocated / running jobs."""
    total = BomLine.objects.filter(
        inventory_item=item,
        released=False,
        job__state__in=RESERVING_STATES,
    ).aggregate(s=Sum("planned_quantity"))["s"]
    return total or Decimal("0")


def assign_job(job_id, assignee, user=None):
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        if job.state in JOB_LIFECYCLE.terminal:
            raise StateConflict(f"Job {job.reference} is {job.state}.")
        job.assignee = assignee
        job.save(update_fields=["assignee"])
        log_action(action="assign", instance=job, user=user,
                   changes={"assignee": getattr(assignee, "pk", None)})
    return job


def delete_job(job_id, user=None):
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        if job.state != JobState.PLANNED:
            raise HasHistory(f"Only planned jobs can be deleted; {job.reference} is {job.state}.")
        log_action(action="delete", instance=job, user=user)
        job.delete()


# ----------------------------
# Floor transitions
# ----------------------------
def start_job(job_id, user=None):
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        JOB_LIFECYCLE.next_state(job.state, JobEvent.START)
        job.actual_start_at = get_generator().now()
        return _advance(job, JobEvent.START, user, extra_fields=("actual_start_at",))


def submit_for_qc(job_id, user=None):
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        return _advance(job, JobEvent.SUBMIT_FOR_QC, user)


def rework(job_id, notes="", user=None):
    """Quality check failed: back to the tufting frame."""
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        JOB_LIFECYCLE.next_state(job.state, JobEvent.REWORK)
        fields = ()
        if notes:
            job.notes = f"{job.notes}\n{notes}".strip()
            fields = ("notes",)
        return _advance(job, JobEvent.REWORK, user, extra_fields=fields)


# ----------------------------
# Material consumption
# ----------------------------
def _active_cost(job):
    return job.consumptions.filter(is_reversed=False).aggregate(
        s=Sum("total_cost"))["s"] or Decimal("0.00")


def _refresh_material_cost(job):
    job.actual_material_cost = _active_cost(job)
    job.save(update_fields=["actual_material_cost"])


def _require_consumption_state(job):
    if job.state not in JOB_CONSUMPTION_STATES:
        raise StateConflict(
            f"Job {job.reference} cannot record material in state {job.state}."
        )


def _consume(job, item_id, quantity, waste_quantity, notes, user):
    """Stock out + WIP posting for a locked job."""
    quantity = _qty(quantity)
    waste_quantity = _qty(waste_quantity or 0, "waste quantity", allow_zero=True)
    if waste_quantity > quantity:
        raise LedgerValidationError("Waste cannot exceed the quantity taken")

    refs = get_generator()
    source = EntrySource.production_job(job.pk)
    movement = inventory.consume(item_id, quantity, source=source,
                                 notes=f"Job {job.reference}")
    je = None
    if movement.value > 0:
        je = ledger.create_and_post(
            EntryType.INVENTORY,
            refs.today(),
            f"Materials to WIP - Job {job.reference} - {movement.sku}",
            [
                {"account": chart.account_for(chart.WORK_IN_PROGRESS),
                 "line_type": LineType.DEBIT, "amount": movement.value,
                 "memo": f"{movement.sku} x {quantity}"},
                {"account": chart.account_for(chart.INVENTORY_RAW),
                 "line_type": LineType.CREDIT, "amount": movement.value,
                 "memo": job.reference},
            ],
            source=source,
            user=user,
        )
    consumption = MaterialConsumption.objects.create(
        job=job,
        inventory_item_id=item_id,
        quantity=quantity,
        waste_quantity=waste_quantity,
        unit_cost=movement.unit_cost,
        total_cost=movement.value,
        journal_entry=je,
        recorded_by=user,
        recorded_at=refs.now(),
        notes=notes or "",
    )
    return consumption


def _reverse(job, consumption, user):
    """Void the consumption's posting and put its stock back."""
    if consumption.is_reversed:
        raise StateConflict(f"Consumption {consumption.pk} is already reversed.")
    if consumption.journal_entry_id:
        ledger.void_entry(consumption.journal_entry_id, user=user)
    inventory.restore(
        consumption.inventory_item_id,
        consumption.quantity,
        consumption.unit_cost,
        source=EntrySource.production_job(job.pk),
        notes=f"Reversal of consumption {consumption.pk} (job {job.reference})",
    )
    consumption.is_reversed = True
    consumption.save(update_fields=["is_reversed"])


def record_consumption(job_id, item_id, quantity, waste_quantity=0, notes="", user=None):
    """
    Take material out of stock for a job and post its cost into WIP.
    Returns the MaterialConsumption (total_cost = quantity x average cost).
    """
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        _require_consumption_state(job)
        consumption = _consume(job, item_id, quantity, waste_quantity, notes, user)
        _refresh_material_cost(job)
        log_action(action="consume", instance=job, user=user,
                   changes={"item": item_id, "quantity": str(consumption.quantity),
                            "cost": str(consumption.total_cost)})
    logger.info("Job %s consumed %s of item %s (cost %s)",
                job.reference, consumption.quantity, item_id, consumption.total_cost)
    return consumption


def update_consumption(consumption_id, quantity, waste_quantity=None, notes=None, user=None):
    """Reverse the recorded consumption, then record the corrected one."""
    with transaction.atomic():
        job_id = MaterialConsumption.objects.values_list(
            "job_id", flat=True).get(pk=consumption_id)
        job = lock_one(ProductionJob, job_id)
        _require_consumption_state(job)
        old = lock_one(MaterialConsumption, consumption_id)
        _reverse(job, old, user)
        new = _consume(
            job,
            old.inventory_item_id,
            quantity,
            old.waste_quantity if waste_quantity is None else waste_quantity,
            old.notes if notes is None else notes,
            user,
        )
        _refresh_material_cost(job)
        log_action(action="update_consumption", instance=job, user=user,
                   changes={"replaced": old.pk, "by": new.pk,
                            "quantity": [str(old.quantity), str(new.quantity)]})
    return new


def delete_consumption(consumption_id, user=None):
    """Reverse a consumption; the row stays, flagged is_reversed."""
    with transaction.atomic():
        job_id = MaterialConsumption.objects.values_list(
            "job_id", flat=True).get(pk=consumption_id)
        job = lock_one(ProductionJob, job_id)
        _require_consumption_state(job)
        consumption = lock_one(MaterialConsumption, consumption_id)
        _reverse(job, consumption, user)
        _refresh_material_cost(job)
        log_action(action="delete_consumption", instance=job, user=user,
                   changes={"consumption": consumption.pk})
    return consumption


# ----------------------------
# Completion & cancellation
# ----------------------------
def _post_labor(job, refs, user):
    """Dr Direct Labor 5200 / Cr Salaries & Wages 6800 for the hours on the job."""
    labor_cost = (job.actual_labor_hours * settings.ERP_LABOR_RATE).quantize(CENT)
    if labor_cost > 0:
        ledger.create_and_post(
            EntryType.ADJUSTMENT,
            refs.today(),
            f"Direct labour - Job {job.reference} ({job.actual_labor_hours} h)",
            [
                {"account": chart.account_for(chart.DIRECT_LABOR),
                 "line_type": LineType.DEBIT, "amount": labor_cost,
                 "memo": job.reference},
                {"account": chart.account_for(chart.SALARIES_AND_WAGES),
                 "line_type": LineType.CREDIT, "amount": labor_cost,
                 "memo": "Labour allocated to production"},
            ],
            source=EntrySource.production_job(job.pk),
            user=user,
        )
    return labor_cost


def _capture_cost_snapshot(job, material_cost, labor_cost, refs):
    budgeted = job.estimated_material_cost
    overhead = (material_cost * settings.ERP_OVERHEAD_RATE).quantize(CENT)
    actual = material_cost + labor_cost + overhead
    return CostSnapshot.objects.create(
        production_job=job,
        budgeted_cost=budgeted,
        actual_material_cost=material_cost,
        labor_hours=job.actual_labor_hours,
        labor_cost=labor_cost,
        overhead_allocated=overhead,
        actual_cost=actual,
        variance=actual - budgeted,
        captured_at=refs.now(),
    )


def complete_job(job_id, product_name=None, selling_price=None, quality_notes="",
                 labor_hours=None, user=None):
    """
    QUALITY_CHECK → COMPLETED.
    The accumulated material cost becomes the finished product's cost price
    and moves from WIP to Finished Goods. Labour hours are charged to Direct
    Labor as a period cost, and a CostSnapshot records budget vs actual.
    """
    from . import orders

    refs = get_generator()
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        JOB_LIFECYCLE.next_state(job.state, JobEvent.COMPLETE)
        cost = _active_cost(job)
        item = job.order_item
        order = item.order if item else None

        job.actual_material_cost = cost
        job.actual_end_at = refs.now()
        if labor_hours is not None:
            job.actual_labor_hours = _qty(labor_hours, "labor hours", allow_zero=True)
        _advance(job, JobEvent.COMPLETE, user,
                 extra_fields=("actual_material_cost", "actual_end_at", "actual_labor_hours"))

        if selling_price is None and item is not None:
            selling_price = item.planned_price
        product = save_with_reference(FinishedProduct(
            production_job=job,
            order=order,
            order_item=item,
            product_name=product_name or (item.description if item and item.description
                                          else f"Rug {job.reference}"),
            cost_price=cost,
            selling_price=selling_price,
            # made to order → held for that client
            status=(FinishedProductStatus.RESERVED if order
                    else FinishedProductStatus.IN_STOCK),
            quality_notes=quality_notes,
        ), refs.finished_product)
        if cost > 0:
            ledger.create_and_post(
                EntryType.INVENTORY,
                refs.today(),
                f"WIP to finished goods - Job {job.reference}",
                [
                    {"account": chart.account_for(chart.FINISHED_GOODS),
                     "line_type": LineType.DEBIT, "amount": cost,
                     "memo": product.reference},
                    {"account": chart.account_for(chart.WORK_IN_PROGRESS),
                     "line_type": LineType.CREDIT, "amount": cost,
                     "memo": job.reference},
                ],
                source=EntrySource.production_job(job.pk),
                user=user,
            )
        labor_cost = _post_labor(job, refs, user)
        _capture_cost_snapshot(job, cost, labor_cost, refs)

        # Last job of the order done → order ready for dispatch
        if order is not None:
            orders.advance_if_production_finished(order.pk, user=user)
    logger.info("Job %s completed, product %s cost %s", job.reference, product.reference, cost)
    return job


def cancel_job(job_id, reason="", user=None):
    """Release BOM reservations and return consumed material to stock."""
    with transaction.atomic():
        job = lock_one(ProductionJob, job_id)
        JOB_LIFECYCLE.next_state(job.state, JobEvent.CANCEL)
        active = list(job.consumptions.filter(is_reversed=False).order_by("pk"))
        for consumption in active:
            _reverse(job, consumption, user)
        job.bom_lines.update(released=True)
        job.actual_material_cost = Decimal("0.00")
        fields = ["actual_material_cost"]
        if reason:
            job.notes = f"{job.notes}\nCancelled: {reason}".strip()
            fields.append("notes")
        _advance(job, JobEvent.CANCEL, user, extra_fields=fields)
    logger.info("Job %s cancelled, %d consumption(s) reversed", job.reference, len(active))
    return job


_HANDLERS = {
    JobEvent.ALLOCATE: allocate_materials,
    JobEvent.START: start_job,
    JobEvent.SUBMIT_FOR_QC: submit_for_qc,
    JobEvent.REWORK: rework,
    JobEvent.COMPLETE: complete_job,
    JobEvent.CANCEL: cancel_job,
}


def transition(job_id, target_state, payload=None, user=None):
    """Uniform entry point; payload holds the handler's extra arguments."""
    current = ProductionJob.objects.values_list("state", flat=True).get(pk=job_id)
    event = JOB_LIFECYCLE.event_for(current, target_state)
    _HANDLERS[event](job_id, user=user, **(payload or {}))
    return ProductionJob.objects.get(pk=job_id)
