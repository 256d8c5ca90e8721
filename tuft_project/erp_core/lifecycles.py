"""
Transition tables for the business-object lifecycles.

Each lifecycle is an explicit (current state, event) -> next state table.
Anything not listed is rejected with IllegalTransition, so the set of legal
moves can be read (and tested) in one place instead of being spread over
if-statements in the services.
"""
from django.db import models

from .exceptions import IllegalTransition


# ---------- States ----------
class OrderState(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    PENDING_DEPOSIT = "PENDING_DEPOSIT", "Pending Deposit"
    DEPOSIT_PAID = "DEPOSIT_PAID", "Deposit Paid"
    IN_PRODUCTION = "IN_PRODUCTION", "In Production"
    READY_FOR_DISPATCH = "READY_FOR_DISPATCH", "Ready for Dispatch"
    DISPATCHED = "DISPATCHED", "Dispatched"
    CLOSED = "CLOSED", "Closed"
    ARCHIVED = "ARCHIVED", "Archived"


class PurchaseState(models.TextChoices):
    DRAFT = "DRAFT", "Draft"
    SENT = "SENT", "Sent"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED", "Partially Received"
    FULLY_RECEIVED = "FULLY_RECEIVED", "Fully Received"
    CLOSED = "CLOSED", "Closed"


class JobState(models.TextChoices):
    PLANNED = "PLANNED", "Planned"
    MATERIALS_ALLOCATED = "MATERIALS_ALLOCATED", "Materials Allocated"
    IN_PROGRESS = "IN_PROGRESS", "In Progress"
    QUALITY_CHECK = "QUALITY_CHECK", "Quality Check"
    COMPLETED = "COMPLETED", "Completed"
    CANCELLED = "CANCELLED", "Cancelled"


# ---------- Events ----------
class OrderEvent(models.TextChoices):
    SUBMIT = "submit"
    DEPOSIT_PAID = "deposit_paid"
    START_PRODUCTION = "start_production"
    PRODUCTION_FINISHED = "production_finished"
    DISPATCH = "dispatch"
    CLOSE = "close"
    ARCHIVE = "archive"


class PurchaseEvent(models.TextChoices):
    SEND = "send"
    RECEIVE_PARTIAL = "receive_partial"
    RECEIVE_ALL = "receive_all"
    CLOSE = "close"


class JobEvent(models.TextChoices):
    ALLOCATE = "allocate"
    START = "start"
    SUBMIT_FOR_QC = "submit_for_qc"
    REWORK = "rework"
    COMPLETE = "complete"
    CANCEL = "cancel"


class Lifecycle:
    """A finite-state machine described by its transition table."""

    def __init__(self, name, table, terminal=()):
        self.name = name
        # keys kept as plain strings so values read back from the DB match
        self.table = {
            (str(state), str(event)): to for (state, event), to in table.items()
        }
        self.terminal = frozenset(terminal)

    def next_state(self, current, event):
        try:
            return self.table[(str(current), str(event))]
        except KeyError:
            raise IllegalTransition(self.name, current, event) from None

    def can(self, current, event):
        return (str(current), str(event)) in self.table

    def events_from(self, current):
        return [event for (state, event) in self.table if state == str(current)]

    def event_for(self, current, target):
        """Find the event that moves `current` to `target` (used by transition())."""
        for (state, event), to in self.table.items():
            if state == str(current) and to == target:
                return event
        raise IllegalTransition(self.name, current, f"-> {target}")


ORDER_LIFECYCLE = Lifecycle(
    "Order",
    {
        (OrderState.DRAFT, OrderEvent.SUBMIT): OrderState.PENDING_DEPOSIT,
        (OrderState.DRAFT, OrderEvent.ARCHIVE): OrderState.ARCHIVED,
        (OrderState.PENDING_DEPOSIT, OrderEvent.DEPOSIT_PAID): OrderState.DEPOSIT_PAID,
        (OrderState.PENDING_DEPOSIT, OrderEvent.ARCHIVE): OrderState.ARCHIVED,
        (OrderState.DEPOSIT_PAID, OrderEvent.START_PRODUCTION): OrderState.IN_PRODUCTION,
        (OrderState.IN_PRODUCTION, OrderEvent.PRODUCTION_FINISHED): OrderState.READY_FOR_DISPATCH,
        (OrderState.READY_FOR_DISPATCH, OrderEvent.DISPATCH): OrderState.DISPATCHED,
        (OrderState.DISPATCHED, OrderEvent.CLOSE): OrderState.CLOSED,
        (OrderState.CLOSED, OrderEvent.ARCHIVE): OrderState.ARCHIVED,
    },
    terminal=[OrderState.ARCHIVED],
)

# Items can no longer be edited once the order reached any of these
ORDER_ITEMS_FROZEN = frozenset({
    OrderState.IN_PRODUCTION,
    OrderState.READY_FOR_DISPATCH,
    OrderState.DISPATCHED,
    OrderState.CLOSED,
    OrderState.ARCHIVED,
})

PURCHASE_LIFECYCLE = Lifecycle(
    "PurchaseOrder",
    {
        (PurchaseState.DRAFT, PurchaseEvent.SEND): PurchaseState.SENT,
        (PurchaseState.SENT, PurchaseEvent.RECEIVE_PARTIAL): PurchaseState.PARTIALLY_RECEIVED,
        (PurchaseState.SENT, PurchaseEvent.RECEIVE_ALL): PurchaseState.FULLY_RECEIVED,
        (PurchaseState.PARTIALLY_RECEIVED, PurchaseEvent.RECEIVE_PARTIAL): PurchaseState.PARTIALLY_RECEIVED,
        (PurchaseState.PARTIALLY_RECEIVED, PurchaseEvent.RECEIVE_ALL): PurchaseState.FULLY_RECEIVED,
        (PurchaseState.PARTIALLY_RECEIVED, PurchaseEvent.CLOSE): PurchaseState.CLOSED,
        (PurchaseState.FULLY_RECEIVED, PurchaseEvent.CLOSE): PurchaseState.CLOSED,
    },
    terminal=[PurchaseState.CLOSED],
)

_CANCELLABLE = (
    JobState.PLANNED,
    JobState.MATERIALS_ALLOCATED,
    JobState.IN_PROGRESS,
    JobState.QUALITY_CHECK,
)

JOB_LIFECYCLE = Lifecycle(
    "ProductionJob",
    {
        (JobState.PLANNED, JobEvent.ALLOCATE): JobState.MATERIALS_ALLOCATED,
        (JobState.MATERIALS_ALLOCATED, JobEvent.START): JobState.IN_PROGRESS,
        (JobState.IN_PROGRESS, JobEvent.SUBMIT_FOR_QC): JobState.QUALITY_CHECK,
        (JobState.QUALITY_CHECK, JobEvent.REWORK): JobState.IN_PROGRESS,
        (JobState.QUALITY_CHECK, JobEvent.COMPLETE): JobState.COMPLETED,
        **{(state, JobEvent.CANCEL): JobState.CANCELLED for state in _CANCELLABLE},
    },
    terminal=[JobState.COMPLETED, JobState.CANCELLED],
)

# Consumption may only be recorded (or corrected) while material is on the floor
JOB_CONSUMPTION_STATES = frozenset({
    JobState.MATERIALS_ALLOCATED,
    JobState.IN_PROGRESS,
    JobState.QUALITY_CHECK,
})
