from django.core.exceptions import ValidationError


# ---------- Validation ----------
# Rejected before any mutation, message surfaced to caller verbatim.
# Subclass ValidationError so callers catching it keep working.
class LedgerValidationError(ValidationError):
    """Base class for input the core refuses to act on."""
    pass


class ImbalancedEntry(LedgerValidationError):
    """Raised when debits and credits of an entry differ beyond tolerance."""
    pass


class EmptyEntry(LedgerValidationError):
    """Raised when an entry has fewer than two lines or a non-positive amount."""
    pass


class NonPositiveAmount(LedgerValidationError):
    """Raised when a quantity, cost or money amount must be > 0 and isn't."""
    pass


class InactiveAccount(LedgerValidationError):
    """Raised when posting to an account that was deactivated."""
    pass


class MissingAccount(LedgerValidationError):
    """Raised when a required chart-of-accounts code is not configured."""
    pass


class OverReceipt(LedgerValidationError):
    """Raised when receiving more than was ordered on a purchase line."""
    pass


class Overpayment(LedgerValidationError):
    """Raised when a payment exceeds the order's balance due."""
    pass


# ---------- State conflicts ----------
class StateConflict(Exception):
    """Operation is not allowed in the object's current state."""
    pass


class AlreadyPosted(StateConflict):
    pass


class AlreadyVoid(StateConflict):
    pass


class InvalidVoidTarget(StateConflict):
    """Only POSTED entries can be voided."""
    pass


class IllegalTransition(StateConflict):
    """No row in the lifecycle table for (current state, event)."""

    def __init__(self, lifecycle, current, event):
        self.lifecycle = lifecycle
        self.current = current
        self.event = event
        super().__init__(
            f"{lifecycle}: cannot apply '{event}' while in state {current}"
        )


class TransitionGuardFailed(StateConflict):
    """Transition exists in the table but its guard is not met."""
    pass


class OrderItemsLocked(StateConflict):
    """Order items are frozen once production has started."""
    pass


# ---------- Resource conflicts ----------
class ResourceConflict(Exception):
    pass


class InsufficientStock(ResourceConflict):
    def __init__(self, sku, requested, available):
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {sku}: requested {requested}, available {available}"
        )


class ConcurrentWriteConflict(ResourceConflict):
    """Row lock could not be acquired in time; the caller may retry."""
    pass


# ---------- Integrity ----------
class IntegrityViolation(Exception):
    pass


class HasChildren(IntegrityViolation):
    pass


class HasJournalLines(IntegrityViolation):
    pass


class HasHistory(IntegrityViolation):
    """Record already took part in postings or stock movements."""
    pass
