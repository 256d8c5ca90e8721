"""
Reference numbers & business dates.

Two formats are in use:
  JE-000001 / EXP-000001         running sequence per prefix
  ORD-20250118-0001 (PO, JOB, FP) per-day sequence

The clock is injectable so tests (and back-dated imports) can pin "today".
"""
import logging
from contextlib import contextmanager

from django.db import IntegrityError, transaction
from django.db.models.functions import Length
from django.utils import timezone

from ..exceptions import ConcurrentWriteConflict

logger = logging.getLogger(__name__)


class ReferenceGenerator:
    def __init__(self, clock=None):
        # clock() must return an aware datetime
        self.clock = clock or timezone.now

    def now(self):
        return self.clock()

    def today(self):
        return timezone.localdate(self.clock())

    @staticmethod
    def _last_number(model, prefix):
        last = (
            model.objects.filter(reference__startswith=prefix)
            # JE-1000000 must outrank JE-999999
            .order_by(Length("reference").desc(), "-reference")
            .values_list("reference", flat=True)
            .first()
        )
        if not last:
            return 0
        try:
            return int(last[len(prefix):])
        except ValueError:
            return 0

    def sequential(self, model, prefix, width=6):
        """JE-000001 style: next number after the highest one issued."""
        head = f"{prefix}-"
        return f"{head}{self._last_number(model, head) + 1:0{width}d}"

    def dated(self, model, prefix, width=4):
        """ORD-YYYYMMDD-0001 style: numbering restarts every day."""
        head = f"{prefix}-{self.today():%Y%m%d}-"
        return f"{head}{self._last_number(model, head) + 1:0{width}d}"

    # Named helpers used by the services
    def journal(self):
        from ..models import JournalEntry
        return self.sequential(JournalEntry, "JE")

    def expense(self):
        from ..models import Expense
        return self.sequential(Expense, "EXP")

    def order(self):
        from ..models import Order
        return self.dated(Order, "ORD")

    def purchase_order(self):
        from ..models import PurchaseOrder
        return self.dated(PurchaseOrder, "PO")

    def production_job(self):
        from ..models import ProductionJob
        return self.dated(ProductionJob, "JOB")

    def finished_product(self):
        from ..models import FinishedProduct
        return self.dated(FinishedProduct, "FP")


_generator = ReferenceGenerator()


def get_generator():
    return _generator


@contextmanager
def use_generator(generator):
    """Temporarily swap the process-wide generator (tests, imports)."""
    global _generator
    previous, _generator = _generator, generator
    try:
        yield generator
    finally:
        _generator = previous


def save_with_reference(instance, next_reference):
    """
    Insert an unsaved row under the next free reference.
    Two requests can read the same highest number; the one that loses the
    insert gets ConcurrentWriteConflict and may retry.
    """
    model = type(instance)
    instance.reference = reference = next_reference()
    try:
        with transaction.atomic():
            instance.save(force_insert=True)
            return instance
    except IntegrityError as exc:
        if not model.objects.filter(reference=reference).exists():
            raise
        logger.warning("Reference %s was taken concurrently", reference)
        raise ConcurrentWriteConflict(
            f"{model.__name__} reference {reference} is already taken; retry."
        ) from exc
