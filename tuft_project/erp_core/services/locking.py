"""
Row-lock helpers.

Every mutating service locks the rows it touches with SELECT ... FOR UPDATE
inside its transaction.atomic() block. Locks on several rows are always taken
in primary-key order so two workflows touching the same accounts/items can't
deadlock each other.

The wait is bounded by the database (PostgreSQL lock_timeout from settings) or
skipped entirely with ERP_LOCK_NOWAIT; either way a lock that can't be had is
reported as ConcurrentWriteConflict and the caller decides whether to retry.
"""
import logging

from django.conf import settings
from django.db import OperationalError

from ..exceptions import ConcurrentWriteConflict

logger = logging.getLogger(__name__)


def _nowait():
    return getattr(settings, "ERP_LOCK_NOWAIT", False)


def lock_one(model, pk):
    """Lock and return a single row. DoesNotExist propagates untouched."""
    try:
        return model.objects.select_for_update(nowait=_nowait()).get(pk=pk)
    except OperationalError as exc:
        logger.warning("Lock timeout on %s(%s): %s", model.__name__, pk, exc)
        raise ConcurrentWriteConflict(
            f"{model.__name__} {pk} is being modified by another request; retry."
        ) from exc


def lock_many(model, pks):
    """Lock a set of rows in pk order, return {pk: instance}."""
    pks = sorted(set(pks))
    if not pks:
        return {}
    try:
        rows = list(
            model.objects.select_for_update(nowait=_nowait())
            .filter(pk__in=pks)
            .order_by("pk")
        )
    except OperationalError as exc:
        logger.warning("Lock timeout on %s%s: %s", model.__name__, pks, exc)
        raise ConcurrentWriteConflict(
            f"{model.__name__} rows {pks} are being modified by another request; retry."
        ) from exc
    found = {row.pk: row for row in rows}
    missing = [pk for pk in pks if pk not in found]
    if missing:
        raise model.DoesNotExist(f"{model.__name__} not found: {missing}")
    return found
