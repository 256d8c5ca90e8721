import logging
from decimal import Decimal

from celery import shared_task
from django.db import models, transaction

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def reconcile_ledger(repair=False):
    """
    Compare cached running figures against the history behind them:
      Account.balance            vs Σ signed posted journal lines
      InventoryItem.current_stock vs Σ movement quantity changes
    Drift is logged; with repair=True the cached value is overwritten.
    Returns a summary dict (JSON friendly for the result backend).
    """
    # import lazily to avoid circular imports at module import time
    from .models import Account, InventoryItem
    from .services.ledger import recompute_account_balance
    from .services.locking import lock_one

    summary = {"accounts_checked": 0, "items_checked": 0,
               "account_drift": [], "stock_drift": [], "repaired": bool(repair)}

    for account in Account.objects.order_by("pk"):
        summary["accounts_checked"] += 1
        expected = recompute_account_balance(account)
        if expected == account.balance:
            continue
        logger.warning("Account %s balance %s, posted lines say %s",
                       account.code, account.balance, expected)
        summary["account_drift"].append(
            {"code": account.code, "cached": str(account.balance),
             "expected": str(expected)})
        if repair:
            with transaction.atomic():
                locked = lock_one(Account, account.pk)
                locked.balance = recompute_account_balance(locked)
                locked.save(update_fields=["balance"])

    for item in InventoryItem.objects.order_by("pk"):
        summary["items_checked"] += 1
        # To prevent 'or' from being applied inside aggregate() accidentally
        # Compute agg with Sum(...) first
        agg = item.movements.aggregate(total=models.Sum("quantity_change"))
        expected = agg["total"] or Decimal("0")
        if expected == item.current_stock:
            continue
        logger.warning("Item %s stock %s, movements say %s",
                       item.sku, item.current_stock, expected)
        summary["stock_drift"].append(
            {"sku": item.sku, "cached": str(item.current_stock),
             "expected": str(expected)})
        if repair:
            with transaction.atomic():
                locked = lock_one(InventoryItem, item.pk)
                locked.current_stock = locked.movements.aggregate(
                    total=models.Sum("quantity_change"))["total"] or Decimal("0")
                locked.save(update_fields=["current_stock"])

    logger.info("Reconciliation: %d account(s), %d item(s), %d + %d drift",
                summary["accounts_checked"], summary["items_checked"],
                len(summary["account_drift"]), len(summary["stock_drift"]))
    return summary
