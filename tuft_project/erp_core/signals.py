from django.db.models.signals import post_delete, post_save, pre_delete
from django.dispatch import receiver

from .exceptions import HasHistory, HasJournalLines
from .lifecycles import OrderState
from .models import Account, EntryStatus, JournalEntry, Order, OrderItem

"""Block deletion if account has ever been used in a journal line."""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if instance.lines.exists():
        raise HasJournalLines(
            f"Cannot delete account {instance.code}: it is used in journal lines."
        )


"""Posted and void entries are history; only drafts may disappear."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_non_draft_journal(sender, instance, **kwargs):
    if instance.status != EntryStatus.DRAFT:
        raise HasHistory(
            f"Cannot delete journal {instance.reference} in status {instance.status}."
        )


"""Orders leave the books only from DRAFT or ARCHIVED."""


@receiver(pre_delete, sender=Order)
def prevent_delete_active_order(sender, instance, **kwargs):
    if instance.state not in (OrderState.DRAFT, OrderState.ARCHIVED):
        raise HasHistory(
            f"Cannot delete order {instance.reference} in state {instance.state}."
        )


"""
    Recalculate order total when an item is added/updated/removed.
"""


@receiver((post_save, post_delete), sender=OrderItem)
def order_item_changed(sender, instance, **kwargs):
    try:
        order = Order.objects.get(pk=instance.order_id)
    except Order.DoesNotExist:
        return  # order itself is being deleted (cascade)
    order.recalc_total()
    # save totals only, to reduce churn
    order.save(update_fields=["total_amount", "updated_at"])
