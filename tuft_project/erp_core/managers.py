from django.db import models


# -----------------------------------------
# Query helpers shared by services & tasks
# -----------------------------------------
class AccountQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)  # only fetch active accounts

    def by_code(self, code):
        return self.get(code=code)


class JournalEntryQuerySet(models.QuerySet):
    def posted(self):
        return self.filter(status="POSTED")

    def drafts(self):
        return self.filter(status="DRAFT")

    # Enables query:
    # JournalEntry.objects.for_source(EntrySource.order(order.pk))
    def for_source(self, source):
        if source is None:
            return self.filter(source_type__isnull=True)
        return self.filter(source_type=source.kind, source_id=source.pk)


class JournalEntryLineQuerySet(models.QuerySet):
    def posted(self):
        # VOID entries keep their lines for audit but no longer count
        return self.filter(entry__status="POSTED")


class InventoryItemQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def below_reorder_point(self):
        return self.filter(current_stock__lte=models.F("reorder_point"))
