from django.core.management.base import BaseCommand

from erp_core.services.chart import STANDARD_CHART, seed_chart


class Command(BaseCommand):
    help = "Seeds the standard tufting chart of accounts (existing codes are kept)."

    def handle(self, *args, **options):
        self.stdout.write(self.style.NOTICE(
            f"Seeding {len(STANDARD_CHART)} standard accounts..."))
        created = seed_chart()
        self.stdout.write(self.style.SUCCESS(
            f"Chart of accounts ready ({created} new account(s))."))
