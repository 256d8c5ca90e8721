from django.core.management.base import BaseCommand

from erp_core.tasks import reconcile_ledger


class Command(BaseCommand):
    help = (
        "Check cached account balances and stock levels against posted history."
    )

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--repair",  # Define flag
            action="store_true",
            help="Overwrite drifted cached values with the recomputed ones.",
        )

    def handle(self, *args, **options):
        # run synchronously, no worker needed
        summary = reconcile_ledger(repair=options["repair"])

        for row in summary["account_drift"]:
            self.stdout.write(self.style.WARNING(
                f"Account {row['code']}: cached {row['cached']} expected {row['expected']}"))
        for row in summary["stock_drift"]:
            self.stdout.write(self.style.WARNING(
                f"Item {row['sku']}: cached {row['cached']} expected {row['expected']}"))

        drift = len(summary["account_drift"]) + len(summary["stock_drift"])
        if drift == 0:
            self.stdout.write(self.style.SUCCESS(
                f"Ledger consistent: {summary['accounts_checked']} account(s), "
                f"{summary['items_checked']} item(s) checked."))
        elif options["repair"]:
            self.stdout.write(self.style.SUCCESS(f"Repaired {drift} cached value(s)."))
        else:
            self.stdout.write(self.style.ERROR(
                f"{drift} drifted value(s); rerun with --repair to fix."))
