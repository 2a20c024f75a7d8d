"""Create missing commissions and optionally recompute pending ones."""
from django.core.management.base import BaseCommand

from commissions.engine import CommissionEngine
from commissions.exceptions import CommissionError
from commissions.models import Commission
from commissions.services import backfill_missing_commissions, recalculate_commission


class Command(BaseCommand):
    help = "Create commissions for invoices that have none"

    def add_arguments(self, parser):
        parser.add_argument(
            "--recalculate-pending",
            action="store_true",
            help="Also recompute every pending commission with the current configs.",
        )

    def handle(self, *args, **options):
        engine = CommissionEngine()

        if options["recalculate_pending"]:
            pending = Commission.objects.filter(status=Commission.Status.PENDING).order_by("invoice__invoice_date")
            recalculated = 0
            for commission in pending.iterator():
                try:
                    recalculate_commission(commission, engine=engine)
                    recalculated += 1
                except CommissionError as exc:
                    self.stderr.write(f"Commission {commission.pk}: {exc}")
            self.stdout.write(f"{recalculated} pending commission(s) recalculated.")

        result = backfill_missing_commissions(engine=engine)
        self.stdout.write(self.style.SUCCESS(
            f"Backfill complete: {result['created']} created, {result['skipped']} skipped"
        ))
