from django.core.management.base import BaseCommand, CommandError

from billing_core.models import Company
from billing_core.tasks import reconcile_payment_statuses


class Command(BaseCommand):
    help = "Recompute cached payment allocation statuses (all companies, or one)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--company-id",
            type=int,
            help="Only reconcile this company.",
        )
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Queue one Celery task per company instead of running inline.",
        )

    def handle(self, *args, **options):
        companies = Company.objects.order_by("pk")
        if options["company_id"]:
            companies = companies.filter(pk=options["company_id"])
            if not companies.exists():
                raise CommandError(f"Company {options['company_id']} does not exist.")

        for company in companies:
            if options["run_async"]:
                reconcile_payment_statuses.delay(company.pk)
                self.stdout.write(self.style.NOTICE(f"Queued reconciliation for {company}"))
                continue
            repaired = reconcile_payment_statuses(company.pk)
            self.stdout.write(
                self.style.SUCCESS(f"{company}: {len(repaired)} payment status(es) repaired")
            )
