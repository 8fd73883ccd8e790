from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from billing_core.models import Company, Customer, TaxRate, TaxRateKind
from billing_core.services import (CompanyScope, allocate, create_invoice,
                                   create_payment, set_invoice_status)

User = get_user_model()


class Command(BaseCommand):
    help = (
        "Create a demo tenant (company), its owner, and sample invoices and payments."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "--company-name",  # Define flag
            default="Demo Company",
            help="Name of the demo company to create.",
        )
        parser.add_argument(
            "--username", default="demo", help="Username for the demo user."
        )
        parser.add_argument(
            "--password", default="demo123", help="Password for the demo user."
        )

    @transaction.atomic
    def handle(self, *args, **options):
        # Read arguments from add_arguments()
        company_name = options["company_name"]
        username = options["username"]
        password = options["password"]

        # 1. Create user
        user, created = User.objects.get_or_create(
            username=username,
            defaults={"email": f"{username}@example.com"},
        )
        if created:  # if user newly created
            user.set_password(password)
            user.save()
        self.stdout.write(
            self.style.SUCCESS(f"Created user: {user.username} (pw={password})")
        )

        # 2. Create company owned by the user
        company, _ = Company.objects.get_or_create(name=company_name, owner=user)
        self.stdout.write(self.style.SUCCESS(f"Created company: {company}"))

        # 3. Tax rates and a customer
        vat, _ = TaxRate.objects.get_or_create(
            company=company,
            name="VAT 7.5%",
            defaults={"rate_percent": Decimal("7.50"), "kind": TaxRateKind.SALES},
        )
        wht, _ = TaxRate.objects.get_or_create(
            company=company,
            name="WHT 10%",
            defaults={"rate_percent": Decimal("10.00"), "kind": TaxRateKind.WITHHOLDING},
        )
        customer, _ = Customer.objects.get_or_create(
            company=company,
            name=f"{company_name} Customer",
            defaults={"email": "billing@example.com"},
        )
        self.stdout.write(self.style.SUCCESS(f"Created customer: {customer}"))

        # 4. Documents go through the service layer so numbers and audit rows are real
        scope = CompanyScope(company, user=user)
        first = create_invoice(scope, {
            "customer_id": customer.pk,
            "subtotal": "1000.00",
            "sales_tax_rate_id": vat.pk,
        })
        second = create_invoice(scope, {
            "customer_id": customer.pk,
            "subtotal": "600.00",
            "discount_value": "10",
            "discount_type": "percentage",
        })
        for invoice in (first, second):
            set_invoice_status(scope, invoice.pk, "Final")
        self.stdout.write(self.style.SUCCESS(
            f"Created invoices: {first.invoice_number} ({first.total_amount}), "
            f"{second.invoice_number} ({second.total_amount})"
        ))

        payment = create_payment(scope, {
            "customer_id": customer.pk,
            "net_amount": "900.00",
            "withholding_tax_rate_id": wht.pk,
            "mode_of_payment": "bank_transfer",
        })
        allocate(scope, payment.pk, first.pk, payment.gross_amount)
        self.stdout.write(self.style.SUCCESS(
            f"Created payment {payment.payment_number} (gross {payment.gross_amount}) "
            f"and applied it to {first.invoice_number}"
        ))
