import datetime
from decimal import Decimal

from ..models import (Company, Customer, Invoice, InvoiceStatus, Payment,
                      TaxRate, TaxRateKind)


def make_company(name="Test Co", owner=None, **kwargs):
    return Company.objects.create(name=name, owner=owner, **kwargs)


def make_customer(company, name="Acme Ltd"):
    return Customer.objects.create(company=company, name=name)


def make_tax_rate(company, rate, kind=TaxRateKind.SALES, name=None):
    return TaxRate.objects.create(
        company=company,
        name=name or f"{kind} {rate}%",
        rate_percent=Decimal(rate),
        kind=kind,
    )


def make_invoice(company, customer, total, number, status=InvoiceStatus.FINAL, date=None):
    """Invoice row written directly, bypassing the numbering allocator."""
    return Invoice.objects.create(
        company=company,
        customer=customer,
        invoice_number=number,
        invoice_date=date or datetime.date(2025, 9, 17),
        status=status,
        subtotal=Decimal(total),
        total_amount=Decimal(total),
    )


def make_payment(company, customer, gross, number, withholding="0.00"):
    """Payment row written directly; gross = net + withholding."""
    gross = Decimal(gross)
    withholding = Decimal(withholding)
    return Payment.objects.create(
        company=company,
        customer=customer,
        payment_number=number,
        payment_date=datetime.date(2025, 9, 18),
        gross_amount=gross,
        net_amount=gross - withholding,
        withholding_amount=withholding,
    )
