from decimal import Decimal

from django.db.models import Sum
from django.db.models.functions import Coalesce

from ..models import Allocation

ZERO = Decimal("0.00")


# ----------------------------
# Fresh aggregates over the allocation set
# ----------------------------
def allocated_total_for_payment(payment) -> Decimal:
    return Allocation.objects.filter(payment_id=payment.pk).aggregate(
        total=Coalesce(Sum("allocated_amount"), ZERO)
    )["total"]


def allocated_total_for_invoice(invoice) -> Decimal:
    return Allocation.objects.filter(invoice_id=invoice.pk).aggregate(
        total=Coalesce(Sum("allocated_amount"), ZERO)
    )["total"]


def invoice_outstanding(invoice) -> Decimal:
    """Unpaid part of an invoice total, never negative."""
    return max(ZERO, invoice.total_amount - allocated_total_for_invoice(invoice))


def payment_remaining(payment) -> Decimal:
    """Unallocated part of a payment's gross amount, never negative."""
    return max(ZERO, payment.gross_amount - allocated_total_for_payment(payment))


def get_outstanding(scope, invoice_id) -> Decimal:
    return invoice_outstanding(scope.get_invoice(invoice_id))


def get_remaining(scope, payment_id) -> Decimal:
    return payment_remaining(scope.get_payment(payment_id))


# ----------------------------
# Read models for the allocation screens
# ----------------------------
def list_unpaid_invoices(scope, customer_id):
    """
    Final/Sent invoices of one customer that still have a balance,
    oldest first.
    """
    customer = scope.get_customer(customer_id)
    invoices = (
        scope.invoices()
        .allocatable()
        .filter(customer=customer)
        .annotate(paid=Coalesce(Sum("allocations__allocated_amount"), ZERO))
        .order_by("invoice_date", "id")
    )

    rows = []
    for inv in invoices:
        outstanding = max(ZERO, inv.total_amount - inv.paid)
        if outstanding > 0:
            rows.append({
                "invoice_id": inv.pk,
                "invoice_number": inv.invoice_number,
                "invoice_date": inv.invoice_date,
                "total_amount": inv.total_amount,
                "outstanding": outstanding,
            })
    return rows


def available_payments_for_customer(scope, customer_id):
    """Payments of one customer that can still be allocated."""
    customer = scope.get_customer(customer_id)
    payments = (
        scope.payments()
        .open_for_allocation()
        .filter(customer=customer)
        .annotate(allocated=Coalesce(Sum("allocations__allocated_amount"), ZERO))
        .order_by("payment_date", "id")
    )
    return [
        {
            "payment_id": p.pk,
            "payment_number": p.payment_number,
            "payment_date": p.payment_date,
            "gross_amount": p.gross_amount,
            "allocated_amount": p.allocated,
            "remaining": max(ZERO, p.gross_amount - p.allocated),
        }
        for p in payments
    ]


def invoice_payment_summary(scope, invoice_id):
    invoice = scope.get_invoice(invoice_id)
    allocations = (
        scope.allocations()
        .filter(invoice=invoice)
        .select_related("payment")
        .order_by("created_at", "id")
    )
    paid = sum((a.allocated_amount for a in allocations), ZERO)
    return {
        "invoice_id": invoice.pk,
        "status": invoice.status,
        "total_amount": invoice.total_amount,
        "paid_amount": paid,
        "outstanding": max(ZERO, invoice.total_amount - paid),
        "allocations": [
            {
                "id": a.pk,
                "payment_number": a.payment.payment_number,
                "payment_date": a.payment.payment_date,
                "allocated_amount": a.allocated_amount,
            }
            for a in allocations
        ],
    }


def payment_summary(scope, payment_id):
    payment = scope.get_payment(payment_id)
    allocated = allocated_total_for_payment(payment)
    return {
        "payment_id": payment.pk,
        "payment_number": payment.payment_number,
        "customer_id": payment.customer_id,
        "gross_amount": payment.gross_amount,
        "net_amount": payment.net_amount,
        "withholding_amount": payment.withholding_amount,
        "allocated_amount": allocated,
        "remaining": max(ZERO, payment.gross_amount - allocated),
        "status": payment.status,
    }


__all__ = [
    "allocated_total_for_invoice",
    "allocated_total_for_payment",
    "available_payments_for_customer",
    "get_outstanding",
    "get_remaining",
    "invoice_outstanding",
    "invoice_payment_summary",
    "list_unpaid_invoices",
    "payment_remaining",
    "payment_summary",
]
