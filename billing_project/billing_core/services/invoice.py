import logging

from django.db import transaction

from ..exceptions import InvalidAmount, InvalidPayload, InvalidState, Overallocation
from ..models import (AuditAction, DiscountType, Invoice, InvoiceStatus,
                      TaxRateKind)
from .audit_helper import log_action, snapshot
from .balances import allocated_total_for_invoice
from .numbering import issue_document
from .tax import ZERO, document_totals, round_money, to_decimal
from .validation import clean_choice, clean_date, require_mapping

logger = logging.getLogger(__name__)

AUDITED_FIELDS = [
    "customer",
    "invoice_number",
    "invoice_date",
    "status",
    "subtotal",
    "discount_value",
    "discount_type",
    "sales_tax_rate",
    "total_tax",
    "total_amount",
]


def priced_fields(scope, payload, current=None):
    """
    Subtotal, discount, sales tax rate and computed totals for an
    invoice or estimate. Keys missing from ``payload`` keep the values
    of ``current`` (the document being edited), if any.
    """

    def pick(key, fallback):
        if key in payload:
            return payload.get(key)
        return getattr(current, key) if current is not None else fallback

    if "sales_tax_rate_id" in payload:
        rate_id = payload.get("sales_tax_rate_id")
        rate = scope.get_tax_rate(rate_id, kind=TaxRateKind.SALES) if rate_id not in (None, "") else None
    else:
        rate = current.sales_tax_rate if current is not None else None

    subtotal = to_decimal(pick("subtotal", ZERO))
    if subtotal < ZERO:
        raise InvalidAmount("Subtotal cannot be negative.")
    discount_value = round_money(pick("discount_value", ZERO))
    if discount_value < ZERO:
        raise InvalidAmount("Discount cannot be negative.")
    discount_type = clean_choice(
        pick("discount_type", DiscountType.AMOUNT), "discount_type",
        DiscountType.choices, DiscountType.AMOUNT,
    )

    totals = document_totals(
        subtotal, discount_value, discount_type, rate.rate_percent if rate else None
    )
    return dict(
        subtotal=totals.subtotal,
        discount_value=discount_value,
        discount_type=discount_type,
        sales_tax_rate=rate,
        total_tax=totals.total_tax,
        total_amount=totals.total_amount,
    )


# ----------------------------
# Invoice workflows
# ----------------------------
def create_invoice(scope, payload):
    payload = require_mapping(payload)
    customer = scope.get_customer(payload.get("customer_id"))
    fields = priced_fields(scope, payload)
    fields.update(
        company=scope.company,
        customer=customer,
        status=clean_choice(
            payload.get("status"), "status", InvoiceStatus.choices, InvoiceStatus.DRAFT
        ),
    )
    invoice_date = clean_date(payload.get("invoice_date"), "invoice_date")
    if invoice_date:
        fields["invoice_date"] = invoice_date

    def create(number):
        return Invoice.objects.create(invoice_number=number, **fields)

    with transaction.atomic():
        invoice = issue_document(scope.company, "invoice", create, user=scope.user)
        log_action(
            action=AuditAction.CREATE,
            instance=invoice,
            user=scope.user,
            changes=snapshot(invoice, AUDITED_FIELDS),
        )

    logger.info("Created invoice %s (total %s)", invoice.invoice_number, invoice.total_amount)
    return invoice


def update_invoice(scope, invoice_id, payload):
    """
    Edit an invoice and recompute its totals.

    Once payments are applied the total cannot fall below the paid
    amount, the customer is fixed and the invoice cannot return to Draft.
    """
    payload = require_mapping(payload)

    with transaction.atomic():
        invoice = scope.get_invoice(invoice_id, lock=True)
        before = snapshot(invoice, AUDITED_FIELDS)
        allocated = allocated_total_for_invoice(invoice)

        if "customer_id" in payload:
            customer = scope.get_customer(payload.get("customer_id"))
            if customer.pk != invoice.customer_id and allocated > ZERO:
                raise InvalidState("Cannot move a paid invoice to another customer.")
            invoice.customer = customer

        fields = priced_fields(scope, payload, current=invoice)
        if fields["total_amount"] < allocated:
            raise Overallocation(
                "invoice",
                f"Invoice total cannot be less than the amount already paid ({allocated}).",
            )
        for name, value in fields.items():
            setattr(invoice, name, value)

        if "invoice_date" in payload:
            invoice.invoice_date = clean_date(
                payload.get("invoice_date"), "invoice_date", invoice.invoice_date
            )
        invoice.save()

        if payload.get("status"):
            invoice.transition_to(
                clean_choice(payload["status"], "status", InvoiceStatus.choices)
            )

        log_action(
            action=AuditAction.UPDATE,
            instance=invoice,
            user=scope.user,
            changes={"before": before, "after": snapshot(invoice, AUDITED_FIELDS)},
        )

    logger.info("Updated invoice %s", invoice.invoice_number)
    return invoice


def set_invoice_status(scope, invoice_id, status):
    """Move an invoice through Draft / Final / Sent."""
    status = clean_choice(status, "status", InvoiceStatus.choices)
    if status is None:
        raise InvalidPayload("A target status is required.")

    with transaction.atomic():
        invoice = scope.get_invoice(invoice_id, lock=True)
        previous = invoice.status
        invoice.transition_to(status)
        if previous != invoice.status:
            log_action(
                action=AuditAction.STATUS,
                instance=invoice,
                user=scope.user,
                changes={"from": previous, "to": invoice.status},
            )

    logger.info("Invoice %s: %s -> %s", invoice.invoice_number, previous, invoice.status)
    return invoice


def delete_invoice(scope, invoice_id):
    with transaction.atomic():
        invoice = scope.get_invoice(invoice_id, lock=True)
        if invoice.allocations.exists():
            raise InvalidState("Cannot delete an invoice with applied payments.")
        log_action(
            action=AuditAction.DELETE,
            instance=invoice,
            user=scope.user,
            changes=snapshot(invoice, AUDITED_FIELDS),
        )
        number = invoice.invoice_number
        invoice.delete()

    logger.info("Deleted invoice %s", number)
