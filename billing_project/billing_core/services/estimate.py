import logging

from django.db import transaction

from ..exceptions import InvalidState
from ..models import (AuditAction, Estimate, EstimateStatus, Invoice,
                      InvoiceStatus)
from .audit_helper import log_action, snapshot
from .invoice import AUDITED_FIELDS as INVOICE_FIELDS
from .invoice import priced_fields
from .numbering import issue_document
from .validation import clean_choice, clean_date, require_mapping

logger = logging.getLogger(__name__)

AUDITED_FIELDS = [
    "customer",
    "estimate_number",
    "estimate_date",
    "valid_until",
    "status",
    "subtotal",
    "discount_value",
    "discount_type",
    "sales_tax_rate",
    "total_tax",
    "total_amount",
]

# Converted is reached through conversion only
CREATABLE_STATUSES = [
    (EstimateStatus.DRAFT, EstimateStatus.DRAFT.label),
    (EstimateStatus.SENT, EstimateStatus.SENT.label),
]


def create_estimate(scope, payload):
    payload = require_mapping(payload)
    customer = scope.get_customer(payload.get("customer_id"))
    fields = priced_fields(scope, payload)
    fields.update(
        company=scope.company,
        customer=customer,
        valid_until=clean_date(payload.get("valid_until"), "valid_until"),
        status=clean_choice(
            payload.get("status"), "status", CREATABLE_STATUSES, EstimateStatus.DRAFT
        ),
    )
    estimate_date = clean_date(payload.get("estimate_date"), "estimate_date")
    if estimate_date:
        fields["estimate_date"] = estimate_date

    def create(number):
        return Estimate.objects.create(estimate_number=number, **fields)

    with transaction.atomic():
        estimate = issue_document(scope.company, "estimate", create, user=scope.user)
        log_action(
            action=AuditAction.CREATE,
            instance=estimate,
            user=scope.user,
            changes=snapshot(estimate, AUDITED_FIELDS),
        )

    logger.info("Created estimate %s", estimate.estimate_number)
    return estimate


def convert_estimate_to_invoice(scope, estimate_id):
    """
    Turn an estimate into a Draft invoice carrying the same totals.

    The estimate is locked first, then the company (by the numbering
    allocator), so two conversions of one estimate cannot both succeed.
    """
    with transaction.atomic():
        estimate = scope.get_estimate(estimate_id, lock=True)
        if estimate.status == EstimateStatus.CONVERTED:
            raise InvalidState("Estimate has already been converted.")
        if estimate.is_expired():
            raise InvalidState("Estimate has expired and cannot be converted.")

        def create(number):
            return Invoice.objects.create(
                company=scope.company,
                customer=estimate.customer,
                estimate=estimate,
                invoice_number=number,
                status=InvoiceStatus.DRAFT,
                subtotal=estimate.subtotal,
                discount_value=estimate.discount_value,
                discount_type=estimate.discount_type,
                sales_tax_rate=estimate.sales_tax_rate,
                total_tax=estimate.total_tax,
                total_amount=estimate.total_amount,
            )

        invoice = issue_document(scope.company, "invoice", create, user=scope.user)

        estimate.status = EstimateStatus.CONVERTED
        estimate.save(update_fields=["status", "updated_at"])

        log_action(
            action=AuditAction.CONVERT,
            instance=estimate,
            user=scope.user,
            changes={
                "invoice_id": invoice.pk,
                "invoice": snapshot(invoice, INVOICE_FIELDS),
            },
        )

    logger.info("Converted estimate %s into invoice %s", estimate.estimate_number, invoice.invoice_number)
    return invoice
