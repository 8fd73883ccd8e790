import logging

from django.db import transaction
from django.utils import timezone

from ..exceptions import InvalidAmount, InvalidState, Overallocation
from ..models import PAYMENT_METHODS, AuditAction, Payment, TaxRateKind
from .allocation import refresh_payment_status
from .audit_helper import log_action, snapshot
from .balances import allocated_total_for_payment
from .numbering import issue_document
from .tax import ZERO, payment_amounts, to_decimal
from .validation import clean_choice, clean_date, clean_text, require_mapping

logger = logging.getLogger(__name__)

AUDITED_FIELDS = [
    "customer",
    "payment_number",
    "payment_date",
    "gross_amount",
    "net_amount",
    "withholding_amount",
    "withholding_tax_rate",
    "status",
]


def _withholding_rate(scope, payload, current=None):
    # Absent key keeps the current rate; an explicit blank clears it
    if "withholding_tax_rate_id" not in payload:
        return current
    rate_id = payload.get("withholding_tax_rate_id")
    if rate_id is None or rate_id == "":
        return None
    return scope.get_tax_rate(rate_id, kind=TaxRateKind.WITHHOLDING)


def _amounts(payload, rate, current_net=None, current_override=None):
    raw_net = payload.get("net_amount", payload.get("amount", current_net))
    net = to_decimal(raw_net)
    if net <= ZERO:
        raise InvalidAmount("Net amount must be positive.")

    gross, net, withholding = payment_amounts(
        net,
        rate.rate_percent if rate else None,
        payload.get("withholding_amount", current_override),
    )
    if gross <= ZERO:
        raise InvalidAmount("Gross amount must be positive.")
    return gross, net, withholding


# ----------------------------
# Payment workflows
# ----------------------------
def create_payment(scope, payload):
    """
    Record money received from a customer.

    The gross amount is derived server-side from the net cash received
    and the withholding rate (or a typed withholding amount). The payment
    starts Unallocated with a freshly issued number.
    """
    payload = require_mapping(payload)
    customer = scope.get_customer(payload.get("customer_id"))
    rate = _withholding_rate(scope, payload)
    gross, net, withholding = _amounts(payload, rate)

    fields = dict(
        company=scope.company,
        customer=customer,
        payment_date=clean_date(payload.get("payment_date"), "payment_date", timezone.localdate()),
        received_date=clean_date(payload.get("received_date"), "received_date"),
        mode_of_payment=clean_choice(
            payload.get("mode_of_payment"), "mode_of_payment", PAYMENT_METHODS, "cheque"
        ),
        gross_amount=gross,
        net_amount=net,
        withholding_amount=withholding,
        withholding_tax_rate=rate,
        reference=clean_text(payload.get("reference"), 200),
        notes=clean_text(payload.get("notes")),
    )

    def create(number):
        return Payment.objects.create(payment_number=number, **fields)

    with transaction.atomic():
        payment = issue_document(scope.company, "payment", create, user=scope.user)
        log_action(
            action=AuditAction.CREATE,
            instance=payment,
            user=scope.user,
            changes=snapshot(payment, AUDITED_FIELDS),
        )

    logger.info("Created payment %s (gross %s)", payment.payment_number, payment.gross_amount)
    return payment


def update_payment(scope, payment_id, payload):
    """
    Edit a payment's details and amounts.

    The gross amount may not drop below what is already allocated, and
    the customer cannot change once the payment has been applied.
    """
    payload = require_mapping(payload)

    with transaction.atomic():
        payment = scope.get_payment(payment_id, lock=True)
        before = snapshot(payment, AUDITED_FIELDS)
        allocated = allocated_total_for_payment(payment)

        if "customer_id" in payload:
            customer = scope.get_customer(payload.get("customer_id"))
            if customer.pk != payment.customer_id and allocated > ZERO:
                raise InvalidState("Cannot move an allocated payment to another customer.")
            payment.customer = customer

        rate = _withholding_rate(scope, payload, payment.withholding_tax_rate)
        # A typed withholding amount (no rate) survives edits that do not resend it
        override = None
        if rate is None and payment.withholding_tax_rate_id is None:
            override = payment.withholding_amount
        gross, net, withholding = _amounts(
            payload, rate, current_net=payment.net_amount, current_override=override
        )
        if gross < allocated:
            raise Overallocation(
                "payment",
                f"Gross amount cannot be less than the amount already allocated ({allocated}).",
            )

        payment.gross_amount = gross
        payment.net_amount = net
        payment.withholding_amount = withholding
        payment.withholding_tax_rate = rate

        if "payment_date" in payload:
            payment.payment_date = clean_date(
                payload.get("payment_date"), "payment_date", payment.payment_date
            )
        if "received_date" in payload:
            payment.received_date = clean_date(payload.get("received_date"), "received_date")
        if "mode_of_payment" in payload:
            payment.mode_of_payment = clean_choice(
                payload.get("mode_of_payment"), "mode_of_payment",
                PAYMENT_METHODS, payment.mode_of_payment,
            )
        if "reference" in payload:
            payment.reference = clean_text(payload.get("reference"), 200)
        if "notes" in payload:
            payment.notes = clean_text(payload.get("notes"))

        payment.save()
        # A smaller or larger gross can move the payment between states
        refresh_payment_status(payment)

        log_action(
            action=AuditAction.UPDATE,
            instance=payment,
            user=scope.user,
            changes={"before": before, "after": snapshot(payment, AUDITED_FIELDS)},
        )

    logger.info("Updated payment %s", payment.payment_number)
    return payment


def delete_payment(scope, payment_id):
    """Delete a payment together with every allocation it made."""
    with transaction.atomic():
        payment = scope.get_payment(payment_id, lock=True)
        allocation_count = payment.allocations.count()

        # log first: the pk is gone after delete()
        log_action(
            action=AuditAction.DELETE,
            instance=payment,
            user=scope.user,
            changes={
                **snapshot(payment, AUDITED_FIELDS),
                "allocations_removed": allocation_count,
            },
        )
        number = payment.payment_number
        payment.delete()

    logger.info("Deleted payment %s and %s allocation(s)", number, allocation_count)
    return allocation_count
