import logging
from collections.abc import Mapping

from django.db import transaction
from django.utils import timezone

from ..exceptions import (Exhausted, InvalidAmount, InvalidPayload,
                          InvalidState, NotFound, Overallocation)
from ..models import Allocation, AuditAction, Payment, PaymentStatus
from .audit_helper import log_action
from .balances import (allocated_total_for_payment, invoice_outstanding,
                       payment_remaining)
from .tax import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


# ----------------------------
# Payment status state machine
# ----------------------------
def recompute_status(allocated_total, gross_amount):
    """
    Derive a payment's allocation status from its allocated sum.
    Nothing allocated is Unallocated, even for a zero-gross payment.
    """
    allocated = to_decimal(allocated_total)
    if allocated <= ZERO:
        return PaymentStatus.UNALLOCATED
    if allocated >= to_decimal(gross_amount):
        return PaymentStatus.ALLOCATED
    return PaymentStatus.PARTIALLY_ALLOCATED


def _store_status(payment):
    # Caller holds the payment row lock
    status = recompute_status(allocated_total_for_payment(payment), payment.gross_amount)
    if status != payment.status:
        Payment.objects.filter(pk=payment.pk).update(status=status, updated_at=timezone.now())
        payment.status = status
    return status


def refresh_payment_status(payment):
    """Recompute and persist the cached status from the allocation set."""
    with transaction.atomic():
        locked = Payment.objects.select_for_update().get(pk=payment.pk)
        status = _store_status(locked)
    payment.status = status
    return status


def _allocation_amount(amount):
    try:
        value = round_money(amount)
    except InvalidAmount:
        raise InvalidAmount("Amount must be a positive number.")
    if value <= ZERO:
        raise InvalidAmount()
    return value


# ----------------------------
# Ledger mutations
# ----------------------------
def allocate(scope, payment_id, invoice_id, amount):
    """
    Apply ``amount`` of a payment's gross to one invoice.

    Checks run in a fixed order and the first failure wins: amount,
    payment, invoice, invoice status, payment exhausted, payment
    remaining, invoice outstanding. The payment row is locked before
    the invoice row; balances are read after both locks are held.
    """
    amount = _allocation_amount(amount)

    with transaction.atomic():
        payment = scope.get_payment(payment_id, lock=True)
        invoice = scope.get_invoice(invoice_id, lock=True)

        if not invoice.is_allocatable:
            raise InvalidState(
                "Invoice is not finalized. Only Final or Sent invoices can receive payments."
            )

        remaining = payment_remaining(payment)
        if remaining <= ZERO:
            raise Exhausted("payment")
        if amount > remaining:
            raise Overallocation("payment")
        if amount > invoice_outstanding(invoice):
            raise Overallocation("invoice")

        allocation = Allocation.objects.create(
            company=scope.company,
            payment=payment,
            invoice=invoice,
            allocated_amount=amount,
        )
        status = _store_status(payment)

        log_action(
            action=AuditAction.ALLOCATE,
            instance=allocation,
            user=scope.user,
            changes={
                "payment_id": payment.pk,
                "invoice_id": invoice.pk,
                "amount": amount,
                "payment_status": status,
            },
        )

    logger.info(
        "Allocated %s from %s to %s", amount, payment.payment_number, invoice.invoice_number
    )
    return allocation


def remove_allocation(scope, allocation_id):
    """
    Delete one allocation and recompute its payment's status.
    Removing an already removed allocation raises NotFound.
    """
    with transaction.atomic():
        allocation = scope.get_allocation(allocation_id)
        payment = scope.get_payment(allocation.payment_id, lock=True)

        # Re-check under the payment lock; a concurrent removal wins
        deleted, _ = scope.allocations().filter(pk=allocation.pk).delete()
        if not deleted:
            raise NotFound("allocation")

        status = _store_status(payment)
        log_action(
            action=AuditAction.REMOVE_ALLOCATION,
            instance=allocation,
            user=scope.user,
            changes={
                "payment_id": payment.pk,
                "invoice_id": allocation.invoice_id,
                "amount": allocation.allocated_amount,
                "payment_status": status,
            },
        )

    logger.info("Removed allocation %s from %s", allocation.pk, payment.payment_number)
    return payment


def allocate_many(scope, payment_id, applications):
    """
    Apply one payment to several invoices as a single unit.

    ``applications`` is a list of ``{"invoice_id": ..., "amount": ...}``
    records; if any of them is rejected none are kept.
    """
    if not isinstance(applications, (list, tuple)):
        raise InvalidPayload("Allocations must be a list of {invoice_id, amount} records.")
    if not applications:
        raise InvalidPayload("At least one allocation is required.")

    with transaction.atomic():
        results = []
        for ap in applications:
            if not isinstance(ap, Mapping):
                raise InvalidPayload("Each allocation needs an invoice_id and an amount.")
            results.append(allocate(scope, payment_id, ap.get("invoice_id"), ap.get("amount")))
        return results
