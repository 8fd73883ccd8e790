import json
import logging
from datetime import date
from decimal import Decimal
from functools import wraps

from django.db import OperationalError
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from .exceptions import DatabaseBusy, InvalidPayload, LedgerError
from .services import (CompanyScope, allocate, allocate_many,
                       available_payments_for_customer,
                       convert_estimate_to_invoice, create_payment,
                       get_outstanding, get_remaining, invoice_outstanding,
                       invoice_payment_summary, list_unpaid_invoices,
                       payment_remaining, payment_summary, remove_allocation,
                       set_invoice_status)
from .services.validation import require_mapping

logger = logging.getLogger(__name__)


def _json_value(value):
    # Money goes out as strings so no precision is lost in the browser
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_value(v) for v in value]
    return value


def ok(http_status=200, **data):
    return JsonResponse({"ok": True, **_json_value(data)}, status=http_status)


def _payload(request):
    # JSON body from the SPA, or a classic form post
    if request.content_type == "application/json":
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (ValueError, UnicodeDecodeError):
            raise InvalidPayload("Request body is not valid JSON.")
        return require_mapping(data)
    return request.POST.dict()


def ledger_view(view):
    """Resolve the tenant scope and turn ledger errors into JSON responses."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            scope = CompanyScope.for_request(request)
            return view(request, scope, *args, **kwargs)
        except LedgerError as e:
            logger.info("%s %s rejected: %s (%s)", request.method, request.path, e.message, e.code)
            return JsonResponse(e.as_dict(), status=e.http_status)
        except OperationalError as e:
            # SQLite has no row locks; concurrent writers fail on the file lock
            if "locked" not in str(e).lower():
                raise
            logger.warning("%s %s hit a locked database: %s", request.method, request.path, e)
            busy = DatabaseBusy()
            return JsonResponse(busy.as_dict(), status=busy.http_status)

    return wrapper


# ---------- Payments ----------
@require_POST
@ledger_view
def create_payment_view(request, scope):
    payment = create_payment(scope, _payload(request))
    return ok(
        http_status=201,
        payment_id=payment.pk,
        payment_number=payment.payment_number,
        gross_amount=payment.gross_amount,
        withholding_amount=payment.withholding_amount,
        status=payment.status,
    )


@require_GET
@ledger_view
def payment_detail_view(request, scope, payment_id):
    return ok(**payment_summary(scope, payment_id))


@require_GET
@ledger_view
def payment_remaining_view(request, scope, payment_id):
    return ok(payment_id=payment_id, remaining=get_remaining(scope, payment_id))


# ---------- Allocations ----------
@require_POST
@ledger_view
def allocate_view(request, scope, payment_id):
    data = _payload(request)
    allocation = allocate(scope, payment_id, data.get("invoice_id"), data.get("amount"))
    return ok(
        http_status=201,
        allocation_id=allocation.pk,
        payment_status=allocation.payment.status,
        payment_remaining=payment_remaining(allocation.payment),
        invoice_outstanding=invoice_outstanding(allocation.invoice),
    )


@require_POST
@ledger_view
def allocate_many_view(request, scope, payment_id):
    data = _payload(request)
    allocations = allocate_many(scope, payment_id, data.get("allocations"))
    payment = allocations[-1].payment
    return ok(
        http_status=201,
        allocation_ids=[a.pk for a in allocations],
        payment_status=payment.status,
        payment_remaining=payment_remaining(payment),
    )


@require_POST
@ledger_view
def remove_allocation_view(request, scope, allocation_id):
    payment = remove_allocation(scope, allocation_id)
    return ok(
        payment_id=payment.pk,
        payment_status=payment.status,
        payment_remaining=payment_remaining(payment),
    )


# ---------- Invoices ----------
@require_GET
@ledger_view
def invoice_outstanding_view(request, scope, invoice_id):
    return ok(invoice_id=invoice_id, outstanding=get_outstanding(scope, invoice_id))


@require_GET
@ledger_view
def invoice_payments_view(request, scope, invoice_id):
    return ok(**invoice_payment_summary(scope, invoice_id))


@require_POST
@ledger_view
def invoice_status_view(request, scope, invoice_id):
    invoice = set_invoice_status(scope, invoice_id, _payload(request).get("status"))
    return ok(invoice_id=invoice.pk, status=invoice.status)


@require_POST
@ledger_view
def convert_estimate_view(request, scope, estimate_id):
    invoice = convert_estimate_to_invoice(scope, estimate_id)
    return ok(http_status=201, invoice_id=invoice.pk, invoice_number=invoice.invoice_number)


# ---------- Customers ----------
@require_GET
@ledger_view
def unpaid_invoices_view(request, scope, customer_id):
    return ok(invoices=list_unpaid_invoices(scope, customer_id))


@require_GET
@ledger_view
def available_payments_view(request, scope, customer_id):
    return ok(payments=available_payments_for_customer(scope, customer_id))
