"""
Document number allocation for invoices, estimates and payments.

Numbers look like ``INV-000042`` / ``PAY-00042``. Issuance holds a row
lock on the company, so issuers for one company run one at a time; the
``(company, number)`` unique constraints catch whatever slips past that
(rows written outside the allocator, a stale scan), and the collided
number is burned before retrying.
"""
import logging
import re

from django.conf import settings
from django.db import IntegrityError, transaction

from ..exceptions import InvalidPayload, NumberConflict
from ..models import AuditAction, Company, Estimate, Invoice, Payment
from .audit_helper import log_action

logger = logging.getLogger(__name__)

SCAN = "scan"
COUNTER = "counter"

# document type -> (model, number field)
DOCUMENTS = {
    "invoice": (Invoice, "invoice_number"),
    "estimate": (Estimate, "estimate_number"),
    "payment": (Payment, "payment_number"),
}

NUMBER_DIGITS = {
    "invoice": 6,
    "estimate": 6,
    "payment": 5,
}

DEFAULT_STRATEGIES = {
    "invoice": SCAN,
    "estimate": SCAN,
    "payment": COUNTER,
}


def _check_type(document_type):
    if document_type not in DOCUMENTS:
        raise InvalidPayload(f"Unknown document type: {document_type!r}.")


def format_document_number(prefix, counter, digits):
    return f"{prefix}-{int(counter):0{digits}d}"


def resolve_prefix(company, document_type):
    """Company prefix for the document type, or the configured default when blank."""
    _check_type(document_type)
    prefix = (company.prefix_for(document_type) or "").strip()
    if prefix:
        return prefix
    return settings.BILLING_DEFAULT_PREFIXES[document_type]


def strategy_for(document_type):
    configured = getattr(settings, "BILLING_NUMBERING", {}) or {}
    strategy = configured.get(document_type, DEFAULT_STRATEGIES[document_type])
    if strategy not in (SCAN, COUNTER):
        raise InvalidPayload(f"Unknown numbering strategy: {strategy!r}.")
    return strategy


# ----------------------------
# Strategies
# ----------------------------
def scan_max_number(company, document_type, prefix=None):
    """
    Highest counter among the company's existing numbers of the form
    ``{prefix}-{digits}`` (case-insensitive, surrounding blanks ignored).
    Returns 0 when there are none.
    """
    _check_type(document_type)
    model, field = DOCUMENTS[document_type]
    prefix = prefix or resolve_prefix(company, document_type)
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$", re.IGNORECASE)
    page_size = getattr(settings, "BILLING_NUMBER_SCAN_PAGE_SIZE", 1000)

    base = (
        model.objects.filter(company=company, **{f"{field}__icontains": prefix})
        .order_by("pk")
        .values_list("pk", field)
    )

    highest = 0
    last_pk = 0
    while True:
        page = list(base.filter(pk__gt=last_pk)[:page_size])
        for pk, number in page:
            match = pattern.match((number or "").strip())
            if match:
                highest = max(highest, int(match.group(1)))
        if len(page) < page_size:
            break
        last_pk = page[-1][0]
    return highest


def _candidate(company, document_type, prefix):
    counter = max(company.counter_for(document_type) or 1, 1)
    if strategy_for(document_type) == SCAN:
        # The stored counter remembers numbers whose documents were deleted
        return max(scan_max_number(company, document_type, prefix) + 1, counter)
    return counter


def _next(company, document_type, floor=1):
    prefix = resolve_prefix(company, document_type)
    counter = max(_candidate(company, document_type, prefix), floor)
    return format_document_number(prefix, counter, NUMBER_DIGITS[document_type]), counter


def next_number(company, document_type):
    """
    Next formatted number for the document type.

    Does not reserve anything: call it while holding the company row lock
    (see issue_document) or treat the result as a preview.
    """
    _check_type(document_type)
    number, _ = _next(company, document_type)
    return number


def preview_number(company, document_type):
    return next_number(company, document_type)


def _number_taken(company, document_type, number):
    model, field = DOCUMENTS[document_type]
    return model.objects.filter(company=company, **{field: number}).exists()


def _advance_counter(company, document_type, issued):
    # Counters only move forward
    field = f"{document_type}_next_number"
    new_value = max(company.counter_for(document_type) or 1, issued + 1)
    Company.objects.filter(pk=company.pk).update(**{field: new_value})
    setattr(company, field, new_value)


# ----------------------------
# Issuance
# ----------------------------
def issue_document(company, document_type, create, user=None):
    """
    Issue the next number and create the document carrying it.

    ``create(number)`` must build and save the document, and return it.
    It runs in a savepoint; a unique-constraint collision on the number
    burns that number and retries with a fresh one, up to
    BILLING_NUMBER_MAX_ATTEMPTS times before raising NumberConflict.
    """
    _check_type(document_type)
    max_attempts = max(int(getattr(settings, "BILLING_NUMBER_MAX_ATTEMPTS", 5)), 1)

    with transaction.atomic():
        # Serializes issuers for this company until the outer block commits
        locked = Company.objects.select_for_update().get(pk=company.pk)

        floor = 1
        number = None
        for attempt in range(1, max_attempts + 1):
            number, counter = _next(locked, document_type, floor)
            try:
                with transaction.atomic():
                    document = create(number)
            except IntegrityError:
                if not _number_taken(locked, document_type, number):
                    # Some other constraint failed
                    raise
                logger.warning(
                    "%s number %s already taken for company %s (attempt %s/%s)",
                    document_type, number, locked.pk, attempt, max_attempts,
                )
                _advance_counter(locked, document_type, counter)
                floor = counter + 1
                continue

            _advance_counter(locked, document_type, counter)
            # keep the caller's instance in step with the stored counter
            setattr(
                company,
                f"{document_type}_next_number",
                locked.counter_for(document_type),
            )
            log_action(
                action=AuditAction.ISSUE_NUMBER,
                instance=document,
                user=user,
                company=locked,
                changes={"number": number, "attempts": attempt},
            )
            logger.info("Issued %s %s for company %s", document_type, number, locked.pk)
            return document

    logger.error(
        "Gave up issuing a %s number for company %s after %s attempts",
        document_type, company.pk, max_attempts,
    )
    raise NumberConflict(document_type, number)
