import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def reconcile_payment_statuses(company_id):
    """
    Recompute the cached allocation status of every payment of a company.

    The status is normally kept current by the allocation ledger; this
    repairs rows touched outside it (raw SQL, restored backups) and
    returns the ids of the payments whose status changed.
    """
    # import lazily to avoid circular imports at module import time
    from .models import Payment
    from .services.allocation import refresh_payment_status

    repaired = []
    for payment in Payment.objects.filter(company_id=company_id).order_by("pk").iterator():
        before = payment.status
        after = refresh_payment_status(payment)
        if after != before:
            logger.warning(
                "Payment %s status was %r, recomputed as %r",
                payment.payment_number, before, after,
            )
            repaired.append(payment.pk)

    logger.info(
        "Reconciled payment statuses for company %s: %s repaired", company_id, len(repaired)
    )
    return repaired
