import threading
from decimal import Decimal
from unittest import mock

from django.db import connection
from django.test import TransactionTestCase, skipUnlessDBFeature

from ..exceptions import LedgerError, Overallocation
from ..models import AuditLog, Company, Payment, PaymentStatus
from ..services import (CompanyScope, allocate, create_estimate,
                        create_invoice, create_payment)
from ..services import numbering
from ..services.audit_helper import log_action
from ..services.balances import allocated_total_for_invoice
from .helpers import make_company, make_customer, make_invoice, make_payment

real_scan_max_number = numbering.scan_max_number


def stale_scan(company, document_type, prefix=None):
    # Misses the most recently committed document
    return max(real_scan_max_number(company, document_type, prefix) - 1, 0)


def stale_counter(company, document_type):
    # Sees the counter as it was before the last issuer advanced it
    return max(getattr(company, f"{document_type}_next_number") - 1, 1)


class StaleReadIssuanceTests(TransactionTestCase):
    """
    Every issuer reads the state from before the previous issuer
    committed, the way two unserialized callers would. Numbers must still
    come out distinct and without gaps.
    """

    reset_sequences = True

    def setUp(self):
        self.company = make_company()
        self.customer = make_customer(self.company)
        self.scope = CompanyScope(self.company)

    def issue_with_stale_reads(self, issue, count=8):
        with mock.patch.object(numbering, "scan_max_number", side_effect=stale_scan), \
                mock.patch.object(Company, "counter_for", autospec=True, side_effect=stale_counter):
            return [issue() for _ in range(count)]

    def attempts(self, documents):
        return [
            AuditLog.objects.get(action="issue_number", object_id=str(doc.pk)).changes["attempts"]
            for doc in documents
        ]

    def test_counter_strategy(self):
        payments = self.issue_with_stale_reads(
            lambda: create_payment(self.scope, {"customer_id": self.customer.pk, "net_amount": "1"})
        )

        self.assertEqual(
            [p.payment_number for p in payments], [f"PAY-{n:05d}" for n in range(1, 9)]
        )
        # every issuer after the first collided once and retried
        self.assertEqual(self.attempts(payments), [1] + [2] * 7)
        self.company.refresh_from_db()
        self.assertEqual(self.company.payment_next_number, 9)

    def test_scan_strategy_invoices(self):
        invoices = self.issue_with_stale_reads(
            lambda: create_invoice(self.scope, {"customer_id": self.customer.pk, "subtotal": "1"})
        )
        self.assertEqual(
            [i.invoice_number for i in invoices], [f"INV-{n:06d}" for n in range(1, 9)]
        )

    def test_scan_strategy_estimates(self):
        estimates = self.issue_with_stale_reads(
            lambda: create_estimate(self.scope, {"customer_id": self.customer.pk, "subtotal": "1"}),
            count=5,
        )
        numbers = [e.estimate_number for e in estimates]
        self.assertEqual(numbers, [f"EST-{n:06d}" for n in range(1, 6)])
        self.assertEqual(len(set(numbers)), 5)


class InterleavedAllocationTests(TransactionTestCase):
    """
    A second payment is applied to the same invoice while the first
    allocation is still inside its transaction.
    """

    reset_sequences = True

    def setUp(self):
        self.company = make_company()
        self.customer = make_customer(self.company)
        self.scope = CompanyScope(self.company)
        self.invoice = make_invoice(self.company, self.customer, "1000.00", "INV-000001")
        self.first = make_payment(self.company, self.customer, "600.00", "PAY-00001")
        self.second = make_payment(self.company, self.customer, "600.00", "PAY-00002")

    def allocate_with_contender(self, amount, contender_amount):
        outcome = {}

        def audit_then_contend(**kwargs):
            entry = log_action(**kwargs)
            if not outcome:
                outcome["started"] = True
                try:
                    outcome["allocation"] = allocate(
                        self.scope, self.second.pk, self.invoice.pk, contender_amount
                    )
                except LedgerError as e:
                    outcome["error"] = e
            return entry

        with mock.patch(
            "billing_core.services.allocation.log_action", side_effect=audit_then_contend
        ):
            allocate(self.scope, self.first.pk, self.invoice.pk, amount)
        return outcome

    def test_contender_cannot_overallocate_invoice(self):
        outcome = self.allocate_with_contender("600", "600")

        self.assertIsInstance(outcome["error"], Overallocation)
        self.assertEqual(outcome["error"].side, "invoice")
        self.assertEqual(allocated_total_for_invoice(self.invoice), Decimal("600.00"))
        self.second.refresh_from_db()
        self.assertEqual(self.second.status, PaymentStatus.UNALLOCATED)

    def test_contender_takes_what_is_left(self):
        outcome = self.allocate_with_contender("600", "400")

        self.assertNotIn("error", outcome)
        self.assertEqual(allocated_total_for_invoice(self.invoice), Decimal("1000.00"))
        self.assertEqual(
            list(Payment.objects.order_by("pk").values_list("status", flat=True)),
            [PaymentStatus.ALLOCATED, PaymentStatus.PARTIALLY_ALLOCATED],
        )


@skipUnlessDBFeature("has_select_for_update")
class ParallelLedgerTests(TransactionTestCase):
    """Real threads, one connection each, on a backend with row locks."""

    reset_sequences = True

    def setUp(self):
        self.company = make_company()
        self.customer = make_customer(self.company)

    def run_in_parallel(self, work, count):
        barrier = threading.Barrier(count)
        results, errors = [], []

        def worker():
            try:
                barrier.wait()
                results.append(work())
            except LedgerError as e:
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors

    def test_parallel_issuers_get_distinct_numbers(self):
        def issue():
            scope = CompanyScope(Company.objects.get(pk=self.company.pk))
            return create_payment(
                scope, {"customer_id": self.customer.pk, "net_amount": "1"}
            ).payment_number

        numbers, errors = self.run_in_parallel(issue, 6)

        self.assertEqual(errors, [])
        self.assertEqual(sorted(numbers), [f"PAY-{n:05d}" for n in range(1, 7)])

    def test_parallel_allocations_respect_invoice_total(self):
        invoice = make_invoice(self.company, self.customer, "1000.00", "INV-000001")
        payments = iter([
            make_payment(self.company, self.customer, "600.00", "PAY-00001"),
            make_payment(self.company, self.customer, "600.00", "PAY-00002"),
        ])
        lock = threading.Lock()

        def apply():
            with lock:
                payment = next(payments)
            scope = CompanyScope(Company.objects.get(pk=self.company.pk))
            return allocate(scope, payment.pk, invoice.pk, "600")

        allocations, errors = self.run_in_parallel(apply, 2)

        self.assertEqual(len(allocations), 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], Overallocation)
        self.assertEqual(allocated_total_for_invoice(invoice), Decimal("600.00"))
