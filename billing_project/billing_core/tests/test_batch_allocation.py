from decimal import Decimal

from django.test import TransactionTestCase

from ..exceptions import InvalidPayload, NotFound, Overallocation
from ..models import Allocation, PaymentStatus
from ..services import (CompanyScope, allocate_many, invoice_outstanding,
                        payment_remaining)
from .helpers import make_company, make_customer, make_invoice, make_payment


class AllocateManyTests(TransactionTestCase):
    reset_sequences = True

    def setUp(self):
        self.company = make_company()
        self.customer = make_customer(self.company)
        self.scope = CompanyScope(self.company)

        # payment of $100 and two invoices with outstanding amounts
        self.payment = make_payment(self.company, self.customer, "100.00", "PAY-00001")
        self.inv1 = make_invoice(self.company, self.customer, "200.00", "INV-000001")
        self.inv2 = make_invoice(self.company, self.customer, "150.00", "INV-000002")

    def test_applies_every_record(self):
        allocations = allocate_many(self.scope, self.payment.pk, [
            {"invoice_id": self.inv1.pk, "amount": "60"},
            {"invoice_id": self.inv2.pk, "amount": "40"},
        ])

        self.assertEqual(len(allocations), 2)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.ALLOCATED)
        self.assertEqual(invoice_outstanding(self.inv2), Decimal("110.00"))

    def test_prevent_over_apply(self):
        """
        60 + 30 + 20 = 110 exceeds the $100 payment: the third record
        is rejected and the first two are rolled back with it.
        """
        with self.assertRaises(Overallocation):
            allocate_many(self.scope, self.payment.pk, [
                {"invoice_id": self.inv1.pk, "amount": "60.00"},
                {"invoice_id": self.inv2.pk, "amount": "30.00"},
                {"invoice_id": self.inv1.pk, "amount": "20.00"},
            ])

        self.assertEqual(
            Allocation.objects.filter(payment=self.payment).count(),
            0,
            msg="No allocations should be persisted when over-applying",
        )
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.UNALLOCATED)
        self.assertEqual(payment_remaining(self.payment), Decimal("100.00"))

    def test_atomicity_on_failure_mid_loop(self):
        with self.assertRaises(NotFound):
            allocate_many(self.scope, self.payment.pk, [
                {"invoice_id": self.inv1.pk, "amount": "40.00"},
                {"invoice_id": 9999999, "amount": "50.00"},
            ])

        self.assertFalse(Allocation.objects.exists())
        self.assertEqual(invoice_outstanding(self.inv1), Decimal("200.00"))

    def test_malformed_batches(self):
        for applications in ([], None, ["60"], 5, "60", {"invoice_id": 1, "amount": "60"}):
            with self.subTest(applications=applications):
                with self.assertRaises(InvalidPayload):
                    allocate_many(self.scope, self.payment.pk, applications)
        self.assertFalse(Allocation.objects.exists())
