import datetime
from decimal import Decimal

from django.test import TestCase

from ..exceptions import InvalidPayload, InvalidState, NotFound, Overallocation
from ..models import (Estimate, EstimateStatus, Invoice, InvoiceStatus,
                      TaxRateKind)
from ..services import (CompanyScope, allocate,
                        available_payments_for_customer,
                        convert_estimate_to_invoice, create_estimate,
                        create_invoice, delete_invoice,
                        invoice_payment_summary, list_unpaid_invoices,
                        set_invoice_status, update_invoice)
from .helpers import (make_company, make_customer, make_invoice, make_payment,
                      make_tax_rate)


class InvoiceLifecycleTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.customer = make_customer(self.company)
        self.vat = make_tax_rate(self.company, "7.5")
        self.scope = CompanyScope(self.company)

    def make_invoice(self, subtotal="1000", **extra):
        payload = {"customer_id": self.customer.pk, "subtotal": subtotal, **extra}
        return create_invoice(self.scope, payload)

    def test_totals_are_computed_on_create(self):
        invoice = self.make_invoice(
            "1000", discount_value="50", sales_tax_rate_id=self.vat.pk, invoice_date="2025-09-01"
        )
        invoice.refresh_from_db()
        self.assertEqual(invoice.invoice_number, "INV-000001")
        self.assertEqual(invoice.status, InvoiceStatus.DRAFT)
        self.assertEqual(invoice.total_tax, Decimal("71.25"))
        self.assertEqual(invoice.total_amount, Decimal("1021.25"))
        self.assertEqual(invoice.invoice_date, datetime.date(2025, 9, 1))

    def test_withholding_rate_is_not_a_sales_rate(self):
        wht = make_tax_rate(self.company, "5", kind=TaxRateKind.WITHHOLDING)
        with self.assertRaises(NotFound):
            self.make_invoice(sales_tax_rate_id=wht.pk)

    def test_status_transitions(self):
        invoice = self.make_invoice()
        set_invoice_status(self.scope, invoice.pk, "Final")
        set_invoice_status(self.scope, invoice.pk, "Sent")
        set_invoice_status(self.scope, invoice.pk, "Final")
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, InvoiceStatus.FINAL)

        sent = self.make_invoice(status="Sent")
        with self.assertRaises(InvalidState):
            set_invoice_status(self.scope, sent.pk, "Draft")
        with self.assertRaises(InvalidPayload):
            set_invoice_status(self.scope, sent.pk, "Paid")

    def test_paid_invoice_cannot_return_to_draft(self):
        invoice = self.make_invoice(status="Final")
        payment = make_payment(self.company, self.customer, "100.00", "PAY-00001")
        allocate(self.scope, payment.pk, invoice.pk, "100")

        with self.assertRaises(InvalidState):
            set_invoice_status(self.scope, invoice.pk, "Draft")

    def test_total_cannot_drop_below_paid_amount(self):
        invoice = self.make_invoice("1000", status="Final")
        payment = make_payment(self.company, self.customer, "800.00", "PAY-00001")
        allocate(self.scope, payment.pk, invoice.pk, "800")

        with self.assertRaises(Overallocation):
            update_invoice(self.scope, invoice.pk, {"subtotal": "799.99"})

        updated = update_invoice(self.scope, invoice.pk, {"subtotal": "800", "sales_tax_rate_id": self.vat.pk})
        self.assertEqual(updated.total_amount, Decimal("860.00"))
        # untouched fields keep their values
        self.assertEqual(updated.customer, self.customer)
        self.assertEqual(updated.status, InvoiceStatus.FINAL)

    def test_delete_invoice(self):
        unpaid = self.make_invoice(status="Final")
        paid = self.make_invoice(status="Final")
        payment = make_payment(self.company, self.customer, "10.00", "PAY-00001")
        allocate(self.scope, payment.pk, paid.pk, "10")

        delete_invoice(self.scope, unpaid.pk)
        self.assertFalse(Invoice.objects.filter(pk=unpaid.pk).exists())
        with self.assertRaises(InvalidState):
            delete_invoice(self.scope, paid.pk)


class ReadModelTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.customer = make_customer(self.company)
        self.other_customer = make_customer(self.company, name="Globex")
        self.scope = CompanyScope(self.company)

        self.late = make_invoice(
            self.company, self.customer, "300.00", "INV-000003", date=datetime.date(2025, 9, 3)
        )
        self.early = make_invoice(
            self.company, self.customer, "100.00", "INV-000001", date=datetime.date(2025, 9, 1)
        )
        self.paid = make_invoice(
            self.company, self.customer, "50.00", "INV-000002", date=datetime.date(2025, 9, 2)
        )
        make_invoice(
            self.company, self.customer, "70.00", "INV-000004", status=InvoiceStatus.DRAFT
        )
        make_invoice(self.company, self.other_customer, "90.00", "INV-000005")

        self.payment = make_payment(self.company, self.customer, "200.00", "PAY-00001")
        allocate(self.scope, self.payment.pk, self.paid.pk, "50")
        allocate(self.scope, self.payment.pk, self.late.pk, "120")

    def test_unpaid_invoices_sorted_by_date(self):
        rows = list_unpaid_invoices(self.scope, self.customer.pk)
        self.assertEqual(
            [(r["invoice_number"], r["outstanding"]) for r in rows],
            [("INV-000001", Decimal("100.00")), ("INV-000003", Decimal("180.00"))],
        )

    def test_available_payments(self):
        rows = available_payments_for_customer(self.scope, self.customer.pk)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["remaining"], Decimal("30.00"))
        self.assertEqual(available_payments_for_customer(self.scope, self.other_customer.pk), [])

    def test_invoice_payment_summary(self):
        summary = invoice_payment_summary(self.scope, self.late.pk)
        self.assertEqual(summary["paid_amount"], Decimal("120.00"))
        self.assertEqual(summary["outstanding"], Decimal("180.00"))
        self.assertEqual(
            [a["payment_number"] for a in summary["allocations"]], ["PAY-00001"]
        )


class EstimateConversionTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.customer = make_customer(self.company)
        self.vat = make_tax_rate(self.company, "10")
        self.scope = CompanyScope(self.company)

    def test_convert_copies_totals_into_draft_invoice(self):
        estimate = create_estimate(self.scope, {
            "customer_id": self.customer.pk,
            "subtotal": "400",
            "discount_value": "25",
            "discount_type": "percentage",
            "sales_tax_rate_id": self.vat.pk,
        })
        self.assertEqual(estimate.estimate_number, "EST-000001")

        invoice = convert_estimate_to_invoice(self.scope, estimate.pk)

        self.assertEqual(invoice.status, InvoiceStatus.DRAFT)
        self.assertEqual(invoice.invoice_number, "INV-000001")
        self.assertEqual(invoice.estimate, estimate)
        self.assertEqual(invoice.total_amount, Decimal("330.00"))
        self.assertEqual(invoice.total_amount, estimate.total_amount)
        estimate.refresh_from_db()
        self.assertEqual(estimate.status, EstimateStatus.CONVERTED)

    def test_estimate_converts_once(self):
        estimate = create_estimate(self.scope, {"customer_id": self.customer.pk, "subtotal": "10"})
        convert_estimate_to_invoice(self.scope, estimate.pk)
        with self.assertRaises(InvalidState):
            convert_estimate_to_invoice(self.scope, estimate.pk)
        self.assertEqual(Invoice.objects.filter(estimate=estimate).count(), 1)

    def test_expired_estimate_is_rejected(self):
        estimate = create_estimate(self.scope, {
            "customer_id": self.customer.pk,
            "subtotal": "10",
            "valid_until": "2020-01-31",
        })
        with self.assertRaises(InvalidState):
            convert_estimate_to_invoice(self.scope, estimate.pk)

        Estimate.objects.filter(pk=estimate.pk).update(valid_until=None, status=EstimateStatus.EXPIRED)
        with self.assertRaises(InvalidState):
            convert_estimate_to_invoice(self.scope, estimate.pk)
        self.assertFalse(Invoice.objects.exists())
