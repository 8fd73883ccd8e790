from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..exceptions import InvalidState
from ..managers import InvoiceManager
from .company import Company
from .customer import Customer
from .tax_rate import TaxRate, TaxRateKind


class DiscountType(models.TextChoices):
    AMOUNT = "amount", "Amount"
    PERCENTAGE = "percentage", "Percentage"


class InvoiceStatus(models.TextChoices):
    DRAFT = "Draft", "Draft"
    FINAL = "Final", "Final"
    SENT = "Sent", "Sent"

    @classmethod
    def allocatable(cls):
        return [cls.FINAL, cls.SENT]


class Invoice(models.Model):  # Represents a customer (sales) invoice

    # Invoice belongs to one company (multi-tenant)
    company = models.ForeignKey(Company, on_delete=models.PROTECT)

    # prevent deleting customer who has an invoice
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT)

    # Set when the invoice was produced by converting an estimate
    estimate = models.ForeignKey(
        "Estimate",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="invoices",
    )

    # human-readable (e.g. "INV-000042"), issued by the numbering allocator
    invoice_number = models.CharField(max_length=64)
    invoice_date = models.DateField(default=timezone.localdate)

    status = models.CharField(
        max_length=10, choices=InvoiceStatus.choices, default=InvoiceStatus.DRAFT
    )
    """ Workflow:
        Draft = not yet finalized, cannot receive payments.
        Final = issued, can receive payments.
        Sent  = delivered to the customer, can receive payments. """

    # ---------- Totals (computed by the tax calculator) ----------
    subtotal = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    discount_value = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    discount_type = models.CharField(
        max_length=12, choices=DiscountType.choices, default=DiscountType.AMOUNT
    )
    sales_tax_rate = models.ForeignKey(
        TaxRate,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="invoices",
    )
    total_tax = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = InvoiceManager()

    class Meta:
        # Optimize for fast lookups by invoice number or customer
        indexes = [
            models.Index(fields=["company", "invoice_number"], name="invoice_company_number_idx"),
            models.Index(fields=["company", "customer"], name="invoice_company_cust_idx"),
            models.Index(fields=["company", "status"], name="invoice_company_status_idx"),
        ]

        constraints = [
            # Within one company, each invoice number must be unique
            # Across companies, duplicates are allowed
            models.UniqueConstraint(
                fields=["company", "invoice_number"],
                name="uq_invoice_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="invoice_total_non_negative",
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    @property
    def is_allocatable(self):
        return self.status in InvoiceStatus.allocatable()

    def clean(self):
        # Tenant safety: customer and tax rate must belong to the same company
        if self.customer_id and self.company_id:
            if self.customer.company_id != self.company_id:
                raise ValidationError("Customer must belong to the same company.")
        rate = self.sales_tax_rate
        if rate is not None:
            if rate.company_id != self.company_id:
                raise ValidationError("Tax rate must belong to the same company.")
            if rate.kind != TaxRateKind.SALES:
                raise ValidationError("Invoices can only use sales tax rates.")

    def save(self, *args, **kwargs):
        # Uniqueness is left to the database so number collisions
        # surface as IntegrityError for the numbering retry loop
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    """ Prevent deleting invoices that already have payments applied """

    def delete(self, *args, **kwargs):
        if self.allocations.exists():
            raise ValidationError(
                "Cannot delete an invoice with applied payments.")
        return super().delete(*args, **kwargs)

    def transition_to(self, new_status):
        # Current state vs. allowed next states
        allowed = {
            InvoiceStatus.DRAFT: [InvoiceStatus.FINAL, InvoiceStatus.SENT],
            InvoiceStatus.FINAL: [InvoiceStatus.SENT, InvoiceStatus.DRAFT],
            InvoiceStatus.SENT: [InvoiceStatus.FINAL],
        }
        if new_status == self.status:
            return self
        if new_status not in allowed.get(self.status, []):
            raise InvalidState(f"Cannot go from {self.status} to {new_status}.")
        # Allocations only make sense against an issued invoice
        if new_status == InvoiceStatus.DRAFT and self.allocations.exists():
            raise InvalidState(
                "Cannot move an invoice with applied payments back to Draft.")

        self.status = new_status
        self.save(update_fields=["status", "updated_at"])
        return self
