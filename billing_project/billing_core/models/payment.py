from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..managers import PaymentManager
from .company import Company
from .customer import Customer
from .tax_rate import TaxRate, TaxRateKind

PAYMENT_METHODS = [
    # Keeps payment method standardized across records
    ("cash", "Cash"),
    ("cheque", "Cheque"),
    ("bank_transfer", "Bank Transfer"),
    ("card", "Card"),
    ("other", "Other"),
]


class PaymentStatus(models.TextChoices):
    UNALLOCATED = "Unallocated", "Unallocated"
    PARTIALLY_ALLOCATED = "Partially Allocated", "Partially allocated"
    ALLOCATED = "Allocated", "Allocated"


# ---------- Customer payment ----------
class Payment(models.Model):  # Money received from a customer
    # Belongs to both a Company and a Customer
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT)

    # human-readable (e.g. "PAY-00042"), issued by the numbering allocator
    payment_number = models.CharField(max_length=64)
    payment_date = models.DateField(default=timezone.localdate)
    received_date = models.DateField(null=True, blank=True)
    mode_of_payment = models.CharField(
        max_length=20, choices=PAYMENT_METHODS, default="cheque"
    )

    """ gross = net + withholding.
        net is the cash actually received, withholding is retained by the payer.
        Allocations consume the gross amount. """
    gross_amount = models.DecimalField(max_digits=18, decimal_places=2)
    net_amount = models.DecimalField(max_digits=18, decimal_places=2)
    withholding_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    withholding_tax_rate = models.ForeignKey(
        TaxRate,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    # Cached allocation state, recomputed by the allocation ledger only
    status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.UNALLOCATED
    )
    reference = models.CharField(max_length=200, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Enforce tenant scoping
    objects = PaymentManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "customer"], name="payment_company_cust_idx"),
            models.Index(fields=["company", "payment_date"], name="payment_company_date_idx"),
            models.Index(fields=["company", "status"], name="payment_company_status_idx"),
        ]

        constraints = [
            # Within one company, each payment number must be unique
            models.UniqueConstraint(
                fields=["company", "payment_number"], name="uq_payment_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(gross_amount__gte=0)
                & models.Q(net_amount__gte=0)
                & models.Q(withholding_amount__gte=0),
                name="payment_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.payment_number} - {self.gross_amount} ({self.status})"

    def clean(self):  # auto-runs when you call full_clean() before saving
        # Tenancy check
        if self.customer_id and self.company_id:
            if self.customer.company_id != self.company_id:
                raise ValidationError("Customer must belong to the same company.")
        rate = self.withholding_tax_rate
        if rate is not None:
            if rate.company_id != self.company_id:
                raise ValidationError("Tax rate must belong to the same company.")
            if rate.kind != TaxRateKind.WITHHOLDING:
                raise ValidationError("Payments can only use withholding tax rates.")

        if self.gross_amount is not None and self.net_amount is not None:
            withholding = self.withholding_amount or Decimal("0.00")
            if self.gross_amount != self.net_amount + withholding:
                raise ValidationError("Gross amount must equal net amount plus withholding.")

        # Only check related rows if this payment already exists in DB
        if self.pk:
            # Prevent over-allocation:
            # you can't apply more than the payment's gross amount
            if self.allocated_total() > self.gross_amount:
                raise ValidationError(
                    "Allocated amounts exceed payment gross amount")

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)

    """How much of this payment has been applied to invoices?"""

    def allocated_total(self):
        return self.allocations.aggregate(
            total=Coalesce(models.Sum("allocated_amount"), Decimal("0.00"))
        )["total"]
