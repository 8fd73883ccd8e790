from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from ..managers import TenantManager
from .company import Company
from .customer import Customer
from .invoice import DiscountType
from .tax_rate import TaxRate, TaxRateKind


class EstimateStatus(models.TextChoices):
    DRAFT = "Draft", "Draft"
    SENT = "Sent", "Sent"
    EXPIRED = "Expired", "Expired"
    CONVERTED = "Converted", "Converted"


class Estimate(models.Model):  # Quotation that can later become an invoice
    company = models.ForeignKey(Company, on_delete=models.PROTECT)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT)

    estimate_number = models.CharField(max_length=64)
    estimate_date = models.DateField(default=timezone.localdate)
    valid_until = models.DateField(null=True, blank=True)
    status = models.CharField(
        max_length=10, choices=EstimateStatus.choices, default=EstimateStatus.DRAFT
    )

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
        related_name="estimates",
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
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "estimate_number"], name="estimate_company_number_idx"),
            models.Index(fields=["company", "customer"], name="estimate_company_cust_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["company", "estimate_number"],
                name="uq_estimate_company_number",
            ),
        ]

    def __str__(self):
        return f"Est {self.estimate_number or self.pk}"

    def is_expired(self, today=None):
        if self.status == EstimateStatus.EXPIRED:
            return True
        today = today or timezone.localdate()
        return bool(self.valid_until and self.valid_until < today)

    def clean(self):
        if self.customer_id and self.company_id:
            if self.customer.company_id != self.company_id:
                raise ValidationError("Customer must belong to the same company.")
        rate = self.sales_tax_rate
        if rate is not None and (
            rate.company_id != self.company_id or rate.kind != TaxRateKind.SALES
        ):
            raise ValidationError("Estimate tax rate must be a sales rate of the same company.")

    def save(self, *args, **kwargs):
        self.full_clean(validate_unique=False, validate_constraints=False)
        return super().save(*args, **kwargs)
