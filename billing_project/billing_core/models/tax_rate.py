from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company


class TaxRateKind(models.TextChoices):
    SALES = "sales", "Sales tax"
    WITHHOLDING = "withholding", "Withholding tax"


# ---------- Tax rates ----------
class TaxRate(models.Model):
    """
    A named percentage a company applies to its documents.
    Sales rates are added on top of invoice/estimate subtotals,
    withholding rates are retained by the payer out of a payment.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(max_length=100)
    rate_percent = models.DecimalField(max_digits=5, decimal_places=2)
    kind = models.CharField(
        max_length=20, choices=TaxRateKind.choices, default=TaxRateKind.SALES
    )
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [models.Index(fields=["company", "kind"], name="taxrate_company_kind_idx")]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(rate_percent__gte=0) & models.Q(rate_percent__lte=100),
                name="taxrate_percent_0_100",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.rate_percent}%)"

    def clean(self):
        if self.rate_percent is None:
            return
        if self.rate_percent < Decimal("0") or self.rate_percent > Decimal("100"):
            raise ValidationError("Rate must be between 0 and 100.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
