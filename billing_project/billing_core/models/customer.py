from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Customer ----------
# Represents client who receives invoices and makes payments
class Customer(models.Model):
    # Multi-tenant: every customer belongs to a single company.
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # The customer's legal or trade name
    name = models.CharField(max_length=200)

    # Optional contact for billing/communication
    email = models.EmailField(null=True, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "name"], name="customer_company_name_idx"),
        ]

        # Enforce uniqueness per tenant
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_customer_name"
            ),
        ]

    def __str__(self):
        return self.name
