from django.db import models

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a company
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_company(self, company):  # Add queryset helper
        return self.filter(company=company)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    # every model using TenantManager can call:
    # Invoice.objects.for_company(request.company)
    pass


class PaymentQuerySet(TenantQuerySet):
    def open_for_allocation(self):
        # Payments with gross amount still free to apply
        from .models.payment import PaymentStatus

        return self.filter(
            status__in=[PaymentStatus.UNALLOCATED, PaymentStatus.PARTIALLY_ALLOCATED]
        )


class PaymentManager(models.Manager.from_queryset(PaymentQuerySet)):
    pass


class InvoiceQuerySet(TenantQuerySet):
    def allocatable(self):
        # Only Final or Sent invoices may receive payments
        from .models.invoice import InvoiceStatus

        return self.filter(status__in=InvoiceStatus.allocatable())


class InvoiceManager(models.Manager.from_queryset(InvoiceQuerySet)):
    pass
