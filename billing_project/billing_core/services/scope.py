from django.core.exceptions import ValidationError

from ..exceptions import InvalidPayload, NotFound
from ..models import (Allocation, Company, Customer, Estimate, Invoice,
                      Payment, TaxRate)


class CompanyScope:
    """
    Tenant-bound data accessor, built once per request.

    Every ledger read and write goes through one of these, so a row owned
    by another company is indistinguishable from a row that does not exist.
    """

    def __init__(self, company, user=None):
        if company is None:
            raise NotFound("company")
        self.company = company
        self.user = user

    def __repr__(self):
        return f"<CompanyScope company={self.company.pk} user={getattr(self.user, 'pk', None)}>"

    @classmethod
    def for_request(cls, request):
        # request.company is attached by CurrentCompanyMiddleware
        return cls(getattr(request, "company", None), user=getattr(request, "user", None))

    @classmethod
    def for_user(cls, user, company_id):
        company = _get_scoped(Company.objects.all(), company_id, "company")
        if not company.is_accessible_by(user):
            # Same answer as a missing company, no tenant probing
            raise NotFound("company")
        return cls(company, user=user)

    # ---------- querysets ----------
    def customers(self):
        return Customer.objects.for_company(self.company)

    def tax_rates(self, kind=None):
        qs = TaxRate.objects.for_company(self.company)
        if kind:
            qs = qs.filter(kind=kind)
        return qs

    def invoices(self):
        return Invoice.objects.for_company(self.company)

    def estimates(self):
        return Estimate.objects.for_company(self.company)

    def payments(self):
        return Payment.objects.for_company(self.company)

    def allocations(self):
        return Allocation.objects.for_company(self.company)

    # ---------- single rows ----------
    def lock_company(self):
        return _get_scoped(Company.objects.select_for_update(), self.company.pk, "company")

    def get_customer(self, pk):
        return _get_scoped(self.customers(), pk, "customer")

    def get_tax_rate(self, pk, kind=None):
        return _get_scoped(self.tax_rates(kind), pk, "tax rate")

    def get_invoice(self, pk, lock=False):
        return _get_scoped(self.invoices(), pk, "invoice", lock)

    def get_estimate(self, pk, lock=False):
        return _get_scoped(self.estimates(), pk, "estimate", lock)

    def get_payment(self, pk, lock=False):
        return _get_scoped(self.payments(), pk, "payment", lock)

    def get_allocation(self, pk, lock=False):
        return _get_scoped(self.allocations(), pk, "allocation", lock)


def _get_scoped(queryset, pk, entity, lock=False):
    if pk is None or pk == "":
        raise InvalidPayload(f"A {entity} id is required.")
    if lock:
        # Held until the caller's transaction.atomic() block ends
        queryset = queryset.select_for_update()
    try:
        return queryset.get(pk=pk)
    except queryset.model.DoesNotExist:
        raise NotFound(entity)
    except (ValueError, TypeError, ValidationError):
        raise InvalidPayload(f"Malformed {entity} id: {pk!r}.")
