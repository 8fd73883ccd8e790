import json

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.contrib.sessions.backends.db import SessionStore
from django.test import RequestFactory, TestCase

from ..exceptions import NotFound
from ..middleware import CurrentCompanyMiddleware
from ..models import Invoice, Payment
from ..services import (CompanyScope, allocate, list_unpaid_invoices,
                        remove_allocation)
from ..views import invoice_outstanding_view
from .helpers import make_company, make_customer, make_invoice, make_payment

User = get_user_model()


class TenantIsolationManagerTests(TestCase):
    def setUp(self):
        self.company_a = make_company(name="Company A")
        self.company_b = make_company(name="Company B")
        self.customer_a = make_customer(self.company_a)
        self.customer_b = make_customer(self.company_b)

        # same number in both companies is allowed
        self.inv_a = make_invoice(self.company_a, self.customer_a, "200.00", "INV-000001")
        self.inv_b = make_invoice(self.company_b, self.customer_b, "100.00", "INV-000001")
        self.pay_a = make_payment(self.company_a, self.customer_a, "50.00", "PAY-00001")
        self.pay_b = make_payment(self.company_b, self.customer_b, "50.00", "PAY-00001")

        self.scope_a = CompanyScope(self.company_a)
        self.scope_b = CompanyScope(self.company_b)

    def test_for_company_returns_only_that_company_objects(self):
        """Compare invoice primary keys"""
        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_a)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_a.pk],
        )
        self.assertListEqual(
            list(
                Payment.objects.for_company(self.company_b)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.pay_b.pk],
        )

    def test_other_company_rows_look_missing(self):
        # cross-tenant ids get the same answer as ids that never existed
        lookups = [
            (self.scope_a.get_invoice, self.inv_b.pk, "invoice"),
            (self.scope_a.get_payment, self.pay_b.pk, "payment"),
            (self.scope_a.get_customer, self.customer_b.pk, "customer"),
        ]
        for lookup, pk, entity in lookups:
            with self.subTest(entity=entity):
                with self.assertRaises(NotFound) as ctx:
                    lookup(pk)
                self.assertEqual(ctx.exception.entity, entity)

    def test_cannot_allocate_across_tenants(self):
        with self.assertRaises(NotFound) as ctx:
            allocate(self.scope_a, self.pay_a.pk, self.inv_b.pk, "10")
        self.assertEqual(ctx.exception.entity, "invoice")

        with self.assertRaises(NotFound) as ctx:
            allocate(self.scope_a, self.pay_b.pk, self.inv_a.pk, "10")
        self.assertEqual(ctx.exception.entity, "payment")

    def test_cannot_remove_other_tenant_allocation(self):
        allocation = allocate(self.scope_b, self.pay_b.pk, self.inv_b.pk, "10")
        with self.assertRaises(NotFound):
            remove_allocation(self.scope_a, allocation.pk)

    def test_unpaid_invoices_of_other_tenant_customer(self):
        with self.assertRaises(NotFound):
            list_unpaid_invoices(self.scope_a, self.customer_b.pk)

    def test_scope_requires_a_company(self):
        with self.assertRaises(NotFound):
            CompanyScope(None)


class CurrentCompanyMiddlewareTests(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = CurrentCompanyMiddleware(lambda request: None)

    def _request(self, user, active_company_id=None):
        request = self.factory.get("/")
        request.user = user
        request.session = SessionStore()
        if active_company_id is not None:
            request.session["active_company_id"] = active_company_id
        self.middleware.process_request(request)
        return request

    def test_anonymous_user_has_no_company(self):
        self.assertIsNone(self._request(AnonymousUser()).company)

    def test_defaults_to_first_owned_company(self):
        alice = User.objects.create_user(username="alice", password="pw")
        first = make_company(name="First", owner=alice)
        make_company(name="Second", owner=alice)
        make_company(name="Not Alice's")

        self.assertEqual(self._request(alice).company, first)

    def test_session_cannot_jump_into_foreign_company(self):
        alice = User.objects.create_user(username="alice", password="pw")
        bob = User.objects.create_user(username="bob", password="pw")
        make_company(name="Alice Co", owner=alice)
        bobs = make_company(name="Bob Co", owner=bob)

        self.assertIsNone(self._request(alice, active_company_id=bobs.pk).company)
        self.assertEqual(self._request(bob, active_company_id=bobs.pk).company, bobs)


@pytest.mark.django_db
def test_outstanding_view_hides_other_tenant_invoice(django_user_model):
    u1 = django_user_model.objects.create_user(username="alice", password="pw")
    c1 = make_company(name="Company A", owner=u1)
    c2 = make_company(name="Company B")
    inv_b = make_invoice(c2, make_customer(c2), "100.00", "INV-000001")

    # Bypass client & call view with a RequestFactory
    request = RequestFactory().get(f"/api/invoices/{inv_b.pk}/outstanding/")
    request.user = u1
    request.company = c1  # manually simulate middleware

    response = invoice_outstanding_view(request, invoice_id=inv_b.pk)
    data = json.loads(response.content)

    assert response.status_code == 404
    assert data == {"ok": False, "error": "Invoice not found.", "code": "not_found"}


@pytest.mark.django_db
def test_for_user_rejects_non_owner(django_user_model):
    owner = django_user_model.objects.create_user(username="owner", password="pw")
    stranger = django_user_model.objects.create_user(username="stranger", password="pw")
    company = make_company(owner=owner)

    assert CompanyScope.for_user(owner, company.pk).company == company
    with pytest.raises(NotFound):
        CompanyScope.for_user(stranger, company.pk)
