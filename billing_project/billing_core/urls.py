from django.urls import path

from . import views

app_name = "billing_core"

urlpatterns = [
    # Payments
    path("payments/", views.create_payment_view, name="payment-create"),
    path("payments/<int:payment_id>/", views.payment_detail_view, name="payment-detail"),
    path("payments/<int:payment_id>/remaining/", views.payment_remaining_view, name="payment-remaining"),
    path("payments/<int:payment_id>/allocations/", views.allocate_view, name="payment-allocate"),
    path("payments/<int:payment_id>/allocations/batch/", views.allocate_many_view, name="payment-allocate-many"),
    # Allocations
    path("allocations/<int:allocation_id>/delete/", views.remove_allocation_view, name="allocation-delete"),
    # Invoices
    path("invoices/<int:invoice_id>/outstanding/", views.invoice_outstanding_view, name="invoice-outstanding"),
    path("invoices/<int:invoice_id>/payments/", views.invoice_payments_view, name="invoice-payments"),
    path("invoices/<int:invoice_id>/status/", views.invoice_status_view, name="invoice-status"),
    # Estimates
    path("estimates/<int:estimate_id>/convert/", views.convert_estimate_view, name="estimate-convert"),
    # Customers
    path("customers/<int:customer_id>/unpaid-invoices/", views.unpaid_invoices_view, name="customer-unpaid-invoices"),
    path("customers/<int:customer_id>/available-payments/", views.available_payments_view, name="customer-available-payments"),
]
