from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company
from .invoice import Invoice
from .payment import Payment


class Allocation(models.Model):
    """
    Applies part (or all) of a payment's gross amount to one invoice.

    Rows are write-once: the ledger creates and deletes them, never edits.
    Conservation (Σ per payment <= gross, Σ per invoice <= total) is checked
    by billing_core.services.allocation under row locks.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    # removing a payment removes what it paid
    payment = models.ForeignKey(
        Payment, on_delete=models.CASCADE, related_name="allocations")
    # invoices with applied payments cannot be deleted
    invoice = models.ForeignKey(
        Invoice, on_delete=models.PROTECT, related_name="allocations")
    allocated_amount = models.DecimalField(max_digits=18, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["company", "payment"], name="alloc_company_payment_idx"),
            models.Index(fields=["company", "invoice"], name="alloc_company_invoice_idx"),
        ]

        constraints = [
            # An allocation always moves a positive amount
            models.CheckConstraint(
                condition=models.Q(allocated_amount__gt=0),
                name="allocation_positive_amount",
            ),
        ]

    def __str__(self):
        return f"{self.payment.payment_number} → {self.invoice.invoice_number} ({self.allocated_amount})"

    def clean(self):
        if self.allocated_amount is not None and self.allocated_amount <= 0:
            raise ValidationError("Allocated amount must be positive")

        # Prevent cross-company contamination
        if self.payment.company_id != self.company_id:
            raise ValidationError("Payment must belong to the same company.")
        if self.invoice.company_id != self.company_id:
            raise ValidationError("Invoice must belong to the same company.")

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            raise ValidationError("Allocations are immutable; remove and re-allocate instead.")
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
