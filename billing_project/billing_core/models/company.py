from django.conf import settings
from django.db import models


# ---------- Tenant / Company ----------
class Company(models.Model):

    """Tenant / Organization"""
    # Store company's full display name
    name = models.CharField(max_length=200)

    # The signed-in user who owns this company
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        # if user is deleted, company record stays
        on_delete=models.SET_NULL,
        related_name="companies",
    )

    # ---------- Numbering sequences ----------
    """ Each document type has its own prefix and counter.
        Only the numbering allocator writes the *_next_number fields,
        always while holding a row lock on this company. """
    invoice_prefix = models.CharField(max_length=20, default="INV")
    invoice_next_number = models.PositiveIntegerField(default=1)

    payment_prefix = models.CharField(max_length=20, default="PAY")
    payment_next_number = models.PositiveIntegerField(default=1)

    estimate_prefix = models.CharField(max_length=20, default="EST")
    estimate_next_number = models.PositiveIntegerField(default=1)

    # Store timestamp when the record is first created
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name

    def prefix_for(self, document_type):
        return getattr(self, f"{document_type}_prefix")

    def counter_for(self, document_type):
        return getattr(self, f"{document_type}_next_number")

    def is_accessible_by(self, user):
        # Owner-only access; superusers can see every tenant
        if user is None or not user.is_authenticated:
            return False
        return user.is_superuser or self.owner_id == user.pk
