from django.conf import settings  # To access global project settings
from django.core.exceptions import ValidationError
from django.db import models

from ..managers import TenantManager
from .company import Company


# ---------- Audit / Event log ----------
class AuditAction(models.TextChoices):
    CREATE = "create", "Create"
    UPDATE = "update", "Update"
    DELETE = "delete", "Delete"
    STATUS = "status", "Status change"
    ISSUE_NUMBER = "issue_number", "Issue number"
    ALLOCATE = "allocate", "Allocate"
    REMOVE_ALLOCATION = "remove_allocation", "Remove allocation"
    CONVERT = "convert", "Convert estimate"


class AuditLog(
    models.Model
):  # Gives accountability and traceability across the ledger
    # Associate log entry with a tenant
    company = models.ForeignKey(
        Company,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Which user performed the action
    # (Nullable in case the action was automated, e.g. a Celery task)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Type of event being logged
    action = models.CharField(max_length=50, choices=AuditAction.choices)
    # What kind of object was affected
    object_type = models.CharField(
        max_length=100
    )  # e.g. "Payment", "Allocation", "Invoice"
    # The primary key of the object
    object_id = models.CharField(max_length=100)
    # Store details of what changed, in JSON format
    changes = models.JSONField(null=True, blank=True)
    # Timestamp when the event was logged
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        ordering = ["created_at", "id"]
        # Filter logs quickly
        indexes = [
            models.Index(fields=["company", "user"], name="audit_company_user_idx"),
            models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
        ]

    def __str__(self):
        return f"{self.user} {self.action} {self.object_type}({self.object_id})"

    def clean(self):
        # Ensure the user may act on the company being logged
        if self.user and self.company:
            if not self.company.is_accessible_by(self.user):
                raise ValidationError(
                    "AuditLog.user must have access to AuditLog.company"
                )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
