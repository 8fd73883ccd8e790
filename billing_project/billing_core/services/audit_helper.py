from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from django.forms.models import model_to_dict

from ..models import AuditLog, Company


def snapshot(instance, fields=None) -> dict:
    """
    JSON-safe copy of a model's field values for AuditLog.changes.
    Decimals and dates are stored as strings.
    """
    data = model_to_dict(instance, fields=fields)
    return {key: _json_safe(value) for key, value in data.items()}


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def log_action(
    *,
    action: str,
    instance,
    user=None,
    company: Optional[Company] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Runs inside the caller's transaction, so a rolled back mutation
    leaves no audit row behind.
    """

    if not company:
        company = getattr(instance, "company", None)

    # Celery tasks and management commands act without a signed-in user
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None

    return AuditLog.objects.create(
        company=company,
        user=user,
        action=action,
        object_type=instance.__class__.__name__,
        object_id=str(instance.pk),
        changes={k: _json_safe(v) for k, v in changes.items()} if changes else changes,
    )
