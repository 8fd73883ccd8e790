from datetime import date

from django.utils.dateparse import parse_date

from ..exceptions import InvalidPayload


# ------------------------------------
# Payload cleaning shared by the document workflows
# ------------------------------------
def require_mapping(payload):
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidPayload("Request body must be a JSON object.")
    return payload


def clean_date(value, field, default=None):
    """Accept a date or an ISO ``YYYY-MM-DD`` string; blank gives ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value).strip())
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidPayload(f"{field} must be a date in YYYY-MM-DD format.")
    return parsed


def clean_choice(value, field, choices, default=None):
    if value is None or value == "":
        return default
    allowed = [key for key, _ in choices]
    if value not in allowed:
        raise InvalidPayload(f"{field} must be one of: {', '.join(allowed)}.")
    return value


def clean_text(value, max_length=None):
    text = "" if value is None else str(value).strip()
    if max_length is not None and len(text) > max_length:
        raise InvalidPayload(f"Text is longer than {max_length} characters.")
    return text
