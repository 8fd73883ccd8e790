"""
Tax and withholding arithmetic.

Pure functions over Decimal: no database access, no side effects.
Every money result is rounded to cents with ROUND_HALF_UP.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..exceptions import InvalidAmount, InvalidRate

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value, default=ZERO):
    """Coerce user input (str, int, float, Decimal, None) into a Decimal."""
    if value is None or value == "":
        return default
    try:
        # go through str() so floats like 0.1 keep their printed value
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"'{value}' is not a valid amount.")
    if not result.is_finite():
        raise InvalidAmount(f"'{value}' is not a valid amount.")
    return result


def round_money(value):
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def withholding_split(net, rate_percent=None):
    """
    Back-calculate the gross payment from the cash received.

    The payer keeps ``rate_percent`` of the gross, so
    ``gross = net / (1 - rate/100)`` and ``withholding = gross - net``.
    Returns ``(gross, withholding)`` rounded to cents.
    """
    net = max(to_decimal(net), ZERO)
    rate = to_decimal(rate_percent)
    if rate < 0 or rate >= HUNDRED:
        raise InvalidRate()

    net = round_money(net)
    if rate == 0:
        return net, ZERO

    gross = round_money(net / (1 - rate / HUNDRED))
    withholding = round_money(gross - net)
    return gross, withholding


def payment_amounts(net, rate_percent=None, withholding_override=None):
    """
    Resolve ``(gross, net, withholding)`` for a new or edited payment.

    A bookkeeper may type the withheld amount directly; that value
    (never negative) replaces the rate-derived one.
    """
    if withholding_override is not None and withholding_override != "":
        net = round_money(max(to_decimal(net), ZERO))
        withholding = round_money(max(to_decimal(withholding_override), ZERO))
        return net + withholding, net, withholding

    gross, withholding = withholding_split(net, rate_percent)
    return gross, gross - withholding, withholding


def apply_discount(subtotal, amount_or_percent, discount_type="amount"):
    """Discounted subtotal; a discount never pushes it below zero."""
    subtotal = to_decimal(subtotal)
    raw = to_decimal(amount_or_percent)
    if discount_type == "percentage":
        discount = subtotal * raw / HUNDRED
    else:
        discount = raw
    return round_money(max(ZERO, subtotal - discount))


def apply_sales_tax(discounted_subtotal, rate_percent=None):
    """Return ``(tax_amount, total)`` for a sales tax rate in percent."""
    base = to_decimal(discounted_subtotal)
    rate = to_decimal(rate_percent)
    tax = round_money(base * rate / HUNDRED)
    return tax, round_money(base) + tax


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    discounted_subtotal: Decimal
    total_tax: Decimal
    total_amount: Decimal


def document_totals(subtotal, discount_value=None, discount_type="amount", sales_rate_percent=None):
    """Totals for an invoice or estimate: discount first, then sales tax."""
    subtotal = round_money(max(to_decimal(subtotal), ZERO))
    discounted = apply_discount(subtotal, discount_value, discount_type)
    tax, total = apply_sales_tax(discounted, sales_rate_percent)
    return DocumentTotals(
        subtotal=subtotal,
        discounted_subtotal=discounted,
        total_tax=tax,
        total_amount=total,
    )
