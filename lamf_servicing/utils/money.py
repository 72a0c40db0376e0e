"""Decimal helpers for rupee amounts"""

from decimal import Decimal, ROUND_HALF_UP

PAISA = Decimal("0.01")
HUNDRED = Decimal("100")


def as_decimal(value) -> Decimal:
    """Coerce ints, strings and floats (via str, to avoid binary artefacts) to Decimal"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_money(value: Decimal, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round to paise"""
    return as_decimal(value).quantize(PAISA, rounding=rounding)


def format_inr(amount: Decimal) -> str:
    """
    Format a whole-rupee amount with Indian digit grouping.

    Example:
        1234567.8 -> "₹12,34,568"
    """
    rupees = int(as_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    sign = "-" if rupees < 0 else ""
    digits = str(abs(rupees))

    if len(digits) <= 3:
        grouped = digits
    else:
        head, tail = digits[:-3], digits[-3:]
        pairs = []
        while len(head) > 2:
            pairs.insert(0, head[-2:])
            head = head[:-2]
        if head:
            pairs.insert(0, head)
        grouped = ",".join(pairs) + "," + tail

    return f"{sign}₹{grouped}"
