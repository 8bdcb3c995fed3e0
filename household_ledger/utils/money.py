"""Conversion between form amounts and integer cents"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

THOUSANDS_DOTS = re.compile(r"^-?\d{1,3}(\.\d{3})+$")


def parse_amount_to_cents(value: Union[str, int, float, Decimal]) -> int:
    """
    Convert a major-unit amount to integer cents.

    Accepts "1234.56", "1234,56" and "1.234,56" style strings: when both
    separators appear, the last one is the decimal separator. A lone comma
    is always decimal. Dots alone are thousands separators when every group
    after the first has exactly three digits ("R$ 1.234" is 1234.00,
    "1.234.567" is 1234567.00); otherwise the dot is decimal ("12.50").
    Rounds half up.

    Raises:
        ValueError: if the value is not a number
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be a number")
    if isinstance(value, str):
        text = value.strip().replace(" ", "")
        for symbol in ("R$", "$"):
            text = text.replace(symbol, "")
        if "," in text and "." in text:
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        elif THOUSANDS_DOTS.match(text):
            text = text.replace(".", "")
        else:
            text = text.replace(",", ".")
        raw = text
    else:
        raw = str(value)

    try:
        amount = Decimal(raw)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(amount_cents: int) -> str:
    """Plain major-unit rendering used in log lines, e.g. 123456 -> '1234.56'"""
    sign = "-" if amount_cents < 0 else ""
    whole, cents = divmod(abs(amount_cents), 100)
    return f"{sign}{whole}.{cents:02d}"
