from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_THOUSANDS_SEP_RE = re.compile(r"(?<=\d),(?=\d{3}\b)")

PRICE_UNAVAILABLE = "Price unavailable"


def _to_inr(usd: str, rate: float) -> int:
    # halves round up, not to even
    return int(Decimal(float(usd) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_inr(amount: int) -> str:
    """
    Format an integer with Indian digit grouping: 1234567 -> "12,34,567".
    """
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount))
    if len(digits) <= 3:
        return f"{sign}{digits}"

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return f"{sign}{','.join(groups)},{tail}"


def convert_usd_to_inr(usd_text: str, rate: float = 83.0) -> str:
    """
    Convert a free-text USD estimate ("$100-$300", "About $250") to rupees.

    Thousands separators are dropped first so "$1,200" stays one number.
    """
    numbers = _NUMBER_RE.findall(_THOUSANDS_SEP_RE.sub("", usd_text or ""))
    if not numbers:
        return PRICE_UNAVAILABLE

    if len(numbers) == 2:
        low = _to_inr(numbers[0], rate)
        high = _to_inr(numbers[1], rate)
        return f"₹{format_inr(low)}-₹{format_inr(high)}"

    return f"₹{format_inr(_to_inr(numbers[0], rate))}"
