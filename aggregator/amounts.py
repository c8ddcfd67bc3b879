"""Token amount conversions.

Raw amounts are integers in the token's smallest unit; readable amounts
are Decimals scaled by the token's decimals.
"""

from __future__ import annotations

import decimal
from decimal import Decimal

# 78 digits of precision, enough for uint256 values (up to ~10^77)
DECIMAL_HIGH_PREC_CONTEXT = decimal.Context(prec=78)

MAX_DISPLAY_DECIMALS = 4


def part_amount(amount_in: int, parts: int, allocation: int) -> int:
    """Raw input for ``allocation`` out of ``parts`` equal parts of amount_in.

    Floors, so ``part_amount(x, n, n) == x`` and smaller allocations never
    exceed their exact share.
    """
    if parts <= 0:
        raise ValueError(f"parts must be positive, got {parts}")
    return amount_in * allocation // parts


def from_readable_amount(amount: Decimal | str | int | float, decimals: int) -> int:
    """Convert a human amount (e.g. "1.5") to raw units, truncating dust.

    Floats go through ``str`` first so 0.1 becomes Decimal("0.1").
    """
    if isinstance(amount, float):
        amount = str(amount)
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        raw = Decimal(amount).scaleb(decimals)
        if raw < 0:
            raise ValueError(f"Amount cannot be negative: {amount}")
        return int(raw.to_integral_value(rounding=decimal.ROUND_DOWN))


def to_readable_amount(raw_amount: int, decimals: int) -> str:
    """Format raw units for display with at most four fractional digits."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        value = Decimal(raw_amount).scaleb(-decimals)
        quantum = Decimal(1).scaleb(-MAX_DISPLAY_DECIMALS)
        value = value.quantize(quantum, rounding=decimal.ROUND_HALF_EVEN)
        text = f"{value:,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


__all__ = [
    "DECIMAL_HIGH_PREC_CONTEXT",
    "from_readable_amount",
    "part_amount",
    "to_readable_amount",
]
