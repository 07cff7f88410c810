import math
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Iterable, Optional

ONE_DECIMAL = Decimal("0.1")


def round1(value: float) -> float:
    """Round the printed value half away from zero: 8.25 -> 8.3, -8.25 -> -8.3.

    Non-finite values come back unchanged.
    """
    if not math.isfinite(value):
        return value
    exact = Decimal(repr(value))
    with localcontext() as ctx:
        # room for every integer digit plus the one decimal
        ctx.prec = max(ctx.prec, exact.adjusted() + 3)
        return float(exact.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


def mean1(values: Iterable[float]) -> Optional[float]:
    """Arithmetic mean rounded with round1, or None when there are no values."""
    values = list(values)
    if not values:
        return None
    return round1(sum(values) / len(values))
