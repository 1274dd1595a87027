# finance/money.py
from decimal import Decimal, ROUND_HALF_UP


def round2(value) -> float:
    """Round a money amount to 2 decimals, half-up (not banker's rounding)."""
    if value is None:
        return 0.0
    d = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    result = float(d)
    return 0.0 if result == 0 else result


def apply_pct(amount, pct) -> float:
    """pct is a percentage (10 means 10%)."""
    return round2(float(amount or 0) * float(pct or 0) / 100.0)
