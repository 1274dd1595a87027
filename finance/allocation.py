# finance/allocation.py
from dataclasses import dataclass, asdict
from typing import Hashable, List, Sequence, Tuple

from finance.money import apply_pct, round2

DEFAULT_RESERVE_PCT = 10.0
DEFAULT_INSURANCE_PCT = 5.0
DEFAULT_ADMIN_FEE_PCT = 0.5


@dataclass(frozen=True)
class FundAllocation:
    emergency_reserve: float
    insurance_fund: float
    admin_fee: float
    distributable: float

    def to_dict(self):
        return asdict(self)


def allocate_group_fund(interest_pool: float, reserve_pct: float = DEFAULT_RESERVE_PCT,
                        insurance_pct: float = DEFAULT_INSURANCE_PCT,
                        admin_fee_pct: float = DEFAULT_ADMIN_FEE_PCT) -> FundAllocation:
    """
    Split the cumulative interest pool into reserve categories.

    Always recomputed from the whole pool, so calling it twice with the same
    pool gives the same split.
    """
    pool = float(interest_pool or 0)
    reserve = apply_pct(pool, reserve_pct)
    insurance = apply_pct(pool, insurance_pct)
    admin = apply_pct(pool, admin_fee_pct)
    return FundAllocation(
        emergency_reserve=reserve,
        insurance_fund=insurance,
        admin_fee=admin,
        distributable=round2(pool - reserve - insurance - admin),
    )


def total_funds(investment_pool: float, interest_pool: float, allocation: FundAllocation) -> float:
    return round2(
        float(investment_pool or 0) + float(interest_pool or 0)
        - allocation.emergency_reserve - allocation.insurance_fund - allocation.admin_fee
    )


def proportional_split(pool: float, weights: Sequence[Tuple[Hashable, float]],
                       equal_split_fallback: bool = True) -> List[Tuple[Hashable, float]]:
    """
    Share `pool` across (key, weight) pairs in proportion to weight.

    Each share is rounded to 2 decimals and the rounding remainder goes to the
    last key with a positive weight, so shares always add up to the pool.
    With a zero total weight the pool is split equally, or nothing is returned
    when equal_split_fallback is False.
    """
    pool = round2(pool)
    weights = [(key, max(0.0, float(w or 0))) for key, w in weights]
    if not weights or pool <= 0:
        return []

    total_weight = sum(w for _, w in weights)
    if total_weight <= 0:
        if not equal_split_fallback:
            return []
        weights = [(key, 1.0) for key, _ in weights]
        total_weight = float(len(weights))

    shares = [(key, round2(pool * w / total_weight) if w > 0 else 0.0) for key, w in weights]

    diff = round2(pool - sum(s for _, s in shares))
    if diff != 0:
        for idx in range(len(shares) - 1, -1, -1):
            if weights[idx][1] > 0:
                key, share = shares[idx]
                shares[idx] = (key, round2(share + diff))
                break
    return shares
