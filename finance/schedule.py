# finance/schedule.py
"""
Projected week-by-week payment table for a loan.

The table is derived, never stored: the LoanTransaction log is the ledger of
record. Every row is rounded when it is built so that summing the rows gives
the same totals as summing persisted transactions.
"""
from dataclasses import dataclass, asdict
from enum import Enum
from typing import List

from finance.money import round2


class InterestPolicy(str, Enum):
    NONE = "NONE"
    DECLINING = "DECLINING"

    @classmethod
    def parse(cls, value) -> "InterestPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            raise ValueError(f"Unknown interest policy: {value!r}")


@dataclass(frozen=True)
class ScheduleRow:
    week: int
    principal_remaining: float
    principal_payment: float
    interest: float
    total_payment: float
    new_balance: float

    def to_dict(self):
        return asdict(self)


def weekly_principal(principal: float, total_weeks: int) -> float:
    """Straight-line principal installment."""
    if total_weeks <= 0:
        raise ValueError("total_weeks must be positive")
    return round2(float(principal) / total_weeks)


def installment_principal(installment_no: int, weekly_payment: float, remaining: float,
                          total_weeks: int) -> float:
    """
    Principal due on the installment_no-th payment (1-based).

    The last scheduled installment also takes the cents left over from
    rounding the weekly amount. A weekly payment that undershoots by more than
    that leaves the balance open.
    """
    remaining = round2(max(0.0, remaining))
    if installment_no >= total_weeks and remaining - weekly_payment <= 0.01 * total_weeks:
        return remaining
    return round2(min(weekly_payment, remaining))


def week_interest(balance: float, weekly_rate: float, policy: InterestPolicy) -> float:
    if policy is InterestPolicy.NONE:
        return 0.0
    return round2(float(balance) * float(weekly_rate) / 100.0)


def generate_payment_schedule(principal: float, weekly_principal_payment: float,
                              weekly_interest_rate: float, total_weeks: int,
                              method=InterestPolicy.DECLINING) -> List[ScheduleRow]:
    policy = InterestPolicy.parse(method)
    if total_weeks <= 0:
        raise ValueError("total_weeks must be positive")
    if principal < 0 or weekly_principal_payment < 0 or weekly_interest_rate < 0:
        raise ValueError("schedule inputs must be non-negative")

    rows: List[ScheduleRow] = []
    remaining = round2(principal)
    for week in range(1, total_weeks + 1):
        principal_payment = installment_principal(week, weekly_principal_payment, remaining, total_weeks)
        interest = week_interest(remaining, weekly_interest_rate, policy)
        new_balance = round2(max(0.0, remaining - principal_payment))
        rows.append(ScheduleRow(
            week=week,
            principal_remaining=remaining,
            principal_payment=principal_payment,
            interest=interest,
            total_payment=round2(principal_payment + interest),
            new_balance=new_balance,
        ))
        remaining = new_balance
    return rows


def schedule_totals(rows: List[ScheduleRow]) -> dict:
    return {
        "principal": round2(sum(r.principal_payment for r in rows)),
        "interest": round2(sum(r.interest for r in rows)),
        "total": round2(sum(r.total_payment for r in rows)),
    }


def calculate_loan_amount(total_members: int, weekly_amount: float) -> float:
    """Full weekly pool: every member's weekly contribution."""
    return round2(int(total_members) * float(weekly_amount))
