# finance/repayment.py
"""
Pure repayment arithmetic: given a loan's state and a payment event, work out
the principal / interest / penalty split and where the loan ends up. Nothing
here touches the database; loans/services.py applies the result.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from functools import reduce
from typing import Optional, Tuple

from finance.money import round2
from finance.schedule import InterestPolicy, installment_principal, week_interest, weekly_principal

WEEK = timedelta(days=7)
DEFAULT_PENALTY_RATE = 0.5  # % of balance per missed week


@dataclass(frozen=True)
class RepaymentBreakdown:
    expected_week: int
    missed_weeks: int
    is_late: bool
    overdue_weeks: int
    principal: float
    weekly_interest: float
    accumulated_interest: float
    interest: float
    penalty: float
    weekly_amount: float
    total: float
    new_balance: float
    new_week: int

    @property
    def completes_loan(self) -> bool:
        return self.new_balance <= 0

    @property
    def fund_income(self) -> float:
        """What the repayment adds to the cycle's interest pool."""
        return round2(self.interest + self.penalty)

    def to_dict(self):
        data = asdict(self)
        data["completes_loan"] = self.completes_loan
        return data


def expected_week(disbursed_at: datetime, payment_date: datetime) -> int:
    """Week 1 starts at disbursal."""
    return (payment_date - disbursed_at) // WEEK + 1


def count_missed_weeks(expected: int, current_week: int) -> int:
    return max(0, expected - current_week - 1)


def simulate_missed_weeks(remaining: float, weekly_rate: float, missed_weeks: int,
                          penalty_rate: float = DEFAULT_PENALTY_RATE) -> Tuple[float, float]:
    """
    Interest and penalty accrued over weeks with no payment.

    No principal was paid in those weeks, so every week accrues on the same
    balance. Returns (accumulated_interest, accumulated_penalty).
    """
    interest_per_week = round2(remaining * weekly_rate / 100.0)
    penalty_per_week = round2(remaining * penalty_rate / 100.0)

    def accrue(acc, _week):
        return acc[0] + interest_per_week, acc[1] + penalty_per_week

    interest, penalty = reduce(accrue, range(missed_weeks), (0.0, 0.0))
    return round2(interest), round2(penalty)


def compute_repayment(*, principal: float, remaining: float, total_weeks: int, current_week: int,
                      installments_paid: int, weekly_rate: float, disbursed_at: datetime,
                      payment_date: datetime, policy=InterestPolicy.DECLINING,
                      explicit_late: bool = False, explicit_overdue_weeks: Optional[int] = None,
                      penalty_rate: float = DEFAULT_PENALTY_RATE) -> RepaymentBreakdown:
    policy = InterestPolicy.parse(policy)
    remaining = round2(remaining)

    expected = expected_week(disbursed_at, payment_date)
    missed = count_missed_weeks(expected, current_week)
    is_late = missed > 0 or bool(explicit_late)
    overdue = explicit_overdue_weeks if explicit_overdue_weeks is not None else missed

    principal_part = installment_principal(
        installments_paid + 1, weekly_principal(principal, total_weeks), remaining, total_weeks
    )
    new_balance = round2(max(0.0, remaining - principal_part))

    if policy is InterestPolicy.NONE:
        # missed weeks are reported only; no interest, no penalty, no week jump
        return RepaymentBreakdown(
            expected_week=expected, missed_weeks=missed, is_late=is_late, overdue_weeks=overdue,
            principal=principal_part, weekly_interest=0.0, accumulated_interest=0.0,
            interest=0.0, penalty=0.0, weekly_amount=principal_part, total=principal_part,
            new_balance=new_balance, new_week=current_week + 1,
        )

    current_interest = week_interest(remaining, weekly_rate, policy)
    accumulated_interest, accumulated_penalty = simulate_missed_weeks(
        remaining, weekly_rate, missed, penalty_rate
    )

    penalty = accumulated_penalty
    if explicit_overdue_weeks is not None and explicit_overdue_weeks != missed:
        # manual override replaces the simulated penalty
        penalty = round2(remaining * penalty_rate * explicit_overdue_weeks / 100.0)

    interest = round2(current_interest + accumulated_interest)
    return RepaymentBreakdown(
        expected_week=expected,
        missed_weeks=missed,
        is_late=is_late,
        overdue_weeks=overdue,
        principal=principal_part,
        weekly_interest=current_interest,
        accumulated_interest=accumulated_interest,
        interest=interest,
        penalty=penalty,
        weekly_amount=round2(principal_part + current_interest),
        total=round2(principal_part + interest + penalty),
        new_balance=new_balance,
        new_week=current_week + 1 + missed,
    )


@dataclass(frozen=True)
class MemberShare:
    savings: float
    loan_penalty: float
    interest_penalty: float
    total: float


@dataclass(frozen=True)
class FullSettlement:
    """One-off payment that closes a rotation loan, with the group's penalties."""
    principal: float
    full_term_interest: float
    interest: float
    loan_penalty: float
    interest_penalty: float
    penalty: float
    total: float
    per_member: MemberShare

    @property
    def fund_income(self) -> float:
        return round2(self.interest + self.penalty)

    def to_dict(self):
        data = asdict(self)
        data["per_member_share"] = self.per_member.total
        return data


def compute_full_settlement(*, principal: float, remaining: float, total_weeks: int, weekly_rate: float,
                            interest_paid: float, penalty_loan_pct: float, penalty_interest_pct: float,
                            active_members: int, weekly_amount: float,
                            policy=InterestPolicy.DECLINING) -> FullSettlement:
    """
    Settle the loan in one payment.

    Interest is charged flat for the whole term (rate x weeks on the original
    principal), less what earlier repayments already paid. The penalties are a
    percentage of the principal and of the full-term interest, and each active
    member carries an equal part of them on top of one weekly saving.
    """
    policy = InterestPolicy.parse(policy)
    rate = float(weekly_rate) if policy is InterestPolicy.DECLINING else 0.0
    full_interest = round2(float(principal) * rate * int(total_weeks) / 100.0)
    interest = round2(max(0.0, full_interest - float(interest_paid or 0)))
    loan_penalty = round2(float(principal) * float(penalty_loan_pct or 0) / 100.0)
    interest_penalty = round2(full_interest * float(penalty_interest_pct or 0) / 100.0)
    penalty = round2(loan_penalty + interest_penalty)
    principal_part = round2(max(0.0, remaining))

    members = max(1, int(active_members or 0))
    share_loan = round2(loan_penalty / members)
    share_interest = round2(interest_penalty / members)
    savings = round2(weekly_amount)
    return FullSettlement(
        principal=principal_part,
        full_term_interest=full_interest,
        interest=interest,
        loan_penalty=loan_penalty,
        interest_penalty=interest_penalty,
        penalty=penalty,
        total=round2(principal_part + interest + penalty),
        per_member=MemberShare(
            savings=savings,
            loan_penalty=share_loan,
            interest_penalty=share_interest,
            total=round2(savings + share_loan + share_interest),
        ),
    )
