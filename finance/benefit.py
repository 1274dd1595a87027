# finance/benefit.py
from dataclasses import dataclass, asdict
from typing import Hashable, Sequence

from finance.money import round2


@dataclass(frozen=True)
class Participant:
    key: Hashable
    joining_week: int
    weekly_amount: float


@dataclass(frozen=True)
class BenefitEstimate:
    week: int
    weeks_contributed: int
    member_contribution: float
    total_contributions: float
    pool_amount: float
    active_members: int
    benefit_amount: float

    def to_dict(self):
        return asdict(self)


def weeks_contributed(week: int, joining_week: int) -> int:
    return max(0, week - joining_week + 1)


def estimate_benefit(member: Participant, participants: Sequence[Participant], week: int) -> BenefitEstimate:
    """
    Mid-cycle benefit for `member` at `week`.

    benefit = member_contribution / total_contributions * pool, where the pool
    is this week's weekly amounts of everyone already in. Earlier joiners have
    paid in longer and so take a bigger share. With no contributions at all the
    pool is split equally among the members already in.
    """
    if week < 1:
        raise ValueError("week must be >= 1")

    total_contributions = round2(sum(
        weeks_contributed(week, p.joining_week) * float(p.weekly_amount) for p in participants
    ))
    member_weeks = weeks_contributed(week, member.joining_week)
    member_contribution = round2(member_weeks * float(member.weekly_amount))

    in_this_week = [p for p in participants if p.joining_week <= week]
    pool = round2(sum(float(p.weekly_amount) for p in in_this_week))

    if total_contributions > 0:
        benefit = member_contribution / total_contributions * pool
    else:
        benefit = pool / max(len(in_this_week), 1)

    return BenefitEstimate(
        week=week,
        weeks_contributed=member_weeks,
        member_contribution=member_contribution,
        total_contributions=total_contributions,
        pool_amount=pool,
        active_members=len(in_this_week),
        benefit_amount=round2(benefit),
    )
