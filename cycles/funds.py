# cycles/funds.py
"""
GroupFund bookkeeping.

Every repayment, disbursal and contribution in a cycle touches the same fund
row, so pool changes are applied as in-database increments
(`SET pool = pool + :delta`) rather than read-modify-write. The increment also
takes the row's write lock, which keeps the follow-up reallocation consistent
until the surrounding unit of work commits.
"""
from datetime import datetime

from flask import current_app

from cycles.models import GroupFund
from extensions import db
from finance.allocation import allocate_group_fund, total_funds
from finance.money import round2
from utils.errors import NotFoundError


def fund_percentages(cycle):
    grp = cycle.group if cycle is not None else None
    if grp is not None:
        return grp.reserve_pct, grp.insurance_pct, grp.admin_fee_pct
    cfg = current_app.config
    return cfg["FUND_RESERVE_PCT"], cfg["FUND_INSURANCE_PCT"], cfg["FUND_ADMIN_FEE_PCT"]


def apply_fund_delta(cycle_id: int, investment: float = 0.0, interest: float = 0.0) -> GroupFund:
    updated = (db.session.query(GroupFund)
               .filter(GroupFund.cycle_id == cycle_id)
               .update({
                   GroupFund.investment_pool: GroupFund.investment_pool + float(investment),
                   GroupFund.interest_pool: GroupFund.interest_pool + float(interest),
                   GroupFund.last_updated: datetime.utcnow(),
               }, synchronize_session=False))
    if not updated:
        raise NotFoundError("Group fund not found for cycle")
    return GroupFund.query.filter_by(cycle_id=cycle_id).populate_existing().one()


def reallocate(fund: GroupFund, cycle=None) -> GroupFund:
    """Re-split the whole interest pool and refresh the cached total."""
    fund.investment_pool = round2(fund.investment_pool)
    fund.interest_pool = round2(fund.interest_pool)
    reserve_pct, insurance_pct, admin_pct = fund_percentages(cycle if cycle is not None else fund.cycle)
    allocation = allocate_group_fund(fund.interest_pool, reserve_pct, insurance_pct, admin_pct)
    fund.emergency_reserve = allocation.emergency_reserve
    fund.insurance_fund = allocation.insurance_fund
    fund.admin_fee = allocation.admin_fee
    fund.total_funds = total_funds(fund.investment_pool, fund.interest_pool, allocation)
    db.session.add(fund)
    return fund


def post_to_fund(cycle, investment: float = 0.0, interest: float = 0.0) -> GroupFund:
    fund = apply_fund_delta(cycle.id, investment=investment, interest=interest)
    return reallocate(fund, cycle)


def drain_investment_pool(fund: GroupFund, cycle=None) -> GroupFund:
    """Principal has been handed back to members as savings."""
    fund.investment_pool = 0.0
    return reallocate(fund, cycle)
