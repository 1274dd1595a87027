# loans/distribution.py
"""
Payouts triggered when a loan completes.

Interest-bearing scheme: the loan's total interest is shared across the
active members of the cycle's group in proportion to what each has paid in.
Principal-only scheme: the principal collected back is handed out as savings,
in proportion to each member's PAID contributions in the cycle.

Both run inside the repayment's unit of work and never commit.
"""
import logging

from sqlalchemy import func

from cycles.models import CollectionPayment, WeeklyCollection, PAYMENT_PAID
from extensions import db
from finance.allocation import proportional_split
from finance.money import round2
from groups.models import GroupMember
from loans.models import InterestDistribution
from members.models import Member
from savings.models import SOURCE_REDISTRIBUTION
from savings.utils import credit_savings

logger = logging.getLogger(__name__)


def distribute_interest(loan, when):
    """Create InterestDistribution rows for a completed loan. Returns them."""
    interest = round2(loan.total_interest)
    cycle = loan.cycle
    if interest <= 0 or cycle is None or not cycle.group_id:
        return []

    members = (GroupMember.query
               .filter_by(group_id=cycle.group_id, is_active=True)
               .order_by(GroupMember.joining_week.asc(), GroupMember.id.asc())
               .with_for_update()
               .all())
    total_contributed = sum(float(gm.total_contributed or 0) for gm in members)
    if total_contributed <= 0:
        logger.info("loan %s: no contributions in group %s, interest not distributed",
                    loan.id, cycle.group_id)
        return []

    by_id = {gm.id: gm for gm in members}
    shares = proportional_split(
        interest, [(gm.id, gm.total_contributed) for gm in members], equal_split_fallback=False
    )

    rows = []
    for gm_id, share in shares:
        if share <= 0:
            continue
        gm = by_id[gm_id]
        gm.total_interest_received = round2(float(gm.total_interest_received or 0) + share)
        row = InterestDistribution(
            loan_id=loan.id,
            group_member_id=gm.id,
            amount=share,
            contribution_snapshot=round2(gm.total_contributed),
            distribution_date=when,
        )
        db.session.add(row)
        rows.append(row)

    db.session.flush()
    logger.info("loan %s: distributed %.2f interest across %d members", loan.id, interest, len(rows))
    return rows


def _paid_contributions(cycle_id, member_ids):
    """PAID collection totals per member, within one cycle or across all of them."""
    q = (db.session.query(CollectionPayment.member_id, func.coalesce(func.sum(CollectionPayment.amount), 0.0))
         .join(WeeklyCollection, CollectionPayment.collection_id == WeeklyCollection.id)
         .filter(CollectionPayment.status == PAYMENT_PAID,
                 CollectionPayment.member_id.in_(member_ids)))
    if cycle_id is not None:
        q = q.filter(WeeklyCollection.cycle_id == cycle_id)
    q = q.group_by(CollectionPayment.member_id)
    return {member_id: float(total or 0) for member_id, total in q.all()}


def redistribute_principal_as_savings(loan, when):
    """
    Credit the loan's collected principal back to members as savings.

    Returns the list of (member_id, amount) credited.
    """
    pool = round2(loan.total_principal_paid)
    cycle = loan.cycle
    if pool <= 0:
        return []

    if cycle is not None and cycle.group_id:
        member_ids = [gm.member_id for gm in (GroupMember.query
                                              .filter_by(group_id=cycle.group_id, is_active=True)
                                              .order_by(GroupMember.joining_week.asc(), GroupMember.id.asc())
                                              .all())]
    else:
        # no group context: the whole membership shares the pool
        member_ids = [m.id for m in Member.query.order_by(Member.id.asc()).all()]
    if not member_ids:
        return []

    paid = _paid_contributions(cycle.id if cycle is not None else None, member_ids)
    shares = proportional_split(pool, [(mid, paid.get(mid, 0.0)) for mid in member_ids])

    credited = []
    for member_id, share in shares:
        if share <= 0:
            continue
        credit_savings(member_id, share, when, source=SOURCE_REDISTRIBUTION, loan_id=loan.id)
        credited.append((member_id, share))

    db.session.flush()
    logger.info("loan %s: redistributed %.2f principal as savings to %d members",
                loan.id, pool, len(credited))
    return credited
