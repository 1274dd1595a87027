# cycles/services.py
import logging
from datetime import datetime, timedelta

from cycles.funds import post_to_fund
from cycles.models import (
    CollectionPayment, GroupFund, LoanCycle, LoanSequence, WeeklyCollection,
    PAYMENT_PAID, SEQ_DISBURSED, SEQ_PENDING,
)
from extensions import db
from finance.money import round2
from finance.schedule import calculate_loan_amount
from groups.models import Group, GroupMember
from loans.models import Loan, LOAN_ACTIVE
from members.models import Member
from savings.models import SOURCE_BACKDATED, SOURCE_CONTRIBUTION
from savings.utils import credit_savings
from users.utils import require_admin
from utils.audit_logger import log_audit_action
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.ledger_config import default_interest_rate, default_loan_weeks, default_weekly_amount
from utils.transactions import atomic

logger = logging.getLogger(__name__)


def get_cycle_or_404(cycle_id: int) -> LoanCycle:
    cycle = db.session.get(LoanCycle, cycle_id)
    if not cycle:
        raise NotFoundError("Cycle not found")
    return cycle


def active_cycle_for_group(group_id: int):
    return (LoanCycle.query
            .filter_by(group_id=group_id, is_active=True)
            .order_by(LoanCycle.cycle_number.desc())
            .first())


def collection_date_for(cycle: LoanCycle, week: int) -> datetime:
    return cycle.start_date + timedelta(weeks=week - 1)


def _get_or_create_collection(cycle: LoanCycle, week: int) -> WeeklyCollection:
    coll = WeeklyCollection.query.filter_by(cycle_id=cycle.id, week=week).first()
    if not coll:
        coll = WeeklyCollection(
            cycle_id=cycle.id,
            week=week,
            collection_date=collection_date_for(cycle, week),
            total_collected=0.0,
            payment_count=0,
        )
        db.session.add(coll)
        db.session.flush()
    return coll


def record_collection_payment(cycle: LoanCycle, member_id: int, week: int, amount: float,
                              paid_at: datetime, backdated: bool = False, credit_fund: bool = True):
    """
    Add one PAID contribution for (cycle, week, member) to the current unit of work.

    Returns the new CollectionPayment, or None when the member already has a
    payment for that week. Nothing is committed here.
    """
    amount = round2(amount)
    coll = _get_or_create_collection(cycle, week)
    if coll.payments.filter_by(member_id=member_id).first():
        return None

    payment = CollectionPayment(
        collection_id=coll.id,
        member_id=member_id,
        amount=amount,
        status=PAYMENT_PAID,
        paid_at=paid_at,
        is_backdated=backdated,
    )
    db.session.add(payment)

    # in-database increments: concurrent payments for the same week never lose a count
    (db.session.query(WeeklyCollection)
     .filter(WeeklyCollection.id == coll.id)
     .update({
         WeeklyCollection.total_collected: WeeklyCollection.total_collected + amount,
         WeeklyCollection.payment_count: WeeklyCollection.payment_count + 1,
     }, synchronize_session="evaluate"))

    if cycle.group_id:
        (db.session.query(GroupMember)
         .filter(GroupMember.group_id == cycle.group_id,
                 GroupMember.member_id == member_id,
                 GroupMember.is_active.is_(True))
         .update({GroupMember.total_contributed: GroupMember.total_contributed + amount},
                 synchronize_session="fetch"))

    credit_savings(member_id, amount, paid_at,
                   source=SOURCE_BACKDATED if backdated else SOURCE_CONTRIBUTION)

    if credit_fund:
        post_to_fund(cycle, investment=amount)

    db.session.flush()
    return payment


@atomic
def create_cycle(caller, cycle_number: int, start_date: datetime, member_ids, total_members=None,
                 weekly_amount=None, group_id=None) -> LoanCycle:
    require_admin(caller)

    if not member_ids:
        raise ValidationError("members must be a non-empty list")
    if len(set(member_ids)) != len(member_ids):
        raise ValidationError("members must not repeat")
    if LoanCycle.query.filter_by(cycle_number=cycle_number).first():
        logger.warning("cycle %s already exists", cycle_number)
        raise ConflictError("Cycle number already exists")

    group = None
    if group_id is not None:
        group = db.session.get(Group, group_id)
        if not group:
            raise NotFoundError("Group not found")

    found = {m.id for m in Member.query.filter(Member.id.in_(member_ids)).all()}
    missing = [mid for mid in member_ids if mid not in found]
    if missing:
        raise NotFoundError(f"Member(s) not found: {', '.join(str(m) for m in missing)}")

    if total_members is None:
        total_members = len(member_ids)
    elif total_members != len(member_ids):
        raise ValidationError("total_members must match the number of members in the rotation")
    if weekly_amount is None:
        weekly_amount = default_weekly_amount(group)
    loan_amount = calculate_loan_amount(total_members, weekly_amount)

    cycle = LoanCycle(
        cycle_number=cycle_number,
        group_id=group.id if group else None,
        start_date=start_date,
        total_members=total_members,
        weekly_amount=round2(weekly_amount),
        is_active=True,
    )
    db.session.add(cycle)
    db.session.flush()

    for idx, member_id in enumerate(member_ids):
        db.session.add(LoanSequence(
            cycle_id=cycle.id,
            week=idx + 1,
            member_id=member_id,
            loan_amount=loan_amount,
            status=SEQ_PENDING,
        ))
    db.session.add(GroupFund(cycle_id=cycle.id))
    db.session.flush()

    log_audit_action(caller.id, "Cycle created", "LoanCycle", cycle.id,
                     new={"cycle_number": cycle_number, "members": list(member_ids),
                          "loan_amount": loan_amount})
    logger.info("cycle %s created with %d sequences, loan amount %.2f",
                cycle_number, len(member_ids), loan_amount)
    return cycle


@atomic
def disburse_sequence(caller, sequence_id: int, disbursed_at: datetime = None,
                      guarantor1_id: int = None, guarantor2_id: int = None) -> Loan:
    require_admin(caller)

    seq = LoanSequence.query.filter_by(id=sequence_id).with_for_update().first()
    if not seq:
        raise NotFoundError("Loan sequence not found")
    if seq.status != SEQ_PENDING:
        logger.warning("sequence %s disbursal rejected, status %s", sequence_id, seq.status)
        raise ConflictError(f"Sequence is already {seq.status}")

    for gid in (guarantor1_id, guarantor2_id):
        if gid is None:
            continue
        if gid == seq.member_id:
            raise ValidationError("Borrower cannot guarantee their own loan")
        if not db.session.get(Member, gid):
            raise NotFoundError("Guarantor not found")

    cycle = seq.cycle
    when = disbursed_at or datetime.utcnow()
    seq.status = SEQ_DISBURSED
    seq.disbursed_at = when

    loan = Loan(
        member_id=seq.member_id,
        cycle_id=cycle.id,
        sequence_id=seq.id,
        principal=round2(seq.loan_amount),
        remaining=round2(seq.loan_amount),
        interest_rate=default_interest_rate(cycle.group),
        weeks=default_loan_weeks(cycle.group),
        current_week=0,
        status=LOAN_ACTIVE,
        disbursed_at=when,
        guarantor1_id=guarantor1_id,
        guarantor2_id=guarantor2_id,
    )
    db.session.add(loan)
    db.session.flush()

    post_to_fund(cycle, investment=-loan.principal)

    log_audit_action(caller.id, "Loan disbursed", "Loan", loan.id,
                     old={"sequence_status": SEQ_PENDING},
                     new={"sequence_status": SEQ_DISBURSED, "principal": loan.principal,
                          "member_id": loan.member_id})
    logger.info("loan %s disbursed to member %s (cycle %s week %s, %.2f)",
                loan.id, loan.member_id, cycle.cycle_number, seq.week, loan.principal)
    return loan


@atomic
def record_contribution(caller, cycle_id: int, member_id: int, week: int, amount: float = None,
                        paid_at: datetime = None) -> CollectionPayment:
    require_admin(caller)
    cycle = get_cycle_or_404(cycle_id)
    if not db.session.get(Member, member_id):
        raise NotFoundError("Member not found")
    if week < 1 or week > cycle.total_members:
        raise ValidationError(f"week must be between 1 and {cycle.total_members}")

    if amount is None:
        gm = None
        if cycle.group_id:
            gm = GroupMember.query.filter_by(group_id=cycle.group_id, member_id=member_id,
                                             is_active=True).first()
        amount = gm.weekly_amount if gm else cycle.weekly_amount

    when = paid_at or datetime.utcnow()
    payment = record_collection_payment(cycle, member_id, week, amount, when)
    if payment is None:
        logger.warning("duplicate contribution: cycle %s week %s member %s", cycle.id, week, member_id)
        raise ConflictError("Contribution already recorded for this week")

    log_audit_action(caller.id, "Contribution recorded", "CollectionPayment", payment.id,
                     new={"cycle_id": cycle.id, "week": week, "member_id": member_id,
                          "amount": payment.amount})
    logger.info("contribution %.2f recorded for member %s, cycle %s week %s",
                payment.amount, member_id, cycle.cycle_number, week)
    return payment
