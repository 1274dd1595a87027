# groups/services.py
import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from cycles.services import active_cycle_for_group, collection_date_for, record_collection_payment
from extensions import db
from finance.benefit import Participant, estimate_benefit
from finance.money import round2
from groups.models import Group, GroupMember
from members.models import Member
from users.utils import require_admin, require_member_access
from utils.audit_logger import log_audit_action
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.ledger_config import default_interest_rate, default_loan_weeks, default_weekly_amount
from utils.transactions import atomic

logger = logging.getLogger(__name__)


def get_group_or_404(group_id: int) -> Group:
    group = db.session.get(Group, group_id)
    if not group:
        raise NotFoundError("Group not found")
    return group


def active_membership(group_id: int, member_id: int):
    return GroupMember.query.filter_by(group_id=group_id, member_id=member_id, is_active=True).first()


@atomic
def create_group(caller, name: str, weekly_amount=None, interest_rate=None, loan_weeks=None,
                 reserve_pct=None, insurance_pct=None, admin_fee_pct=None,
                 penalty_loan_pct=None, penalty_interest_pct=None) -> Group:
    require_admin(caller)
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if Group.query.filter_by(name=name).first():
        raise ConflictError("Group name already exists")

    group = Group(
        name=name,
        weekly_amount=round2(weekly_amount) if weekly_amount is not None else default_weekly_amount(),
        interest_rate=float(interest_rate) if interest_rate is not None else default_interest_rate(),
        loan_weeks=loan_weeks if loan_weeks is not None else default_loan_weeks(),
    )
    cfg = current_app.config
    group.reserve_pct = float(reserve_pct if reserve_pct is not None else cfg["FUND_RESERVE_PCT"])
    group.insurance_pct = float(insurance_pct if insurance_pct is not None else cfg["FUND_INSURANCE_PCT"])
    group.admin_fee_pct = float(admin_fee_pct if admin_fee_pct is not None else cfg["FUND_ADMIN_FEE_PCT"])
    if group.reserve_pct + group.insurance_pct + group.admin_fee_pct > 100:
        raise ValidationError("fund percentages cannot exceed 100 in total")
    group.penalty_loan_pct = float(penalty_loan_pct if penalty_loan_pct is not None else cfg["PENALTY_LOAN_PCT"])
    group.penalty_interest_pct = float(penalty_interest_pct if penalty_interest_pct is not None
                                       else cfg["PENALTY_INTEREST_PCT"])

    db.session.add(group)
    db.session.flush()
    log_audit_action(caller.id, "Group created", "Group", group.id, new=group.to_dict())
    logger.info("group %s created (%s)", group.id, group.name)
    return group


@atomic
def add_group_member(caller, group_id: int, member_id: int, joining_week: int = 1,
                     joining_date: datetime = None, weekly_amount=None):
    """
    Join a member to a group. Joining an active cycle after week 1 backfills a
    PAID, backdated contribution for every earlier week the member has not paid.

    Returns (membership, backdated_payments).
    """
    require_admin(caller)
    group = get_group_or_404(group_id)
    if not db.session.get(Member, member_id):
        raise NotFoundError("Member not found")
    if active_membership(group.id, member_id):
        logger.warning("member %s already active in group %s", member_id, group.id)
        raise ConflictError("Member is already active in this group")

    amount = round2(weekly_amount) if weekly_amount is not None else round2(group.weekly_amount)
    when = joining_date or datetime.utcnow()

    gm = GroupMember(
        group_id=group.id,
        member_id=member_id,
        joining_week=joining_week,
        joining_date=when,
        weekly_amount=amount,
        total_contributed=0.0,
        total_interest_received=0.0,
        is_active=True,
    )
    db.session.add(gm)
    try:
        db.session.flush()
    except IntegrityError:
        # lost a race with another join for the same member
        raise ConflictError("Member is already active in this group")

    backdated = []
    cycle = active_cycle_for_group(group.id)
    if cycle is not None and joining_week > 1:
        for week in range(1, min(joining_week - 1, cycle.total_members) + 1):
            payment = record_collection_payment(
                cycle, member_id, week, amount,
                paid_at=collection_date_for(cycle, week), backdated=True,
            )
            if payment is not None:
                backdated.append(payment)
        if backdated:
            logger.info("member %s joined group %s at week %d: %d backdated payments",
                        member_id, group.id, joining_week, len(backdated))

    log_audit_action(caller.id, "Member joined group", "GroupMember", gm.id,
                     new={"group_id": group.id, "member_id": member_id,
                          "joining_week": joining_week, "backdated_weeks": [p.collection.week for p in backdated]})
    return gm, backdated


@atomic
def remove_group_member(caller, group_id: int, member_id: int) -> GroupMember:
    require_admin(caller)
    get_group_or_404(group_id)
    gm = (GroupMember.query
          .filter_by(group_id=group_id, member_id=member_id, is_active=True)
          .with_for_update()
          .first())
    if not gm:
        raise NotFoundError("Active group membership not found")
    gm.is_active = False
    log_audit_action(caller.id, "Member left group", "GroupMember", gm.id,
                     old={"is_active": True}, new={"is_active": False})
    logger.info("member %s deactivated in group %s", member_id, group_id)
    return gm


@atomic
def calculate_benefit(caller, group_id: int, member_id: int, week: int):
    """
    Mid-cycle benefit projection for one member. The estimate is cached on the
    membership; total_contributed is left alone.
    """
    require_member_access(caller, member_id, "Forbidden - You can only view your own benefit")
    get_group_or_404(group_id)
    members = GroupMember.query.filter_by(group_id=group_id, is_active=True).all()
    gm = next((m for m in members if m.member_id == member_id), None)
    if gm is None:
        raise NotFoundError("Member not found in group")

    participants = [Participant(m.id, m.joining_week, m.weekly_amount) for m in members]
    me = next(p for p in participants if p.key == gm.id)
    estimate = estimate_benefit(me, participants, week)

    gm.benefit_amount = estimate.benefit_amount
    gm.benefit_week = week
    return gm, estimate
