# loans/services.py
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from cycles.funds import drain_investment_pool, post_to_fund
from cycles.models import SEQ_COMPLETED
from extensions import db
from finance.money import round2
from finance.repayment import RepaymentBreakdown, compute_full_settlement, compute_repayment
from finance.schedule import (
    InterestPolicy, generate_payment_schedule, schedule_totals, weekly_principal,
)
from loans.distribution import distribute_interest, redistribute_principal_as_savings
from loans.models import Loan, LoanTransaction, LOAN_ACTIVE, LOAN_COMPLETED, LOAN_DEFAULTED
from members.models import Member
from users.utils import require_admin, require_member_access
from utils.audit_logger import log_audit_action
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.ledger_config import current_policy, penalty_rate
from utils.transactions import atomic

logger = logging.getLogger(__name__)


@dataclass
class RepaymentResult:
    loan: Loan
    transaction: LoanTransaction
    breakdown: RepaymentBreakdown
    distributions: list = field(default_factory=list)
    savings_credits: List[Tuple[int, float]] = field(default_factory=list)
    fund: Optional[object] = None

    def to_dict(self):
        b = self.breakdown
        return {
            "payment": {
                "principal": b.principal,
                "interest": b.interest,
                "weekly_interest": b.weekly_interest,
                "accumulated_interest": b.accumulated_interest,
                "penalty": b.penalty,
                "total": b.total,
                "new_balance": b.new_balance,
                "missed_weeks": b.missed_weeks,
                "overdue_weeks": b.overdue_weeks,
                "is_late": b.is_late,
                "week": b.new_week,
            },
            **self._effects(),
        }

    def _effects(self):
        return {
            "loan": self.loan.to_dict(),
            "transaction": self.transaction.to_dict(),
            "distributions": [d.to_dict() for d in self.distributions],
            "savings_credits": [{"member_id": mid, "amount": amt} for mid, amt in self.savings_credits],
            "group_fund": self.fund.to_dict() if self.fund is not None else None,
        }


@dataclass
class SettlementResult(RepaymentResult):
    def to_dict(self):
        return {"repayment": self.breakdown.to_dict(), **self._effects()}


def get_loan_or_404(loan_id: int) -> Loan:
    loan = db.session.get(Loan, loan_id)
    if not loan:
        raise NotFoundError("Loan not found")
    return loan


def schedule_for(loan: Loan, policy=None):
    policy = InterestPolicy.parse(policy or current_policy())
    rows = generate_payment_schedule(
        loan.principal,
        weekly_principal(loan.principal, loan.weeks),
        loan.interest_rate if policy is InterestPolicy.DECLINING else 0.0,
        loan.weeks,
        policy,
    )
    return {
        "loan_id": loan.id,
        "method": policy.value,
        "rows": [r.to_dict() for r in rows],
        "totals": schedule_totals(rows),
    }


def _settle_effects(result, policy, when, principal, fund_income, completes):
    """Fund routing for a repayment, then the payouts owed when it closes the loan."""
    loan = result.loan
    cycle = loan.cycle
    if cycle is not None:
        if policy is InterestPolicy.DECLINING:
            result.fund = post_to_fund(cycle, interest=fund_income)
        elif not completes:
            result.fund = post_to_fund(cycle, investment=principal)

    if not completes:
        return
    if policy is InterestPolicy.DECLINING:
        result.distributions = distribute_interest(loan, when)
    else:
        result.savings_credits = redistribute_principal_as_savings(loan, when)
        if cycle is not None:
            result.fund = drain_investment_pool(post_to_fund(cycle, interest=fund_income), cycle)


@atomic
def repay_loan(caller, loan_id: int, payment_date: datetime = None, is_late: bool = False,
               overdue_weeks: Optional[int] = None, payment_method: str = None) -> RepaymentResult:
    # row lock + version counter: two repayments never both see the same balance
    loan = Loan.query.filter_by(id=loan_id).with_for_update().first()
    if not loan:
        raise NotFoundError("Loan not found")
    require_member_access(caller, loan.member_id, "Forbidden - You can only repay your own loans")
    if loan.is_terminal:
        logger.warning("repayment rejected: loan %s is %s", loan.id, loan.status)
        raise ConflictError(f"Loan is already {loan.status.lower()}")

    when = payment_date or datetime.utcnow()
    disbursed_at = loan.disbursed_at or loan.created_at or when
    if when < disbursed_at:
        raise ValidationError("Payment date cannot be before disbursal")

    policy = current_policy()
    breakdown = compute_repayment(
        principal=loan.principal,
        remaining=loan.remaining,
        total_weeks=loan.weeks,
        current_week=loan.current_week,
        installments_paid=loan.transactions.count(),
        weekly_rate=loan.interest_rate,
        disbursed_at=disbursed_at,
        payment_date=when,
        policy=policy,
        explicit_late=is_late,
        explicit_overdue_weeks=overdue_weeks,
        penalty_rate=penalty_rate(),
    )

    old = {"remaining": loan.remaining, "current_week": loan.current_week, "status": loan.status}
    loan.remaining = breakdown.new_balance
    loan.current_week = breakdown.new_week
    loan.total_interest = round2(float(loan.total_interest or 0) + breakdown.interest)
    loan.total_principal_paid = round2(float(loan.total_principal_paid or 0) + breakdown.principal)
    loan.late_payment_penalty = round2(float(loan.late_payment_penalty or 0) + breakdown.penalty)
    if breakdown.completes_loan:
        loan.status = LOAN_COMPLETED
        loan.completed_at = when
        if loan.sequence is not None:
            loan.sequence.status = SEQ_COMPLETED

    tx = LoanTransaction(
        loan_id=loan.id,
        date=when,
        amount=breakdown.principal,
        interest=breakdown.interest,
        penalty=breakdown.penalty,
        remaining=breakdown.new_balance,
        week=breakdown.new_week,
        payment_method=payment_method,
    )
    db.session.add(tx)
    db.session.flush()

    result = RepaymentResult(loan=loan, transaction=tx, breakdown=breakdown)
    _settle_effects(result, policy, when, breakdown.principal, breakdown.fund_income,
                    breakdown.completes_loan)

    log_audit_action(caller.id, "Loan repayment", "Loan", loan.id, old=old,
                     new={"remaining": loan.remaining, "current_week": loan.current_week,
                          "status": loan.status, "paid": breakdown.total})
    logger.info("loan %s repaid %.2f (principal %.2f, interest %.2f, penalty %.2f), remaining %.2f",
                loan.id, breakdown.total, breakdown.principal, breakdown.interest,
                breakdown.penalty, loan.remaining)
    if loan.status == LOAN_COMPLETED:
        logger.info("loan %s completed", loan.id)
    return result


@atomic
def settle_loan(caller, loan_id: int, payment_date: datetime = None,
                payment_method: str = None) -> SettlementResult:
    """
    Close a rotation loan in one payment: the outstanding principal, the rest
    of the full-term interest, and the group's early-settlement penalties.
    """
    loan = Loan.query.filter_by(id=loan_id).with_for_update().first()
    if not loan:
        raise NotFoundError("Loan not found")
    require_member_access(caller, loan.member_id, "Forbidden - You can only repay your own loans")
    if loan.is_terminal:
        logger.warning("settlement rejected: loan %s is %s", loan.id, loan.status)
        raise ConflictError(f"Loan is already {loan.status.lower()}")
    group = loan.cycle.group if loan.cycle is not None else None
    if group is None:
        raise NotFoundError("Group not found for this loan")

    when = payment_date or datetime.utcnow()
    disbursed_at = loan.disbursed_at or loan.created_at or when
    if when < disbursed_at:
        raise ValidationError("Payment date cannot be before disbursal")

    policy = current_policy()
    settlement = compute_full_settlement(
        principal=loan.principal,
        remaining=loan.remaining,
        total_weeks=loan.weeks,
        weekly_rate=loan.interest_rate,
        interest_paid=loan.total_interest,
        penalty_loan_pct=group.penalty_loan_pct,
        penalty_interest_pct=group.penalty_interest_pct,
        active_members=len(group.active_members()),
        weekly_amount=group.weekly_amount,
        policy=policy,
    )

    old = {"remaining": loan.remaining, "current_week": loan.current_week, "status": loan.status}
    loan.remaining = 0.0
    loan.current_week = loan.weeks
    loan.total_interest = round2(float(loan.total_interest or 0) + settlement.interest)
    loan.total_principal_paid = round2(float(loan.total_principal_paid or 0) + settlement.principal)
    loan.late_payment_penalty = round2(float(loan.late_payment_penalty or 0) + settlement.penalty)
    loan.status = LOAN_COMPLETED
    loan.completed_at = when
    if loan.sequence is not None:
        loan.sequence.status = SEQ_COMPLETED

    tx = LoanTransaction(
        loan_id=loan.id,
        date=when,
        amount=settlement.principal,
        interest=settlement.interest,
        penalty=settlement.penalty,
        remaining=0.0,
        week=loan.weeks,
        payment_method=payment_method,
    )
    db.session.add(tx)
    db.session.flush()

    result = SettlementResult(loan=loan, transaction=tx, breakdown=settlement)
    _settle_effects(result, policy, when, settlement.principal, settlement.fund_income, True)

    log_audit_action(caller.id, "Loan settled in full", "Loan", loan.id, old=old,
                     new={"remaining": 0.0, "status": loan.status, "paid": settlement.total,
                          "penalty": settlement.penalty})
    logger.info("loan %s settled in full: %.2f (principal %.2f, interest %.2f, penalty %.2f)",
                loan.id, settlement.total, settlement.principal, settlement.interest, settlement.penalty)
    return result


@atomic
def create_loan(caller, member_id: int, principal: float, weeks: int, interest_rate: float,
                disbursed_at: datetime = None, guarantor1_id: int = None,
                guarantor2_id: int = None) -> Loan:
    require_admin(caller)
    if not db.session.get(Member, member_id):
        raise NotFoundError("Member not found")
    for gid in (guarantor1_id, guarantor2_id):
        if gid is None:
            continue
        if gid == member_id:
            raise ValidationError("Borrower cannot guarantee their own loan")
        if not db.session.get(Member, gid):
            raise NotFoundError("Guarantor not found")

    if current_policy() is InterestPolicy.NONE:
        interest_rate = 0.0

    loan = Loan(
        member_id=member_id,
        principal=round2(principal),
        remaining=round2(principal),
        interest_rate=float(interest_rate),
        weeks=weeks,
        current_week=0,
        status=LOAN_ACTIVE,
        disbursed_at=disbursed_at or datetime.utcnow(),
        guarantor1_id=guarantor1_id,
        guarantor2_id=guarantor2_id,
    )
    db.session.add(loan)
    db.session.flush()

    log_audit_action(caller.id, "Loan created", "Loan", loan.id,
                     new={"member_id": member_id, "principal": loan.principal,
                          "weeks": weeks, "interest_rate": loan.interest_rate})
    logger.info("standalone loan %s created for member %s (%.2f over %d weeks)",
                loan.id, member_id, loan.principal, weeks)
    return loan


@atomic
def mark_defaulted(caller, loan_id: int) -> Loan:
    require_admin(caller)
    loan = Loan.query.filter_by(id=loan_id).with_for_update().first()
    if not loan:
        raise NotFoundError("Loan not found")
    if loan.status != LOAN_ACTIVE:
        raise ConflictError(f"Only active loans can be defaulted (loan is {loan.status})")

    loan.status = LOAN_DEFAULTED
    log_audit_action(caller.id, "Loan status update", "Loan", loan.id,
                     old={"status": LOAN_ACTIVE}, new={"status": LOAN_DEFAULTED})
    logger.info("loan %s marked defaulted", loan.id)
    return loan
