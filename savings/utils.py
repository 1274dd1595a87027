# savings/utils.py
from extensions import db
from finance.money import round2
from savings.models import Savings, SavingsTransaction, SOURCE_CONTRIBUTION


def get_or_create_savings(member_id: int) -> Savings:
    """Locks the member's savings row for the rest of the unit of work."""
    sv = Savings.query.filter_by(member_id=member_id).with_for_update().first()
    if not sv:
        sv = Savings(member_id=member_id, total=0.0)
        db.session.add(sv)
        db.session.flush()
    return sv


def credit_savings(member_id: int, amount: float, when, source: str = SOURCE_CONTRIBUTION,
                   loan_id: int = None) -> SavingsTransaction:
    """Add to the running total and append the matching log entry. Caller commits."""
    sv = get_or_create_savings(member_id)
    sv.total = round2(float(sv.total or 0) + float(amount))
    tx = SavingsTransaction(
        savings_id=sv.id,
        date=when,
        amount=round2(amount),
        total=sv.total,
        source=source,
        loan_id=loan_id,
    )
    db.session.add(sv)
    db.session.add(tx)
    return tx
