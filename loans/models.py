# loans/models.py
from datetime import datetime
from extensions import db

LOAN_ACTIVE = "ACTIVE"
LOAN_COMPLETED = "COMPLETED"
LOAN_DEFAULTED = "DEFAULTED"
TERMINAL_STATUSES = (LOAN_COMPLETED, LOAN_DEFAULTED)


class Loan(db.Model):
    __tablename__ = "loans"

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)
    cycle_id = db.Column(db.Integer, db.ForeignKey("loan_cycles.id"), nullable=True, index=True)
    sequence_id = db.Column(db.Integer, db.ForeignKey("loan_sequences.id"), nullable=True, unique=True)

    principal = db.Column(db.Float, nullable=False)
    remaining = db.Column(db.Float, nullable=False)
    interest_rate = db.Column(db.Float, nullable=False, default=0.0)   # weekly %, may be 0
    weeks = db.Column(db.Integer, nullable=False, default=10)
    current_week = db.Column(db.Integer, nullable=False, default=0)

    total_interest = db.Column(db.Float, nullable=False, default=0.0)
    total_principal_paid = db.Column(db.Float, nullable=False, default=0.0)
    late_payment_penalty = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(20), nullable=False, default=LOAN_ACTIVE, index=True)  # ACTIVE|COMPLETED|DEFAULTED
    disbursed_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    guarantor1_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=True)
    guarantor2_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=True)

    # optimistic lock: a second writer holding a stale row fails instead of overwriting
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    member = db.relationship("Member", foreign_keys=[member_id],
                             backref=db.backref("loans", lazy="dynamic"))
    guarantor1 = db.relationship("Member", foreign_keys=[guarantor1_id])
    guarantor2 = db.relationship("Member", foreign_keys=[guarantor2_id])
    cycle = db.relationship("LoanCycle", backref=db.backref("loans", lazy="dynamic"))
    sequence = db.relationship("LoanSequence", backref=db.backref("loan", uselist=False))
    transactions = db.relationship("LoanTransaction", backref="loan", lazy="dynamic")
    interest_distributions = db.relationship("InterestDistribution", backref="loan", lazy="dynamic")

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def transactions_newest_first(self):
        return self.transactions.order_by(LoanTransaction.date.desc(), LoanTransaction.id.desc()).all()

    def to_dict(self, with_transactions=False):
        data = {
            "id": self.id,
            "member_id": self.member_id,
            "member": self.member.to_brief() if self.member else None,
            "cycle_id": self.cycle_id,
            "sequence_id": self.sequence_id,
            "principal": self.principal,
            "remaining": self.remaining,
            "interest_rate": self.interest_rate,
            "weeks": self.weeks,
            "current_week": self.current_week,
            "total_interest": self.total_interest,
            "total_principal_paid": self.total_principal_paid,
            "late_payment_penalty": self.late_payment_penalty,
            "status": self.status,
            "disbursed_at": self.disbursed_at.isoformat() if self.disbursed_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "guarantor1": self.guarantor1.to_brief() if self.guarantor1 else None,
            "guarantor2": self.guarantor2.to_brief() if self.guarantor2 else None,
        }
        if with_transactions:
            data["transactions"] = [t.to_dict() for t in self.transactions_newest_first()]
        return data


class LoanTransaction(db.Model):
    """One repayment. Append-only: never updated or deleted."""
    __tablename__ = "loan_transactions"

    id = db.Column(db.Integer, primary_key=True)
    loan_id = db.Column(db.Integer, db.ForeignKey("loans.id"), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)            # principal portion
    interest = db.Column(db.Float, nullable=False, default=0.0)
    penalty = db.Column(db.Float, nullable=False, default=0.0)
    remaining = db.Column(db.Float, nullable=False)         # balance after this payment
    week = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(40), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "loan_id": self.loan_id,
            "date": self.date.isoformat() if self.date else None,
            "principal": self.amount,
            "interest": self.interest,
            "penalty": self.penalty,
            "remaining": self.remaining,
            "week": self.week,
            "payment_method": self.payment_method,
        }


class InterestDistribution(db.Model):
    __tablename__ = "interest_distributions"

    id = db.Column(db.Integer, primary_key=True)
    loan_id = db.Column(db.Integer, db.ForeignKey("loans.id"), nullable=False, index=True)
    group_member_id = db.Column(db.Integer, db.ForeignKey("group_members.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    contribution_snapshot = db.Column(db.Float, nullable=False, default=0.0)  # member's totalContributed at payout
    distribution_date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    group_member = db.relationship("GroupMember")

    def to_dict(self):
        gm = self.group_member
        return {
            "id": self.id,
            "loan_id": self.loan_id,
            "group_member_id": self.group_member_id,
            "member": gm.member.to_brief() if gm and gm.member else None,
            "amount": self.amount,
            "contribution_snapshot": self.contribution_snapshot,
            "distribution_date": self.distribution_date.isoformat() if self.distribution_date else None,
        }
