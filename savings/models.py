from extensions import db
from datetime import datetime

SOURCE_CONTRIBUTION = "CONTRIBUTION"
SOURCE_BACKDATED = "BACKDATED"
SOURCE_REDISTRIBUTION = "REDISTRIBUTION"


class Savings(db.Model):
    __tablename__ = "savings"

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, unique=True, index=True)
    total = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member = db.relationship("Member", backref=db.backref("savings", uselist=False))
    transactions = db.relationship("SavingsTransaction", backref="savings", lazy="dynamic")

    def to_dict(self, with_transactions=False):
        data = {
            "id": self.id,
            "member_id": self.member_id,
            "member": self.member.to_brief() if self.member else None,
            "total": self.total,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_transactions:
            data["transactions"] = [
                t.to_dict() for t in self.transactions.order_by(
                    SavingsTransaction.date.desc(), SavingsTransaction.id.desc()
                )
            ]
        return data


class SavingsTransaction(db.Model):
    """Append-only, like LoanTransaction."""
    __tablename__ = "savings_transactions"

    id = db.Column(db.Integer, primary_key=True)
    savings_id = db.Column(db.Integer, db.ForeignKey("savings.id"), nullable=False, index=True)
    date = db.Column(db.DateTime, nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    total = db.Column(db.Float, nullable=False)   # running total after this entry
    source = db.Column(db.String(20), nullable=False, default=SOURCE_CONTRIBUTION)
    loan_id = db.Column(db.Integer, db.ForeignKey("loans.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "amount": self.amount,
            "total": self.total,
            "source": self.source,
            "loan_id": self.loan_id,
        }
