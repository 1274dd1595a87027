# cycles/models.py
from datetime import datetime
from extensions import db

SEQ_PENDING = "PENDING"
SEQ_DISBURSED = "DISBURSED"
SEQ_COMPLETED = "COMPLETED"

PAYMENT_PAID = "PAID"
PAYMENT_PENDING = "PENDING"


class LoanCycle(db.Model):
    __tablename__ = "loan_cycles"

    id = db.Column(db.Integer, primary_key=True)
    cycle_number = db.Column(db.Integer, unique=True, nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=True, index=True)
    start_date = db.Column(db.DateTime, nullable=False)
    total_members = db.Column(db.Integer, nullable=False)
    weekly_amount = db.Column(db.Float, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    group = db.relationship("Group", backref=db.backref("cycles", lazy="dynamic"))
    sequences = db.relationship("LoanSequence", backref="cycle", order_by="LoanSequence.week",
                                cascade="all, delete-orphan")
    group_fund = db.relationship("GroupFund", backref="cycle", uselist=False, cascade="all, delete-orphan")
    collections = db.relationship("WeeklyCollection", backref="cycle", order_by="WeeklyCollection.week",
                                  lazy="dynamic")

    def to_dict(self, with_children=True):
        data = {
            "id": self.id,
            "cycle_number": self.cycle_number,
            "group_id": self.group_id,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "total_members": self.total_members,
            "weekly_amount": self.weekly_amount,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if with_children:
            data["sequences"] = [s.to_dict() for s in self.sequences]
            data["group_fund"] = self.group_fund.to_dict() if self.group_fund else None
        return data


class LoanSequence(db.Model):
    __tablename__ = "loan_sequences"

    id = db.Column(db.Integer, primary_key=True)
    cycle_id = db.Column(db.Integer, db.ForeignKey("loan_cycles.id"), nullable=False, index=True)
    week = db.Column(db.Integer, nullable=False)   # 1..N
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)
    loan_amount = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=SEQ_PENDING)  # PENDING|DISBURSED|COMPLETED
    disbursed_at = db.Column(db.DateTime, nullable=True)

    member = db.relationship("Member")

    __table_args__ = (db.UniqueConstraint("cycle_id", "week", name="uq_cycle_week"),)

    def to_dict(self):
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "week": self.week,
            "member_id": self.member_id,
            "member": self.member.to_brief() if self.member else None,
            "loan_amount": self.loan_amount,
            "status": self.status,
            "disbursed_at": self.disbursed_at.isoformat() if self.disbursed_at else None,
            "loan_id": self.loan.id if getattr(self, "loan", None) else None,
        }


class GroupFund(db.Model):
    __tablename__ = "group_funds"

    id = db.Column(db.Integer, primary_key=True)
    cycle_id = db.Column(db.Integer, db.ForeignKey("loan_cycles.id"), nullable=False, unique=True, index=True)

    investment_pool = db.Column(db.Float, nullable=False, default=0.0)   # collected, not yet lent
    interest_pool = db.Column(db.Float, nullable=False, default=0.0)     # interest + penalties received
    emergency_reserve = db.Column(db.Float, nullable=False, default=0.0)
    insurance_fund = db.Column(db.Float, nullable=False, default=0.0)
    admin_fee = db.Column(db.Float, nullable=False, default=0.0)
    # investment + interest - reserve - insurance - admin fee
    total_funds = db.Column(db.Float, nullable=False, default=0.0)

    last_updated = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "investment_pool": self.investment_pool,
            "interest_pool": self.interest_pool,
            "emergency_reserve": self.emergency_reserve,
            "insurance_fund": self.insurance_fund,
            "admin_fee": self.admin_fee,
            "total_funds": self.total_funds,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


class WeeklyCollection(db.Model):
    __tablename__ = "weekly_collections"

    id = db.Column(db.Integer, primary_key=True)
    cycle_id = db.Column(db.Integer, db.ForeignKey("loan_cycles.id"), nullable=False, index=True)
    week = db.Column(db.Integer, nullable=False)
    collection_date = db.Column(db.DateTime, nullable=False)
    total_collected = db.Column(db.Float, nullable=False, default=0.0)
    payment_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    payments = db.relationship("CollectionPayment", backref="collection", lazy="dynamic")

    __table_args__ = (db.UniqueConstraint("cycle_id", "week", name="uq_collection_cycle_week"),)

    def to_dict(self):
        return {
            "id": self.id,
            "cycle_id": self.cycle_id,
            "week": self.week,
            "collection_date": self.collection_date.isoformat() if self.collection_date else None,
            "total_collected": self.total_collected,
            "payment_count": self.payment_count,
        }


class CollectionPayment(db.Model):
    __tablename__ = "collection_payments"

    id = db.Column(db.Integer, primary_key=True)
    collection_id = db.Column(db.Integer, db.ForeignKey("weekly_collections.id"), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(15), nullable=False, default=PAYMENT_PAID)   # PAID|PENDING
    paid_at = db.Column(db.DateTime, nullable=True)
    is_backdated = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    member = db.relationship("Member")

    __table_args__ = (db.UniqueConstraint("collection_id", "member_id", name="uq_collection_member"),)

    def to_dict(self):
        return {
            "id": self.id,
            "collection_id": self.collection_id,
            "week": self.collection.week if self.collection else None,
            "member_id": self.member_id,
            "amount": self.amount,
            "status": self.status,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "is_backdated": self.is_backdated,
        }
