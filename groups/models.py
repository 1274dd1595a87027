# groups/models.py
from datetime import datetime
from extensions import db


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    weekly_amount = db.Column(db.Float, nullable=False, default=100.0)
    interest_rate = db.Column(db.Float, nullable=False, default=0.0)     # weekly %, e.g. 1.0
    loan_weeks = db.Column(db.Integer, nullable=False, default=10)

    # Group fund split policy (percent of the interest pool)
    reserve_pct = db.Column(db.Float, nullable=False, default=10.0)
    insurance_pct = db.Column(db.Float, nullable=False, default=5.0)
    admin_fee_pct = db.Column(db.Float, nullable=False, default=0.5)

    # charged when a borrower settles the whole loan at once
    penalty_loan_pct = db.Column(db.Float, nullable=False, default=10.0)
    penalty_interest_pct = db.Column(db.Float, nullable=False, default=10.0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    members = db.relationship("GroupMember", backref="group", lazy="dynamic")

    def active_members(self):
        return self.members.filter_by(is_active=True).order_by(GroupMember.joining_week.asc()).all()

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "weekly_amount": self.weekly_amount,
            "interest_rate": self.interest_rate,
            "loan_weeks": self.loan_weeks,
            "reserve_pct": self.reserve_pct,
            "insurance_pct": self.insurance_pct,
            "admin_fee_pct": self.admin_fee_pct,
            "penalty_loan_pct": self.penalty_loan_pct,
            "penalty_interest_pct": self.penalty_interest_pct,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class GroupMember(db.Model):
    __tablename__ = "group_members"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=False, index=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)

    joining_week = db.Column(db.Integer, nullable=False, default=1)
    joining_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    weekly_amount = db.Column(db.Float, nullable=False, default=100.0)

    total_contributed = db.Column(db.Float, nullable=False, default=0.0)
    total_interest_received = db.Column(db.Float, nullable=False, default=0.0)

    # last mid-cycle benefit estimate (cache only)
    benefit_amount = db.Column(db.Float, nullable=False, default=0.0)
    benefit_week = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    member = db.relationship("Member", backref=db.backref("group_memberships", lazy="dynamic"))

    # 1 member = 1 active membership per group; inactive rows are history
    __table_args__ = (
        db.Index(
            "uq_active_group_member", "group_id", "member_id", unique=True,
            sqlite_where=db.text("is_active = 1"),
            postgresql_where=db.text("is_active"),
        ),
    )

    def to_dict(self, with_member=True):
        data = {
            "id": self.id,
            "group_id": self.group_id,
            "member_id": self.member_id,
            "joining_week": self.joining_week,
            "joining_date": self.joining_date.isoformat() if self.joining_date else None,
            "weekly_amount": self.weekly_amount,
            "total_contributed": self.total_contributed,
            "total_interest_received": self.total_interest_received,
            "benefit_amount": self.benefit_amount,
            "benefit_week": self.benefit_week,
            "is_active": self.is_active,
        }
        if with_member and self.member:
            data["member"] = self.member.to_brief()
        return data
