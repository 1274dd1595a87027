# members/models.py
from datetime import datetime
from extensions import db


class Member(db.Model):
    __tablename__ = "members"

    id = db.Column(db.Integer, primary_key=True)
    member_code = db.Column(db.String(40), unique=True, nullable=False)   # printed on passbooks
    name = db.Column(db.String(120), nullable=False)
    father_name = db.Column(db.String(120), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    account_number = db.Column(db.String(50), nullable=True)              # optional bank account
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Member {self.member_code}>"

    def to_dict(self):
        return {
            "id": self.id,
            "member_code": self.member_code,
            "name": self.name,
            "father_name": self.father_name,
            "address": self.address,
            "phone": self.phone,
            "account_number": self.account_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def to_brief(self):
        return {"id": self.id, "member_code": self.member_code, "name": self.name}
