from datetime import datetime
from extensions import db
from werkzeug.security import generate_password_hash, check_password_hash

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"
ROLES = (ROLE_ADMIN, ROLE_USER)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER)  # ADMIN | USER

    # the member this login acts for (a USER may only touch their own loans)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=True, unique=True)
    member = db.relationship("Member", backref=db.backref("user", uselist=False))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    # --- Password helpers ---
    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "member_id": self.member_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
