# audit/models.py

from datetime import datetime
from extensions import db


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)           # null for system actions
    action = db.Column(db.String(255), nullable=False)       # e.g., "repay loan", "create cycle"
    table_name = db.Column(db.String(100), nullable=False)   # e.g., "Loan"
    record_id = db.Column(db.Integer, nullable=True)
    old_value = db.Column(db.Text)                           # JSON string (before update)
    new_value = db.Column(db.Text)                           # JSON string (after update)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "timestamp": self.timestamp.strftime("%Y-%m-%d %H:%M:%S") if self.timestamp else None
        }
