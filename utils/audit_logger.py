# utils/audit_logger.py
import json
import logging
from datetime import datetime

from audit.models import AuditLog
from extensions import db

logger = logging.getLogger(__name__)


def log_audit_action(user_id, action, table_name, record_id=None, old=None, new=None):
    """
    Record an audit row inside the caller's unit of work.

    Nothing is committed here: the row lands (or rolls back) together with the
    ledger change it describes.
    """
    old_json = json.dumps(old, default=str) if old else None
    new_json = json.dumps(new, default=str) if new else None

    log_entry = AuditLog(
        user_id=user_id,
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_value=old_json,
        new_value=new_json,
        timestamp=datetime.utcnow()
    )
    db.session.add(log_entry)
    logger.debug("audit: user=%s action=%s %s#%s", user_id, action, table_name, record_id)
    return log_entry
