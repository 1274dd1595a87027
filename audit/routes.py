from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from audit.models import AuditLog
from users.utils import current_caller, require_admin

audit_bp = Blueprint('audit', __name__, url_prefix='/api/audit')


@audit_bp.route('/logs', methods=['GET'])
@jwt_required()
def get_all_logs():
    require_admin(current_caller())
    q = AuditLog.query
    table = request.args.get('table')
    if table:
        q = q.filter(AuditLog.table_name == table)
    record_id = request.args.get('record_id', type=int)
    if record_id is not None:
        q = q.filter(AuditLog.record_id == record_id)
    logs = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).all()
    return jsonify([log.to_dict() for log in logs]), 200
