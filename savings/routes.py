from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from savings.models import Savings
from users.utils import current_caller, require_member_access
from utils.errors import NotFoundError

savings_bp = Blueprint('savings', __name__, url_prefix='/api/savings')


# ✅ Savings balances (admin: everyone, member: own)
@savings_bp.route('', methods=['GET'])
@jwt_required()
def list_savings():
    caller = current_caller()
    q = Savings.query
    if not caller.is_admin:
        q = q.filter(Savings.member_id == (caller.member_id or -1))
    with_tx = request.args.get('transactions', '').lower() in ('1', 'true', 'yes')
    rows = q.order_by(Savings.member_id.asc()).all()
    return jsonify({
        'savings': [s.to_dict(with_transactions=with_tx) for s in rows],
        'total': round(sum(float(s.total or 0) for s in rows), 2),
    }), 200


@savings_bp.route('/<int:member_id>', methods=['GET'])
@jwt_required()
def get_member_savings(member_id):
    caller = current_caller()
    require_member_access(caller, member_id, "Forbidden - You can only view your own savings")
    sv = Savings.query.filter_by(member_id=member_id).first()
    if not sv:
        raise NotFoundError('No savings for this member')
    return jsonify(sv.to_dict(with_transactions=True)), 200
