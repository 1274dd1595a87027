from flask import Blueprint, request, jsonify
from flask_jwt_extended import set_access_cookies, unset_jwt_cookies, jwt_required

from extensions import db
from members.models import Member
from users.models import User, ROLES, ROLE_USER
from users.utils import current_caller, issue_token, require_admin
from utils.audit_logger import log_audit_action
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.validators import pick, require_field

users_bp = Blueprint('users', __name__, url_prefix='/api/users')


@users_bp.route('/login', methods=['POST'])
def login_user():
    data = request.get_json() or {}
    email = (data.get('email') or '').strip().lower()
    password = data.get('password')

    if not email or not password:
        return jsonify({'error': 'Missing credentials'}), 400

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return jsonify({'error': 'Invalid credentials'}), 401

    access_token = issue_token(user)
    resp = jsonify({
        'message': 'Login successful',
        'user': user.to_dict(),
        'access_token': access_token
    })
    set_access_cookies(resp, access_token)
    return resp, 200


# ✅ Logout Route
@users_bp.route('/logout', methods=['POST'])
def logout_user():
    resp = jsonify({"message": "Logout successful"})
    unset_jwt_cookies(resp)
    return resp, 200


@users_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    user = current_caller()
    data = user.to_dict()
    data["member"] = user.member.to_dict() if user.member else None
    return jsonify(data), 200


@users_bp.route('', methods=['GET'])
@jwt_required()
def list_users():
    require_admin(current_caller())
    users = User.query.order_by(User.id.asc()).all()
    return jsonify([u.to_dict() for u in users]), 200


@users_bp.route('', methods=['POST'])
@jwt_required()
def create_user():
    caller = current_caller()
    require_admin(caller)

    data = request.get_json() or {}
    email = str(require_field(data, 'email')).strip().lower()
    password = require_field(data, 'password')
    role = str(data.get('role') or ROLE_USER).upper()
    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")
    if User.query.filter_by(email=email).first():
        raise ConflictError('User already exists')

    member_id = pick(data, 'member_id', 'memberId')
    if member_id is not None:
        if not db.session.get(Member, member_id):
            raise NotFoundError('Member not found')
        if User.query.filter_by(member_id=member_id).first():
            raise ConflictError('Member already has a login')

    user = User(email=email, name=data.get('name'), role=role, member_id=member_id)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    log_audit_action(caller.id, "User created", "User", user.id,
                     new={"email": email, "role": role, "member_id": member_id})
    db.session.commit()
    return jsonify(user.to_dict()), 201
