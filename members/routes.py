# members/routes.py
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from extensions import db
from loans.models import Loan
from members.models import Member
from users.utils import current_caller, require_admin, require_member_access
from utils.audit_logger import log_audit_action
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.validators import pick, require_field

logger = logging.getLogger(__name__)

members_bp = Blueprint("members", __name__, url_prefix="/api/members")


@members_bp.route("", methods=["POST"])
@jwt_required()
def create_member():
    caller = current_caller()
    require_admin(caller)

    data = request.get_json() or {}
    code = str(pick(data, "member_code", "memberCode", default="")).strip()
    if not code:
        raise ValidationError("member_code is required")
    name = str(require_field(data, "name")).strip()
    if Member.query.filter_by(member_code=code).first():
        raise ConflictError("Member code already exists")

    member = Member(
        member_code=code,
        name=name,
        father_name=pick(data, "father_name", "fatherName"),
        address=data.get("address"),
        phone=data.get("phone"),
        account_number=pick(data, "account_number", "accountNumber"),
    )
    db.session.add(member)
    db.session.flush()
    log_audit_action(caller.id, "Member created", "Member", member.id, new=member.to_dict())
    db.session.commit()
    logger.info("member %s created (%s)", member.id, member.member_code)
    return jsonify(member.to_dict()), 201


@members_bp.route("", methods=["GET"])
@jwt_required()
def list_members():
    caller = current_caller()
    if caller.is_admin:
        members = Member.query.order_by(Member.id.asc()).all()
    else:
        members = [caller.member] if caller.member else []
    return jsonify([m.to_dict() for m in members]), 200


@members_bp.route("/<int:member_id>", methods=["GET"])
@jwt_required()
def get_member(member_id):
    caller = current_caller()
    require_member_access(caller, member_id, "Forbidden - You can only view your own records")
    member = db.session.get(Member, member_id)
    if not member:
        raise NotFoundError("Member not found")

    data = member.to_dict()
    data["savings"] = member.savings.to_dict(with_transactions=True) if member.savings else None
    loans = member.loans.order_by(Loan.created_at.desc(), Loan.id.desc()).all()
    data["loans"] = [ln.to_dict(with_transactions=True) for ln in loans]
    data["group_memberships"] = [gm.to_dict(with_member=False) for gm in member.group_memberships.all()]
    return jsonify(data), 200
