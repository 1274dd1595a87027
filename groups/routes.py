# groups/routes.py
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from groups.models import Group, GroupMember
from groups.services import (
    add_group_member, create_group, get_group_or_404, remove_group_member,
)
from users.utils import current_caller
from utils.errors import ValidationError
from utils.validators import parse_amount, parse_datetime, parse_int, pick, require_field

groups_bp = Blueprint("groups", __name__, url_prefix="/api/groups")


@groups_bp.route("", methods=["POST"])
@jwt_required()
def create_group_route():
    caller = current_caller()
    data = request.get_json() or {}

    def opt_amount(*keys, allow_zero=True):
        value = pick(data, *keys)
        return parse_amount(value, keys[0], allow_zero=allow_zero) if value is not None else None

    weeks = pick(data, "loan_weeks", "loanWeeks")
    group = create_group(
        caller,
        name=require_field(data, "name"),
        weekly_amount=opt_amount("weekly_amount", "weeklyAmount", allow_zero=False),
        interest_rate=opt_amount("interest_rate", "interestRate"),
        loan_weeks=parse_int(weeks, "loan_weeks", minimum=1) if weeks is not None else None,
        reserve_pct=opt_amount("reserve_pct", "reservePct"),
        insurance_pct=opt_amount("insurance_pct", "insurancePct"),
        admin_fee_pct=opt_amount("admin_fee_pct", "adminFeePct"),
        penalty_loan_pct=opt_amount("penalty_loan_pct", "penaltyLoanPercent"),
        penalty_interest_pct=opt_amount("penalty_interest_pct", "penaltyInterestPercent"),
    )
    return jsonify(group.to_dict()), 201


@groups_bp.route("", methods=["GET"])
@jwt_required()
def list_groups():
    current_caller()
    groups = Group.query.order_by(Group.id.asc()).all()
    return jsonify([g.to_dict() for g in groups]), 200


@groups_bp.route("/<int:group_id>/members", methods=["GET"])
@jwt_required()
def list_group_members(group_id):
    current_caller()
    group = get_group_or_404(group_id)
    return jsonify([gm.to_dict() for gm in group.active_members()]), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
@jwt_required()
def add_member_route(group_id):
    caller = current_caller()
    data = request.get_json() or {}

    member_id = parse_int(pick(data, "member_id", "memberId"), "member_id", minimum=1)
    joining_week = parse_int(pick(data, "joining_week", "joiningWeek", default=1), "joining_week", minimum=1)
    joining_date = pick(data, "joining_date", "joiningDate")
    weekly_amount = pick(data, "weekly_amount", "weeklyAmount")

    gm, backdated = add_group_member(
        caller, group_id, member_id,
        joining_week=joining_week,
        joining_date=parse_datetime(joining_date, "joining_date") if joining_date else None,
        weekly_amount=parse_amount(weekly_amount, "weekly_amount") if weekly_amount is not None else None,
    )
    return jsonify({
        "membership": gm.to_dict(),
        "backdated_payments": [p.to_dict() for p in backdated],
    }), 201


@groups_bp.route("/<int:group_id>/members", methods=["DELETE"])
@jwt_required()
def remove_member_route(group_id):
    caller = current_caller()
    member_id = pick(request.args, "memberId", "member_id")
    if member_id is None:
        raise ValidationError("memberId is required")
    gm = remove_group_member(caller, group_id, parse_int(member_id, "memberId", minimum=1))
    return jsonify({"message": "Member removed from group", "membership": gm.to_dict()}), 200


@groups_bp.route("/<int:group_id>/members/<int:member_id>", methods=["GET"])
@jwt_required()
def get_group_member(group_id, member_id):
    current_caller()
    get_group_or_404(group_id)
    gm = (GroupMember.query
          .filter_by(group_id=group_id, member_id=member_id)
          .order_by(GroupMember.is_active.desc(), GroupMember.id.desc())
          .first())
    if not gm:
        return jsonify({"error": "Member not found in group"}), 404
    return jsonify(gm.to_dict()), 200

