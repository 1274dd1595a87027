# cycles/routes.py
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from cycles.models import LoanCycle
from cycles.services import create_cycle, disburse_sequence, get_cycle_or_404, record_contribution
from users.utils import current_caller
from utils.errors import ValidationError
from utils.validators import parse_amount, parse_datetime, parse_int, pick, require_field

cycles_bp = Blueprint("cycles", __name__, url_prefix="/api/cycles")


@cycles_bp.route("", methods=["GET"])
@jwt_required()
def list_cycles():
    current_caller()
    cycles = LoanCycle.query.order_by(LoanCycle.cycle_number.desc()).all()
    return jsonify([c.to_dict() for c in cycles]), 200


@cycles_bp.route("", methods=["POST"])
@jwt_required()
def create_cycle_route():
    caller = current_caller()
    data = request.get_json() or {}

    cycle_number = parse_int(pick(data, "cycle_number", "cycleNumber"), "cycle_number", minimum=1)
    start_date = parse_datetime(pick(data, "start_date", "startDate"), "start_date")
    members = pick(data, "members", "member_ids", "memberIds")
    if not isinstance(members, list) or not members:
        raise ValidationError("members must be a non-empty list")
    member_ids = [parse_int(m, "members", minimum=1) for m in members]

    total_members = pick(data, "total_members", "totalMembers")
    weekly_amount = pick(data, "weekly_amount", "weeklyAmount")
    group_id = pick(data, "group_id", "groupId")

    cycle = create_cycle(
        caller,
        cycle_number=cycle_number,
        start_date=start_date,
        member_ids=member_ids,
        total_members=parse_int(total_members, "total_members", minimum=1) if total_members is not None else None,
        weekly_amount=parse_amount(weekly_amount, "weekly_amount") if weekly_amount is not None else None,
        group_id=parse_int(group_id, "group_id", minimum=1) if group_id is not None else None,
    )
    return jsonify(cycle.to_dict()), 201


@cycles_bp.route("/<int:cycle_id>", methods=["GET"])
@jwt_required()
def get_cycle(cycle_id):
    current_caller()
    cycle = get_cycle_or_404(cycle_id)
    data = cycle.to_dict()
    data["collections"] = [c.to_dict() for c in cycle.collections.all()]
    return jsonify(data), 200


@cycles_bp.route("/sequences/<int:sequence_id>/disburse", methods=["POST"])
@jwt_required()
def disburse_route(sequence_id):
    caller = current_caller()
    data = request.get_json(silent=True) or {}
    disbursed_at = pick(data, "disbursed_at", "disbursedAt")
    g1 = pick(data, "guarantor1_id", "guarantor1Id")
    g2 = pick(data, "guarantor2_id", "guarantor2Id")

    loan = disburse_sequence(
        caller, sequence_id,
        disbursed_at=parse_datetime(disbursed_at, "disbursed_at") if disbursed_at else None,
        guarantor1_id=parse_int(g1, "guarantor1_id", minimum=1) if g1 is not None else None,
        guarantor2_id=parse_int(g2, "guarantor2_id", minimum=1) if g2 is not None else None,
    )
    return jsonify({
        "message": "Loan disbursed",
        "loan": loan.to_dict(),
        "sequence": loan.sequence.to_dict(),
        "group_fund": loan.cycle.group_fund.to_dict(),
    }), 201


@cycles_bp.route("/<int:cycle_id>/collections", methods=["POST"])
@jwt_required()
def record_contribution_route(cycle_id):
    caller = current_caller()
    data = request.get_json() or {}

    member_id = parse_int(pick(data, "member_id", "memberId"), "member_id", minimum=1)
    week = parse_int(require_field(data, "week"), "week", minimum=1)
    amount = data.get("amount")
    paid_at = pick(data, "payment_date", "paymentDate")

    payment = record_contribution(
        caller, cycle_id, member_id, week,
        amount=parse_amount(amount, "amount") if amount is not None else None,
        paid_at=parse_datetime(paid_at, "payment_date") if paid_at else None,
    )
    return jsonify({
        "payment": payment.to_dict(),
        "collection": payment.collection.to_dict(),
    }), 201
