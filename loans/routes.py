# loans/routes.py
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from groups.services import calculate_benefit
from loans.models import Loan, InterestDistribution, LOAN_DEFAULTED
from loans.services import (
    create_loan, get_loan_or_404, mark_defaulted, repay_loan, schedule_for, settle_loan,
)
from users.utils import current_caller, require_member_access
from utils.errors import ValidationError
from utils.ledger_config import default_interest_rate, default_loan_weeks
from utils.validators import (
    parse_amount, parse_bool, parse_datetime, parse_int, parse_optional_int, pick, require_field,
)

loans_bp = Blueprint("loans", __name__, url_prefix="/api/loans")


@loans_bp.route("", methods=["GET"])
@jwt_required()
def list_loans():
    caller = current_caller()
    q = Loan.query
    if not caller.is_admin:
        q = q.filter(Loan.member_id == (caller.member_id or -1))
    status = request.args.get("status")
    if status:
        q = q.filter(Loan.status == status.upper())
    loans = q.order_by(Loan.created_at.desc(), Loan.id.desc()).all()
    return jsonify([ln.to_dict() for ln in loans]), 200


@loans_bp.route("", methods=["POST"])
@jwt_required()
def create_loan_route():
    caller = current_caller()
    data = request.get_json() or {}

    weeks = data.get("weeks")
    rate = pick(data, "interest_rate", "interestRate")
    disbursed_at = pick(data, "disbursed_at", "disbursedAt")
    g1 = pick(data, "guarantor1_id", "guarantor1Id")
    g2 = pick(data, "guarantor2_id", "guarantor2Id")

    loan = create_loan(
        caller,
        member_id=parse_int(pick(data, "member_id", "memberId"), "member_id", minimum=1),
        principal=parse_amount(require_field(data, "principal"), "principal"),
        weeks=parse_int(weeks, "weeks", minimum=1) if weeks is not None else default_loan_weeks(),
        interest_rate=(parse_amount(rate, "interest_rate", allow_zero=True) if rate is not None
                       else default_interest_rate()),
        disbursed_at=parse_datetime(disbursed_at, "disbursed_at") if disbursed_at else None,
        guarantor1_id=parse_int(g1, "guarantor1_id", minimum=1) if g1 is not None else None,
        guarantor2_id=parse_int(g2, "guarantor2_id", minimum=1) if g2 is not None else None,
    )
    return jsonify(loan.to_dict()), 201


@loans_bp.route("/<int:loan_id>", methods=["GET"])
@jwt_required()
def get_loan(loan_id):
    caller = current_caller()
    loan = get_loan_or_404(loan_id)
    require_member_access(caller, loan.member_id, "Forbidden - You can only view your own loans")

    data = loan.to_dict(with_transactions=True)
    distributions = loan.interest_distributions.order_by(InterestDistribution.id.asc()).all()
    data["interest_distributions"] = [d.to_dict() for d in distributions]
    data["schedule"] = schedule_for(loan)
    return jsonify(data), 200


@loans_bp.route("/<int:loan_id>", methods=["PUT"])
@jwt_required()
def update_loan(loan_id):
    caller = current_caller()
    data = request.get_json() or {}
    status = str(data.get("status") or "").upper()
    if status != LOAN_DEFAULTED:
        raise ValidationError("Only status DEFAULTED can be set")
    loan = mark_defaulted(caller, loan_id)
    return jsonify(loan.to_dict()), 200


@loans_bp.route("/<int:loan_id>/schedule", methods=["GET"])
@jwt_required()
def get_schedule(loan_id):
    caller = current_caller()
    loan = get_loan_or_404(loan_id)
    require_member_access(caller, loan.member_id, "Forbidden - You can only view your own loans")
    return jsonify(schedule_for(loan)), 200


def _repay(loan_id, data):
    caller = current_caller()
    payment_date = pick(data, "payment_date", "paymentDate")
    if parse_bool(pick(data, "is_full_repayment", "isFullRepayment"), "is_full_repayment"):
        result = settle_loan(
            caller,
            loan_id,
            payment_date=parse_datetime(payment_date, "payment_date") if payment_date else None,
            payment_method=pick(data, "payment_method", "paymentMethod"),
        )
        return jsonify(result.to_dict()), 200

    result = repay_loan(
        caller,
        loan_id,
        payment_date=parse_datetime(payment_date, "payment_date") if payment_date else None,
        is_late=parse_bool(pick(data, "is_late", "isLate"), "is_late"),
        overdue_weeks=(parse_optional_int(data, "overdue_weeks", minimum=0)
                       if "overdue_weeks" in data
                       else parse_optional_int(data, "overdueWeeks", minimum=0)),
        payment_method=pick(data, "payment_method", "paymentMethod"),
    )
    return jsonify(result.to_dict()), 200


@loans_bp.route("/<int:loan_id>/repay", methods=["POST"])
@jwt_required()
def repay_route(loan_id):
    return _repay(loan_id, request.get_json(silent=True) or {})


@loans_bp.route("/repay", methods=["POST"])
@jwt_required()
def repay_by_body():
    data = request.get_json() or {}
    loan_id = parse_int(pick(data, "loan_id", "loanId"), "loan_id", minimum=1)
    return _repay(loan_id, data)


@loans_bp.route("/calculate-benefit", methods=["POST"])
@jwt_required()
def calculate_benefit_route():
    caller = current_caller()
    data = request.get_json() or {}
    group_id = parse_int(pick(data, "group_id", "groupId"), "group_id", minimum=1)
    member_id = parse_int(pick(data, "member_id", "memberId"), "member_id", minimum=1)
    week = parse_int(require_field(data, "week"), "week", minimum=1)

    gm, estimate = calculate_benefit(caller, group_id, member_id, week)
    return jsonify({
        "group_member": gm.to_dict(),
        "calculation": estimate.to_dict(),
    }), 200
