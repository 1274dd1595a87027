# utils/ledger_config.py
from flask import current_app

from finance.schedule import InterestPolicy


def current_policy() -> InterestPolicy:
    return InterestPolicy.parse(current_app.config.get("INTEREST_POLICY", "DECLINING"))


def penalty_rate() -> float:
    return float(current_app.config.get("LATE_PENALTY_RATE", 0.5))


def default_weekly_amount(group=None) -> float:
    if group is not None and group.weekly_amount:
        return float(group.weekly_amount)
    return float(current_app.config.get("DEFAULT_WEEKLY_AMOUNT", 100))


def default_loan_weeks(group=None) -> int:
    if group is not None and group.loan_weeks:
        return int(group.loan_weeks)
    return int(current_app.config.get("DEFAULT_LOAN_WEEKS", 10))


def default_interest_rate(group=None) -> float:
    """Weekly %. Principal-only schemes never charge interest."""
    if current_policy() is InterestPolicy.NONE:
        return 0.0
    if group is not None and group.interest_rate is not None:
        return float(group.interest_rate)
    return float(current_app.config.get("DEFAULT_INTEREST_RATE", 1.0))
