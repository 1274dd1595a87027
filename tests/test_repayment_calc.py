from datetime import datetime, timedelta

import pytest

from finance.repayment import (
    compute_full_settlement, compute_repayment, count_missed_weeks, expected_week, simulate_missed_weeks,
)
from finance.schedule import InterestPolicy

DISBURSED = datetime(2025, 3, 3, 10, 0)


def week_date(n):
    """A payment date that falls in week n since disbursal."""
    return DISBURSED + timedelta(days=7 * (n - 1), hours=1)


def repay(**overrides):
    params = dict(
        principal=1000.0, remaining=1000.0, total_weeks=10, current_week=0, installments_paid=0,
        weekly_rate=1.0, disbursed_at=DISBURSED, payment_date=week_date(1),
    )
    params.update(overrides)
    return compute_repayment(**params)


class TestWeekCounting:

    def test_expected_week_starts_at_one(self):
        assert expected_week(DISBURSED, DISBURSED) == 1
        assert expected_week(DISBURSED, DISBURSED + timedelta(days=6, hours=23)) == 1
        assert expected_week(DISBURSED, DISBURSED + timedelta(days=7)) == 2

    def test_missed_weeks_never_negative(self):
        assert count_missed_weeks(1, 0) == 0
        assert count_missed_weeks(1, 5) == 0
        assert count_missed_weeks(5, 1) == 3


class TestDecliningRepayment:

    def test_first_week(self):
        b = repay()
        assert b.principal == 100.0
        assert b.weekly_interest == 10.0
        assert b.interest == 10.0
        assert b.penalty == 0.0
        assert b.total == 110.0
        assert b.new_balance == 900.0
        assert b.new_week == 1
        assert not b.is_late
        assert not b.completes_loan

    def test_tenth_week_completes(self):
        b = repay(remaining=100.0, current_week=9, installments_paid=9, payment_date=week_date(10))
        assert b.weekly_interest == 1.0
        assert b.total == 101.0
        assert b.new_balance == 0.0
        assert b.completes_loan

    def test_two_missed_weeks(self):
        """remaining 500 at 1%: two missed weeks add 10 interest and 5 penalty."""
        b = repay(remaining=500.0, current_week=5, installments_paid=5, payment_date=week_date(8))
        assert b.missed_weeks == 2
        assert b.is_late
        assert b.overdue_weeks == 2
        assert b.accumulated_interest == 10.0
        assert b.weekly_interest == 5.0
        assert b.interest == 15.0
        assert b.penalty == 5.0
        assert b.new_week == 5 + 1 + 2
        assert b.fund_income == 20.0
        assert b.total == 100.0 + 15.0 + 5.0

    @pytest.mark.parametrize("k", [1, 2, 3, 7])
    def test_penalty_is_flat_per_missed_week(self, k):
        remaining = 640.0
        b = repay(remaining=remaining, current_week=2, installments_paid=2, payment_date=week_date(3 + k))
        assert b.missed_weeks == k
        assert b.penalty == pytest.approx(k * remaining * 0.5 / 100, abs=0.005)

    def test_explicit_late_flag_without_missed_weeks(self):
        b = repay(explicit_late=True)
        assert b.is_late
        assert b.penalty == 0.0
        assert b.overdue_weeks == 0

    def test_matching_override_keeps_simulated_penalty(self):
        b = repay(remaining=500.0, current_week=5, installments_paid=5, payment_date=week_date(8),
                  explicit_overdue_weeks=2)
        assert b.penalty == 5.0

    def test_mismatched_override_replaces_penalty(self):
        b = repay(remaining=500.0, current_week=5, installments_paid=5, payment_date=week_date(8),
                  explicit_overdue_weeks=4)
        assert b.penalty == 10.0
        assert b.overdue_weeks == 4
        # interest still follows the weeks that actually elapsed
        assert b.accumulated_interest == 10.0

    def test_explicit_zero_is_distinct_from_not_supplied(self):
        missed = dict(remaining=500.0, current_week=5, installments_paid=5, payment_date=week_date(8))
        assert repay(**missed).penalty == 5.0
        assert repay(explicit_overdue_weeks=0, **missed).penalty == 0.0

    def test_balance_clamped_at_zero(self):
        b = repay(remaining=30.0, current_week=4, installments_paid=4, payment_date=week_date(5))
        assert b.principal == 30.0
        assert b.new_balance == 0.0
        assert b.completes_loan

    def test_two_sequential_payments_never_go_negative(self):
        first = repay(remaining=150.0, current_week=8, installments_paid=8, payment_date=week_date(9))
        second = repay(remaining=first.new_balance, current_week=first.new_week, installments_paid=9,
                       payment_date=week_date(10))
        assert first.new_balance == 50.0
        assert second.new_balance == 0.0
        assert second.principal == 50.0


class TestPrincipalOnlyRepayment:

    def test_flat_sixty_retires_six_hundred(self):
        remaining, week = 600.0, 0
        breakdowns = []
        for n in range(10):
            b = repay(principal=600.0, remaining=remaining, current_week=week, installments_paid=n,
                      payment_date=week_date(n + 1), policy=InterestPolicy.NONE)
            breakdowns.append(b)
            remaining, week = b.new_balance, b.new_week

        assert [b.principal for b in breakdowns] == [60.0] * 10
        assert all(b.interest == 0.0 and b.penalty == 0.0 for b in breakdowns)
        assert remaining == 0.0
        assert breakdowns[-1].completes_loan

    def test_missed_weeks_reported_but_not_charged(self):
        b = repay(principal=600.0, remaining=480.0, current_week=2, installments_paid=2,
                  payment_date=week_date(6), policy="NONE")
        assert b.missed_weeks == 3
        assert b.is_late
        assert b.interest == 0.0
        assert b.penalty == 0.0
        assert b.new_week == 3


class TestMissedWeekSimulation:

    def test_no_missed_weeks(self):
        assert simulate_missed_weeks(1000, 1.0, 0) == (0.0, 0.0)

    def test_accrues_on_stale_balance(self):
        assert simulate_missed_weeks(500, 1.0, 2) == (10.0, 5.0)

    def test_custom_penalty_rate(self):
        assert simulate_missed_weeks(1000, 0.0, 3, penalty_rate=1.0) == (0.0, 30.0)


def settle(**overrides):
    params = dict(
        principal=600.0, remaining=600.0, total_weeks=10, weekly_rate=2.0, interest_paid=0.0,
        penalty_loan_pct=10.0, penalty_interest_pct=10.0, active_members=6, weekly_amount=100.0,
    )
    params.update(overrides)
    return compute_full_settlement(**params)


class TestFullSettlement:

    def test_group_penalties_on_top_of_full_term_interest(self):
        s = settle()
        assert (s.principal, s.interest, s.loan_penalty, s.interest_penalty) == (600.0, 120.0, 60.0, 12.0)
        assert s.total == 792.0
        assert s.fund_income == 192.0
        assert (s.per_member.savings, s.per_member.loan_penalty,
                s.per_member.interest_penalty, s.per_member.total) == (100.0, 10.0, 2.0, 112.0)

    def test_principal_only_scheme_charges_loan_penalty_only(self):
        s = settle(policy=InterestPolicy.NONE)
        assert s.interest == 0.0
        assert s.interest_penalty == 0.0
        assert s.total == 660.0
        assert s.per_member.total == 110.0

    def test_member_shares_are_rounded(self):
        s = settle(active_members=7)
        assert s.per_member.loan_penalty == 8.57
        assert s.per_member.interest_penalty == 1.71
        assert s.per_member.total == 110.28

    def test_interest_paid_so_far_is_credited(self):
        s = settle(remaining=540.0, interest_paid=12.0)
        assert s.interest == 108.0
        assert s.interest_penalty == 12.0
        assert s.total == 720.0
