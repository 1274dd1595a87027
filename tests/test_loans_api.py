from datetime import timedelta

import pytest
from sqlalchemy import text

from cycles.models import GroupFund, LoanSequence
from extensions import db
from groups.models import GroupMember
from loans.models import InterestDistribution, Loan, LoanTransaction
from savings.models import Savings, SavingsTransaction, SOURCE_REDISTRIBUTION
from tests.conftest import START
from utils.errors import ConflictError
from utils.transactions import atomic


def pay_date(week):
    return (START + timedelta(days=7 * (week - 1), hours=1)).isoformat()


@pytest.fixture
def rosca(client, admin_headers, make_member, make_group, cycle_payload):
    """A group of n members, week-1 contributions paid, week-1 loan disbursed at START."""
    def _build(n=10, weekly_amount=100.0, interest_rate=1.0, contribute=True):
        members = [make_member() for _ in range(n)]
        grp = make_group(members=members, weekly_amount=weekly_amount, interest_rate=interest_rate)
        cycle = client.post("/api/cycles", json=cycle_payload(members, group=grp),
                            headers=admin_headers).get_json()
        for m in (members if contribute else []):
            resp = client.post(f"/api/cycles/{cycle['id']}/collections",
                               json={"memberId": m.id, "week": 1, "paymentDate": START.isoformat()},
                               headers=admin_headers)
            assert resp.status_code == 201
        seq_id = cycle["sequences"][0]["id"]
        loan = client.post(f"/api/cycles/sequences/{seq_id}/disburse",
                           json={"disbursedAt": START.isoformat()}, headers=admin_headers).get_json()["loan"]
        return members, grp, cycle, loan
    return _build


def repay(client, headers, loan_id, week, **extra):
    body = {"paymentDate": pay_date(week)}
    body.update(extra)
    return client.post(f"/api/loans/{loan_id}/repay", json=body, headers=headers)


class TestDecliningRepayment:

    def test_first_week_breakdown(self, client, admin_headers, rosca):
        _, _, cycle, loan = rosca()
        resp = repay(client, admin_headers, loan["id"], 1, paymentMethod="cash")
        assert resp.status_code == 200
        body = resp.get_json()

        assert body["payment"]["principal"] == 100.0
        assert body["payment"]["interest"] == 10.0
        assert body["payment"]["penalty"] == 0.0
        assert body["payment"]["total"] == 110.0
        assert body["payment"]["new_balance"] == 900.0
        assert body["loan"]["remaining"] == 900.0
        assert body["loan"]["current_week"] == 1
        assert body["transaction"]["principal"] == 100.0
        assert body["transaction"]["payment_method"] == "cash"

        fund = body["group_fund"]
        assert fund["interest_pool"] == 10.0
        assert fund["emergency_reserve"] == 1.0
        assert fund["insurance_fund"] == 0.5
        assert fund["admin_fee"] == 0.05
        assert fund["total_funds"] == round(
            fund["investment_pool"] + fund["interest_pool"]
            - fund["emergency_reserve"] - fund["insurance_fund"] - fund["admin_fee"], 2)

    def test_full_term_completes_and_distributes_interest(self, client, admin_headers, rosca):
        members, _, cycle, loan = rosca()
        for week in range(1, 11):
            resp = repay(client, admin_headers, loan["id"], week)
            assert resp.status_code == 200
        body = resp.get_json()

        assert body["payment"]["interest"] == 1.0
        assert body["payment"]["total"] == 101.0
        assert body["loan"]["status"] == "COMPLETED"
        assert body["loan"]["remaining"] == 0.0
        assert body["loan"]["total_interest"] == 55.0
        assert body["loan"]["total_principal_paid"] == 1000.0
        assert body["loan"]["completed_at"] is not None

        # equal contributions -> equal shares of the 55 interest
        assert len(body["distributions"]) == 10
        assert sorted(d["amount"] for d in body["distributions"]) == [5.5] * 10
        assert InterestDistribution.query.count() == 10

        seq = LoanSequence.query.filter_by(cycle_id=cycle["id"], week=1).one()
        assert seq.status == "COMPLETED"

        fund = GroupFund.query.filter_by(cycle_id=cycle["id"]).one()
        assert fund.interest_pool == 55.0
        assert fund.investment_pool == 0.0
        assert fund.emergency_reserve == 5.5
        assert fund.insurance_fund == 2.75
        assert fund.admin_fee == 0.28
        assert fund.total_funds == 46.47

    def test_missed_weeks_charge_interest_and_penalty(self, client, admin_headers, rosca):
        _, _, _, loan = rosca()
        repay(client, admin_headers, loan["id"], 1)
        body = repay(client, admin_headers, loan["id"], 4).get_json()

        assert body["payment"]["missed_weeks"] == 2
        assert body["payment"]["is_late"] is True
        assert body["payment"]["weekly_interest"] == 9.0
        assert body["payment"]["accumulated_interest"] == 18.0
        assert body["payment"]["penalty"] == 9.0
        assert body["payment"]["week"] == 4
        assert body["loan"]["late_payment_penalty"] == 9.0
        assert body["group_fund"]["interest_pool"] == 10.0 + 27.0 + 9.0

    def test_overdue_override_replaces_penalty(self, client, admin_headers, rosca):
        _, _, _, loan = rosca()
        body = repay(client, admin_headers, loan["id"], 1, isLate=True, overdueWeeks=3).get_json()
        assert body["payment"]["missed_weeks"] == 0
        assert body["payment"]["overdue_weeks"] == 3
        assert body["payment"]["penalty"] == 15.0

    def test_completed_loan_rejects_further_repayment(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=2)
        for week in range(1, 11):
            repay(client, admin_headers, loan["id"], week)
        before = LoanTransaction.query.count()

        resp = repay(client, admin_headers, loan["id"], 11)
        assert resp.status_code == 409
        assert LoanTransaction.query.count() == before
        assert db.session.get(Loan, loan["id"]).remaining == 0.0

    def test_transactions_listed_newest_first(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=3)
        for week in (1, 2, 3):
            repay(client, admin_headers, loan["id"], week)
        body = client.get(f"/api/loans/{loan['id']}", headers=admin_headers).get_json()
        assert [t["week"] for t in body["transactions"]] == [3, 2, 1]
        assert len(body["schedule"]["rows"]) == 10

    def test_payment_before_disbursal_rejected(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=2)
        resp = client.post(f"/api/loans/{loan['id']}/repay", json={"paymentDate": "2024-12-01"},
                           headers=admin_headers)
        assert resp.status_code == 400


class TestRepaymentAccess:

    def test_borrower_can_repay_own_loan(self, client, rosca, user_headers):
        members, _, _, loan = rosca(n=3)
        resp = repay(client, user_headers(members[0]), loan["id"], 1)
        assert resp.status_code == 200

    def test_other_member_forbidden(self, client, rosca, user_headers):
        members, _, _, loan = rosca(n=3)
        resp = repay(client, user_headers(members[1]), loan["id"], 1)
        assert resp.status_code == 403
        assert LoanTransaction.query.count() == 0

    def test_unknown_loan(self, client, admin_headers):
        assert client.post("/api/loans/999/repay", json={}, headers=admin_headers).status_code == 404

    def test_repay_by_body(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=2)
        resp = client.post("/api/loans/repay", json={"loanId": loan["id"], "paymentDate": pay_date(1)},
                           headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["payment"]["principal"] == 20.0


class TestPrincipalOnlyScheme:

    @pytest.fixture(autouse=True)
    def principal_only(self, app):
        app.config["INTEREST_POLICY"] = "NONE"

    def test_flat_installments_then_savings_redistribution(self, client, admin_headers, rosca):
        members, _, cycle, loan = rosca(n=6)
        assert loan["principal"] == 600.0
        assert loan["interest_rate"] == 0.0

        for week in range(1, 10):
            body = repay(client, admin_headers, loan["id"], week).get_json()
            assert body["payment"]["principal"] == 60.0
            assert body["payment"]["interest"] == 0.0
        assert body["group_fund"]["investment_pool"] == 540.0

        body = repay(client, admin_headers, loan["id"], 10).get_json()
        assert body["loan"]["status"] == "COMPLETED"
        assert body["loan"]["total_interest"] == 0.0
        assert body["distributions"] == []
        assert sorted(c["amount"] for c in body["savings_credits"]) == [100.0] * 6
        assert body["group_fund"]["investment_pool"] == 0.0
        assert body["group_fund"]["total_funds"] == 0.0

        for m in members:
            assert Savings.query.filter_by(member_id=m.id).one().total == 200.0
        assert SavingsTransaction.query.filter_by(source=SOURCE_REDISTRIBUTION).count() == 6

    def test_missed_weeks_do_not_jump_the_counter(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=6)
        body = repay(client, admin_headers, loan["id"], 4).get_json()
        assert body["payment"]["missed_weeks"] == 3
        assert body["payment"]["penalty"] == 0.0
        assert body["loan"]["current_week"] == 1

    def test_schedule_has_no_interest(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=6)
        body = client.get(f"/api/loans/{loan['id']}/schedule", headers=admin_headers).get_json()
        assert body["method"] == "NONE"
        assert body["totals"] == {"principal": 600.0, "interest": 0.0, "total": 600.0}


class TestStandaloneLoans:

    def test_create_repay_and_default(self, client, admin_headers, make_member):
        m = make_member()
        resp = client.post("/api/loans", json={"memberId": m.id, "principal": 500, "weeks": 5,
                                               "interestRate": 2}, headers=admin_headers)
        assert resp.status_code == 201
        loan = resp.get_json()
        assert loan["cycle_id"] is None

        body = client.post(f"/api/loans/{loan['id']}/repay", json={}, headers=admin_headers).get_json()
        assert body["payment"]["principal"] == 100.0
        assert body["payment"]["interest"] == 10.0
        assert body["group_fund"] is None

        resp = client.put(f"/api/loans/{loan['id']}", json={"status": "DEFAULTED"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "DEFAULTED"

        assert client.post(f"/api/loans/{loan['id']}/repay", json={}, headers=admin_headers).status_code == 409
        assert client.put(f"/api/loans/{loan['id']}", json={"status": "DEFAULTED"},
                          headers=admin_headers).status_code == 409

    def test_only_default_status_allowed(self, client, admin_headers, make_member):
        m = make_member()
        loan = client.post("/api/loans", json={"memberId": m.id, "principal": 100},
                           headers=admin_headers).get_json()
        resp = client.put(f"/api/loans/{loan['id']}", json={"status": "COMPLETED"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_negative_principal_rejected(self, client, admin_headers, make_member):
        m = make_member()
        resp = client.post("/api/loans", json={"memberId": m.id, "principal": -5}, headers=admin_headers)
        assert resp.status_code == 400

    def test_user_sees_only_own_loans(self, client, admin_headers, make_member, user_headers):
        a, b = make_member(), make_member()
        for m in (a, b):
            client.post("/api/loans", json={"memberId": m.id, "principal": 100}, headers=admin_headers)
        body = client.get("/api/loans", headers=user_headers(a)).get_json()
        assert [ln["member_id"] for ln in body] == [a.id]


@atomic
def write_remaining(loan, amount):
    loan.remaining = amount
    return loan


class TestConcurrentWrites:

    def test_stale_loan_write_is_a_conflict(self, client, admin_headers, make_member):
        m = make_member()
        loan_id = client.post("/api/loans", json={"memberId": m.id, "principal": 100},
                              headers=admin_headers).get_json()["id"]
        loan = db.session.get(Loan, loan_id)
        assert loan.remaining == 100.0

        # another writer got there first
        db.session.execute(text("UPDATE loans SET version = version + 1, remaining = 42 WHERE id = :id"),
                           {"id": loan_id})
        with pytest.raises(ConflictError):
            write_remaining(loan, 1.0)

        db.session.expire_all()
        assert db.session.get(Loan, loan_id).remaining == 100.0


class TestInterestWithoutContributions:

    def test_completion_writes_no_distributions(self, client, admin_headers, rosca):
        _, grp, _, loan = rosca(n=3, contribute=False)
        for week in range(1, 11):
            body = repay(client, admin_headers, loan["id"], week).get_json()

        assert body["loan"]["status"] == "COMPLETED"
        assert body["loan"]["total_interest"] > 0
        assert body["distributions"] == []
        assert InterestDistribution.query.count() == 0
        assert all(gm.total_interest_received == 0.0
                   for gm in GroupMember.query.filter_by(group_id=grp.id))


class TestFullRepayment:

    def settle(self, client, headers, loan_id, week=1):
        return client.post("/api/loans/repay", json={"loanId": loan_id, "paymentDate": pay_date(week),
                                                     "isFullRepayment": True}, headers=headers)

    def test_penalties_and_member_shares(self, client, admin_headers, rosca):
        _, _, cycle, loan = rosca(n=6, interest_rate=2.0)
        assert loan["principal"] == 600.0

        resp = self.settle(client, admin_headers, loan["id"])
        assert resp.status_code == 200
        body = resp.get_json()

        rep = body["repayment"]
        assert rep["principal"] == 600.0
        assert rep["interest"] == 120.0
        assert rep["loan_penalty"] == 60.0
        assert rep["interest_penalty"] == 12.0
        assert rep["penalty"] == 72.0
        assert rep["total"] == 792.0
        assert rep["per_member"] == {"savings": 100.0, "loan_penalty": 10.0,
                                     "interest_penalty": 2.0, "total": 112.0}
        assert rep["per_member_share"] == 112.0

        assert body["loan"]["status"] == "COMPLETED"
        assert body["loan"]["remaining"] == 0.0
        assert body["loan"]["current_week"] == 10
        assert body["loan"]["late_payment_penalty"] == 72.0
        assert body["transaction"]["penalty"] == 72.0
        assert sorted(d["amount"] for d in body["distributions"]) == [20.0] * 6

        fund = GroupFund.query.filter_by(cycle_id=cycle["id"]).one()
        assert fund.interest_pool == 192.0
        assert fund.total_funds == 162.24
        seq = LoanSequence.query.filter_by(cycle_id=cycle["id"], week=1).one()
        assert seq.status == "COMPLETED"

    def test_interest_already_paid_is_not_charged_twice(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=6, interest_rate=2.0)
        first = repay(client, admin_headers, loan["id"], 1).get_json()
        assert first["payment"]["interest"] == 12.0

        body = self.settle(client, admin_headers, loan["id"], week=2).get_json()
        assert body["repayment"]["principal"] == 540.0
        assert body["repayment"]["interest"] == 108.0
        assert body["repayment"]["total"] == 720.0
        assert body["loan"]["total_interest"] == 120.0
        assert body["loan"]["total_principal_paid"] == 600.0

    def test_settled_loan_is_closed(self, client, admin_headers, rosca):
        _, _, _, loan = rosca(n=2)
        assert self.settle(client, admin_headers, loan["id"]).status_code == 200
        assert self.settle(client, admin_headers, loan["id"]).status_code == 409
        assert repay(client, admin_headers, loan["id"], 2).status_code == 409

    def test_standalone_loan_has_no_group(self, client, admin_headers, make_member):
        m = make_member()
        loan = client.post("/api/loans", json={"memberId": m.id, "principal": 100},
                           headers=admin_headers).get_json()
        assert self.settle(client, admin_headers, loan["id"]).status_code == 404
        assert db.session.get(Loan, loan["id"]).status == "ACTIVE"
