from datetime import datetime

import pytest

from app import create_app
from config import TestConfig
from extensions import db
from groups.models import Group, GroupMember
from members.models import Member
from users.models import User, ROLE_ADMIN, ROLE_USER
from users.utils import issue_token

START = datetime(2025, 1, 6, 9, 0, 0)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _auth(user):
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def admin(app):
    user = User(email="admin@example.com", name="Admin", role=ROLE_ADMIN)
    user.set_password("admin-pass")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_headers(admin):
    return _auth(admin)


@pytest.fixture
def make_member(app):
    counter = {"n": 0}

    def _make(name=None):
        counter["n"] += 1
        m = Member(member_code=f"M{counter['n']:03d}", name=name or f"Member {counter['n']}")
        db.session.add(m)
        db.session.commit()
        return m
    return _make


@pytest.fixture
def user_headers(app):
    """Headers for a USER login linked to the given member."""
    def _make(member):
        user = User(email=f"user{member.id}@example.com", role=ROLE_USER, member_id=member.id)
        user.set_password("user-pass")
        db.session.add(user)
        db.session.commit()
        return _auth(user)
    return _make


@pytest.fixture
def make_group(app):
    def _make(name="Weekly Circle", members=(), weekly_amount=100.0, interest_rate=1.0, loan_weeks=10):
        grp = Group(name=name, weekly_amount=weekly_amount, interest_rate=interest_rate, loan_weeks=loan_weeks)
        db.session.add(grp)
        db.session.flush()
        for m in members:
            db.session.add(GroupMember(group_id=grp.id, member_id=m.id, joining_week=1,
                                       joining_date=START, weekly_amount=weekly_amount))
        db.session.commit()
        return grp
    return _make


@pytest.fixture
def cycle_payload():
    def _make(members, cycle_number=1, group=None, **extra):
        payload = {
            "cycleNumber": cycle_number,
            "startDate": START.isoformat(),
            "members": [m.id for m in members],
        }
        if group is not None:
            payload["groupId"] = group.id
        payload.update(extra)
        return payload
    return _make
