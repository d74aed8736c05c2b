from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.core.errors import MalformedRequest, RateLimited, UpstreamError
from app.core.rate_limit import SignupAttemptLimiter, SlidingWindow
from app.models.signup_attempt import SignupAttempt
from app.services.signup_service import SignupService, coerce_role

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, at: datetime):
        self.at = at

    def __call__(self) -> datetime:
        return self.at


@pytest.fixture
def clock():
    return Clock(T0)


@pytest.fixture
def signup(db, clock):
    limiter = SignupAttemptLimiter(
        per_ip=SlidingWindow(minutes=60, limit=5),
        per_email=SlidingWindow(minutes=60, limit=3),
    )
    return SignupService(db, limiter=limiter, now=clock)


def attempts(db):
    return list(db.execute(select(SignupAttempt).order_by(SignupAttempt.attempt_time)).scalars())


def test_coerce_role():
    allowed = ["donor", "ngo", "recipient"]
    assert coerce_role({"role": "ngo"}, allowed, "donor")["role"] == "ngo"
    assert coerce_role({"role": "admin"}, allowed, "donor")["role"] == "donor"
    assert coerce_role({}, allowed, "donor")["role"] == "donor"


def test_successful_signup_is_usable_immediately(db, signup):
    acct = signup.attempt_signup(
        email="  Alice@Example.ORG ",
        password="secret123",
        user_data={"full_name": "Alice", "role": "ngo", "organization_name": "Food Bank"},
        ip_address="10.0.0.1",
    )

    assert acct.email == "alice@example.org"
    assert acct.role == "ngo"
    assert acct.organization_name == "Food Bank"
    assert acct.email_confirmed_at is not None

    rows = attempts(db)
    assert len(rows) == 1
    assert rows[0].success is True
    assert rows[0].email == "alice@example.org"
    assert rows[0].ip_address == "10.0.0.1"


def test_privileged_role_is_coerced_to_donor(signup):
    acct = signup.attempt_signup(
        email="mallory@example.org",
        password="secret123",
        user_data={"full_name": "Mallory", "role": "admin"},
    )
    assert acct.role == "donor"


def test_sixth_attempt_from_one_ip_is_rate_limited(db, signup):
    for i in range(5):
        signup.attempt_signup(
            email=f"user{i}@example.org",
            password="secret123",
            user_data={"full_name": f"User {i}"},
            ip_address="10.0.0.9",
        )

    with pytest.raises(RateLimited) as exc:
        signup.attempt_signup(
            email="user5@example.org",
            password="secret123",
            user_data={},
            ip_address="10.0.0.9",
        )
    assert exc.value.reason == "ip"
    assert exc.value.status_code == 429

    rows = attempts(db)
    assert len(rows) == 6
    assert sum(1 for r in rows if r.success) == 5


def test_fourth_attempt_for_one_email_is_rate_limited(db, signup):
    signup.attempt_signup(email="bob@example.org", password="secret123", user_data={}, ip_address="10.0.1.1")

    for ip in ("10.0.1.2", "10.0.1.3"):
        with pytest.raises(UpstreamError):
            signup.attempt_signup(email="bob@example.org", password="secret123", user_data={}, ip_address=ip)

    with pytest.raises(RateLimited) as exc:
        signup.attempt_signup(email="bob@example.org", password="secret123", user_data={}, ip_address="10.0.1.4")
    assert exc.value.reason == "email"

    rows = attempts(db)
    assert len(rows) == 4
    assert sum(1 for r in rows if r.success) == 1


def test_window_slides(db, signup, clock):
    for i in range(5):
        with pytest.raises(UpstreamError):
            # too short, still counted against the IP
            signup.attempt_signup(email=f"w{i}@example.org", password="123", user_data={}, ip_address="10.0.2.1")

    with pytest.raises(RateLimited):
        signup.attempt_signup(email="w5@example.org", password="secret123", user_data={}, ip_address="10.0.2.1")

    clock.at = T0 + timedelta(minutes=61)
    acct = signup.attempt_signup(email="w5@example.org", password="secret123", user_data={}, ip_address="10.0.2.1")
    assert acct.email == "w5@example.org"


def test_missing_ip_skips_ip_check(db, signup):
    for i in range(6):
        with pytest.raises(UpstreamError):
            signup.attempt_signup(email=f"n{i}@example.org", password="1", user_data={})
    assert len(attempts(db)) == 6


def test_missing_credentials_are_malformed(db, signup):
    with pytest.raises(MalformedRequest):
        signup.attempt_signup(email="", password="secret123", user_data={}, ip_address="10.0.3.1")
    with pytest.raises(MalformedRequest):
        signup.attempt_signup(email="x@example.org", password=None, user_data={}, ip_address="10.0.3.1")

    rows = attempts(db)
    assert len(rows) == 2
    assert not any(r.success for r in rows)


def test_upstream_rejection_is_logged_as_failed_attempt(db, signup):
    with pytest.raises(UpstreamError):
        signup.attempt_signup(email="not-an-email", password="secret123", user_data={}, ip_address="10.0.4.1")

    rows = attempts(db)
    assert len(rows) == 1
    assert rows[0].success is False
