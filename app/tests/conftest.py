import os
import uuid
from datetime import datetime, timedelta, timezone

# app.db.session builds its engine at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# FORCE model registration
import app.models  # noqa

from app.core.realtime import ChangeBus
from app.core.security import create_access_token
from app.db.base import Base
from app.db.session import get_db
from app.models.account import Account
from app.models.auth_session import AuthSession
from app.models.listing import Listing


def utc(**delta) -> datetime:
    return datetime.now(timezone.utc) + timedelta(**delta)


@pytest.fixture(scope="function")
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'foodshare.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def bus():
    return ChangeBus()


@pytest.fixture(scope="function")
def client(session_factory):
    from app.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_account(db):
    def _make(role="donor", email=None, full_name="Test User"):
        acct = Account(
            email=email or f"{role}-{uuid.uuid4().hex[:8]}@example.org",
            password_hash="!",
            role=role,
            full_name=full_name,
            email_confirmed_at=utc(),
        )
        db.add(acct)
        db.commit()
        return acct

    return _make


@pytest.fixture
def make_listing(db):
    def _make(donor, *, title="Vegetable curry", category="prepared_food", expires_in=timedelta(days=1)):
        listing = Listing(
            donor_id=donor.id,
            title=title,
            description="Freshly cooked, still warm",
            quantity="20 meals",
            category=category,
            expiry_date=utc() + expires_in,
            pickup_time_start=utc(hours=1),
            pickup_time_end=utc(hours=3),
            pickup_location="1 Test Street",
        )
        db.add(listing)
        db.commit()
        return listing

    return _make


@pytest.fixture
def auth_headers(db):
    """Issues a live session for an account without going through bcrypt."""
    def _headers(acct):
        session_id = uuid.uuid4()
        token, expires_at = create_access_token(
            subject=str(acct.id),
            session_id=str(session_id),
            claims={"role": acct.role, "email": acct.email},
        )
        db.add(AuthSession(id=session_id, account_id=acct.id, expires_at=expires_at))
        db.commit()
        return {"Authorization": f"Bearer {token}"}

    return _headers
