# app/services/identity_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import NotFound, PersistenceError, UpstreamError
from app.core.security import create_access_token, decode_token, hash_password, verify_password
from app.models.account import Account
from app.models.auth_session import AuthSession
from app.models.enums import AccountRole
from app.policies.rbac import Principal

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("full_name", "organization_name", "phone")


def _now():
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    # sqlite hands back naive datetimes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityProvider:
    """
    Account store and session issuer.

    The rest of the service treats this as the identity boundary: it creates
    users, signs them in and out, and resolves a bearer token into a
    Principal. Every failure surfaces as UpstreamError.
    """

    def __init__(self, db: Session, now: Callable[[], datetime] = _now):
        self.db = db
        self.now = now

    # ---------------------------
    # USERS
    # ---------------------------

    def create_user(
        self,
        *,
        email: str,
        password: str,
        user_metadata: Dict[str, Any],
        require_email_confirmation: bool = False,
    ) -> Account:
        settings = get_settings()
        email_norm = normalize_email(email)

        if "@" not in email_norm or email_norm.startswith("@") or email_norm.endswith("@"):
            raise UpstreamError("Unable to validate email address: invalid format")
        if len(password or "") < settings.password_min_length:
            raise UpstreamError(
                f"Password should be at least {settings.password_min_length} characters."
            )

        existing = self.db.execute(
            select(Account.id).where(Account.email == email_norm)
        ).first()
        if existing:
            raise UpstreamError("A user with this email address has already been registered")

        role = user_metadata.get("role") or AccountRole.DONOR.value
        try:
            AccountRole(role)
        except ValueError:
            raise UpstreamError(f"Invalid role: {role}")

        now = self.now()
        acct = Account(
            email=email_norm,
            password_hash=hash_password(password),
            role=role,
            full_name=user_metadata.get("full_name") or "",
            organization_name=user_metadata.get("organization_name"),
            phone=user_metadata.get("phone"),
            email_confirmed_at=None if require_email_confirmation else now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(acct)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise UpstreamError("A user with this email address has already been registered")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Could not store account: {e.__class__.__name__}")

        self.db.refresh(acct)
        logger.info("account created", extra={"account_id": str(acct.id), "role": acct.role})
        return acct

    def get_account(self, account_id: uuid.UUID) -> Account:
        acct = self.db.get(Account, account_id)
        if not acct:
            raise NotFound("Account not found.")
        return acct

    # ---------------------------
    # SESSIONS
    # ---------------------------

    def sign_in(self, email: str, password: str) -> Tuple[Account, str, datetime]:
        acct = self.db.execute(
            select(Account).where(
                Account.email == normalize_email(email),
                Account.is_active.is_(True),
            )
        ).scalar_one_or_none()

        if not acct or not verify_password(password, acct.password_hash):
            raise UpstreamError("Invalid login credentials")
        if acct.email_confirmed_at is None:
            raise UpstreamError("Email not confirmed")

        session_id = uuid.uuid4()
        token, expires_at = create_access_token(
            subject=str(acct.id),
            session_id=str(session_id),
            claims={"role": acct.role, "email": acct.email},
        )
        self.db.add(AuthSession(id=session_id, account_id=acct.id, expires_at=expires_at))
        self.db.commit()
        return acct, token, expires_at

    def sign_out(self, session_id: str) -> None:
        row = self.db.get(AuthSession, uuid.UUID(session_id))
        if not row:
            raise NotFound("Session not found.")
        if row.revoked_at is None:
            row.revoked_at = self.now()
            self.db.commit()

    def get_session(self, token: str) -> Principal:
        try:
            payload = decode_token(token)
        except JWTError:
            raise UpstreamError("Invalid or expired token.")

        sub = payload.get("sub")
        jti = payload.get("jti")
        if not sub or not jti:
            raise UpstreamError("Token missing required claims.")

        try:
            session_uuid = uuid.UUID(str(jti))
        except ValueError:
            raise UpstreamError("Token missing required claims.")

        sess = self.db.get(AuthSession, session_uuid)
        if not sess or sess.revoked_at is not None:
            raise UpstreamError("Session has been signed out.")
        if _as_utc(sess.expires_at) <= self.now():
            raise UpstreamError("Session expired.")

        acct = self.db.get(Account, sess.account_id)
        if not acct or not acct.is_active or str(acct.id) != str(sub):
            raise UpstreamError("Account is not active.")

        try:
            role = AccountRole(acct.role)
        except ValueError:
            raise UpstreamError("Invalid role on account.")

        return Principal(
            account_id=str(acct.id),
            role=role,
            email=acct.email,
            session_id=str(sess.id),
        )
